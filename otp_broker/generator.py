# SPDX-License-Identifier: GPL-3.0-only
"""Token generation."""

import secrets
import string


class TokenGenerator:
    """Generates random tokens from an alphabet."""

    def __init__(self, length: int = 5, alphabet: str = string.digits):
        if length < 1:
            raise ValueError("Token length must be at least 1.")
        if not alphabet:
            raise ValueError("Token alphabet must not be empty.")
        self.length = length
        self.alphabet = alphabet

    def generate(self) -> str:
        """Generate random OTP."""
        return "".join(secrets.choice(self.alphabet) for _ in range(self.length))
