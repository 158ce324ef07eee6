# SPDX-License-Identifier: GPL-3.0-only
"""OTP Broker - issues, stores and verifies one-time tokens."""
