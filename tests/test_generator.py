"""Test module for token generation."""

import string

import pytest

from otp_broker.generator import TokenGenerator


def test_generate_default_numeric_token():
    """Test default token is five digits."""
    token = TokenGenerator().generate()

    assert len(token) == 5
    assert token.isdigit()


def test_generate_custom_length_and_alphabet():
    """Test token respects configured length and alphabet."""
    generator = TokenGenerator(length=8, alphabet=string.ascii_uppercase)

    token = generator.generate()

    assert len(token) == 8
    assert set(token) <= set(string.ascii_uppercase)


def test_generate_single_symbol_alphabet():
    """Test generator draws only from the alphabet."""
    assert TokenGenerator(length=4, alphabet="7").generate() == "7777"


def test_generate_varies():
    """Test tokens are not constant."""
    generator = TokenGenerator(length=12)

    tokens = {generator.generate() for _ in range(20)}

    assert len(tokens) > 1


@pytest.mark.parametrize("length, alphabet", [(0, string.digits), (5, "")])
def test_invalid_generator_configuration(length, alphabet):
    """Test invalid length or alphabet is rejected."""
    with pytest.raises(ValueError):
        TokenGenerator(length=length, alphabet=alphabet)
