"""Tests for token encryption at rest."""

import pytest
from cryptography.fernet import Fernet

from calendar_core.exceptions import ConfigurationError
from calendar_core.utils.encryption import TokenCipher
from conftest import TEST_FERNET_KEY


class TestTokenCipher:
    def test_encrypt_decrypt(self):
        cipher = TokenCipher(TEST_FERNET_KEY)

        encrypted = cipher.encrypt("ya29.secret")

        assert encrypted != b"ya29.secret"
        assert cipher.decrypt(encrypted) == "ya29.secret"

    def test_empty_values_pass_through(self):
        cipher = TokenCipher(TEST_FERNET_KEY)
        assert cipher.encrypt(None) is None
        assert cipher.decrypt(None) is None

    def test_key_from_settings(self):
        assert TokenCipher().decrypt(TokenCipher(TEST_FERNET_KEY).encrypt("x")) == "x"

    def test_invalid_key(self):
        with pytest.raises(ConfigurationError):
            TokenCipher("not-a-fernet-key")

    def test_wrong_key(self):
        encrypted = TokenCipher(Fernet.generate_key().decode()).encrypt("secret")

        with pytest.raises(ConfigurationError):
            TokenCipher(TEST_FERNET_KEY).decrypt(encrypted)
