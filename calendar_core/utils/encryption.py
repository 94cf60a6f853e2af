# ===== calendar_core/utils/encryption.py =====
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from calendar_core.config.settings import get_settings
from calendar_core.exceptions import ConfigurationError


# Generate a key once and store it in your .env file:
# CALENDAR_ENCRYPTION_KEY = Fernet.generate_key()


class TokenCipher:
    """Fernet wrapper used to keep OAuth tokens encrypted at rest"""

    def __init__(self, key: Optional[str] = None):
        key = key or get_settings().CALENDAR_ENCRYPTION_KEY
        if not key:
            raise ConfigurationError("CALENDAR_ENCRYPTION_KEY is not set")
        try:
            self._fernet = Fernet(key.encode() if isinstance(key, str) else key)
        except ValueError as exc:
            raise ConfigurationError(f"CALENDAR_ENCRYPTION_KEY is invalid: {exc}") from exc

    def encrypt(self, token: Optional[str]) -> Optional[bytes]:
        """Encrypt a token string"""
        if not token:
            return None
        return self._fernet.encrypt(token.encode())

    def decrypt(self, encrypted_token: Optional[bytes]) -> Optional[str]:
        """Decrypt a token"""
        if not encrypted_token:
            return None
        try:
            return self._fernet.decrypt(encrypted_token).decode()
        except InvalidToken as exc:
            raise ConfigurationError(
                "Stored calendar token cannot be decrypted with the configured key"
            ) from exc
