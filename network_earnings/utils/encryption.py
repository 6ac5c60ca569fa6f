from cryptography.fernet import Fernet, InvalidToken
from typing import Any, Dict, Union
import base64
import logging

from network_earnings.core.config import settings

logger = logging.getLogger(__name__)

# Keys of a payout method's details that are stored encrypted and returned masked
SENSITIVE_DETAIL_KEYS = ("account_number", "sort_code", "iban", "routing_number", "card_number")


class EncryptionService:
    def __init__(self, key: Union[str, bytes, None] = None):
        self._key = key or settings.ENCRYPTION_KEY
        if not self._key:
            # Data encrypted with a generated key is unreadable after a restart
            self._key = Fernet.generate_key()
            logger.warning(
                "Using generated encryption key. Set ENCRYPTION_KEY in production.")

        if isinstance(self._key, str):
            self._key = self._key.encode()

        self._fernet = Fernet(self._key)

    def encrypt(self, data: Union[str, bytes]) -> str:
        """Encrypt ``data`` and return it as base64 text."""
        if isinstance(data, str):
            data = data.encode()
        return base64.b64encode(self._fernet.encrypt(data)).decode()

    def decrypt(self, encrypted_data: Union[str, bytes]) -> str:
        if isinstance(encrypted_data, str):
            encrypted_data = base64.b64decode(encrypted_data)
        try:
            return self._fernet.decrypt(encrypted_data).decode()
        except InvalidToken:
            logger.error("Payout details could not be decrypted with the configured key")
            raise

    def encrypt_details(self, details: Dict[str, Any]) -> Dict[str, Any]:
        """Copy of ``details`` with the sensitive values encrypted for storage."""
        details = dict(details or {})
        for key in SENSITIVE_DETAIL_KEYS:
            if details.get(key):
                details[key] = self.encrypt(str(details[key]))
        return details

    def decrypt_details(self, details: Dict[str, Any]) -> Dict[str, Any]:
        details = dict(details or {})
        for key in SENSITIVE_DETAIL_KEYS:
            if details.get(key):
                details[key] = self.decrypt(details[key])
        return details

    def masked_details(self, details: Dict[str, Any]) -> Dict[str, Any]:
        """
        Stored ``details`` as shown to their owner.

        Sensitive values keep their last four characters. When they cannot be
        decrypted (the key changed) they are hidden entirely.
        """
        try:
            plain = self.decrypt_details(details)
        except (InvalidToken, ValueError):
            return {
                key: ("**********" if key in SENSITIVE_DETAIL_KEYS else value)
                for key, value in (details or {}).items()
            }
        for key in SENSITIVE_DETAIL_KEYS:
            if plain.get(key):
                plain[key] = f"****{str(plain[key])[-4:]}"
        return plain


encryption_service = EncryptionService()
