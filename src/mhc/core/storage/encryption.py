"""Encryption of custom sample payloads at rest.

Only a sample's measurement (value and unit) is sealed; its type and dates
stay in the clear so the repository can filter and order by them in SQL.
"""

from __future__ import annotations

import json
import logging
import math

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)


class EncryptionError(Exception):
    """Raised when a key is unusable or a payload cannot be sealed or opened."""


class FieldEncryptor:
    """Seals ``(value, unit)`` measurements into Fernet tokens and back."""

    def __init__(self, key: str) -> None:
        if not key or not key.strip():
            raise EncryptionError("Encryption key must not be empty")
        try:
            self._fernet = Fernet(key.encode())
        except (ValueError, TypeError) as exc:
            raise EncryptionError(f"Invalid encryption key: {exc}") from exc

    def encrypt_payload(self, value: float, unit: str) -> str:
        """Seal a measurement. Non-finite values are refused."""
        if not math.isfinite(value):
            raise EncryptionError(f"Encryption failed: non-finite value {value!r}")
        plaintext = json.dumps({"value": float(value), "unit": unit}, separators=(",", ":"))
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def decrypt_payload(self, token: str) -> tuple[float, str]:
        """Open a token produced by :meth:`encrypt_payload`.

        Raises:
            EncryptionError: Wrong key, tampered token, or a payload that is
                not a measurement.
        """
        try:
            plaintext = self._fernet.decrypt(token.encode("utf-8"))
        except InvalidToken as exc:
            raise EncryptionError("Decryption failed: invalid token or wrong key") from exc
        try:
            payload = json.loads(plaintext)
            return float(payload["value"]), str(payload["unit"])
        except (ValueError, TypeError, KeyError) as exc:
            raise EncryptionError(f"Decryption failed: malformed payload ({exc})") from exc

    @staticmethod
    def generate_key() -> str:
        return Fernet.generate_key().decode("utf-8")
