"""Symmetric encryption of session token records carried in cookies."""

from __future__ import annotations

import base64
import hashlib
import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from pydantic import ValidationError

from assistant.models.session import SessionTokenRecord

logger = logging.getLogger(__name__)


class SessionCipherService:
    """Encrypt and decrypt session records using a derived Fernet key."""

    def __init__(self, *, secret: str, max_age_seconds: int | None = None) -> None:
        if not secret:
            raise ValueError("Session encryption secret must be provided.")
        digest = hashlib.sha256(secret.encode("utf-8")).digest()
        key = base64.urlsafe_b64encode(digest)
        self._fernet = Fernet(key)
        self._max_age = max_age_seconds

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a plaintext string and return the ciphertext."""
        token = self._fernet.encrypt(plaintext.encode("utf-8"))
        return token.decode("utf-8")

    def decrypt(self, ciphertext: str) -> str:
        """Decrypt a ciphertext string, rejecting ones older than the session max age."""
        try:
            plaintext = self._fernet.decrypt(ciphertext.encode("utf-8"), ttl=self._max_age)
        except InvalidToken as exc:
            raise ValueError(
                "Failed to decrypt session; invalid or expired ciphertext provided."
            ) from exc
        return plaintext.decode("utf-8")

    def seal(self, record: SessionTokenRecord) -> str:
        """Serialize and encrypt a session record as an unpadded cookie value."""
        return self.encrypt(record.model_dump_json()).rstrip("=")

    def open(self, cookie_value: str | None) -> Optional[SessionTokenRecord]:
        """Return the session record in a cookie, or None when it is absent or unreadable."""
        if not cookie_value:
            return None
        padded = cookie_value + "=" * (-len(cookie_value) % 4)
        try:
            return SessionTokenRecord.model_validate_json(self.decrypt(padded))
        except (ValueError, ValidationError) as exc:
            logger.info("Ignoring unreadable session cookie: %s", exc)
            return None


__all__ = ["SessionCipherService"]
