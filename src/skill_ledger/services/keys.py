"""Per-participant session key storage with envelope encryption."""

import json
import logging
from dataclasses import dataclass, field
from typing import Protocol

from skill_ledger import crypto
from skill_ledger.domain.records import KeyRecord, WrappedKeyRow
from skill_ledger.errors import KeyNotFoundError

_logger = logging.getLogger(__name__)


class KeyRecordRepository(Protocol):
    """Persistence interface for wrapped session keys."""

    async def insert_key(self, row: WrappedKeyRow) -> None:
        """Insert a key row; fail if one exists for the same session and user."""

    async def upsert_key(self, row: WrappedKeyRow) -> None:
        """Insert or overwrite the key row for the same session and user."""

    async def get_key(self, session_id: str, user_id: str) -> WrappedKeyRow | None:
        """Return the key row for exactly this session and user, if present."""


@dataclass
class KeyStore:
    """Stores session keys wrapped under a key-encryption key.

    The wrapped key is bound to its (session_id, user_id) owner through AEAD
    associated data, so a row copied to another participant fails to unwrap.
    """

    repository: KeyRecordRepository
    key_encryption_key: bytes = field(repr=False)

    def __post_init__(self) -> None:
        if len(self.key_encryption_key) != crypto.KEY_SIZE_BYTES:
            raise ValueError("Key-encryption key must be 32 bytes")

    async def store(self, session_id: str, user_id: str, key: bytes, iv: bytes) -> None:
        """Wrap and persist a participant's session key. Keys are write-once."""
        await self.repository.insert_key(self._wrap(session_id, user_id, key, iv))
        _logger.info("Stored session key: session_id=%s user_id=%s", session_id, user_id)

    async def replace(
        self, session_id: str, user_id: str, key: bytes, iv: bytes
    ) -> None:
        """Overwrite a participant's key when a failed commit is retried."""
        await self.repository.upsert_key(self._wrap(session_id, user_id, key, iv))
        _logger.info(
            "Replaced session key: session_id=%s user_id=%s", session_id, user_id
        )

    def _wrap(
        self, session_id: str, user_id: str, key: bytes, iv: bytes
    ) -> WrappedKeyRow:
        wrap_nonce = crypto.generate_nonce()
        wrapped = wrap_nonce + crypto.encrypt(
            key,
            self.key_encryption_key,
            wrap_nonce,
            associated_data=_owner_binding(session_id, user_id),
        )
        return WrappedKeyRow(
            session_id=session_id, user_id=user_id, wrapped_key=wrapped, iv=iv
        )

    async def retrieve(self, session_id: str, user_id: str) -> KeyRecord:
        """Return the unwrapped key for exactly this session participant."""
        row = await self.repository.get_key(session_id, user_id)
        if row is None or row.session_id != session_id or row.user_id != user_id:
            raise KeyNotFoundError(
                f"No key for session {session_id} and user {user_id}"
            )
        wrap_nonce = row.wrapped_key[: crypto.NONCE_SIZE_BYTES]
        key = crypto.decrypt(
            row.wrapped_key[crypto.NONCE_SIZE_BYTES :],
            self.key_encryption_key,
            wrap_nonce,
            associated_data=_owner_binding(session_id, user_id),
        )
        return KeyRecord(session_id=session_id, user_id=user_id, key=key, iv=row.iv)


def _owner_binding(session_id: str, user_id: str) -> bytes:
    return json.dumps([session_id, user_id]).encode("utf-8")
