"""Supabase-backed wrapped key repository."""

from dataclasses import dataclass

from supabase import Client

from skill_ledger.adapters.supabase_query import (
    UNIQUE_VIOLATION,
    decode_bytes,
    encode_bytes,
    execute,
)
from skill_ledger.domain.records import WrappedKeyRow
from skill_ledger.errors import KeyAlreadyExistsError, StorageError
from skill_ledger.services.keys import KeyRecordRepository


@dataclass
class SupabaseKeyRecordRepository(KeyRecordRepository):
    """Supabase implementation for key_records.

    The table carries a unique (session_id, user_id) constraint.
    """

    client: Client

    async def insert_key(self, row: WrappedKeyRow) -> None:
        """Insert a wrapped key row; duplicates raise KeyAlreadyExistsError."""
        try:
            response = await execute(
                self.client.table("key_records").insert(_key_payload(row))
            )
        except StorageError as exc:
            if getattr(exc.__cause__, "code", None) == UNIQUE_VIOLATION:
                raise KeyAlreadyExistsError(
                    f"Key already stored for session {row.session_id} "
                    f"and user {row.user_id}"
                ) from exc
            raise
        if not response.data:
            raise StorageError("Failed to store key record")

    async def upsert_key(self, row: WrappedKeyRow) -> None:
        """Insert or overwrite the wrapped key row for this session and user."""
        response = await execute(
            self.client.table("key_records").upsert(
                _key_payload(row), on_conflict="session_id,user_id"
            )
        )
        if not response.data:
            raise StorageError("Failed to store key record")

    async def get_key(self, session_id: str, user_id: str) -> WrappedKeyRow | None:
        """Return the wrapped key row for this session and user only."""
        response = await execute(
            self.client.table("key_records")
            .select("session_id, user_id, key, iv")
            .eq("session_id", session_id)
            .eq("user_id", user_id)
            .limit(1)
        )
        if not response.data:
            return None
        data = response.data[0]
        return WrappedKeyRow(
            session_id=str(data["session_id"]),
            user_id=str(data["user_id"]),
            wrapped_key=decode_bytes(data["key"]) or b"",
            iv=decode_bytes(data["iv"]) or b"",
        )


def _key_payload(row: WrappedKeyRow) -> dict[str, str | None]:
    return {
        "session_id": row.session_id,
        "user_id": row.user_id,
        "key": encode_bytes(row.wrapped_key),
        "iv": encode_bytes(row.iv),
    }
