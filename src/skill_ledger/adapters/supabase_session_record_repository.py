"""Supabase-backed session record repository."""

from dataclasses import dataclass

from supabase import Client

from skill_ledger.adapters.supabase_query import (
    decode_bytes,
    encode_bytes,
    execute,
    parse_timestamp,
)
from skill_ledger.domain.records import SessionRecord, SessionStatus
from skill_ledger.errors import StorageError
from skill_ledger.services.sessions import SessionRecordRepository

_COLUMNS = (
    "session_id, transaction_id, session_hash, participants, encrypted, "
    "created_at, status, confirmed_round, encrypted_payload"
)


@dataclass
class SupabaseSessionRecordRepository(SessionRecordRepository):
    """Supabase implementation for session_records."""

    client: Client

    async def create_record(self, record: SessionRecord) -> SessionRecord:
        """Insert a session record row and return it."""
        response = await execute(
            self.client.table("session_records").insert(_to_row(record))
        )
        if not response.data:
            raise StorageError("Failed to create session record")
        return _to_record(response.data[0])

    async def replace_failed_record(
        self, record: SessionRecord
    ) -> SessionRecord | None:
        """Overwrite a failed record; the status filter makes it conditional."""
        response = await execute(
            self.client.table("session_records")
            .update(_to_row(record))
            .eq("session_id", record.session_id)
            .eq("status", str(SessionStatus.FAILED))
        )
        if not response.data:
            return None
        return _to_record(response.data[0])

    async def get_record(self, session_id: str) -> SessionRecord | None:
        """Return a session record by session id, if present."""
        response = await execute(
            self.client.table("session_records")
            .select(_COLUMNS)
            .eq("session_id", session_id)
            .limit(1)
        )
        if not response.data:
            return None
        return _to_record(response.data[0])

    async def promote_record(
        self,
        session_id: str,
        status: SessionStatus,
        encrypted: bool | None,
        confirmed_round: int | None,
    ) -> SessionRecord | None:
        """Conditionally update a pending record in a single statement."""
        response = await execute(
            self.client.table("session_records")
            .update(
                {
                    "status": str(status),
                    "encrypted": encrypted,
                    "confirmed_round": confirmed_round,
                }
            )
            .eq("session_id", session_id)
            .eq("status", str(SessionStatus.PENDING))
        )
        if not response.data:
            return None
        return _to_record(response.data[0])

    async def list_pending(self, limit: int) -> list[SessionRecord]:
        """Return pending session records, oldest first."""
        response = await execute(
            self.client.table("session_records")
            .select(_COLUMNS)
            .eq("status", str(SessionStatus.PENDING))
            .order("created_at")
            .limit(limit)
        )
        return [_to_record(row) for row in response.data or []]


def _to_record(row: dict[str, object]) -> SessionRecord:
    return SessionRecord(
        session_id=str(row["session_id"]),
        participants=list(row.get("participants") or []),
        session_hash=str(row["session_hash"]),
        transaction_id=str(row["transaction_id"]),
        created_at=parse_timestamp(row["created_at"]),
        encrypted=row.get("encrypted"),
        status=SessionStatus(row.get("status") or SessionStatus.PENDING),
        confirmed_round=row.get("confirmed_round"),
        encrypted_payload=decode_bytes(row.get("encrypted_payload")),
    )


def _to_row(record: SessionRecord) -> dict[str, object]:
    return {
        "session_id": record.session_id,
        "transaction_id": record.transaction_id,
        "session_hash": record.session_hash,
        "participants": list(record.participants),
        "encrypted": record.encrypted,
        "created_at": record.created_at.isoformat(),
        "status": str(record.status),
        "confirmed_round": record.confirmed_round,
        "encrypted_payload": encode_bytes(record.encrypted_payload),
    }
