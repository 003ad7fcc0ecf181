"""Supabase-backed payment record repository."""

from dataclasses import dataclass

from supabase import Client

from skill_ledger.adapters.supabase_query import execute, parse_timestamp
from skill_ledger.domain.records import PaymentRecord, PaymentStatus
from skill_ledger.errors import StorageError
from skill_ledger.services.payments import PaymentRecordRepository


@dataclass
class SupabasePaymentRecordRepository(PaymentRecordRepository):
    """Supabase implementation for payment_records."""

    client: Client

    async def create_payment(self, record: PaymentRecord) -> PaymentRecord:
        """Insert a payment record row."""
        response = await execute(
            self.client.table("payment_records").insert(
                {
                    "session_id": record.session_id,
                    "transaction_id": record.transaction_id,
                    "amount_units": record.amount_units,
                    "sender_address": record.sender_address,
                    "receiver_address": record.receiver_address,
                    "status": str(record.status),
                    "created_at": record.created_at.isoformat(),
                }
            )
        )
        if not response.data:
            raise StorageError("Failed to create payment record")
        return _to_payment(response.data[0])

    async def list_payments(self, session_id: str) -> list[PaymentRecord]:
        """Return payment records for a session."""
        response = await execute(
            self.client.table("payment_records")
            .select(
                "session_id, transaction_id, amount_units, sender_address, "
                "receiver_address, status, created_at"
            )
            .eq("session_id", session_id)
            .order("created_at")
        )
        return [_to_payment(row) for row in response.data or []]


def _to_payment(row: dict[str, object]) -> PaymentRecord:
    return PaymentRecord(
        session_id=str(row["session_id"]),
        transaction_id=str(row["transaction_id"]),
        amount_units=int(row["amount_units"]),
        sender_address=str(row["sender_address"]),
        receiver_address=str(row["receiver_address"]),
        status=PaymentStatus(row["status"]),
        created_at=parse_timestamp(row["created_at"]),
    )
