"""Session payment settlement on the ledger."""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol

from skill_ledger.adapters.algorand_client import (
    LedgerClient,
    signer_from_mnemonic,
    validate_address,
    validate_amount,
)
from skill_ledger.domain.notes import PaymentNote, encode_note
from skill_ledger.domain.records import PaymentRecord, PaymentStatus
from skill_ledger.errors import (
    BroadcastError,
    InvalidNoteError,
    InvalidSessionError,
    NetworkError,
)
from skill_ledger.services.backoff import BackoffPolicy, call_with_backoff

_logger = logging.getLogger(__name__)


class PaymentRecordRepository(Protocol):
    """Persistence interface for payment records."""

    async def create_payment(self, record: PaymentRecord) -> PaymentRecord:
        """Insert a payment record and return it."""

    async def list_payments(self, session_id: str) -> list[PaymentRecord]:
        """Return payment records for a session, oldest first."""


@dataclass
class PaymentService:
    """Builds, signs and submits session payments, then records them."""

    ledger_client: LedgerClient
    payment_repository: PaymentRecordRepository
    submit_policy: BackoffPolicy = field(default_factory=BackoffPolicy)

    async def process_payment(  # noqa: PLR0913
        self,
        session_id: str,
        amount_units: int,
        signer_mnemonic: str,
        receiver_address: str,
        metadata: dict[str, object] | None = None,
    ) -> str:
        """Transfer amount_units to receiver_address and return the txn id.

        A PaymentRecord is written only after the ledger accepted the
        transaction; failures leave no record.
        """
        validate_amount(amount_units)
        validate_address(receiver_address, "receiver address")
        if not session_id:
            raise InvalidSessionError("Session id is required")
        signer = signer_from_mnemonic(signer_mnemonic)
        note = _payment_note(session_id, metadata or {})

        txn = await call_with_backoff(
            lambda: self.ledger_client.build_payment_txn(
                signer.address, receiver_address, amount_units, note
            ),
            retry_on=(NetworkError,),
            policy=self.submit_policy,
            action="build payment transaction",
        )
        signed = self.ledger_client.sign(txn, signer.private_key)
        txid = await call_with_backoff(
            lambda: self.ledger_client.submit(signed),
            retry_on=(NetworkError, BroadcastError),
            policy=self.submit_policy,
            action="submit payment",
        )
        await self.payment_repository.create_payment(
            PaymentRecord(
                session_id=session_id,
                transaction_id=txid,
                amount_units=amount_units,
                sender_address=signer.address,
                receiver_address=receiver_address,
                status=PaymentStatus.COMPLETED,
                created_at=datetime.now(tz=UTC),
            )
        )
        _logger.info(
            "Payment submitted: session_id=%s transaction_id=%s amount_units=%s",
            session_id,
            txid,
            amount_units,
        )
        return txid

    async def record_failed_payment(  # noqa: PLR0913
        self,
        session_id: str,
        transaction_id: str,
        amount_units: int,
        sender_address: str,
        receiver_address: str,
    ) -> PaymentRecord:
        """Record a payment attempt the caller knows to have failed."""
        return await self.payment_repository.create_payment(
            PaymentRecord(
                session_id=session_id,
                transaction_id=transaction_id,
                amount_units=amount_units,
                sender_address=sender_address,
                receiver_address=receiver_address,
                status=PaymentStatus.FAILED,
                created_at=datetime.now(tz=UTC),
            )
        )

    async def payments_for_session(self, session_id: str) -> list[PaymentRecord]:
        """Return recorded payments for a session."""
        return await self.payment_repository.list_payments(session_id)


def _payment_note(session_id: str, metadata: dict[str, object]) -> bytes:
    # pydantic validation and serialization errors are both ValueErrors.
    try:
        return encode_note(PaymentNote(session_id=session_id, metadata=metadata))
    except ValueError as exc:
        raise InvalidNoteError(f"Payment note could not be encoded: {exc}") from exc
