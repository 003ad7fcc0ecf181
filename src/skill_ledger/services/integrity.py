"""Integrity verification of session records against ledger commitments."""

import logging
from dataclasses import dataclass, field
from enum import StrEnum

from skill_ledger.adapters.algorand_client import LedgerClient
from skill_ledger.domain.notes import parse_session_note
from skill_ledger.errors import IntegrityMismatch, NotFoundError
from skill_ledger.services.backoff import BackoffPolicy, wait_for_confirmation
from skill_ledger.services.sessions import SessionRecordRepository

_logger = logging.getLogger(__name__)


class VerificationOutcome(StrEnum):
    """Definitive result of comparing a record with its commitment."""

    VERIFIED = "verified"
    MISMATCH = "mismatch"


@dataclass(frozen=True)
class VerificationReport:
    """Details of a completed verification."""

    session_id: str
    transaction_id: str
    outcome: VerificationOutcome
    record_hash: str
    committed_hash: str
    confirmed_round: int | None


@dataclass
class IntegrityVerifier:
    """Re-fetches anchored commitments and compares them with stored records.

    Unconfirmed transactions are polled with bounded backoff. Cancelling a
    verification propagates asyncio.CancelledError: an incomplete check is
    never reported as a mismatch or a timeout.
    """

    ledger_client: LedgerClient
    session_repository: SessionRecordRepository
    confirmation_policy: BackoffPolicy = field(
        default_factory=lambda: BackoffPolicy(attempts=10, initial_delay_seconds=1.0)
    )

    async def verify(self, session_id: str) -> bool:
        """Return True when the record matches its commitment.

        Raises IntegrityMismatch when they disagree.
        """
        report = await self.inspect(session_id)
        if report.outcome is VerificationOutcome.MISMATCH:
            raise IntegrityMismatch(
                session_id=session_id,
                transaction_id=report.transaction_id,
                expected=report.record_hash,
                actual=report.committed_hash,
            )
        return True

    async def inspect(self, session_id: str) -> VerificationReport:
        """Compare the stored hash with the on-chain note and report."""
        record = await self.session_repository.get_record(session_id)
        if record is None:
            raise NotFoundError(f"No session record for {session_id}")

        txn = await wait_for_confirmation(
            self.ledger_client, record.transaction_id, self.confirmation_policy
        )
        committed = parse_session_note(txn.note)
        outcome = (
            VerificationOutcome.VERIFIED
            if committed.hash == record.session_hash
            else VerificationOutcome.MISMATCH
        )
        if outcome is VerificationOutcome.MISMATCH:
            _logger.warning(
                "Integrity mismatch: session_id=%s transaction_id=%s",
                session_id,
                record.transaction_id,
            )
        return VerificationReport(
            session_id=session_id,
            transaction_id=record.transaction_id,
            outcome=outcome,
            record_hash=record.session_hash,
            committed_hash=committed.hash,
            confirmed_round=txn.confirmed_round,
        )
