"""Commit protocol anchoring encrypted session metadata on the ledger."""

import json
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Protocol

from skill_ledger import crypto
from skill_ledger.adapters.algorand_client import (
    LedgerClient,
    signer_from_mnemonic,
    transaction_id,
)
from skill_ledger.domain.notes import SessionNote, encode_note, parse_session_note
from skill_ledger.domain.records import SessionRecord, SessionStatus
from skill_ledger.errors import (
    BroadcastError,
    IntegrityMismatch,
    InvalidSessionError,
    NetworkError,
    NotFoundError,
    ParseError,
    SkillLedgerError,
)
from skill_ledger.services.backoff import (
    BackoffPolicy,
    call_with_backoff,
    wait_for_confirmation,
)
from skill_ledger.services.keys import KeyStore

_logger = logging.getLogger(__name__)


class CommitStage(StrEnum):
    """Stages of a single session commit."""

    IDLE = "IDLE"
    ENCRYPTING = "ENCRYPTING"
    HASHING = "HASHING"
    SUBMITTING = "SUBMITTING"
    AWAITING_CONFIRMATION = "AWAITING_CONFIRMATION"
    RECORDED = "RECORDED"
    FAILED = "FAILED"


class ReconcileOutcome(StrEnum):
    """Result of reconciling one pending record."""

    CONFIRMED = "confirmed"
    PENDING = "pending"
    FAILED = "failed"
    MISMATCH = "mismatch"


class SessionRecordRepository(Protocol):
    """Persistence interface for session commitment records."""

    async def create_record(self, record: SessionRecord) -> SessionRecord:
        """Insert a new record; fail if one exists for the session id."""

    async def replace_failed_record(
        self, record: SessionRecord
    ) -> SessionRecord | None:
        """Overwrite a failed record for the same session id in one write.

        Returns the new record, or None when the stored record was not failed.
        """

    async def get_record(self, session_id: str) -> SessionRecord | None:
        """Return the record for a session id, if present."""

    async def promote_record(
        self,
        session_id: str,
        status: SessionStatus,
        encrypted: bool | None,
        confirmed_round: int | None,
    ) -> SessionRecord | None:
        """Atomically move a pending record to status.

        Returns the updated record, or None when the record was not pending.
        """

    async def list_pending(self, limit: int) -> list[SessionRecord]:
        """Return pending records, oldest first."""


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome of reconciling one pending record."""

    session_id: str
    transaction_id: str
    outcome: ReconcileOutcome
    detail: str | None = None


@dataclass
class SessionLedgerService:
    """Encrypts, hashes, and anchors session metadata, then records it."""

    ledger_client: LedgerClient
    session_repository: SessionRecordRepository
    key_store: KeyStore
    submit_policy: BackoffPolicy = field(default_factory=BackoffPolicy)
    confirmation_policy: BackoffPolicy = field(
        default_factory=lambda: BackoffPolicy(attempts=10, initial_delay_seconds=1.0)
    )

    async def store_session(  # noqa: PLR0913
        self,
        session_id: str,
        metadata: dict[str, object],
        participants: list[str],
        signer_mnemonic: str,
        *,
        wait_for_confirmation: bool = True,
    ) -> str:
        """Commit session metadata and return the anchoring transaction id.

        A pending record and the initiator's key are written before the
        transaction is broadcast, so a crash after submission leaves a
        detectable pending record rather than an unrecorded ledger entry.
        A session whose previous commit failed may be committed again.
        """
        if not session_id:
            raise InvalidSessionError("Session id is required")
        if not participants:
            raise InvalidSessionError("At least one participant is required")
        signer = signer_from_mnemonic(signer_mnemonic)
        existing = await self.session_repository.get_record(session_id)
        if existing is not None and existing.status != SessionStatus.FAILED:
            raise InvalidSessionError(
                f"Session {session_id} already has a {existing.status} commitment"
            )

        _log_stage(session_id, CommitStage.ENCRYPTING)
        key = crypto.generate_key()
        iv = crypto.generate_nonce()
        ciphertext = crypto.encrypt(_serialize_metadata(metadata), key, iv)

        _log_stage(session_id, CommitStage.HASHING)
        session_hash = crypto.hash_hex(ciphertext)
        note = encode_note(
            SessionNote(hash=session_hash, participant_count=len(participants))
        )

        _log_stage(session_id, CommitStage.SUBMITTING)
        txn = await call_with_backoff(
            lambda: self.ledger_client.build_anchor_txn(signer.address, note),
            retry_on=(NetworkError,),
            policy=self.submit_policy,
            action="build anchor transaction",
        )
        signed = self.ledger_client.sign(txn, signer.private_key)
        reserved_id = transaction_id(signed)
        pending = SessionRecord(
            session_id=session_id,
            participants=list(participants),
            session_hash=session_hash,
            transaction_id=reserved_id,
            created_at=datetime.now(tz=UTC),
            encrypted=None,
            status=SessionStatus.PENDING,
            encrypted_payload=ciphertext,
        )
        if existing is None:
            await self.session_repository.create_record(pending)
        elif await self.session_repository.replace_failed_record(pending) is None:
            raise InvalidSessionError(
                f"Session {session_id} was committed concurrently"
            )

        try:
            if existing is None:
                await self.key_store.store(session_id, participants[0], key, iv)
            else:
                await self.key_store.replace(session_id, participants[0], key, iv)
        except SkillLedgerError:
            await self._mark_failed(session_id)
            raise

        try:
            submitted_id = await call_with_backoff(
                lambda: self.ledger_client.submit(signed),
                retry_on=(NetworkError, BroadcastError),
                policy=self.submit_policy,
                action=f"submit {reserved_id}",
            )
        except BroadcastError:
            await self._mark_failed(session_id)
            raise
        # A NetworkError leaves the record pending: the broadcast may have
        # landed, and reconcile_pending() resolves it.

        if wait_for_confirmation:
            await self.finalize_session(session_id)
        return submitted_id

    async def finalize_session(self, session_id: str) -> SessionRecord:
        """Wait for a pending commitment to confirm and promote its record."""
        record = await self._require_record(session_id)
        if record.status != SessionStatus.PENDING:
            return record

        _log_stage(session_id, CommitStage.AWAITING_CONFIRMATION)
        txn = await wait_for_confirmation(
            self.ledger_client, record.transaction_id, self.confirmation_policy
        )
        return await self._promote_confirmed(record, txn.note, txn.confirmed_round)

    async def reconcile_pending(self, limit: int = 100) -> list[ReconcileResult]:
        """Promote pending records whose transactions have since confirmed.

        Each record is reconciled on its own: a record that cannot be
        resolved is reported and the batch continues. Records whose ledger
        note disagrees with the stored hash are reported as mismatches and
        left pending for inspection.
        """
        results: list[ReconcileResult] = []
        for record in await self.session_repository.list_pending(limit):
            results.append(await self._reconcile_one(record))
        return results

    async def retrieve_session(self, session_id: str, user_id: str) -> object:
        """Decrypt and return the committed metadata for a participant."""
        record = await self._require_record(session_id)
        if record.encrypted_payload is None:
            raise NotFoundError(f"Session {session_id} has no stored payload")
        derived_hash = crypto.hash_hex(record.encrypted_payload)
        if derived_hash != record.session_hash:
            raise IntegrityMismatch(
                session_id=session_id,
                transaction_id=record.transaction_id,
                expected=record.session_hash,
                actual=derived_hash,
            )
        key_record = await self.key_store.retrieve(session_id, user_id)
        plaintext = crypto.decrypt(
            record.encrypted_payload, key_record.key, key_record.iv
        )
        return json.loads(plaintext)

    async def _reconcile_one(self, record: SessionRecord) -> ReconcileResult:
        try:
            txn = await self.ledger_client.lookup_transaction(record.transaction_id)
            promoted = await self._promote_confirmed(
                record, txn.note, txn.confirmed_round
            )
        except (NotFoundError, NetworkError) as exc:
            _logger.warning(
                "Pending session unresolved: session_id=%s transaction_id=%s: %s",
                record.session_id,
                record.transaction_id,
                exc,
            )
            return ReconcileResult(
                session_id=record.session_id,
                transaction_id=record.transaction_id,
                outcome=ReconcileOutcome.PENDING,
                detail=str(exc),
            )
        except (IntegrityMismatch, ParseError) as exc:
            _logger.warning(
                "Pending session does not match its ledger note: "
                "session_id=%s transaction_id=%s",
                record.session_id,
                record.transaction_id,
            )
            return ReconcileResult(
                session_id=record.session_id,
                transaction_id=record.transaction_id,
                outcome=ReconcileOutcome.MISMATCH,
                detail=str(exc),
            )
        return ReconcileResult(
            session_id=promoted.session_id,
            transaction_id=promoted.transaction_id,
            outcome=ReconcileOutcome(str(promoted.status)),
        )

    async def _require_record(self, session_id: str) -> SessionRecord:
        record = await self.session_repository.get_record(session_id)
        if record is None:
            raise NotFoundError(f"No session record for {session_id}")
        return record

    async def _mark_failed(self, session_id: str) -> None:
        await self.session_repository.promote_record(
            session_id, SessionStatus.FAILED, encrypted=None, confirmed_round=None
        )
        _log_stage(session_id, CommitStage.FAILED)

    async def _promote_confirmed(
        self, record: SessionRecord, note: bytes, confirmed_round: int | None
    ) -> SessionRecord:
        committed = parse_session_note(note)
        if committed.hash != record.session_hash:
            raise IntegrityMismatch(
                session_id=record.session_id,
                transaction_id=record.transaction_id,
                expected=record.session_hash,
                actual=committed.hash,
            )
        promoted = await self.session_repository.promote_record(
            record.session_id,
            SessionStatus.CONFIRMED,
            encrypted=True,
            confirmed_round=confirmed_round,
        )
        if promoted is None:
            # Another finalizer won the pending -> confirmed race.
            return await self._require_record(record.session_id)
        _log_stage(record.session_id, CommitStage.RECORDED)
        return promoted


def _serialize_metadata(metadata: object) -> bytes:
    """Serialize metadata as canonical JSON."""
    try:
        encoded = json.dumps(
            metadata, sort_keys=True, separators=(",", ":"), ensure_ascii=False
        )
    except (TypeError, ValueError) as exc:
        raise InvalidSessionError(f"Metadata is not JSON-serializable: {exc}") from exc
    return encoded.encode("utf-8")


def _log_stage(session_id: str, stage: CommitStage) -> None:
    _logger.info("Session commit: session_id=%s stage=%s", session_id, stage)
