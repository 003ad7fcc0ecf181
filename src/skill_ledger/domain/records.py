"""Domain models for off-chain ledger records."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum


class SessionStatus(StrEnum):
    """Lifecycle of a session commitment record."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class PaymentStatus(StrEnum):
    """Outcome recorded for a payment attempt."""

    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class SessionRecord:
    """Off-chain record referencing an anchored session commitment."""

    session_id: str
    participants: list[str]
    session_hash: str
    transaction_id: str
    created_at: datetime
    encrypted: bool | None
    status: SessionStatus
    confirmed_round: int | None = None
    encrypted_payload: bytes | None = None


@dataclass(frozen=True)
class KeyRecord:
    """Symmetric key material owned by one session participant."""

    session_id: str
    user_id: str
    key: bytes
    iv: bytes


@dataclass(frozen=True)
class WrappedKeyRow:
    """Key record as persisted: the key is wrapped under the store KEK."""

    session_id: str
    user_id: str
    wrapped_key: bytes
    iv: bytes


@dataclass(frozen=True)
class PaymentRecord:
    """Record of a submitted value transfer for a session."""

    session_id: str
    transaction_id: str
    amount_units: int
    sender_address: str
    receiver_address: str
    status: PaymentStatus
    created_at: datetime
