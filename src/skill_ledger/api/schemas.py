"""Pydantic models for the HTTP API."""

from typing import Any

from pydantic import BaseModel, Field


class StoreSessionRequest(BaseModel):
    """Request to anchor session metadata."""

    session_id: str = Field(min_length=1)
    metadata: dict[str, Any]
    participants: list[str] = Field(min_length=1)
    wait_for_confirmation: bool = True


class StoreSessionResponse(BaseModel):
    """Anchoring transaction for a stored session."""

    session_id: str
    transaction_id: str


class PaymentRequest(BaseModel):
    """Request to settle a session payment."""

    session_id: str = Field(min_length=1)
    amount_units: int
    receiver_address: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class PaymentResponse(BaseModel):
    """Submitted payment transaction."""

    session_id: str
    transaction_id: str


class VerificationResponse(BaseModel):
    """Result of an integrity verification."""

    session_id: str
    transaction_id: str
    verified: bool
    outcome: str
    record_hash: str
    committed_hash: str
    confirmed_round: int | None = None


class ReconcileEntry(BaseModel):
    """Reconciliation outcome for one pending session."""

    session_id: str
    transaction_id: str
    status: str
    detail: str | None = None
