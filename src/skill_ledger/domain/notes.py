"""Wire format for ledger note payloads."""

from typing import Annotated, Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictInt,
    StrictStr,
    TypeAdapter,
)
from pydantic import ValidationError as PydanticValidationError

from skill_ledger.errors import ParseError


class SessionNote(BaseModel):
    """Commitment-anchoring note: the hash of encrypted session metadata."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    type: Literal["session"] = "session"
    hash: StrictStr = Field(pattern=r"^[0-9a-f]{64}$")
    participant_count: StrictInt = Field(alias="participantCount", ge=0)
    encrypted: StrictBool = True


class PaymentNote(BaseModel):
    """Note attached to a session payment transfer."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    type: Literal["payment"] = "payment"
    session_id: StrictStr = Field(alias="sessionId", min_length=1)
    metadata: dict[str, Any] = Field(default_factory=dict)


LedgerNote = Annotated[SessionNote | PaymentNote, Field(discriminator="type")]

_NOTE_ADAPTER: TypeAdapter[SessionNote | PaymentNote] = TypeAdapter(LedgerNote)


def encode_note(note: SessionNote | PaymentNote) -> bytes:
    """Serialize a note to the compact JSON bytes placed on the ledger."""
    return note.model_dump_json(by_alias=True).encode("utf-8")


def parse_note(raw: bytes) -> SessionNote | PaymentNote:
    """Parse ledger note bytes, rejecting any shape other than the known notes."""
    try:
        return _NOTE_ADAPTER.validate_json(raw)
    except PydanticValidationError as exc:
        raise ParseError(f"Malformed ledger note: {exc.error_count()} error(s)") from exc


def parse_session_note(raw: bytes) -> SessionNote:
    """Parse a note that must be a session commitment."""
    note = parse_note(raw)
    if not isinstance(note, SessionNote):
        raise ParseError(f"Expected a session note, got type={note.type!r}")
    return note
