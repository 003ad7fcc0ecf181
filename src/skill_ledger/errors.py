"""Error taxonomy for the session ledger."""


class SkillLedgerError(Exception):
    """Base class for all session ledger errors."""


class EncryptionError(SkillLedgerError):
    """Raised when the AEAD primitive fails to encrypt."""


class DecryptionError(SkillLedgerError):
    """Raised when a ciphertext or tag does not authenticate."""


class StorageError(SkillLedgerError):
    """Raised when the off-chain store rejects or fails a write."""


class KeyAlreadyExistsError(StorageError):
    """Raised when a key record already exists for a session participant."""


class KeyNotFoundError(SkillLedgerError):
    """Raised when no key record exists for a session participant."""


class ValidationError(SkillLedgerError):
    """Input rejected before any network call."""


class InvalidAmountError(ValidationError):
    """Raised when a payment amount is not a positive integer."""


class InvalidAddressError(ValidationError):
    """Raised when an address fails ledger address validation."""


class InvalidNoteError(ValidationError):
    """Raised when a note cannot be encoded or exceeds the ledger limit."""


class InvalidSignerError(ValidationError):
    """Raised when a signer secret cannot be decoded."""


class InvalidSessionError(ValidationError):
    """Raised when session input cannot be committed."""


class NetworkError(SkillLedgerError):
    """Raised when a ledger node or indexer is unreachable."""


class BroadcastError(SkillLedgerError):
    """Raised when the ledger rejects a submitted transaction."""


class NotFoundError(SkillLedgerError):
    """Raised when a record or transaction does not exist (yet)."""


class ParseError(SkillLedgerError):
    """Raised when a ledger note does not match the committed shape."""


class VerificationTimeoutError(SkillLedgerError):
    """Raised when confirmation did not arrive within the attempt budget."""


class IntegrityMismatch(SkillLedgerError):
    """The off-chain record disagrees with the on-chain commitment."""

    def __init__(
        self, session_id: str, transaction_id: str, expected: str, actual: str
    ) -> None:
        super().__init__(
            f"Integrity mismatch for session {session_id}: "
            f"expected hash {expected}, found {actual}"
        )
        self.session_id = session_id
        self.transaction_id = transaction_id
        self.expected = expected
        self.actual = actual
