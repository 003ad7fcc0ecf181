"""Domain models for ledger interactions."""

from dataclasses import dataclass


@dataclass(frozen=True)
class NetworkParams:
    """Suggested transaction parameters reported by the ledger node."""

    fee: int
    min_fee: int
    first_valid: int
    last_valid: int
    genesis_id: str
    genesis_hash: str
    consensus_version: str | None = None


@dataclass(frozen=True)
class LedgerTransaction:
    """Confirmed transaction as reported by the indexer."""

    id: str
    note: bytes
    confirmed_round: int | None
    sender: str | None = None
    receiver: str | None = None
    amount: int | None = None

    @property
    def confirmed(self) -> bool:
        """Whether the ledger has included the transaction in a block."""
        return self.confirmed_round is not None


@dataclass(frozen=True)
class Signer:
    """Address and private key decoded from a signer secret."""

    address: str
    private_key: str

    def __repr__(self) -> str:
        return f"Signer(address={self.address!r}, private_key=<redacted>)"
