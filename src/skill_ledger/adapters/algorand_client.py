"""Algorand node and indexer client."""

import base64
import logging
from dataclasses import dataclass
from typing import Protocol

import httpx
from algosdk import account, encoding, mnemonic
from algosdk import error as algosdk_error
from algosdk.atomic_transaction_composer import AccountTransactionSigner
from algosdk.transaction import PaymentTxn, SignedTransaction, SuggestedParams

from skill_ledger.domain.ledger import LedgerTransaction, NetworkParams, Signer
from skill_ledger.errors import (
    BroadcastError,
    InvalidAddressError,
    InvalidAmountError,
    InvalidNoteError,
    InvalidSignerError,
    NetworkError,
    NotFoundError,
    ParseError,
)

MAX_NOTE_BYTES = 1024

_DUPLICATE_MARKERS = ("already in ledger", "already in pool", "transaction already")

_logger = logging.getLogger(__name__)


class LedgerClient(Protocol):
    """Interface for the ledger node and indexer."""

    async def get_params(self) -> NetworkParams:
        """Return suggested fee and validity window for new transactions."""

    async def build_anchor_txn(self, sender: str, note: bytes) -> PaymentTxn:
        """Build a zero-value self-transfer that anchors note on the ledger."""

    async def build_payment_txn(
        self, sender: str, receiver: str, amount_units: int, note: bytes
    ) -> PaymentTxn:
        """Build a value transfer carrying note."""

    def sign(self, txn: PaymentTxn, secret_key: str) -> SignedTransaction:
        """Sign a transaction with an Ed25519 private key."""

    async def submit(self, signed: SignedTransaction) -> str:
        """Broadcast a signed transaction and return its id."""

    async def lookup_transaction(self, transaction_id: str) -> LedgerTransaction:
        """Return a confirmed transaction by id."""

    async def status(self) -> dict[str, object]:
        """Return the node status."""

    async def account_information(self, address: str) -> dict[str, object]:
        """Return account state for an address."""


def signer_from_mnemonic(secret: str) -> Signer:
    """Decode a 25-word mnemonic into an address and private key."""
    if not isinstance(secret, str) or not secret.strip():
        raise InvalidSignerError("Signer mnemonic is empty")
    try:
        private_key = mnemonic.to_private_key(secret)
    except (
        algosdk_error.WrongMnemonicLengthError,
        algosdk_error.WrongChecksumError,
        ValueError,
        KeyError,
        IndexError,
    ):
        # The mnemonic must not leak into tracebacks.
        raise InvalidSignerError("Signer mnemonic could not be decoded") from None
    return Signer(
        address=account.address_from_private_key(private_key),
        private_key=private_key,
    )


def transaction_id(signed: SignedTransaction) -> str:
    """Return the id of a signed transaction without contacting the ledger."""
    return signed.transaction.get_txid()


def validate_address(address: str, label: str = "address") -> None:
    """Raise InvalidAddressError unless address is a valid Algorand address."""
    if not isinstance(address, str) or not encoding.is_valid_address(address):
        raise InvalidAddressError(f"Invalid {label}: {address!r}")


def validate_amount(amount_units: int) -> None:
    """Raise InvalidAmountError unless amount_units is a positive integer."""
    if (
        isinstance(amount_units, bool)
        or not isinstance(amount_units, int)
        or amount_units <= 0
    ):
        raise InvalidAmountError(
            f"Amount must be a positive integer, got {amount_units!r}"
        )


def validate_note(note: bytes) -> None:
    """Raise InvalidNoteError when note exceeds the ledger note limit."""
    if len(note) > MAX_NOTE_BYTES:
        raise InvalidNoteError(
            f"Note is {len(note)} bytes, the ledger allows {MAX_NOTE_BYTES}"
        )


@dataclass
class AlgorandLedgerClient(LedgerClient):
    """HTTPX-backed client for an Algorand algod node and indexer."""

    algod_url: str
    indexer_url: str
    http_client: httpx.AsyncClient
    algod_token: str = ""
    indexer_token: str = ""
    validity_window: int = 1000
    timeout_seconds: float = 15

    @classmethod
    def create(  # noqa: PLR0913
        cls,
        algod_url: str,
        indexer_url: str,
        algod_token: str = "",
        indexer_token: str = "",
        validity_window: int = 1000,
    ) -> "AlgorandLedgerClient":
        """Create a ledger client with a managed httpx session."""
        return cls(
            algod_url=algod_url.rstrip("/"),
            indexer_url=indexer_url.rstrip("/"),
            http_client=httpx.AsyncClient(),
            algod_token=algod_token,
            indexer_token=indexer_token,
            validity_window=validity_window,
        )

    async def get_params(self) -> NetworkParams:
        """Fetch suggested params via algod getTransactionParams."""
        response = await self._algod("GET", "/v2/transactions/params")
        if response.status_code >= 400:
            raise NetworkError(
                f"Params request failed with status {response.status_code}"
            )
        payload = response.json()
        try:
            last_round = int(payload["last-round"])
            return NetworkParams(
                fee=int(payload["fee"]),
                min_fee=int(payload.get("min-fee", 1000)),
                first_valid=last_round,
                last_valid=last_round + self.validity_window,
                genesis_id=payload["genesis-id"],
                genesis_hash=payload["genesis-hash"],
                consensus_version=payload.get("consensus-version"),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise NetworkError(f"Malformed params response: {exc}") from exc

    async def build_anchor_txn(self, sender: str, note: bytes) -> PaymentTxn:
        """Build the commitment-anchoring transaction: a 0-unit self-payment."""
        validate_address(sender, "sender address")
        validate_note(note)
        params = await self.get_params()
        return PaymentTxn(
            sender=sender,
            sp=_suggested_params(params),
            receiver=sender,
            amt=0,
            note=note,
        )

    async def build_payment_txn(
        self, sender: str, receiver: str, amount_units: int, note: bytes
    ) -> PaymentTxn:
        """Build a payment; inputs are validated before any network call."""
        validate_amount(amount_units)
        validate_address(sender, "sender address")
        validate_address(receiver, "receiver address")
        validate_note(note)
        params = await self.get_params()
        return PaymentTxn(
            sender=sender,
            sp=_suggested_params(params),
            receiver=receiver,
            amt=amount_units,
            note=note,
        )

    def sign(self, txn: PaymentTxn, secret_key: str) -> SignedTransaction:
        """Sign txn; Ed25519 signatures are deterministic for the same input."""
        [signed] = AccountTransactionSigner(secret_key).sign_transactions([txn], [0])
        return signed

    async def submit(self, signed: SignedTransaction) -> str:
        """Send raw signed bytes via algod sendRawTransaction."""
        txid = transaction_id(signed)
        raw = base64.b64decode(encoding.msgpack_encode(signed))
        response = await self._algod(
            "POST",
            "/v2/transactions",
            content=raw,
            headers={"Content-Type": "application/x-binary"},
        )
        if response.status_code >= 500:
            raise NetworkError(
                f"Submit failed with status {response.status_code}: "
                f"{_error_message(response)}"
            )
        if response.status_code >= 400:
            message = _error_message(response)
            if any(marker in message.lower() for marker in _DUPLICATE_MARKERS):
                _logger.info("Transaction %s already known to the ledger", txid)
                return txid
            raise BroadcastError(f"Ledger rejected transaction {txid}: {message}")
        returned = response.json().get("txId")
        if returned != txid:
            raise BroadcastError(
                f"Ledger returned transaction id {returned!r}, expected {txid}"
            )
        return txid

    async def lookup_transaction(self, transaction_id: str) -> LedgerTransaction:
        """Fetch a transaction via indexer lookupTransactionByID."""
        response = await self._indexer("GET", f"/v2/transactions/{transaction_id}")
        if response.status_code == httpx.codes.NOT_FOUND:
            raise NotFoundError(f"Transaction {transaction_id} is not confirmed yet")
        if response.status_code >= 400:
            raise NetworkError(
                f"Indexer lookup failed with status {response.status_code}"
            )
        try:
            txn = response.json().get("transaction") or {}
            confirmed_round = txn.get("confirmed-round")
            if confirmed_round is None:
                raise NotFoundError(
                    f"Transaction {transaction_id} is not confirmed yet"
                )
            payment = txn.get("payment-transaction") or {}
            return LedgerTransaction(
                id=txn.get("id", transaction_id),
                note=base64.b64decode(txn.get("note") or "", validate=True),
                confirmed_round=int(confirmed_round),
                sender=txn.get("sender"),
                receiver=payment.get("receiver"),
                amount=payment.get("amount"),
            )
        except (AttributeError, TypeError, ValueError) as exc:
            raise ParseError(
                f"Malformed indexer response for {transaction_id}: {exc}"
            ) from exc

    async def status(self) -> dict[str, object]:
        """Return algod node status."""
        response = await self._algod("GET", "/v2/status")
        if response.status_code >= 400:
            raise NetworkError(
                f"Status request failed with status {response.status_code}"
            )
        return response.json()

    async def account_information(self, address: str) -> dict[str, object]:
        """Return algod account information for address."""
        validate_address(address)
        response = await self._algod("GET", f"/v2/accounts/{address}")
        if response.status_code == httpx.codes.NOT_FOUND:
            raise NotFoundError(f"Account {address} not found")
        if response.status_code >= 400:
            raise NetworkError(
                f"Account request failed with status {response.status_code}"
            )
        return response.json()

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    async def _algod(
        self,
        method: str,
        path: str,
        content: bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        request_headers = dict(headers or {})
        if self.algod_token:
            request_headers["X-Algo-API-Token"] = self.algod_token
        return await self._send(
            method, f"{self.algod_url}{path}", content, request_headers
        )

    async def _indexer(self, method: str, path: str) -> httpx.Response:
        request_headers: dict[str, str] = {}
        if self.indexer_token:
            request_headers["X-Indexer-API-Token"] = self.indexer_token
        return await self._send(
            method, f"{self.indexer_url}{path}", None, request_headers
        )

    async def _send(
        self,
        method: str,
        url: str,
        content: bytes | None,
        headers: dict[str, str],
    ) -> httpx.Response:
        try:
            return await self.http_client.request(
                method,
                url,
                content=content,
                headers=headers,
                timeout=self.timeout_seconds,
            )
        except httpx.TransportError as exc:
            raise NetworkError(f"{method} {url} failed: {exc}") from exc


def _suggested_params(params: NetworkParams) -> SuggestedParams:
    return SuggestedParams(
        fee=params.fee,
        first=params.first_valid,
        last=params.last_valid,
        gh=params.genesis_hash,
        gen=params.genesis_id,
        flat_fee=False,
        consensus_version=params.consensus_version,
        min_fee=params.min_fee,
    )


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text
    if isinstance(payload, dict):
        return str(payload.get("message", payload))
    return str(payload)
