"""Application configuration."""

import base64
import binascii
import os
from dataclasses import dataclass
from typing import Literal

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")

_NETWORK_ENDPOINTS = {
    "testnet": (
        "https://testnet-api.4160.nodely.dev",
        "https://testnet-idx.4160.nodely.dev",
    ),
    "mainnet": (
        "https://mainnet-api.4160.nodely.dev",
        "https://mainnet-idx.4160.nodely.dev",
    ),
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    admin_token: str
    key_encryption_key: SecretStr
    anchor_signer_mnemonic: SecretStr
    payment_signer_mnemonic: SecretStr | None = None
    ledger_network: Literal["testnet", "mainnet"] = "testnet"
    algod_url: str | None = None
    algod_token: str = ""
    indexer_url: str | None = None
    indexer_token: str = ""
    validity_window: int = 1000
    submit_attempts: int = 3
    confirmation_attempts: int = 10
    confirmation_initial_delay_seconds: float = 1.0
    confirmation_max_delay_seconds: float = 8.0
    log_level: str = "INFO"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


@dataclass(frozen=True)
class LedgerEndpoints:
    """Resolved algod and indexer base URLs."""

    algod_url: str
    indexer_url: str


def resolve_ledger_endpoints(settings: Settings) -> LedgerEndpoints:
    """Apply explicit URL overrides on top of the network defaults."""
    default_algod, default_indexer = _NETWORK_ENDPOINTS[settings.ledger_network]
    return LedgerEndpoints(
        algod_url=settings.algod_url or default_algod,
        indexer_url=settings.indexer_url or default_indexer,
    )


def parse_key_encryption_key(secret: SecretStr) -> bytes:
    """Decode the base64 key-encryption key."""
    try:
        key = base64.b64decode(secret.get_secret_value(), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError("KEY_ENCRYPTION_KEY must be base64") from exc
    if len(key) != 32:
        raise ValueError("KEY_ENCRYPTION_KEY must decode to 32 bytes")
    return key


def secret_values(settings: Settings) -> list[str]:
    """Return the configured secret strings for log redaction."""
    secrets = [
        settings.key_encryption_key,
        settings.anchor_signer_mnemonic,
        settings.payment_signer_mnemonic,
    ]
    return [secret.get_secret_value() for secret in secrets if secret is not None]
