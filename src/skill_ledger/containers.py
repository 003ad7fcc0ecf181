"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from skill_ledger.adapters.algorand_client import AlgorandLedgerClient, LedgerClient
from skill_ledger.adapters.supabase_key_record_repository import (
    SupabaseKeyRecordRepository,
)
from skill_ledger.adapters.supabase_payment_record_repository import (
    SupabasePaymentRecordRepository,
)
from skill_ledger.adapters.supabase_session_record_repository import (
    SupabaseSessionRecordRepository,
)
from skill_ledger.config import (
    Settings,
    parse_key_encryption_key,
    resolve_ledger_endpoints,
)
from skill_ledger.services.backoff import BackoffPolicy
from skill_ledger.services.integrity import IntegrityVerifier
from skill_ledger.services.keys import KeyStore
from skill_ledger.services.payments import PaymentService
from skill_ledger.services.sessions import SessionLedgerService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    ledger_client: LedgerClient
    key_store: KeyStore
    session_service: SessionLedgerService
    payment_service: PaymentService
    integrity_verifier: IntegrityVerifier
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    session_repository = SupabaseSessionRecordRepository(supabase_client)
    payment_repository = SupabasePaymentRecordRepository(supabase_client)
    key_repository = SupabaseKeyRecordRepository(supabase_client)

    endpoints = resolve_ledger_endpoints(resolved_settings)
    ledger_client = AlgorandLedgerClient.create(
        algod_url=endpoints.algod_url,
        indexer_url=endpoints.indexer_url,
        algod_token=resolved_settings.algod_token,
        indexer_token=resolved_settings.indexer_token,
        validity_window=resolved_settings.validity_window,
    )
    submit_policy = BackoffPolicy(attempts=resolved_settings.submit_attempts)
    confirmation_policy = BackoffPolicy(
        attempts=resolved_settings.confirmation_attempts,
        initial_delay_seconds=resolved_settings.confirmation_initial_delay_seconds,
        max_delay_seconds=resolved_settings.confirmation_max_delay_seconds,
    )
    key_store = KeyStore(
        repository=key_repository,
        key_encryption_key=parse_key_encryption_key(
            resolved_settings.key_encryption_key
        ),
    )
    session_service = SessionLedgerService(
        ledger_client=ledger_client,
        session_repository=session_repository,
        key_store=key_store,
        submit_policy=submit_policy,
        confirmation_policy=confirmation_policy,
    )
    payment_service = PaymentService(
        ledger_client=ledger_client,
        payment_repository=payment_repository,
        submit_policy=submit_policy,
    )
    integrity_verifier = IntegrityVerifier(
        ledger_client=ledger_client,
        session_repository=session_repository,
        confirmation_policy=confirmation_policy,
    )

    async def close_resources() -> None:
        await ledger_client.close()

    return AppContainer(
        settings=resolved_settings,
        ledger_client=ledger_client,
        key_store=key_store,
        session_service=session_service,
        payment_service=payment_service,
        integrity_verifier=integrity_verifier,
        close_resources=close_resources,
    )
