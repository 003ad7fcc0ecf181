"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse

from skill_ledger.api.admin import router as admin_router
from skill_ledger.api.schemas import (
    PaymentRequest,
    PaymentResponse,
    StoreSessionRequest,
    StoreSessionResponse,
    VerificationResponse,
)
from skill_ledger.app_logging import configure_logging
from skill_ledger.config import secret_values
from skill_ledger.containers import AppContainer
from skill_ledger.errors import (
    BroadcastError,
    DecryptionError,
    IntegrityMismatch,
    KeyNotFoundError,
    NetworkError,
    NotFoundError,
    ParseError,
    SkillLedgerError,
    StorageError,
    ValidationError,
    VerificationTimeoutError,
)
from skill_ledger.services.integrity import VerificationOutcome

_ERROR_STATUS: tuple[tuple[type[SkillLedgerError], int], ...] = (
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (KeyNotFoundError, status.HTTP_404_NOT_FOUND),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (IntegrityMismatch, status.HTTP_409_CONFLICT),
    (DecryptionError, status.HTTP_409_CONFLICT),
    (VerificationTimeoutError, status.HTTP_504_GATEWAY_TIMEOUT),
    (NetworkError, status.HTTP_502_BAD_GATEWAY),
    (BroadcastError, status.HTTP_502_BAD_GATEWAY),
    (ParseError, status.HTTP_502_BAD_GATEWAY),
    (StorageError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def error_status(exc: SkillLedgerError) -> int:
    """Map a domain error to an HTTP status code."""
    for error_type, code in _ERROR_STATUS:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(
        container.settings.log_level, secrets=secret_values(container.settings)
    )
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(admin_router)

    @app.exception_handler(SkillLedgerError)
    async def handle_ledger_error(
        request: Request, exc: SkillLedgerError
    ) -> JSONResponse:
        code = error_status(exc)
        if code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            logger.warning(
                "Request failed: %s %s: %s", request.method, request.url.path, exc
            )
        return JSONResponse(
            status_code=code,
            content={"error": type(exc).__name__, "detail": str(exc)},
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/sessions", status_code=status.HTTP_201_CREATED)
    async def store_session(
        payload: StoreSessionRequest, request: Request
    ) -> StoreSessionResponse:
        """Anchor session metadata with the platform signer."""
        state_container: AppContainer = request.app.state.container
        signer = state_container.settings.anchor_signer_mnemonic.get_secret_value()
        transaction_id = await state_container.session_service.store_session(
            payload.session_id,
            payload.metadata,
            payload.participants,
            signer,
            wait_for_confirmation=payload.wait_for_confirmation,
        )
        return StoreSessionResponse(
            session_id=payload.session_id, transaction_id=transaction_id
        )

    @app.get("/sessions/{session_id}/verify")
    async def verify_session(session_id: str, request: Request) -> JSONResponse:
        """Check the stored record against its ledger commitment."""
        state_container: AppContainer = request.app.state.container
        report = await state_container.integrity_verifier.inspect(session_id)
        verified = report.outcome is VerificationOutcome.VERIFIED
        body = VerificationResponse(
            session_id=report.session_id,
            transaction_id=report.transaction_id,
            verified=verified,
            outcome=str(report.outcome),
            record_hash=report.record_hash,
            committed_hash=report.committed_hash,
            confirmed_round=report.confirmed_round,
        )
        return JSONResponse(
            status_code=status.HTTP_200_OK if verified else status.HTTP_409_CONFLICT,
            content=body.model_dump(),
        )

    @app.get("/sessions/{session_id}/payments")
    async def session_payments(session_id: str, request: Request) -> dict[str, object]:
        """Return recorded payments for a session."""
        state_container: AppContainer = request.app.state.container
        payments = await state_container.payment_service.payments_for_session(
            session_id
        )
        return {
            "payments": [
                {
                    "transaction_id": payment.transaction_id,
                    "amount_units": payment.amount_units,
                    "sender_address": payment.sender_address,
                    "receiver_address": payment.receiver_address,
                    "status": str(payment.status),
                    "created_at": payment.created_at.isoformat(),
                }
                for payment in payments
            ]
        }

    @app.post("/payments", status_code=status.HTTP_201_CREATED)
    async def process_payment(
        payload: PaymentRequest, request: Request
    ) -> PaymentResponse:
        """Settle a session payment from the configured payment account."""
        state_container: AppContainer = request.app.state.container
        signer = state_container.settings.payment_signer_mnemonic
        if signer is None:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Payments are not configured",
            )
        transaction_id = await state_container.payment_service.process_payment(
            session_id=payload.session_id,
            amount_units=payload.amount_units,
            signer_mnemonic=signer.get_secret_value(),
            receiver_address=payload.receiver_address,
            metadata=payload.metadata,
        )
        return PaymentResponse(
            session_id=payload.session_id, transaction_id=transaction_id
        )

    return app
