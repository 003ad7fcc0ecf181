"""Admin API endpoints with simple token auth."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from skill_ledger.api.schemas import ReconcileEntry

if TYPE_CHECKING:
    from skill_ledger.containers import AppContainer

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_admin_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.admin_token


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    admin_token: str = Depends(_get_admin_token),
) -> None:
    """Ensure requests include a valid admin token."""
    if not x_admin_token or x_admin_token != admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


@router.get("/sessions/{session_id}/metadata", dependencies=[Depends(require_admin)])
async def session_metadata(
    session_id: str, user_id: str, request: Request
) -> dict[str, object]:
    """Decrypt committed metadata with a participant's key."""
    container: AppContainer = request.app.state.container
    metadata = await container.session_service.retrieve_session(session_id, user_id)
    return {"session_id": session_id, "metadata": metadata}


@router.post("/reconcile", dependencies=[Depends(require_admin)])
async def reconcile(request: Request, limit: int = 100) -> dict[str, object]:
    """Promote pending session records whose transactions have confirmed."""
    container: AppContainer = request.app.state.container
    results = await container.session_service.reconcile_pending(limit)
    return {
        "sessions": [
            ReconcileEntry(
                session_id=result.session_id,
                transaction_id=result.transaction_id,
                status=str(result.outcome),
                detail=result.detail,
            ).model_dump()
            for result in results
        ]
    }
