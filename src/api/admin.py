"""Maintenance routes (admin)."""

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status

from src.api.dependencies import get_sweeper
from src.config import get_settings
from src.schemas.schemas import SweepResponse
from src.services.sweeper import ExpirySweeper

router = APIRouter(prefix="/v1/admin", tags=["Admin - Maintenance"])

settings = get_settings()


def verify_admin_key(x_admin_key: Optional[str] = Header(None)):
    """Verify admin access using a secret key."""
    if not x_admin_key or x_admin_key != settings.secret_key:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid admin key",
        )
    return True


@router.post(
    "/sweep",
    response_model=SweepResponse,
    summary="Sweep expired transcriptions",
    description="Delete expired transcriptions and repair owner indexes now. Admin only.",
)
async def sweep_expired(
    sweeper: ExpirySweeper = Depends(get_sweeper),
    _: bool = Depends(verify_admin_key),
):
    """
    Run the expiry sweep on demand.

    The Celery beat schedule runs the same sweep periodically; this route is
    for operators who need it immediately.
    """
    swept_at = sweeper.store.now()
    deleted = await sweeper.sweep(swept_at)
    pruned = await sweeper.repair_indexes()

    return SweepResponse(
        deleted=deleted,
        pruned_index_entries=pruned,
        swept_at=swept_at,
    )
