"""
Strava sync API endpoints.
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from fitdash.core.database import get_db
from fitdash.core.logging import get_logger
from fitdash.models.account import AthleteAccount
from fitdash.services.external.strava import StravaService, StravaServiceInterface
from fitdash.services.store import AccountStore, ActivityStore
from fitdash.services.sync import SyncService

logger = get_logger(__name__)
router = APIRouter()


# ========================================
# Request/Response Schemas
# ========================================

class SyncRequest(BaseModel):
    """Request to sync activity summaries."""
    fullSync: bool = Field(default=False, description="Use the long history window")


class FetchDetailsRequest(BaseModel):
    """Request to enrich activities with rich detail."""
    budget: Optional[int] = Field(default=None, ge=1, description="Maximum detail calls")


# ========================================
# Dependencies
# ========================================

def get_strava_service() -> StravaServiceInterface:
    return StravaService()


async def get_account(db: AsyncSession = Depends(get_db)) -> AthleteAccount:
    account = await AccountStore(db).get_primary()
    if account is None:
        raise HTTPException(status_code=401, detail="Strava is not connected")
    return account


# ========================================
# API Endpoints
# ========================================

@router.post("/sync")
async def sync_activities(
    request: Optional[SyncRequest] = None,
    account: AthleteAccount = Depends(get_account),
    strava: StravaServiceInterface = Depends(get_strava_service),
    db: AsyncSession = Depends(get_db),
):
    """
    Pull activity summaries from Strava.
    """
    full_sync = request.fullSync if request else False
    result = await SyncService(db, strava=strava).sync_activities(account, full_sync=full_sync)

    return {"success": True, **result.to_dict()}


@router.post("/fetch-details")
async def fetch_details(
    request: Optional[FetchDetailsRequest] = None,
    account: AthleteAccount = Depends(get_account),
    strava: StravaServiceInterface = Depends(get_strava_service),
    db: AsyncSession = Depends(get_db),
):
    """
    Fetch rich detail for activities that lack it.

    `remaining` tells a scheduler whether another run is needed.
    """
    budget = request.budget if request else None
    result = await SyncService(db, strava=strava).fetch_details(account, budget=budget)

    return {"success": True, **result.to_dict()}


@router.get("/status")
async def status(
    db: AsyncSession = Depends(get_db),
):
    """
    Connection status and detail backlog.
    """
    account = await AccountStore(db).get_primary()
    remaining = await ActivityStore(db).count_missing_details()

    return {
        "connected": account is not None,
        "user": account.to_dict() if account else None,
        "pendingDetails": remaining,
    }
