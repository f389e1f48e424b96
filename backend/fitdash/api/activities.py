"""
Activities API endpoints.
"""
import math
import shutil
import tempfile
from pathlib import Path
from typing import Any, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from fitdash.core.config import settings
from fitdash.core.database import get_db
from fitdash.core.logging import get_logger
from fitdash.services.analytics.periods import resolve_period
from fitdash.services.store import ActivityStore
from fitdash.services.sync import SyncService

logger = get_logger(__name__)
router = APIRouter()


# ========================================
# Request/Response Schemas
# ========================================

class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    totalPages: int


class ActivityListResponse(BaseModel):
    """Paged activity list."""
    activities: list[dict[str, Any]]
    pagination: Pagination


class UploadResponse(BaseModel):
    """Result of a file upload."""
    success: bool = True
    outcome: str
    activity: dict[str, Any]


# ========================================
# API Endpoints
# ========================================

@router.get("", response_model=ActivityListResponse)
async def list_activities(
    category: Optional[str] = Query(None, description="Category filter, 'all' for every category"),
    period: Optional[str] = Query(None, description="1w, 1m, 3m, 6m, 1y, 3y or all"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    """
    List activities newest first.
    """
    window = resolve_period(period)
    rows, total = await ActivityStore(db).list_activities(
        category=category,
        since=window.start,
        page=page,
        limit=limit,
    )

    return ActivityListResponse(
        activities=[row.to_dict() for row in rows],
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            totalPages=math.ceil(total / limit),
        ),
    )


@router.get("/{activity_id}")
async def get_activity(
    activity_id: str,
    include_points: bool = Query(True, alias="includePoints"),
    db: AsyncSession = Depends(get_db),
):
    """
    Get a single activity, with its point series by default.
    """
    row = await ActivityStore(db).get_row(activity_id)
    return row.to_dict(include_points=include_points)


@router.post("/upload", response_model=UploadResponse)
async def upload_activity(
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
):
    """
    Upload a .fit or .gpx file.

    The temporary copy is removed by the decoder whether or not decoding
    succeeds.
    """
    if not file.filename:
        raise HTTPException(status_code=400, detail="No file uploaded")

    upload_dir = Path(settings.UPLOAD_DIR)
    upload_dir.mkdir(parents=True, exist_ok=True)

    with tempfile.NamedTemporaryFile(
        dir=upload_dir,
        suffix=Path(file.filename).suffix,
        delete=False,
    ) as tmp:
        shutil.copyfileobj(file.file, tmp)
        temp_path = Path(tmp.name)

    logger.info("Activity file received", file_name=file.filename)

    result = await SyncService(db).ingest_upload(temp_path, file.filename)
    row = await ActivityStore(db).get_row(result.activity.id)

    return UploadResponse(outcome=result.outcome, activity=row.to_dict())


@router.delete("")
async def clear_activities(
    db: AsyncSession = Depends(get_db),
):
    """
    Delete every stored activity.
    """
    deleted = await ActivityStore(db).delete_all()
    return {"success": True, "deleted": deleted}
