"""
Device lifecycle statistics endpoints.

POST /api/stats records an event named by the device (action/status).
The legacy routes /api/downloaded, /api/applied and /api/failed record
downloaded, applied and failed respectively.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from backend.src.api.rate_limit import device_rate_limit, limiter
from backend.src.db.database import get_db
from backend.src.schemas.stats import StatsRequest, StatsResponse
from backend.src.services.device_service import DeviceService
from backend.src.services.exceptions import NotFoundError, ValidationError
from backend.src.utils.logging_config import get_logger


logger = get_logger("api")

router = APIRouter(
    tags=["Stats"],
)


def get_device_service(db: Session = Depends(get_db)) -> DeviceService:
    """Create DeviceService instance with database session."""
    return DeviceService(db=db)


def _record(service: DeviceService, body: StatsRequest, action: Optional[str]) -> StatsResponse:
    try:
        service.record_stats(
            app_id=body.app_id,
            device_id=body.device_id,
            action=action or "",
            platform=body.platform,
            version_name=body.version_name,
            bundle_ref=body.bundle_id,
            details=body.details,
        )
    except (NotFoundError, ValidationError) as e:
        raise HTTPException(status_code=e.http_status, detail=e.message)
    return StatsResponse()


@router.post("/stats", response_model=StatsResponse, summary="Record device event")
@limiter.limit(device_rate_limit)
async def record_stats(
    request: Request,  # Required for rate limiter
    body: StatsRequest,
    device_service: DeviceService = Depends(get_device_service),
) -> StatsResponse:
    """Record a lifecycle event reported by the device."""
    return _record(device_service, body, body.action)


@router.post("/downloaded", response_model=StatsResponse, summary="Record bundle download")
@limiter.limit(device_rate_limit)
async def record_downloaded(
    request: Request,  # Required for rate limiter
    body: StatsRequest,
    device_service: DeviceService = Depends(get_device_service),
) -> StatsResponse:
    return _record(device_service, body, "downloaded")


@router.post("/applied", response_model=StatsResponse, summary="Record bundle applied")
@limiter.limit(device_rate_limit)
async def record_applied(
    request: Request,  # Required for rate limiter
    body: StatsRequest,
    device_service: DeviceService = Depends(get_device_service),
) -> StatsResponse:
    return _record(device_service, body, "applied")


@router.post("/failed", response_model=StatsResponse, summary="Record bundle failure")
@limiter.limit(device_rate_limit)
async def record_failed(
    request: Request,  # Required for rate limiter
    body: StatsRequest,
    device_service: DeviceService = Depends(get_device_service),
) -> StatsResponse:
    return _record(device_service, body, "failed")
