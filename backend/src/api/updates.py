"""
Device update check endpoint.

POST /api/updates answers one device check with one of three bodies:
- {} when there is nothing to install
- {version, downloadUrl, checksum, sessionKey?, required, manifest?}
- {message: "native_update_required", error, requiredNativeVersion}

Design:
- Field-name normalization happens in UpdateCheckRequest
- Unknown apps and empty channels are "no update", not errors
- Database failures on the read path surface as 500 via the
  application exception handler
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from backend.src.api.rate_limit import device_rate_limit, limiter
from backend.src.db.database import get_db
from backend.src.schemas.update import UpdateCheckRequest, serialize_decision
from backend.src.services.update_service import UpdateService
from backend.src.utils.logging_config import get_logger


logger = get_logger("api")

router = APIRouter(
    tags=["Updates"],
)


# ============================================================================
# Dependencies
# ============================================================================


def get_update_service(db: Session = Depends(get_db)) -> UpdateService:
    """Create UpdateService instance with database session."""
    return UpdateService(db=db)


# ============================================================================
# API Endpoints
# ============================================================================


@router.post(
    "/updates",
    summary="Check for a bundle update",
    description="Resolve the device's channel and return the bundle it should install, if any",
)
@limiter.limit(device_rate_limit)
async def check_for_update(
    request: Request,  # Required for rate limiter
    check: UpdateCheckRequest,
    update_service: UpdateService = Depends(get_update_service),
) -> Dict[str, Any]:
    """
    Check whether a newer bundle exists for the device.

    Example:
        POST /api/updates
        {
          "app_id": "com.example.app",
          "device_id": "A1B2",
          "version_name": "1.1.0",
          "version_build": "42",
          "platform": "ios"
        }

        Response:
        {
          "version": "1.2.0",
          "downloadUrl": "https://cdn.example.com/1.2.0.zip",
          "checksum": "9f86d0...",
          "required": false
        }
    """
    decision = update_service.resolve(check.to_device_check())
    return serialize_decision(decision)
