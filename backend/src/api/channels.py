"""
Device channel self-assignment endpoints.

- GET    /api/channel_self  list channels the device may see
- POST   /api/channel_self  join a channel
- PUT    /api/channel_self  report the effective channel
- DELETE /api/channel_self  leave the override and follow the default

Policy violations are 403, unknown app or channel 404. A rejected
assignment never changes the device's stored channel.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from backend.src.api.rate_limit import device_rate_limit, limiter
from backend.src.db.database import get_db
from backend.src.schemas.channel import (
    ChannelAssignRequest,
    ChannelItemResponse,
    ChannelListResponse,
    ChannelStateResponse,
    DeviceChannelRequest,
)
from backend.src.services.channel_service import ChannelService
from backend.src.services.exceptions import (
    NotFoundError,
    PolicyError,
    ServiceError,
    ValidationError,
)
from backend.src.utils.logging_config import get_logger


logger = get_logger("api")

router = APIRouter(
    prefix="/channel_self",
    tags=["Channels"],
)


# ============================================================================
# Dependencies
# ============================================================================


def get_channel_service(db: Session = Depends(get_db)) -> ChannelService:
    """Create ChannelService instance with database session."""
    return ChannelService(db=db)


def _to_http(e: ServiceError) -> HTTPException:
    return HTTPException(status_code=e.http_status, detail=e.message)


# ============================================================================
# API Endpoints
# ============================================================================


@router.get(
    "",
    response_model=ChannelListResponse,
    response_model_by_alias=True,
    summary="List channels",
    description="List channels the device may see for its platform",
)
@limiter.limit(device_rate_limit)
async def list_channels(
    request: Request,  # Required for rate limiter
    app_id: str = Query(..., min_length=1, description="External app identifier"),
    platform: str = Query(..., description="ios or android"),
    device_id: Optional[str] = Query(None, description="Device identifier (unused)"),
    channel_service: ChannelService = Depends(get_channel_service),
) -> ChannelListResponse:
    """
    List eligible channels.

    Example:
        GET /api/channel_self?app_id=com.example.app&platform=ios

        Response:
        {"channels": [{"id": "chn_01hgw...", "name": "beta", "public": true, "allowSet": true}]}
    """
    try:
        listings = channel_service.list_channels(app_id, platform)
    except (NotFoundError, ValidationError) as e:
        raise _to_http(e)

    return ChannelListResponse(
        channels=[ChannelItemResponse.from_listing(item) for item in listings]
    )


@router.post(
    "",
    response_model=ChannelStateResponse,
    response_model_by_alias=True,
    summary="Assign channel",
    description="Assign the device to a channel that allows self-assignment",
)
@limiter.limit(device_rate_limit)
async def assign_channel(
    request: Request,  # Required for rate limiter
    body: ChannelAssignRequest,
    channel_service: ChannelService = Depends(get_channel_service),
) -> ChannelStateResponse:
    """
    Assign the device to a channel.

    Raises:
        403 Forbidden: Channel does not allow self-assignment
        404 Not Found: Unknown app or channel
    """
    try:
        state = channel_service.assign(body.app_id, body.device_id, body.platform, body.channel)
    except (NotFoundError, PolicyError, ValidationError) as e:
        logger.info(
            f"Channel assignment rejected for device '{body.device_id}': {e}",
            extra={"app_id": body.app_id, "channel": body.channel},
        )
        raise _to_http(e)

    return ChannelStateResponse.from_state(state)


@router.put(
    "",
    response_model=ChannelStateResponse,
    response_model_by_alias=True,
    summary="Get current channel",
    description="Return the device's effective channel and whether it is an override",
)
@limiter.limit(device_rate_limit)
async def get_current_channel(
    request: Request,  # Required for rate limiter
    body: DeviceChannelRequest,
    channel_service: ChannelService = Depends(get_channel_service),
) -> ChannelStateResponse:
    """Return the effective channel of the device."""
    try:
        state = channel_service.get_current(
            body.app_id, body.device_id, body.platform, default_channel=body.default_channel
        )
    except (NotFoundError, ValidationError) as e:
        raise _to_http(e)

    return ChannelStateResponse.from_state(state)


@router.delete(
    "",
    response_model=ChannelStateResponse,
    response_model_by_alias=True,
    summary="Clear channel override",
    description="Remove the device's channel override so it follows the default channel",
)
@limiter.limit(device_rate_limit)
async def clear_channel(
    request: Request,  # Required for rate limiter
    app_id: str = Query(..., min_length=1),
    device_id: str = Query(..., min_length=1),
    platform: str = Query(...),
    default_channel: Optional[str] = Query(None),
    channel_service: ChannelService = Depends(get_channel_service),
) -> ChannelStateResponse:
    """
    Revert the device to its default channel.

    Raises:
        403 Forbidden: The device was pinned to a channel it may not leave
        404 Not Found: Unknown app
    """
    try:
        state = channel_service.clear(app_id, device_id, platform, default_channel=default_channel)
    except (NotFoundError, PolicyError, ValidationError) as e:
        raise _to_http(e)

    return ChannelStateResponse.from_state(state)
