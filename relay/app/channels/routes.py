"""
Channel catalog routes.

Endpoints:
----------
- GET /channels-by-category?category=...: Channels listed under a category
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from ..config import get_settings
from ..models import ChannelListResponse, ErrorResponse
from .catalog import ChannelCatalog

logger = logging.getLogger(__name__)

channels_router = APIRouter()


def get_catalog(request: Request) -> ChannelCatalog:
    """Dependency returning the catalog loaded at startup."""
    catalog = getattr(request.app.state, "catalog", None)
    if catalog is None:
        settings = getattr(request.app.state, "settings", None) or get_settings()
        catalog = ChannelCatalog.load(settings.CHANNELS_FILE)
        request.app.state.catalog = catalog
    return catalog


@channels_router.get(
    "/channels-by-category",
    response_model=ChannelListResponse,
    responses={500: {"model": ErrorResponse, "description": "Catalog could not be read"}},
)
async def channels_by_category(
    category: Optional[str] = Query(None, description="Category slug from the frontend route"),
    catalog: ChannelCatalog = Depends(get_catalog),
):
    """List catalog channels for a category (random sample for ``random-channel``)."""
    try:
        channels = catalog.by_category(category)
    except Exception as e:
        logger.error(
            f"Error fetching channels by category: {e}",
            exc_info=True,
            extra={"category": category}
        )
        return JSONResponse(status_code=500, content={"error": "Failed to fetch channels"})

    return ChannelListResponse(channels=channels)
