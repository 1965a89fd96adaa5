"""
Channels Package
================

Catalog of predefined media channels and the category filter used by the
frontend's category pages.

Usage:
------
    from relay.app.channels import channels_router
    app.include_router(channels_router, prefix="/api")
"""

from .catalog import ChannelCatalog, filter_channel, normalize_youtube_url
from .routes import channels_router

__all__ = ["ChannelCatalog", "channels_router", "filter_channel", "normalize_youtube_url"]
