"""
Channel catalog and category filter.

The catalog is a JSON object mapping a country name to its list of channel
entries. It is loaded once at startup and read-only afterwards.
"""

import json
import logging
import random
from pathlib import Path
from typing import Dict, List, Optional, Union
from urllib.parse import parse_qs, urlsplit

from ..models import Channel

logger = logging.getLogger(__name__)

BUNDLED_CATALOG = Path(__file__).parent / "data" / "channels.json"

RANDOM_CHANNEL_LIMIT = 40

# Categories that list every channel in the filter but return nothing from
# the category endpoint (informational pages of the frontend).
_PAGE_CATEGORIES = ("all-channels", "about")
_PAGE_PREFIXES = ("faq", "privacy", "feedback")

_YOUTUBE_HOSTS = ("youtube.com", "www.youtube.com", "m.youtube.com")
_YOUTUBE_PATH_PREFIXES = ("/live/", "/shorts/", "/embed/")


def is_page_category(category: Optional[str]) -> bool:
    """True for a missing category or one naming an informational page."""
    if not category:
        return True
    return category in _PAGE_CATEGORIES or category.startswith(_PAGE_PREFIXES)


def normalize_youtube_url(url: str) -> str:
    """
    Rewrite YouTube watch, live, shorts and youtu.be links to embed form.

    Anything that is not a recognizable YouTube video link is returned as is.

    Example:
        >>> normalize_youtube_url("https://youtu.be/abc123")
        'https://www.youtube.com/embed/abc123'
    """
    try:
        parts = urlsplit(url)
    except ValueError:
        return url

    host = (parts.hostname or "").lower()
    video_id = None

    if host == "youtu.be":
        video_id = parts.path.strip("/").split("/")[0]
    elif host in _YOUTUBE_HOSTS:
        if parts.path == "/watch":
            video_id = parse_qs(parts.query).get("v", [None])[0]
        else:
            for prefix in _YOUTUBE_PATH_PREFIXES:
                if parts.path.startswith(prefix):
                    video_id = parts.path[len(prefix):].split("/")[0]
                    break

    if not video_id:
        return url
    return f"https://www.youtube.com/embed/{video_id}"


def filter_channel(channel: Channel, category: Optional[str]) -> bool:
    """
    Decide whether a channel belongs to a frontend category.

    Args:
        channel: Catalog entry
        category: Category slug from the frontend route (e.g. "top-news")

    Returns:
        True when the channel should be listed under the category
    """
    if is_page_category(category) or category == "random-channel":
        return True

    wanted = category.lower().replace("-", " ", 1)
    name = channel.name.lower()
    channel_category = channel.category.lower() if channel.category else None

    if channel_category == wanted:
        return True
    if wanted in name:
        return True
    if wanted in ("top news", "news") and channel_category == "news":
        return True
    if wanted in ("movies", "music", "sports") and channel_category == wanted:
        return True
    if wanted in ("kids", "animation") and channel_category in ("kids", "animation"):
        return True

    return False


class ChannelCatalog:
    """
    Read-only catalog of predefined channels grouped by country.

    Attributes:
        by_country: Mapping of country name to its channel entries
    """

    def __init__(self, by_country: Dict[str, List[Channel]]):
        self.by_country = by_country

    @classmethod
    def load(cls, path: Optional[Union[str, Path]] = None) -> "ChannelCatalog":
        """
        Load a catalog from a JSON file (the bundled catalog by default).

        Raises:
            OSError: If the file cannot be read
            ValueError: If the file is not valid JSON or entries are malformed
        """
        source = Path(path) if path else BUNDLED_CATALOG
        with source.open(encoding="utf-8") as fh:
            raw = json.load(fh)

        if not isinstance(raw, dict):
            raise ValueError(f"Channel catalog {source} must be an object keyed by country")

        by_country = {
            country: [Channel.model_validate(entry) for entry in entries]
            for country, entries in raw.items()
        }
        logger.info(
            "Loaded channel catalog",
            extra={
                "source": str(source),
                "countries": len(by_country),
                "channels": sum(len(v) for v in by_country.values()),
            }
        )
        return cls(by_country)

    def all_channels(self) -> List[Channel]:
        """Flatten the catalog, tagging each entry with its country and normalizing its URL."""
        channels = []
        for country, entries in self.by_country.items():
            for entry in entries:
                channels.append(
                    entry.model_copy(
                        update={
                            "country_name": country,
                            "url": normalize_youtube_url(entry.url),
                        }
                    )
                )
        return channels

    def by_category(
        self,
        category: Optional[str],
        rng: Optional[random.Random] = None,
    ) -> List[Channel]:
        """
        Channels listed under a frontend category.

        Informational pages get an empty list; ``random-channel`` gets up to
        40 entries in random order.
        """
        if is_page_category(category):
            return []

        matches = [ch for ch in self.all_channels() if filter_channel(ch, category)]

        if category == "random-channel":
            rng = rng or random
            return rng.sample(matches, min(RANDOM_CHANNEL_LIMIT, len(matches)))

        return matches
