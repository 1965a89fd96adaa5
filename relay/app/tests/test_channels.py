"""
Unit Tests for the Channel Catalog
==================================

Tests for relay/app/channels/

Test Coverage:
--------------
1. YouTube link normalization
2. Category filter rules
3. Catalog loading and flattening
4. GET /api/channels-by-category

Run tests:
----------
    pytest relay/app/tests/test_channels.py -v
"""

import json
import random

import pytest
from fastapi import status
from fastapi.testclient import TestClient

from relay.app.channels.catalog import (
    RANDOM_CHANNEL_LIMIT,
    ChannelCatalog,
    filter_channel,
    is_page_category,
    normalize_youtube_url,
)
from relay.app.config import Settings
from relay.app.main import create_app
from relay.app.models import Channel


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def catalog():
    return ChannelCatalog({
        "Testland": [
            Channel(name="Morning News", url="https://youtu.be/news1", category="News"),
            Channel(name="Cinema One", url="https://example.tv/cinema.m3u8", category="Movies"),
            Channel(name="Toon Time", url="https://example.tv/toon.m3u8", category="Animation"),
            Channel(name="Tiny Tots", url="https://example.tv/tots.m3u8", category="Kids"),
        ],
        "Otherland": [
            Channel(name="Sports Arena", url="https://example.tv/arena.m3u8", category="Sports"),
            Channel(name="Top News Daily", url="https://example.tv/tnd.m3u8"),
            Channel(name="Hit Music", url="https://www.youtube.com/watch?v=music9&t=5", category="Music"),
        ],
    })


@pytest.fixture
def client(catalog):
    app = create_app(Settings(API_KEY=None))
    app.state.catalog = catalog
    return TestClient(app)


def names(channels):
    return sorted(ch.name for ch in channels)


# ============================================================================
# Normalization Tests
# ============================================================================

@pytest.mark.parametrize("url, expected", [
    ("https://www.youtube.com/watch?v=abc123", "https://www.youtube.com/embed/abc123"),
    ("https://youtube.com/watch?v=abc123&list=x", "https://www.youtube.com/embed/abc123"),
    ("https://m.youtube.com/watch?v=abc123", "https://www.youtube.com/embed/abc123"),
    ("https://youtu.be/abc123?t=30", "https://www.youtube.com/embed/abc123"),
    ("https://www.youtube.com/live/abc123?si=z", "https://www.youtube.com/embed/abc123"),
    ("https://www.youtube.com/shorts/abc123", "https://www.youtube.com/embed/abc123"),
    ("https://www.youtube.com/embed/abc123", "https://www.youtube.com/embed/abc123"),
])
def test_normalize_youtube_url(url, expected):
    assert normalize_youtube_url(url) == expected


@pytest.mark.parametrize("url", [
    "https://example.tv/live/index.m3u8",
    "https://www.youtube.com/channel/UC123",
    "https://www.youtube.com/watch",
    "not a url",
])
def test_non_video_urls_unchanged(url):
    assert normalize_youtube_url(url) == url


# ============================================================================
# Filter Tests
# ============================================================================

@pytest.mark.parametrize("category", [
    None, "", "all-channels", "about", "faq", "faq-streaming",
    "privacy-policy", "feedback", "random-channel",
])
def test_filter_matches_everything_for_pages(category):
    channel = Channel(name="Anything", url="https://example.tv/a.m3u8")
    assert filter_channel(channel, category)


def test_page_categories():
    assert is_page_category(None)
    assert is_page_category("faq-general")
    assert not is_page_category("random-channel")
    assert not is_page_category("news")


def test_filter_by_category_and_name(catalog):
    channels = catalog.all_channels()

    assert names(ch for ch in channels if filter_channel(ch, "sports")) == ["Sports Arena"]
    assert names(ch for ch in channels if filter_channel(ch, "movies")) == ["Cinema One"]
    assert names(ch for ch in channels if filter_channel(ch, "music")) == ["Hit Music"]


def test_filter_top_news(catalog):
    """Test that top-news matches news channels and names containing it"""
    matched = [ch for ch in catalog.all_channels() if filter_channel(ch, "top-news")]

    assert names(matched) == ["Morning News", "Top News Daily"]


def test_filter_kids_and_animation_are_one_group(catalog):
    kids = [ch for ch in catalog.all_channels() if filter_channel(ch, "kids")]
    animation = [ch for ch in catalog.all_channels() if filter_channel(ch, "Animation")]

    assert names(kids) == names(animation) == ["Tiny Tots", "Toon Time"]


def test_filter_only_first_dash_replaced():
    channel = Channel(name="Sci Fi-Zone", url="https://example.tv/s.m3u8", category="sci fi-zone")
    assert filter_channel(channel, "sci-fi-zone")


def test_filter_without_category_field():
    channel = Channel(name="Mystery Box", url="https://example.tv/m.m3u8")
    assert not filter_channel(channel, "news")
    assert filter_channel(channel, "mystery")


# ============================================================================
# Catalog Tests
# ============================================================================

def test_all_channels_tags_country_and_normalizes(catalog):
    by_name = {ch.name: ch for ch in catalog.all_channels()}

    assert by_name["Morning News"].country_name == "Testland"
    assert by_name["Morning News"].url == "https://www.youtube.com/embed/news1"
    assert by_name["Hit Music"].country_name == "Otherland"
    assert by_name["Hit Music"].url == "https://www.youtube.com/embed/music9"
    # source entries are left untouched
    assert catalog.by_country["Testland"][0].country_name is None


def test_by_category_pages_are_empty(catalog):
    assert catalog.by_category(None) == []
    assert catalog.by_category("about") == []
    assert catalog.by_category("privacy") == []


def test_random_channel_is_capped(catalog):
    big = ChannelCatalog({
        "Bulk": [Channel(name=f"Channel {i}", url=f"https://example.tv/{i}.m3u8") for i in range(100)]
    })

    picked = big.by_category("random-channel", rng=random.Random(7))

    assert len(picked) == RANDOM_CHANNEL_LIMIT
    assert len({ch.name for ch in picked}) == RANDOM_CHANNEL_LIMIT
    assert len(catalog.by_category("random-channel")) == 7


def test_load_bundled_catalog():
    catalog = ChannelCatalog.load()

    assert catalog.by_country
    assert all(ch.country_name for ch in catalog.all_channels())


def test_load_custom_file(tmp_path):
    path = tmp_path / "channels.json"
    path.write_text(json.dumps({
        "Nowhere": [{"name": "Solo", "url": "https://example.tv/solo.m3u8", "category": "News"}]
    }), encoding="utf-8")

    catalog = ChannelCatalog.load(path)

    assert names(catalog.by_category("news")) == ["Solo"]


def test_load_rejects_non_object(tmp_path):
    path = tmp_path / "channels.json"
    path.write_text("[]", encoding="utf-8")

    with pytest.raises(ValueError):
        ChannelCatalog.load(path)


# ============================================================================
# Endpoint Tests
# ============================================================================

def test_endpoint_lists_matches(client):
    response = client.get("/api/channels-by-category", params={"category": "sports"})

    assert response.status_code == status.HTTP_200_OK
    channels = response.json()["channels"]
    assert len(channels) == 1
    assert channels[0]["name"] == "Sports Arena"
    assert channels[0]["countryName"] == "Otherland"


@pytest.mark.parametrize("params", [{}, {"category": "all-channels"}, {"category": "faq-billing"}])
def test_endpoint_pages_empty(client, params):
    response = client.get("/api/channels-by-category", params=params)

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"channels": []}


def test_endpoint_random(client):
    response = client.get("/api/channels-by-category", params={"category": "random-channel"})

    assert response.status_code == status.HTTP_200_OK
    assert len(response.json()["channels"]) == 7


def test_endpoint_failure(client, catalog, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("catalog unavailable")

    monkeypatch.setattr(catalog, "by_category", broken)

    response = client.get("/api/channels-by-category", params={"category": "news"})

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json() == {"error": "Failed to fetch channels"}
