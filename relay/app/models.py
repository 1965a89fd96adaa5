"""
Data Models Module

This module defines Pydantic models for request/response validation
and data serialization throughout the relay service.

Models are organized by functional area:
- Relay models (validated relay request)
- Channel catalog models (catalog entries, category listing responses)
- Health and error models
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Relay Models
# ============================================================================

class RelayRequest(BaseModel):
    """Relay request that passed the gate. Lives for one request only."""

    model_config = ConfigDict(frozen=True)

    target_url: str = Field(..., description="Absolute URL to fetch on the caller's behalf")
    access_key: Optional[str] = Field(None, description="Key supplied by the caller, if any")


# ============================================================================
# Channel Catalog Models
# ============================================================================

class Channel(BaseModel):
    """A predefined media channel entry in the catalog."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., description="Display name")
    url: str = Field(..., description="Stream or embed URL")
    category: Optional[str] = Field(None, description="Catalog category (news, music, kids, ...)")
    logo: Optional[str] = Field(None, description="Logo image URL")
    country_name: Optional[str] = Field(None, alias="countryName", description="Country the entry is listed under")


class ChannelListResponse(BaseModel):
    """Response model for channel listing endpoints."""
    channels: List[Channel] = Field(default_factory=list, description="Matching channels")


# ============================================================================
# Health Check Models
# ============================================================================

class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service health status")
    service: str = Field(..., description="Service name")
    version: str = Field(..., description="Service version")


# ============================================================================
# Error Models
# ============================================================================

class ErrorResponse(BaseModel):
    """Error body returned by every failing API route."""
    error: str = Field(..., description="Human-readable error message")


class ServiceInfo(BaseModel):
    """Root endpoint payload."""
    service: str
    version: str
    description: str
    endpoints: Dict[str, str]
