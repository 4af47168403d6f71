"""Pydantic schemas for the festival admin endpoints."""

from pydantic import BaseModel, ConfigDict


class TaggingResultResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    festival_slug: str
    candidates: int
    tagged: int
    already_tagged: int


class WatchdogResultResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    festival_slug: str
    probe_url: str
    detected: bool
    newly_announced: bool
    content_hash: str | None = None
    error: str | None = None
