"""
Catalog record schemas shared by the remote client, the local store and the engine.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class RemoteRecord(BaseModel):
    """One record as returned by a listing endpoint (summary fields only)."""
    model_config = ConfigDict(frozen=True)

    id: str
    summary: dict[str, Any] = Field(default_factory=dict)
    updated_at: str | None = None
    links: list[dict[str, Any]] = Field(default_factory=list)  # junction rows, without the record key


class CatalogPage(BaseModel):
    """One listing page. next_cursor is None on the last page."""
    records: list[RemoteRecord] = Field(default_factory=list)
    next_cursor: int | None = None
    total: int | None = None


class DetailRecord(BaseModel):
    """Full detail payload for one record, already mapped to store columns."""
    model_config = ConfigDict(frozen=True)

    id: str
    payload: dict[str, Any] = Field(default_factory=dict)


class LocalRecord(BaseModel):
    """Stored row keyed by the remote identifier."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    summary: dict[str, Any] = Field(default_factory=dict)
    has_detail: bool = False
