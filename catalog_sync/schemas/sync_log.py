"""Sync log schema. One row per entity run, written by the caller layer."""

from pydantic import BaseModel, ConfigDict


class SyncLogEntry(BaseModel):
    """Single sync log entry."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    entity_type: str
    direction: str = "pull"
    status: str  # 'running' | 'completed' | 'error'
    records_processed: int | None = None
    records_created: int | None = None
    records_updated: int | None = None
    error: str | None = None
    started_at: str | None = None
    completed_at: str | None = None
