"""
Sync run contract: modes, phases, progress events and the returned summary.
"""

from enum import Enum

from pydantic import BaseModel, Field


class SyncMode(str, Enum):
    FULL = "full"
    INCREMENTAL = "incremental"


class SyncPhase(str, Enum):
    IDLE = "idle"
    LISTING = "listing"
    DETAILING = "detailing"
    DONE = "done"
    FAILED = "failed"


class SyncProgress(BaseModel):
    """Progress event pushed to the caller's sink."""
    entity: str
    phase: SyncPhase
    processed: int = Field(ge=0)
    total: int = Field(ge=0)


class SyncResult(BaseModel):
    """Summary returned at the end of one entity sync."""
    entity: str
    mode: SyncMode
    processed: int = 0
    created: int = 0
    updated: int = 0
    errors: list[str] = Field(default_factory=list)
    cancelled: bool = False
