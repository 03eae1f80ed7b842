from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

from .attachment import ImageRef

LogLevel = Literal["info", "success", "error", "skip"]

_ICONS: dict[str, str] = {
    "info": "ℹ️",
    "success": "✓",
    "error": "✗",
    "skip": "⊘",
}


class BulkState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    STOPPED = "stopped"


class BulkStats(BaseModel):
    success: int = 0
    failed: int = 0
    skipped: int = 0  # nothing increments this yet


class BulkLogEntry(BaseModel):
    timestamp: datetime = Field(default_factory=datetime.now)
    level: LogLevel = "info"
    message: str

    def render(self) -> str:
        icon = _ICONS.get(self.level, _ICONS["info"])
        return f"{icon} [{self.timestamp:%H:%M:%S}] {self.message}"


class BulkJob(BaseModel):
    """Transient state of one bulk run. Never persisted."""

    items: list[ImageRef] = Field(default_factory=list)
    cursor: int = 0
    processed: int = 0
    stats: BulkStats = Field(default_factory=BulkStats)
    stop_requested: bool = False
    state: BulkState = BulkState.IDLE
    log: list[BulkLogEntry] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.items)

    @property
    def percentage(self) -> float:
        return (self.processed / self.total) * 100 if self.total else 0.0

    @property
    def is_terminal(self) -> bool:
        return self.state in (BulkState.COMPLETED, BulkState.STOPPED)

    def request_stop(self) -> None:
        self.stop_requested = True
