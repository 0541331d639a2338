"""Models for suggestion resolution actions, batches and statistics."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class ActionKind(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"
    EDIT = "edit"


class ActionStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class BatchPriority(str, Enum):
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"

    @property
    def rank(self) -> int:
        return {"high": 3, "normal": 2, "low": 1}[self.value]


class ResolutionAction(BaseModel):
    """One user intent (accept/reject/edit) travelling through the resolution queue."""

    id: str = Field(default_factory=lambda: f"action_{uuid.uuid4().hex[:12]}")
    suggestion_id: str
    kind: ActionKind
    edited_text: str | None = None
    status: ActionStatus = ActionStatus.PENDING
    retry_count: int = 0
    priority: BatchPriority = BatchPriority.NORMAL
    timestamp: datetime = Field(default_factory=datetime.now)
    error: str | None = None


@dataclass
class BatchRequest:
    """Actions of one priority tier dispatched together after the debounce window."""

    priority: BatchPriority
    sequence: int
    batch_id: str = field(default_factory=lambda: f"batch_{uuid.uuid4().hex[:12]}")
    actions: list[ResolutionAction] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def sort_key(self) -> tuple[int, int]:
        return (-self.priority.rank, self.sequence)


@dataclass
class ResolutionStats:
    total_resolutions: int = 0
    successful_resolutions: int = 0
    failed_resolutions: int = 0
    average_resolution_time: float = 0.0
    batches_processed: int = 0
    retry_count: int = 0

    @property
    def success_rate(self) -> float:
        if not self.total_resolutions:
            return 0.0
        return self.successful_resolutions / self.total_resolutions

    def record_success(self, elapsed: float) -> None:
        self.total_resolutions += 1
        self.successful_resolutions += 1
        # running mean over successful calls only
        n = self.successful_resolutions
        self.average_resolution_time += (elapsed - self.average_resolution_time) / n

    def record_failure(self) -> None:
        self.total_resolutions += 1
        self.failed_resolutions += 1

    def to_dict(self) -> dict:
        return {
            "total_resolutions": self.total_resolutions,
            "successful_resolutions": self.successful_resolutions,
            "failed_resolutions": self.failed_resolutions,
            "average_resolution_time": self.average_resolution_time,
            "batches_processed": self.batches_processed,
            "retry_count": self.retry_count,
            "success_rate": self.success_rate,
        }
