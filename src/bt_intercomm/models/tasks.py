"""Scheduler task records."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from bt_intercomm.models.events import ChainEvent


class TaskState(str, Enum):
    WAITING = "waiting"  # below confirmation depth
    DISPATCHED = "dispatched"  # handed to the processor, exactly once
    COMPLETED = "completed"  # processor returned; uuid stays claimed
    DISCARDED = "discarded"  # processor rejected; never retried


@dataclass
class PendingTask:
    """A ChainEvent awaiting ``ready_at_block``."""

    event: ChainEvent
    ready_at_block: int
    seq: int  # ingestion order, breaks ties within a block
    state: TaskState = TaskState.WAITING
    error: str | None = None
    created_at: str = ""  # ISO 8601

    @property
    def identity(self):
        return self.event.identity

    @property
    def live(self) -> bool:
        """Still claims its identity and uuid against re-ingestion."""
        return self.state in (TaskState.WAITING, TaskState.DISPATCHED, TaskState.COMPLETED)
