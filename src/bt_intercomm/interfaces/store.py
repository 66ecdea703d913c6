"""StateStore protocol - optional durability for tasks, attempts and activity."""

from __future__ import annotations

from typing import Protocol

from bt_intercomm.models.attempts import RegistrationAttempt
from bt_intercomm.models.events import EventIdentity
from bt_intercomm.models.records import ActivityRecord, AttemptRecord
from bt_intercomm.models.tasks import PendingTask, TaskState


class StateStore(Protocol):
    """Persists scheduler and coordinator state for restarts and operators."""

    # ── Lifecycle ──────────────────────────────────────────

    async def initialize(self) -> None:
        ...

    async def close(self) -> None:
        ...

    # ── Cursor ─────────────────────────────────────────────

    async def get_cursor(self) -> int | None:
        ...

    async def set_cursor(self, block: int) -> None:
        ...

    # ── Tasks ──────────────────────────────────────────────

    async def save_task(self, task: PendingTask) -> None:
        ...

    async def update_task_state(
        self, identity: EventIdentity, state: TaskState, error: str | None = None,
    ) -> None:
        ...

    async def get_tasks(self, states: list[str] | None = None) -> list[PendingTask]:
        ...

    async def delete_tasks(self, identities: list[EventIdentity]) -> None:
        ...

    # ── Attempts ───────────────────────────────────────────

    async def save_attempt(self, attempt: RegistrationAttempt) -> None:
        ...

    async def get_attempts(
        self, limit: int = 50, state: str | None = None,
    ) -> list[AttemptRecord]:
        ...

    # ── Activity ───────────────────────────────────────────

    async def log_activity(
        self,
        event_type: str,
        message: str,
        uuid: str | None = None,
        tx_hash: str | None = None,
    ) -> None:
        ...

    async def get_recent_activity(self, limit: int = 50) -> list[ActivityRecord]:
        ...
