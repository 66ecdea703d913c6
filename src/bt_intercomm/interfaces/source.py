"""EventSource protocol - reads ProposedBrandedToken events and chain height."""

from __future__ import annotations

from typing import Protocol

from bt_intercomm.models.events import ChainEvent


class EventSource(Protocol):
    """Forward-only, at-least-once source of proposal events."""

    async def latest_block(self) -> int:
        """Current head of the source chain."""
        ...

    async def poll(self, to_block: int | None = None) -> list[ChainEvent]:
        """Fetch events since the cursor. Raises SubscriptionError on transport failure."""
        ...

    @property
    def cursor(self) -> int | None:
        ...

    def set_cursor(self, block: int) -> None:
        ...
