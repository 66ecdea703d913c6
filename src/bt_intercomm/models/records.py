"""Record types read back from the state store."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ActivityRecord:
    """A single activity log entry."""

    id: int
    event_type: str
    uuid: str | None
    tx_hash: str | None
    message: str
    created_at: str


@dataclass
class AttemptRecord:
    """A finished registration attempt as persisted."""

    id: int
    uuid: str
    symbol: str
    state: str
    step1_status: str
    step1_tx_hash: str | None
    step2_status: str
    step2_tx_hash: str | None
    reason: str | None
    started_at: str
    completed_at: str | None
