"""Registration attempt state machine and step execution results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from bt_intercomm.errors import InvalidTransitionError
from bt_intercomm.models.events import ChainEvent


class StepStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class AttemptState(str, Enum):
    START = "start"
    STEP1_IN_FLIGHT = "step1_in_flight"
    STEP2_IN_FLIGHT = "step2_in_flight"
    DONE = "done"
    FAILED_AT_STEP1 = "failed_at_step1"
    FAILED_AT_STEP2 = "failed_at_step2"


_TRANSITIONS: dict[AttemptState, frozenset[AttemptState]] = {
    AttemptState.START: frozenset({AttemptState.STEP1_IN_FLIGHT}),
    AttemptState.STEP1_IN_FLIGHT: frozenset(
        {AttemptState.STEP2_IN_FLIGHT, AttemptState.FAILED_AT_STEP1}
    ),
    AttemptState.STEP2_IN_FLIGHT: frozenset(
        {AttemptState.DONE, AttemptState.FAILED_AT_STEP2}
    ),
    AttemptState.DONE: frozenset(),
    AttemptState.FAILED_AT_STEP1: frozenset(),
    AttemptState.FAILED_AT_STEP2: frozenset(),
}

TERMINAL_STATES = frozenset(
    {AttemptState.DONE, AttemptState.FAILED_AT_STEP1, AttemptState.FAILED_AT_STEP2}
)


@dataclass
class ExecutionResult:
    """Outcome of one signed registrar call, as returned by a StepExecutor."""

    success: bool
    tx_hash: str | None = None
    block_number: int | None = None
    receipt: dict[str, Any] = field(default_factory=dict)
    events: dict[str, dict[str, Any]] = field(default_factory=dict)
    error: str | None = None


@dataclass
class StepResult:
    status: StepStatus = StepStatus.PENDING
    tx_hash: str | None = None
    events: dict[str, dict[str, Any]] = field(default_factory=dict)
    reason: str | None = None


@dataclass
class RegistrationAttempt:
    """One coordinator run for a single proposed branded token."""

    symbol: str
    name: str
    conversion_rate: int
    requester: str
    token: str
    uuid: str
    block_number: int = 0
    state: AttemptState = AttemptState.START
    step1: StepResult = field(default_factory=StepResult)
    step2: StepResult = field(default_factory=StepResult)
    started_at: str = ""
    completed_at: str | None = None

    @classmethod
    def from_event(cls, event: ChainEvent, started_at: str = "") -> RegistrationAttempt:
        p = event.payload
        return cls(
            symbol=p.symbol,
            name=p.name,
            conversion_rate=p.conversion_rate,
            requester=p.requester,
            token=p.token,
            uuid=p.uuid,
            block_number=event.block_number,
            started_at=started_at,
        )

    def transition(self, target: AttemptState) -> None:
        if target not in _TRANSITIONS[self.state]:
            raise InvalidTransitionError(self.state.value, target.value)
        self.state = target

    @property
    def terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def succeeded(self) -> bool:
        return self.state == AttemptState.DONE

    @property
    def failure_reason(self) -> str | None:
        if self.state == AttemptState.FAILED_AT_STEP1:
            return self.step1.reason
        if self.state == AttemptState.FAILED_AT_STEP2:
            return self.step2.reason
        return None
