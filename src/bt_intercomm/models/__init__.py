"""Data models for the bt_intercomm daemon."""

from bt_intercomm.models.events import ChainEvent, ProposedBrandedToken, PROPOSED_BRANDED_TOKEN
from bt_intercomm.models.tasks import PendingTask, TaskState
from bt_intercomm.models.attempts import (
    AttemptState,
    ExecutionResult,
    RegistrationAttempt,
    StepResult,
    StepStatus,
)
from bt_intercomm.models.config import (
    IntercommConfig,
    TransactionConfig,
    UtilityChainConfig,
    ValueChainConfig,
)
from bt_intercomm.models.records import ActivityRecord, AttemptRecord

__all__ = [
    "ChainEvent", "ProposedBrandedToken", "PROPOSED_BRANDED_TOKEN",
    "PendingTask", "TaskState",
    "AttemptState", "ExecutionResult", "RegistrationAttempt", "StepResult", "StepStatus",
    "IntercommConfig", "TransactionConfig", "UtilityChainConfig", "ValueChainConfig",
    "ActivityRecord", "AttemptRecord",
]
