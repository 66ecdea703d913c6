"""Protocol interfaces for all bt_intercomm components."""

from bt_intercomm.interfaces.source import EventSource
from bt_intercomm.interfaces.executor import StepExecutor
from bt_intercomm.interfaces.store import StateStore

__all__ = ["EventSource", "StepExecutor", "StateStore"]
