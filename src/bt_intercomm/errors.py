"""Exception hierarchy for the inter-comm daemon."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from bt_intercomm.models.attempts import RegistrationAttempt


class IntercommError(Exception):
    """Base class for all bt_intercomm errors."""


class ConfigError(IntercommError):
    """Missing or invalid configuration."""


class SubscriptionError(IntercommError):
    """The event source was lost or could not be read."""


class EventValidationError(SubscriptionError):
    """A notification carried a malformed ProposedBrandedToken payload."""


class InvalidTransitionError(IntercommError):
    """A RegistrationAttempt was moved along an edge its state machine lacks."""

    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Illegal attempt transition {current} -> {target}")
        self.current = current
        self.target = target


class RegistrationError(IntercommError):
    """A registration attempt ended in a terminal failure state."""

    def __init__(self, attempt: RegistrationAttempt, reason: str) -> None:
        super().__init__(f"Registration of {attempt.uuid} failed: {reason}")
        self.attempt = attempt
        self.reason = reason


class Step1Failure(RegistrationError):
    """registerBrandedToken on the utility chain did not confirm."""


class Step2Failure(RegistrationError):
    """registerUtilityToken on the value chain did not confirm."""
