"""Registration coordinator - two-step branded token registration across both chains.

For one matured ProposedBrandedToken event:

1. registerBrandedToken on the utility chain's UtilityRegistrar, which must
   emit RegisteredBrandedToken.
2. Only after step 1 confirms, registerUtilityToken on the value chain's
   ValueRegistrar, which must emit UtilityTokenRegistered.

A transaction that was mined but lacks its confirmation event counts as a
failure. Step 1 is never rolled back when step 2 fails; the attempt ends
as failed_at_step2 and needs reconciling by hand.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Sequence

from bt_intercomm.chain.signers import Signer
from bt_intercomm.errors import Step1Failure, Step2Failure
from bt_intercomm.interfaces.executor import StepExecutor
from bt_intercomm.interfaces.store import StateStore
from bt_intercomm.models.attempts import (
    AttemptState,
    RegistrationAttempt,
    StepResult,
    StepStatus,
)
from bt_intercomm.models.events import ChainEvent
from bt_intercomm.validation import is_tx_hash_valid

log = logging.getLogger(__name__)

REGISTER_BRANDED_TOKEN = "registerBrandedToken"
REGISTERED_BRANDED_TOKEN = "RegisteredBrandedToken"
REGISTER_UTILITY_TOKEN = "registerUtilityToken"
UTILITY_TOKEN_REGISTERED = "UtilityTokenRegistered"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class RegistrationSettings:
    """Addresses and signers for both registrar calls."""

    openst_utility_address: str
    utility_registrar_contract: str
    utility_signer: Signer
    openst_value_address: str
    value_registrar_contract: str
    value_signer: Signer
    utility_chain_id: int


class RegistrationCoordinator:
    """Runs RegistrationAttempts. Holds configuration only; safe to share."""

    def __init__(
        self,
        utility_executor: StepExecutor,
        value_executor: StepExecutor,
        settings: RegistrationSettings,
        store: StateStore | None = None,
    ) -> None:
        self._utility = utility_executor
        self._value = value_executor
        self._settings = settings
        self._store = store

    async def process(self, event: ChainEvent) -> RegistrationAttempt:
        """Scheduler processor: raises unless both steps confirmed."""
        attempt = await self.register(event)
        if attempt.state == AttemptState.FAILED_AT_STEP1:
            raise Step1Failure(attempt, attempt.step1.reason or "unknown")
        if attempt.state == AttemptState.FAILED_AT_STEP2:
            raise Step2Failure(attempt, attempt.step2.reason or "unknown")
        return attempt

    async def register(self, event: ChainEvent) -> RegistrationAttempt:
        """Drive one attempt to a terminal state and return it."""
        s = self._settings
        attempt = RegistrationAttempt.from_event(event, started_at=_now())

        # ── Step 1: utility chain ─────────────────────────
        attempt.transition(AttemptState.STEP1_IN_FLIGHT)
        log.info(
            "Calling %s of utilityRegistrar for %s (%s)",
            REGISTER_BRANDED_TOKEN, attempt.symbol, attempt.uuid[:18],
        )
        await self._run_step(
            attempt.step1,
            self._utility,
            s.utility_registrar_contract,
            REGISTER_BRANDED_TOKEN,
            s.utility_signer,
            (
                s.openst_utility_address,
                attempt.symbol,
                attempt.name,
                attempt.conversion_rate,
                attempt.requester,
                attempt.token,
                attempt.uuid,
            ),
            REGISTERED_BRANDED_TOKEN,
        )
        if attempt.step1.status != StepStatus.SUCCESS:
            attempt.transition(AttemptState.FAILED_AT_STEP1)
            return await self._finish(attempt)
        log.info("%s of utilityRegistrar DONE for %s", REGISTER_BRANDED_TOKEN, attempt.symbol)

        # ── Step 2: value chain ───────────────────────────
        attempt.transition(AttemptState.STEP2_IN_FLIGHT)
        log.info(
            "Calling %s of valueRegistrar for %s (%s)",
            REGISTER_UTILITY_TOKEN, attempt.symbol, attempt.uuid[:18],
        )
        await self._run_step(
            attempt.step2,
            self._value,
            s.value_registrar_contract,
            REGISTER_UTILITY_TOKEN,
            s.value_signer,
            (
                s.openst_value_address,
                attempt.symbol,
                attempt.name,
                attempt.conversion_rate,
                s.utility_chain_id,
                attempt.requester,
                attempt.uuid,
            ),
            UTILITY_TOKEN_REGISTERED,
        )
        if attempt.step2.status != StepStatus.SUCCESS:
            attempt.transition(AttemptState.FAILED_AT_STEP2)
            return await self._finish(attempt)
        log.info("%s of valueRegistrar DONE for %s", REGISTER_UTILITY_TOKEN, attempt.symbol)

        attempt.transition(AttemptState.DONE)
        return await self._finish(attempt)

    async def _run_step(
        self,
        step: StepResult,
        executor: StepExecutor,
        contract_address: str,
        method: str,
        signer: Signer,
        args: Sequence[Any],
        confirmation_event: str,
    ) -> None:
        try:
            result = await executor.execute(contract_address, method, signer, args)
        except Exception as exc:
            log.error("%s raised: %s", method, exc, exc_info=True)
            step.status = StepStatus.FAILED
            step.reason = f"{method} error: {exc}"
            return

        log.debug("%s result: %s", method, result)
        step.tx_hash = result.tx_hash
        step.events = result.events

        if not result.success:
            step.status = StepStatus.FAILED
            step.reason = f"{method} error: {result.error}"
            log.error("%s ERROR: %s (tx=%s)", method, result.error, result.tx_hash or "?")
        elif not is_tx_hash_valid(result.tx_hash):
            step.status = StepStatus.FAILED
            step.reason = f"{method} returned malformed tx hash {result.tx_hash!r}"
            log.error("%s returned malformed tx hash %r", method, result.tx_hash)
        elif confirmation_event not in result.events:
            step.status = StepStatus.FAILED
            step.reason = f"{confirmation_event} event not found in receipt"
            log.error(
                "%s event not found in receipt of %s (tx=%s)",
                confirmation_event, method, result.tx_hash or "?",
            )
        else:
            step.status = StepStatus.SUCCESS

    async def _finish(self, attempt: RegistrationAttempt) -> RegistrationAttempt:
        attempt.completed_at = _now()
        if attempt.succeeded:
            log.info("Registered %s (%s) on both chains", attempt.symbol, attempt.uuid)
        else:
            log.error(
                "Registration of %s (%s) ended %s: %s",
                attempt.symbol, attempt.uuid, attempt.state.value, attempt.failure_reason,
            )

        if self._store:
            await self._store.save_attempt(attempt)
            if attempt.succeeded:
                await self._store.log_activity(
                    "registration_done",
                    f"Registered {attempt.symbol} on both chains",
                    uuid=attempt.uuid,
                    tx_hash=attempt.step2.tx_hash,
                )
            else:
                failed = attempt.step1 if attempt.state == AttemptState.FAILED_AT_STEP1 else attempt.step2
                await self._store.log_activity(
                    attempt.state.value,
                    f"{attempt.symbol}: {attempt.failure_reason}",
                    uuid=attempt.uuid,
                    tx_hash=failed.tx_hash,
                )
        return attempt
