"""StepExecutor protocol - submits one signed registrar call and decodes its receipt."""

from __future__ import annotations

from typing import Any, Protocol, Sequence

from bt_intercomm.chain.signers import Signer
from bt_intercomm.models.attempts import ExecutionResult


class StepExecutor(Protocol):
    """Submits a transaction, waits for inclusion, decodes receipt events."""

    async def execute(
        self,
        contract_address: str,
        method: str,
        signer: Signer,
        args: Sequence[Any],
    ) -> ExecutionResult:
        """Never raises for chain-level failures; reports them in the result."""
        ...
