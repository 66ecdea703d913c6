"""web3 step executor - signs a registrar call, waits for its receipt, decodes events."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3.exceptions import ContractLogicError, TimeExhausted
from web3.logs import DISCARD

from bt_intercomm.chain.abi import event_names
from bt_intercomm.chain.signers import Signer, SignerLocks
from bt_intercomm.models.attempts import ExecutionResult
from bt_intercomm.validation import is_address_valid

log = logging.getLogger(__name__)

# Node error substrings, lowercased, for result classification
_ERROR_MARKERS = (
    ("insufficient funds", "insufficient_funds"),
    ("nonce too low", "nonce"),
    ("replacement transaction underpriced", "nonce"),
    ("already known", "nonce"),
    ("execution reverted", "reverted"),
    ("revert", "reverted"),
    ("timeout", "timeout"),
    ("timed out", "timeout"),
)


def classify_error(exc: Exception) -> str:
    """Map a web3/node error onto a short failure tag."""
    if isinstance(exc, TimeExhausted):
        return "tx_timeout"
    if isinstance(exc, ContractLogicError):
        return "reverted"
    msg = str(exc).lower()
    for marker, tag in _ERROR_MARKERS:
        if marker in msg:
            return tag
    return "unknown"


def _plain(value: Any) -> Any:
    """Turn web3 AttributeDicts/HexBytes into plain dicts and 0x strings."""
    if isinstance(value, (bytes, bytearray)):
        return Web3.to_hex(value)
    if isinstance(value, Mapping):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def decode_receipt_events(contract: Any, receipt: Mapping[str, Any]) -> dict[str, dict[str, Any]]:
    """Decode every ABI event found in a receipt into ``{event_name: args}``.

    Logs that do not match an event of this ABI are skipped. If an event
    appears more than once, the first occurrence wins.
    """
    decoded: dict[str, dict[str, Any]] = {}
    for name in event_names(contract.abi):
        event = getattr(contract.events, name)()
        for entry in event.process_receipt(receipt, errors=DISCARD):
            if name not in decoded:
                args = _plain(entry["args"])
                args["logIndex"] = entry["logIndex"]
                decoded[name] = args
    return decoded


class Web3StepExecutor:
    """Executes registrar calls on one chain.

    Signs locally with the signer's private key (eth-account) and submits a
    raw transaction. A chain-level failure (revert, RPC error, timeout)
    comes back as ``ExecutionResult(success=False, error=...)``; whether
    the expected confirmation event is present is for the caller to judge.
    """

    def __init__(
        self,
        rpc_url: str,
        abi: list[dict],
        tx_timeout: int = 300,
        poll_latency: float = 2.0,
        gas_limit: int | None = None,
        signer_locks: SignerLocks | None = None,
        w3: AsyncWeb3 | None = None,
    ) -> None:
        self._w3 = w3 or AsyncWeb3(AsyncHTTPProvider(rpc_url))
        self._abi = abi
        self._tx_timeout = tx_timeout
        self._poll_latency = poll_latency
        self._gas_limit = gas_limit
        self._locks = signer_locks or SignerLocks()
        self._chain_id: int | None = None

    async def _get_chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = await self._w3.eth.chain_id
        return self._chain_id

    async def execute(
        self,
        contract_address: str,
        method: str,
        signer: Signer,
        args: Sequence[Any],
    ) -> ExecutionResult:
        """Submit ``method(*args)`` to ``contract_address`` and await inclusion."""
        contract = self._w3.eth.contract(
            address=Web3.to_checksum_address(contract_address), abi=self._abi,
        )
        call_args = [
            Web3.to_checksum_address(a) if is_address_valid(a) else a for a in args
        ]
        sender = Web3.to_checksum_address(signer.address)

        log.debug("Executing %s on %s as %s", method, contract_address, sender)

        try:
            async with self._locks.for_address(sender):
                params: dict[str, Any] = {
                    "from": sender,
                    "nonce": await self._w3.eth.get_transaction_count(sender, "pending"),
                    "chainId": await self._get_chain_id(),
                }
                if self._gas_limit is not None:
                    params["gas"] = self._gas_limit
                fn = getattr(contract.functions, method)(*call_args)
                tx = await fn.build_transaction(params)
                signed = self._w3.eth.account.sign_transaction(tx, signer.private_key)
                tx_hash = await self._w3.eth.send_raw_transaction(signed.raw_transaction)
        except Exception as exc:
            error_type = classify_error(exc)
            log.warning("%s submission failed: %s (%s)", method, error_type, exc)
            return ExecutionResult(success=False, error=f"submit_failed:{error_type}")

        tx_hex = Web3.to_hex(tx_hash)
        log.info("%s submitted (tx=%s)", method, tx_hex[:18])

        try:
            receipt = await self._w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self._tx_timeout, poll_latency=self._poll_latency,
            )
        except Exception as exc:
            error_type = classify_error(exc)
            log.error("%s not mined: %s (tx=%s)", method, error_type, tx_hex[:18])
            return ExecutionResult(success=False, tx_hash=tx_hex, error=error_type)

        receipt_dict = _plain(dict(receipt))
        block_number = receipt.get("blockNumber")

        if receipt.get("status") == 0:
            log.error("%s reverted in block %s (tx=%s)", method, block_number, tx_hex[:18])
            return ExecutionResult(
                success=False,
                tx_hash=tx_hex,
                block_number=block_number,
                receipt=receipt_dict,
                error="reverted",
            )

        try:
            events = decode_receipt_events(contract, receipt)
        except Exception as exc:
            log.error("%s receipt decode failed (tx=%s): %s", method, tx_hex[:18], exc)
            return ExecutionResult(
                success=False,
                tx_hash=tx_hex,
                block_number=block_number,
                receipt=receipt_dict,
                error=f"decode_failed:{exc}",
            )

        log.debug("%s mined in block %s with events %s", method, block_number, list(events))
        return ExecutionResult(
            success=True,
            tx_hash=tx_hex,
            block_number=block_number,
            receipt=receipt_dict,
            events=events,
        )
