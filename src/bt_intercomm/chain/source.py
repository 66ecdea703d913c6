"""web3 event source - polls openSTUtility for ProposedBrandedToken logs."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from web3 import AsyncHTTPProvider, AsyncWeb3, Web3

from bt_intercomm.chain.abi import OPENST_UTILITY_ABI
from bt_intercomm.errors import EventValidationError, SubscriptionError
from bt_intercomm.models.events import PROPOSED_BRANDED_TOKEN, ChainEvent, ProposedBrandedToken

log = logging.getLogger(__name__)


def parse_log(entry: Mapping[str, Any]) -> ChainEvent | None:
    """Turn a decoded web3 log into a ChainEvent.

    Returns None for removed (reorged-out) or malformed logs.
    """
    if entry.get("removed"):
        log.debug("Skipping removed log in block %s", entry.get("blockNumber"))
        return None
    try:
        payload = ProposedBrandedToken.from_event_args(entry["args"])
        tx_hash = entry.get("transactionHash")
        return ChainEvent(
            block_number=int(entry["blockNumber"]),
            log_index=int(entry["logIndex"]),
            payload=payload,
            transaction_hash=Web3.to_hex(tx_hash) if tx_hash is not None else "",
        )
    except EventValidationError as exc:
        log.warning(
            "Malformed %s in block %s: %s",
            PROPOSED_BRANDED_TOKEN, entry.get("blockNumber"), exc,
        )
        return None
    except (KeyError, TypeError, ValueError) as exc:
        log.warning("Could not decode %s log: %s", PROPOSED_BRANDED_TOKEN, exc)
        return None


class Web3EventSource:
    """Reads ProposedBrandedToken events from the utility chain.

    Keeps a block cursor (last block scanned) so a restart can resume. It
    never retries: a transport failure is raised as SubscriptionError and
    left to the daemon loop.
    """

    def __init__(
        self,
        rpc_url: str,
        contract_address: str,
        start_block: int | None = None,
        max_block_range: int = 1000,
        w3: AsyncWeb3 | None = None,
    ) -> None:
        self._w3 = w3 or AsyncWeb3(AsyncHTTPProvider(rpc_url))
        self._contract = self._w3.eth.contract(
            address=Web3.to_checksum_address(contract_address), abi=OPENST_UTILITY_ABI,
        )
        self._start_block = start_block
        self._max_range = max_block_range
        self._cursor: int | None = None

    @property
    def cursor(self) -> int | None:
        return self._cursor

    def set_cursor(self, block: int) -> None:
        """Restore the last scanned block from persisted state."""
        self._cursor = block

    async def latest_block(self) -> int:
        try:
            return await self._w3.eth.block_number
        except Exception as exc:
            raise SubscriptionError(f"block_number failed: {exc}") from exc

    async def poll(self, to_block: int | None = None) -> list[ChainEvent]:
        """Fetch proposal events after the cursor up to ``to_block`` (default head).

        On first call (no cursor) scanning starts at ``start_block`` or at
        the current head. The cursor only moves once every chunk has been
        fetched; a failed chunk leaves it where it was, so the whole range is
        scanned again on the next poll.
        """
        head = to_block if to_block is not None else await self.latest_block()

        if self._cursor is None:
            start = self._start_block if self._start_block is not None else head
            log.info("No cursor, starting from block %d", start)
        else:
            start = self._cursor + 1

        events: list[ChainEvent] = []
        scanned = self._cursor
        for lo in range(start, head + 1, self._max_range):
            hi = min(lo + self._max_range - 1, head)
            try:
                logs = await self._contract.events.ProposedBrandedToken().get_logs(
                    from_block=lo, to_block=hi,
                )
            except Exception as exc:
                log.error("Event poll failed for blocks %d-%d: %s", lo, hi, exc)
                raise SubscriptionError(f"get_logs {lo}-{hi} failed: {exc}") from exc

            for entry in logs:
                parsed = parse_log(entry)
                if parsed is not None:
                    events.append(parsed)
            scanned = hi

        self._cursor = scanned

        if events:
            log.info("Polled %d %s events (cursor: %s)", len(events), PROPOSED_BRANDED_TOKEN, self._cursor)
        return events
