"""Main daemon - wires the event source, scheduler and coordinator together."""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import Awaitable, Callable

from bt_intercomm.chain.abi import UTILITY_REGISTRAR_ABI, VALUE_REGISTRAR_ABI
from bt_intercomm.chain.executor import Web3StepExecutor
from bt_intercomm.chain.signers import Signer
from bt_intercomm.chain.source import Web3EventSource
from bt_intercomm.errors import ConfigError, SubscriptionError
from bt_intercomm.models.config import IntercommConfig
from bt_intercomm.registration.coordinator import RegistrationCoordinator, RegistrationSettings
from bt_intercomm.scheduler.queue import ConfirmationDelayScheduler
from bt_intercomm.storage.sqlite import SQLiteStateStore

log = logging.getLogger(__name__)


class IntercommDaemon:
    """Inter-comm process for branded token registration.

    Listens for ProposedBrandedToken on the utility chain, waits for
    ``confirmation_depth`` blocks, then registers the token on the utility
    registrar followed by the value registrar.
    """

    def __init__(self, cfg: IntercommConfig) -> None:
        self._cfg = cfg
        self._running = False

        utility_signer = Signer(cfg.utility.registrar_address, cfg.utility.registrar_key)
        value_signer = Signer(cfg.value.registrar_address, cfg.value.registrar_key)
        for label, signer in (("utility", utility_signer), ("value", value_signer)):
            if not signer.verify():
                raise ConfigError(
                    f"{label} registrar key does not match address {signer.address}"
                )

        # Optional durability
        self.store: SQLiteStateStore | None = (
            SQLiteStateStore(cfg.db_path) if cfg.db_path else None
        )

        txn = cfg.transactions
        self.source = Web3EventSource(
            cfg.utility.rpc_url,
            cfg.utility.openst_utility_address,
            start_block=cfg.utility.start_block,
        )
        utility_executor = Web3StepExecutor(
            cfg.utility.rpc_url, UTILITY_REGISTRAR_ABI,
            tx_timeout=txn.tx_timeout, poll_latency=txn.poll_latency, gas_limit=txn.gas_limit,
        )
        value_executor = Web3StepExecutor(
            cfg.value.rpc_url, VALUE_REGISTRAR_ABI,
            tx_timeout=txn.tx_timeout, poll_latency=txn.poll_latency, gas_limit=txn.gas_limit,
        )
        self.coordinator = RegistrationCoordinator(
            utility_executor,
            value_executor,
            RegistrationSettings(
                openst_utility_address=cfg.utility.openst_utility_address,
                utility_registrar_contract=cfg.utility.registrar_contract,
                utility_signer=utility_signer,
                openst_value_address=cfg.value.openst_value_address,
                value_registrar_contract=cfg.value.registrar_contract,
                value_signer=value_signer,
                utility_chain_id=cfg.utility.chain_id,
            ),
            store=self.store,
        )
        self.scheduler = ConfirmationDelayScheduler(
            confirmation_depth=cfg.confirmation_depth,
            max_concurrent=cfg.max_concurrent_attempts,
            retention_blocks=cfg.retention_blocks,
            store=self.store,
        )
        self.scheduler.set_processor(self.coordinator.process)

    async def start(self) -> None:
        """Initialize components and run both producer loops until stopped."""
        log.info("Starting bt_intercomm daemon")
        log.info("  Utility RPC: %s", self._cfg.utility.rpc_url)
        log.info("  Value RPC: %s", self._cfg.value.rpc_url)
        log.info("  openSTUtility: %s", self._cfg.utility.openst_utility_address)
        log.info("  Confirmation depth: %d", self._cfg.confirmation_depth)
        log.info("  Persistence: %s", self._cfg.db_path or "disabled")

        if self.store:
            await self.store.initialize()
            saved_block = await self.store.get_cursor()
            if saved_block is not None:
                self.source.set_cursor(saved_block)
                log.info("Restored cursor: block %d", saved_block)
            await self.scheduler.restore()
            await self.store.log_activity("daemon_started", "Daemon started")

        self._running = True
        self.scheduler.start()
        log.info("InterComm process for register branded token initiated")

        try:
            await asyncio.gather(self._event_loop(), self._block_loop())
        finally:
            await self.scheduler.stop(drain_timeout=self._cfg.transactions.tx_timeout)
            if self.store:
                await self.store.log_activity("daemon_stopped", "Daemon stopped")
                await self.store.close()
            log.info("Daemon shut down cleanly")

    async def stop(self) -> None:
        """Signal the daemon to stop gracefully."""
        log.info("Stop requested")
        self._running = False

    # ── Producers ─────────────────────────────────────────

    async def poll_events_once(self) -> int:
        """Fetch new proposal events and hand them to the scheduler."""
        events = await self.source.poll()
        queued = 0
        for event in events:
            if await self.scheduler.ingest(event):
                queued += 1
        if self.store and self.source.cursor is not None:
            await self.store.set_cursor(self.source.cursor)
        return queued

    async def advance_block_once(self) -> int:
        """Read the chain head and release matured tasks."""
        head = await self.source.latest_block()
        dispatched = await self.scheduler.on_new_block(head)
        return len(dispatched)

    async def _event_loop(self) -> None:
        await self._run_loop("event", self.poll_events_once)

    async def _block_loop(self) -> None:
        await self._run_loop("block", self.advance_block_once)

    async def _run_loop(self, name: str, step: Callable[[], Awaitable[int]]) -> None:
        while self._running:
            try:
                await step()
                await asyncio.sleep(self._cfg.poll_interval)
            except asyncio.CancelledError:
                log.info("%s loop cancelled", name)
                break
            except SubscriptionError as exc:
                log.error("Subscription error in %s loop: %s", name, exc)
                if self.store:
                    await self.store.log_activity("subscription_error", str(exc))
                await asyncio.sleep(self._cfg.error_backoff)
            except Exception as exc:
                log.error("%s loop error: %s", name, exc, exc_info=True)
                await asyncio.sleep(self._cfg.error_backoff)


async def run_daemon(cfg: IntercommConfig) -> None:
    """Entry point for running the daemon."""
    daemon = IntercommDaemon(cfg)

    loop = asyncio.get_running_loop()

    def _signal_handler():
        asyncio.ensure_future(daemon.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

    await daemon.start()
