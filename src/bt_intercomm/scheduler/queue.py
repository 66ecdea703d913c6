"""Confirmation-delay scheduler - holds events until they are final enough to act on."""

from __future__ import annotations

import asyncio
import itertools
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from bt_intercomm.interfaces.store import StateStore
from bt_intercomm.models.events import ChainEvent, EventIdentity
from bt_intercomm.models.tasks import PendingTask, TaskState

log = logging.getLogger(__name__)

Processor = Callable[[ChainEvent], Awaitable[Any]]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ConfirmationDelayScheduler:
    """Defers each ingested event until ``confirmation_depth`` blocks follow it.

    Ingestion and block advancement are independent producers; both mutate
    the task table under one lock. Matured tasks go onto an asyncio.Queue
    drained by ``max_concurrent`` workers, each calling the processor for one
    event at a time. A processor that raises gets its task discarded; nothing
    is re-enqueued.
    """

    def __init__(
        self,
        confirmation_depth: int = 6,
        max_concurrent: int = 4,
        retention_blocks: int = 10_000,
        store: StateStore | None = None,
    ) -> None:
        if confirmation_depth < 0:
            raise ValueError("confirmation_depth must be >= 0")
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")
        self._depth = confirmation_depth
        self._max_concurrent = max_concurrent
        self._retention = retention_blocks
        self._store = store
        self._processor: Processor | None = None

        # Insertion-ordered; iteration order is ingestion order
        self._tasks: dict[EventIdentity, PendingTask] = {}
        self._live_uuids: dict[str, EventIdentity] = {}
        self._seq = itertools.count()
        self._lock = asyncio.Lock()
        self._queue: asyncio.Queue[PendingTask] = asyncio.Queue()
        self._workers: list[asyncio.Task] = []
        self._current_block: int | None = None

    @property
    def confirmation_depth(self) -> int:
        return self._depth

    @property
    def current_block(self) -> int | None:
        return self._current_block

    @property
    def pending_count(self) -> int:
        return sum(1 for t in self._tasks.values() if t.state == TaskState.WAITING)

    def set_processor(self, processor: Processor) -> None:
        self._processor = processor

    def get_tasks(self, states: list[TaskState] | None = None) -> list[PendingTask]:
        tasks = sorted(self._tasks.values(), key=lambda t: t.seq)
        if states is None:
            return tasks
        return [t for t in tasks if t.state in states]

    # ── Producers ─────────────────────────────────────────

    async def ingest(self, event: ChainEvent) -> bool:
        """Register an event for delayed dispatch.

        Returns False (no-op) if a live task already covers this identity or
        this uuid.
        """
        async with self._lock:
            identity = event.identity
            existing = self._tasks.get(identity)
            if existing is not None and existing.live:
                log.debug(
                    "Duplicate delivery of %s (block %d, log %d), already %s",
                    event.uuid[:18], event.block_number, event.log_index,
                    existing.state.value,
                )
                return False

            live_identity = self._live_uuids.get(event.uuid)
            if live_identity is not None:
                log.info(
                    "uuid %s already scheduled from block %d, ignoring announcement at block %d",
                    event.uuid[:18], live_identity[0], event.block_number,
                )
                return False

            task = PendingTask(
                event=event,
                ready_at_block=event.block_number + self._depth,
                seq=next(self._seq),
                created_at=_now(),
            )
            # Re-ingesting a discarded identity moves it to the back of the line
            self._tasks.pop(identity, None)
            self._tasks[identity] = task
            self._live_uuids[event.uuid] = identity

            if self._store:
                await self._store.save_task(task)

        log.info(
            "Queued %s (%s) from block %d, ready at block %d",
            event.payload.symbol, event.uuid[:18], event.block_number, task.ready_at_block,
        )
        return True

    async def on_new_block(self, block_number: int) -> list[PendingTask]:
        """Dispatch every waiting task with ``ready_at_block <= block_number``.

        Tasks that mature together are dispatched in ingestion order.
        """
        async with self._lock:
            if self._current_block is None or block_number > self._current_block:
                self._current_block = block_number

            ready = [
                t for t in self._tasks.values()
                if t.state == TaskState.WAITING and t.ready_at_block <= block_number
            ]
            ready.sort(key=lambda t: t.seq)

            for task in ready:
                task.state = TaskState.DISPATCHED
                if self._store:
                    await self._store.update_task_state(task.identity, TaskState.DISPATCHED)
                self._queue.put_nowait(task)
                log.info(
                    "Dispatching %s (%s) at block %d",
                    task.event.payload.symbol, task.event.uuid[:18], block_number,
                )

            await self._prune(block_number)

        return ready

    async def _prune(self, block_number: int) -> None:
        """Forget settled tasks that matured more than ``retention_blocks`` ago."""
        stale = [
            identity for identity, t in self._tasks.items()
            if t.state != TaskState.WAITING
            and t.ready_at_block + self._retention < block_number
        ]
        if not stale:
            return
        for identity in stale:
            task = self._tasks.pop(identity)
            if self._live_uuids.get(task.event.uuid) == identity:
                del self._live_uuids[task.event.uuid]
        if self._store:
            await self._store.delete_tasks(stale)
        log.debug("Pruned %d settled tasks", len(stale))

    # ── Dispatch workers ──────────────────────────────────

    def start(self) -> None:
        """Spawn the dispatch workers."""
        if self._processor is None:
            raise RuntimeError("No processor set on scheduler")
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"dispatch-{i}")
            for i in range(self._max_concurrent)
        ]
        log.debug("Started %d dispatch workers", self._max_concurrent)

    async def drain(self) -> None:
        """Wait until every dispatched task has been processed."""
        await self._queue.join()

    async def stop(self, drain_timeout: float | None = None) -> None:
        """Stop the workers, optionally letting queued attempts finish first."""
        if drain_timeout:
            try:
                await asyncio.wait_for(self.drain(), timeout=drain_timeout)
            except asyncio.TimeoutError:
                log.warning("Dispatch queue not drained within %ss", drain_timeout)
        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []

    async def _worker(self, index: int) -> None:
        while True:
            task = await self._queue.get()
            try:
                await self._dispatch(task)
            finally:
                self._queue.task_done()

    async def _dispatch(self, task: PendingTask) -> None:
        if self._processor is None:
            raise RuntimeError("No processor set on scheduler")
        try:
            await self._processor(task.event)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            await self._discard(task, str(exc) or type(exc).__name__)
            return
        await self._complete(task)

    async def _complete(self, task: PendingTask) -> None:
        async with self._lock:
            task.state = TaskState.COMPLETED
            if self._store:
                await self._store.update_task_state(task.identity, TaskState.COMPLETED)
        log.debug("Task for %s (%s) completed", task.event.payload.symbol, task.event.uuid[:18])

    async def _discard(self, task: PendingTask, reason: str) -> None:
        async with self._lock:
            task.state = TaskState.DISCARDED
            task.error = reason
            if self._live_uuids.get(task.event.uuid) == task.identity:
                del self._live_uuids[task.event.uuid]
            if self._store:
                await self._store.update_task_state(task.identity, TaskState.DISCARDED, reason)
                await self._store.log_activity(
                    "task_discarded",
                    f"Discarded {task.event.payload.symbol}: {reason}",
                    uuid=task.event.uuid,
                )
        log.error(
            "Task for %s (%s) discarded, manual action required: %s",
            task.event.payload.symbol, task.event.uuid, reason,
        )

    # ── Durability ────────────────────────────────────────

    async def restore(self) -> int:
        """Reload waiting and completed tasks from the store.

        Completed tasks come back only to keep claiming their uuid. Tasks
        left dispatched were mid-attempt when the process stopped; their
        on-chain outcome is unknown, so they are discarded rather than re-run.
        Returns the number of waiting tasks restored.
        """
        if not self._store:
            return 0

        stored = await self._store.get_tasks(
            [TaskState.WAITING.value, TaskState.DISPATCHED.value, TaskState.COMPLETED.value]
        )
        restored = 0
        async with self._lock:
            for task in sorted(stored, key=lambda t: t.seq):
                if task.state == TaskState.DISPATCHED:
                    await self._store.update_task_state(
                        task.identity, TaskState.DISCARDED, "interrupted",
                    )
                    await self._store.log_activity(
                        "task_interrupted",
                        f"Attempt for {task.event.payload.symbol} interrupted by restart",
                        uuid=task.event.uuid,
                    )
                    log.error(
                        "Attempt for %s was in flight at shutdown; reconcile manually",
                        task.event.uuid,
                    )
                    continue
                if task.event.uuid in self._live_uuids or task.identity in self._tasks:
                    continue
                if task.state == TaskState.COMPLETED:
                    task.seq = next(self._seq)
                    self._tasks[task.identity] = task
                    self._live_uuids[task.event.uuid] = task.identity
                    continue
                task.seq = next(self._seq)
                await self._store.save_task(task)
                self._tasks[task.identity] = task
                self._live_uuids[task.event.uuid] = task.identity
                restored += 1

        if restored:
            log.info("Restored %d waiting tasks", restored)
        return restored
