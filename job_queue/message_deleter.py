"""
Message Batch Deleter — deferred "delete for me" with an adaptive sweep.

Messages are not deleted one by one. Each destination chat keeps a queue of
MessageRecords that is flushed in a single gateway call when:
  - the queue grows past max_queue_length, or
  - a new message arrives more than message_delay seconds after the last queued one, or
  - the background sweep runs.

Sweep cadence:
  next run = multiplier × collection_interval, multiplier ∈ [1, 6]
  busy sweeps shrink the multiplier, quiet sweeps grow it.

Small queues are dropped from tracking after a sweep; a one-to-one chat left
with no messages at all is deleted shortly after.
"""
from __future__ import annotations

import asyncio
import structlog
from collections import defaultdict
from dataclasses import asdict, fields
from typing import Any, Optional

from channels.base import MessagingGateway
from config.settings import DeleterConfig
from models.schemas import ChatMessage, MessageRecord, is_user_id

logger = structlog.get_logger()

MIN_MULTIPLIER = 1
MAX_MULTIPLIER = 6


class MessageDeleter:

    def __init__(
        self,
        gateway: MessagingGateway,
        config: Optional[DeleterConfig] = None,
        **overrides: Any,
    ):
        base = config or DeleterConfig()
        options = {**asdict(base), **overrides}
        unknown = set(options) - {f.name for f in fields(DeleterConfig)}
        if unknown:
            raise TypeError(f"Unknown deleter options: {sorted(unknown)}")

        self.gateway = gateway
        self.config = DeleterConfig(**options)
        self.delete_queues: dict[str, list[MessageRecord]] = {}
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._multiplier = MIN_MULTIPLIER
        self._task: Optional[asyncio.Task] = None
        self._running = False
        self._in_cycle = False
        self._sweep_lock = asyncio.Lock()
        self._orphan_checks: set[asyncio.Task] = set()

        if self.config.perform_auto_deletion:
            self.start_auto_deleter()

    # ── Properties ────────────────────────────────────────────

    @property
    def multiplier(self) -> int:
        return self._multiplier

    @property
    def next_interval(self) -> float:
        return self._multiplier * self.config.collection_interval

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def pending(self) -> int:
        return sum(len(q) for q in self.delete_queues.values())

    # ── Queueing ──────────────────────────────────────────────

    def can_clear_delete_queue(self, queue: list[MessageRecord], timestamp: float) -> bool:
        if len(queue) > self.config.max_queue_length:
            return True
        return bool(queue) and (timestamp - queue[-1].timestamp) > self.config.message_delay

    async def delete_for_me(self, message: ChatMessage) -> int:
        """
        Queue a message for deletion from the bot's own view.
        Returns the queue length after the append.
        """
        chat_id = message.to if message.from_me else message.sender
        async with self._locks[chat_id]:
            queue = self.delete_queues.get(chat_id)
            if queue is None:
                queue = self.delete_queues[chat_id] = []
            elif queue and self.can_clear_delete_queue(queue, message.timestamp):
                await self._flush(chat_id, queue)

            queue.append(MessageRecord(id=message.id, timestamp=message.timestamp))

        logger.debug("message_queued_for_deletion",
                     chat_id=chat_id, message_type=message.type, position=len(queue))
        return len(queue)

    async def batch_delete(self, chat_id: str, queue: list[MessageRecord]) -> int:
        """Delete every queued message of a chat in one gateway call and empty the queue."""
        count = len(queue)
        await self.gateway.delete_messages(chat_id, [record.id for record in queue])
        queue.clear()
        return count

    async def _flush(self, chat_id: str, queue: list[MessageRecord]) -> int:
        try:
            return await self.batch_delete(chat_id, queue)
        except Exception as e:
            logger.error("batch_delete_failed",
                         chat_id=chat_id, queued=len(queue), error=str(e))
            return 0

    # ── Sweep ─────────────────────────────────────────────────

    async def execute(self) -> int:
        """Flush every non-empty queue. Returns how many records were flushed."""
        untrack_below = self.config.max_queue_length / 4
        flushed = 0

        for chat_id in list(self.delete_queues):
            async with self._locks[chat_id]:
                queue = self.delete_queues.get(chat_id)
                if not queue:
                    continue
                old_length = len(queue)
                count = await self._flush(chat_id, queue)
                if not count:
                    continue
                flushed += count

                if old_length < untrack_below:
                    del self.delete_queues[chat_id]
                    self._locks.pop(chat_id, None)
                    if is_user_id(chat_id):
                        self._schedule_orphan_check(chat_id)

        return flushed

    def _schedule_orphan_check(self, chat_id: str):
        task = asyncio.get_running_loop().create_task(self._check_orphan(chat_id))
        self._orphan_checks.add(task)
        task.add_done_callback(self._orphan_checks.discard)

    async def _check_orphan(self, chat_id: str):
        await asyncio.sleep(self.config.orphan_check_delay)
        try:
            messages = await self.gateway.fetch_messages(chat_id, limit=1)
            if not messages:
                await self.gateway.delete_chat(chat_id)
                logger.info("empty_chat_deleted", chat_id=chat_id)
        except Exception as e:
            logger.error("orphan_check_failed", chat_id=chat_id, error=str(e))

    async def wait_orphan_checks(self):
        if self._orphan_checks:
            await asyncio.gather(*list(self._orphan_checks))

    def _adjust_multiplier(self, flushed: int) -> int:
        m, n, limit = self._multiplier, flushed, self.config.max_queue_length
        if m > 1 and n > limit * 2:
            m -= 2
        elif m > 1 and n > limit:
            m -= 1
        elif m < 2 and n < limit / 2:
            m += 1
        elif m < 6 and n < limit / 4:
            m += 2
        self._multiplier = max(MIN_MULTIPLIER, min(MAX_MULTIPLIER, m))
        return self._multiplier

    async def run_cycle(self) -> int:
        """One sweep: flush everything, then retune the cadence. Sweeps never overlap."""
        async with self._sweep_lock:
            logger.info("auto_deleter_running")
            flushed = await self.execute()

            if flushed:
                logger.info("auto_deleter_flushed", deleted=flushed)
            else:
                logger.info("auto_deleter_idle")
            self._adjust_multiplier(flushed)
            logger.info("auto_deleter_next_run", after_seconds=self.next_interval,
                        multiplier=self._multiplier)
            return flushed

    # ── Background timer ──────────────────────────────────────

    def start_auto_deleter(self):
        """Start the recurring sweep. Needs a running event loop."""
        if self._running:
            return
        self._running = True
        if self._task and not self._task.done() and self._in_cycle:
            # stopped mid-sweep; the same loop carries on
            return
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name="message-deleter",
        )
        logger.info("auto_deleter_started",
                    interval=self.config.collection_interval)

    def stop_auto_deleter(self):
        """Cancel the pending run. A sweep already in progress finishes and stops there."""
        if not self._running:
            return
        self._running = False
        if self._task and not self._in_cycle:
            self._task.cancel()
        logger.info("auto_deleter_stopped")

    async def _run(self):
        while self._running:
            try:
                await asyncio.sleep(self.next_interval)
            except asyncio.CancelledError:
                break
            if not self._running:
                break
            self._in_cycle = True
            try:
                await self.run_cycle()
            except Exception as e:
                logger.error("auto_deleter_error", error=str(e), exc_info=True)
            finally:
                self._in_cycle = False

    async def close(self):
        self.stop_auto_deleter()
        if self._task:
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        for task in list(self._orphan_checks):
            task.cancel()
