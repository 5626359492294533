"""Bounded background mail queue.

Learn: Welcome mails, "project created" notices, and update broadcasts
must never slow down or fail the request that triggered them. Handlers
call `submit()`, which puts the message on an asyncio.Queue without
waiting; worker tasks started in the FastAPI lifespan drain it.

Policy:
- queue full      → the message is dropped, `mail.dropped` is logged
- delivery fails  → `mail.failed` is logged, no retry
- empty recipient → ignored (not queued)
- shutdown        → workers are cancelled; undelivered messages are lost

This mirrors the merge worker's run_loop()/stop() shape: a plain
long-lived coroutine owned by the app lifespan.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional

import structlog

from pulseforge.errors import MailDeliveryError
from pulseforge.notifications.mailer import Mailer

logger = structlog.get_logger()


@dataclass(frozen=True)
class MailMessage:
    to: str
    subject: str
    message: str


class MailQueue:
    """Fire-and-forget mail delivery with a fixed capacity."""

    def __init__(self, mailer: Mailer, maxsize: int = 100, workers: int = 1):
        self.mailer = mailer
        self.workers = max(1, workers)
        self._queue: asyncio.Queue[MailMessage] = asyncio.Queue(maxsize=maxsize)
        self._tasks: list[asyncio.Task] = []

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    def submit(self, to: Optional[str], subject: str, message: str) -> bool:
        """Queue a message without blocking. Returns False if it was not queued."""
        to = (to or "").strip()
        if not to:
            return False
        try:
            self._queue.put_nowait(MailMessage(to=to, subject=subject, message=message))
        except asyncio.QueueFull:
            logger.warning("mail.dropped", to=to, subject=subject, reason="queue_full")
            return False
        return True

    async def run_loop(self) -> None:
        """Drain the queue forever. One call per worker task."""
        while True:
            item = await self._queue.get()
            try:
                await self.mailer.send(item.to, item.subject, item.message)
            except MailDeliveryError as e:
                logger.warning("mail.failed", to=item.to, subject=item.subject, error=str(e))
            except Exception:
                # keep the worker alive; one bad message must not stop the queue
                logger.exception("mail.worker_error", to=item.to, subject=item.subject)
            finally:
                self._queue.task_done()

    def start(self) -> None:
        if self.running:
            return
        self._tasks = [
            asyncio.create_task(self.run_loop(), name=f"mail-worker-{i}")
            for i in range(self.workers)
        ]
        logger.info("mail.workers_started", workers=self.workers)

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []

    async def join(self) -> None:
        """Wait until every queued message has been attempted."""
        await self._queue.join()
