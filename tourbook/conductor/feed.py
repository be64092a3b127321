"""
Latest-state cache of the live conductor status.

Two producers put refresh requests on one ``asyncio.Queue``: the session
repository's change subscription (push) and a poll timer. A single
consumer re-reads the status through the tracker, so push and poll never
race each other. A read that was overtaken by a newer one, or whose
``updated_at`` is older than the cached status, is discarded.

Usage:
    feed = ConductorStatusFeed(tracker)
    remove = feed.add_listener(print)
    await feed.start()
    ...
    await feed.stop()
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Union

from tourbook.config import settings
from tourbook.errors import StoreUnavailableError
from tourbook.schemas.conductor_schema import ConductorSession, ConductorStatus
from tourbook.conductor.state_machine import ConductorAvailabilityTracker

logger = logging.getLogger(__name__)

StatusListener = Callable[[ConductorStatus], Union[None, Awaitable[None]]]


class ConductorStatusFeed:
    """Merges push and poll updates into one authoritative status."""

    def __init__(
        self,
        tracker: ConductorAvailabilityTracker,
        conductor_id: Optional[str] = None,
        poll_interval: Optional[float] = None,
    ) -> None:
        self.tracker = tracker
        # None follows whichever session is live.
        self.conductor_id = conductor_id
        self.poll_interval = poll_interval or settings.conductor.status_poll_interval_sec
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._latest: Optional[ConductorStatus] = None
        self._listeners: list[StatusListener] = []
        self._tasks: list[asyncio.Task] = []
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._ticket = 0

    @property
    def latest(self) -> Optional[ConductorStatus]:
        return self._latest

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    def add_listener(self, listener: StatusListener) -> Callable[[], None]:
        """Register a callback for accepted status changes. Returns its remover."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    async def _emit(self, status: ConductorStatus) -> None:
        for listener in list(self._listeners):
            result: Any = listener(status)
            if result is not None and hasattr(result, "__await__"):
                await result

    async def offer(self, status: ConductorStatus) -> bool:
        """
        Accept ``status`` unless it is older than the cached one.

        Returns:
            True if the cache now holds ``status``.
        """
        current = self._latest
        if (
            current is not None
            and current.conductor_id == status.conductor_id
            and current.updated_at is not None
            and status.updated_at is not None
            and status.updated_at < current.updated_at
        ):
            logger.debug(
                "Discarding stale status for %s (%s < %s)",
                status.conductor_id, status.updated_at, current.updated_at,
            )
            return False

        changed = current != status
        self._latest = status
        if changed:
            logger.info("Conductor status: %s (%s)", status.state.value, status.message)
            await self._emit(status)
        return True

    async def _fetch(self) -> ConductorStatus:
        if self.conductor_id is not None:
            return await self.tracker.get_status(self.conductor_id)
        return await self.tracker.get_live_conductor()

    async def refresh(self, source: str = "manual") -> Optional[ConductorStatus]:
        """Re-read the status and offer it to the cache.

        A failed read keeps the cached status.
        """
        self._ticket += 1
        ticket = self._ticket
        try:
            status = await self._fetch()
        except StoreUnavailableError as exc:
            logger.warning("Status refresh (%s) failed: %s", source, exc)
            return self._latest

        if ticket != self._ticket:
            logger.debug("Discarding %s read overtaken by a newer one", source)
            return self._latest
        await self.offer(status)
        return self._latest

    def _on_push(self, session: ConductorSession) -> None:
        if self.conductor_id is None or session.conductor_id == self.conductor_id:
            self._queue.put_nowait("push")

    async def _poll(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            self._queue.put_nowait("poll")

    async def _consume(self) -> None:
        while True:
            source = await self._queue.get()
            # Requests queued meanwhile are answered by this one read.
            drained = 0
            while not self._queue.empty():
                self._queue.get_nowait()
                drained += 1
            try:
                await self.refresh(source)
            except Exception:
                logger.exception("Status refresh (%s) crashed", source)
            finally:
                for _ in range(drained + 1):
                    self._queue.task_done()

    async def start(self) -> None:
        """Subscribe to pushes, start the poll timer, and queue a first read."""
        if self.running:
            return
        self._unsubscribe = self.tracker.sessions.subscribe(self._on_push)
        self._queue.put_nowait("start")
        self._tasks = [
            asyncio.create_task(self._consume(), name="conductor-feed-consumer"),
            asyncio.create_task(self._poll(), name="conductor-feed-poll"),
        ]
        logger.info("Conductor feed started (poll every %ss)", self.poll_interval)

    async def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("Conductor feed stopped")

    async def wait_idle(self) -> None:
        """Wait until every queued refresh request has been handled."""
        await self._queue.join()

    async def __aenter__(self) -> "ConductorStatusFeed":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()
