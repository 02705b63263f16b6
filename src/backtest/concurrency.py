"""
Bounded pool of concurrently running backtest sessions.

Sessions beyond the limit wait in FIFO order for a slot. All methods must
be called from the event loop that owns the manager.
"""

import asyncio
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from loguru import logger

from src.core.constants import DEFAULT_MAX_CONCURRENT_BACKTESTS
from src.core.exceptions.backtest import ConfigurationError, SessionCancelledError


@dataclass(frozen=True)
class SlotRequest:
    """Outcome of asking for a slot. `ready` resolves when a queued request is granted."""

    granted: bool
    position: int | None = None
    ready: asyncio.Future[None] | None = None


class ConcurrencyManager:
    """Grants a fixed number of running slots and queues the rest."""

    def __init__(self, max_concurrent: int = DEFAULT_MAX_CONCURRENT_BACKTESTS) -> None:
        if max_concurrent < 1:
            raise ConfigurationError(f"max_concurrent must be at least 1, got {max_concurrent}")
        self.max_concurrent = max_concurrent
        self._running: set[str] = set()
        self._waiting: deque[tuple[str, asyncio.Future[None]]] = deque()

    @property
    def running(self) -> frozenset[str]:
        return frozenset(self._running)

    @property
    def queued(self) -> list[str]:
        return [session_id for session_id, _ in self._waiting]

    @property
    def available_slots(self) -> int:
        return self.max_concurrent - len(self._running)

    def request_slot(self, session_id: str) -> SlotRequest:
        """Grant a slot immediately or enqueue the session."""
        if session_id in self._running:
            return SlotRequest(granted=True)
        if len(self._running) < self.max_concurrent and not self._waiting:
            self._running.add(session_id)
            return SlotRequest(granted=True)

        future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiting.append((session_id, future))
        position = len(self._waiting)
        logger.info(f"Backtest {session_id} queued at position {position}")
        return SlotRequest(granted=False, position=position, ready=future)

    async def acquire(
        self, session_id: str, on_queued: Callable[[int], None] | None = None
    ) -> None:
        """
        Wait for a running slot.

        Args:
            session_id: Session asking for the slot
            on_queued: Called with the queue position when the session must wait

        Raises:
            SessionCancelledError: If the session was withdrawn while queued
        """
        request = self.request_slot(session_id)
        if request.granted or request.ready is None:
            return
        if on_queued is not None and request.position is not None:
            on_queued(request.position)
        try:
            await request.ready
        except asyncio.CancelledError:
            self.withdraw(session_id)
            raise

    def release(self, session_id: str) -> str | None:
        """
        Free a slot and hand it to the next queued session.

        Returns:
            Id of the session promoted into the freed slot, if any
        """
        if session_id not in self._running:
            return None
        self._running.discard(session_id)

        while self._waiting and len(self._running) < self.max_concurrent:
            next_id, future = self._waiting.popleft()
            if future.done():
                continue
            self._running.add(next_id)
            future.set_result(None)
            logger.info(f"Backtest {next_id} promoted from queue")
            return next_id
        return None

    def withdraw(self, session_id: str) -> bool:
        """Remove a queued session; its waiter raises SessionCancelledError."""
        for entry in self._waiting:
            queued_id, future = entry
            if queued_id != session_id:
                continue
            self._waiting.remove(entry)
            if not future.done():
                future.set_exception(SessionCancelledError(session_id, 0))
            logger.info(f"Backtest {session_id} withdrawn from queue")
            return True
        return False

    def queue_position(self, session_id: str) -> int | None:
        for index, (queued_id, _) in enumerate(self._waiting, start=1):
            if queued_id == session_id:
                return index
        return None

    def status(self) -> dict[str, Any]:
        return {
            "max_concurrent": self.max_concurrent,
            "running": sorted(self._running),
            "queued": self.queued,
            "available_slots": self.available_slots,
        }
