"""Progress and cancellation context threaded through a single retrieval.

The core never talks to a terminal.  Front-ends observe progress through the
callbacks and request cancellation through :class:`CancellationSignal`.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Callable

from sample_fetcher.domain.exceptions import RetrievalCancelledError

ProgressCallback = Callable[[int, int, str], None]
PhaseCallback = Callable[[str], None]


class CancellationSignal:
    """Cooperative cancellation flag.

    ``cancel()`` must be called from the event-loop thread; use
    ``loop.call_soon_threadsafe(signal.cancel)`` from anywhere else.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason = "Retrieval cancelled."

    def cancel(self, reason: str | None = None) -> None:
        if reason:
            self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RetrievalCancelledError(self._reason)

    async def wait(self) -> None:
        """Block until cancellation is requested."""
        await self._event.wait()


def _ignore_progress(done: int, total: int, path: str) -> None:
    return None


def _ignore_phase(message: str) -> None:
    return None


@dataclass
class RetrievalContext:
    """Observe progress, request cancellation."""

    on_progress: ProgressCallback = _ignore_progress
    on_phase: PhaseCallback = _ignore_phase
    cancel: CancellationSignal = field(default_factory=CancellationSignal)

    def progress(self, done: int, total: int, path: str) -> None:
        self.on_progress(done, total, path)

    def phase(self, message: str) -> None:
        self.on_phase(message)

    def raise_if_cancelled(self) -> None:
        self.cancel.raise_if_cancelled()
