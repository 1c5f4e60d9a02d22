"""Status ticker — cosmetic progress messages shown while a request is in flight."""
import asyncio
import logging
from typing import Callable, Optional, Sequence

from materials_lens.constants import (
    TICKER_INITIAL_DELAY,
    TICKER_INTERVAL,
    TICKER_MESSAGES,
)

logger = logging.getLogger(__name__)

OnStatus = Callable[[str], None]


def _emit(on_status: OnStatus, message: str) -> None:
    try:
        on_status(message)
    except Exception as exc:
        logger.debug("Status callback failed: %s", exc)


async def _cycle_messages(
    on_status: OnStatus,
    first: str,
    messages: Sequence[str],
    initial_delay: float,
    interval: float,
    stop: asyncio.Event,
) -> None:
    _emit(on_status, first)
    await asyncio.sleep(initial_delay)
    for message in messages:
        if stop.is_set():
            return
        _emit(on_status, message)
        await asyncio.sleep(interval)


class StatusTicker:
    """Runs one message sequence per start(); stop() cancels it without touching the request."""

    def __init__(
        self,
        on_status: OnStatus,
        first: str,
        messages: Sequence[str] = TICKER_MESSAGES,
        initial_delay: float = TICKER_INITIAL_DELAY,
        interval: float = TICKER_INTERVAL,
    ) -> None:
        self._on_status = on_status
        self._first = first
        self._messages = tuple(messages)
        self._initial_delay = initial_delay
        self._interval = interval
        self._stop_event: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        await self.stop()
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(
            _cycle_messages(
                self._on_status,
                self._first,
                self._messages,
                self._initial_delay,
                self._interval,
                self._stop_event,
            )
        )

    async def stop(self) -> None:
        match self._stop_event:
            case None:
                pass
            case event:
                event.set()

        match self._task:
            case None:
                pass
            case task:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
                self._task = None

        self._stop_event = None
