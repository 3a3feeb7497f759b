"""
EventChannel -- push-only event stream between one run and its consumer.

The orchestrator pushes; the HTTP response (or the CLI) reads. push() never
raises: once a terminal event was pushed, the channel was closed, or the
consumer went away, later pushes are dropped. An agent call already in flight
simply finishes and its events go nowhere.

Usage:
    channel = EventChannel(heartbeat_interval=30)
    asyncio.create_task(orchestrator.run(turn, channel))
    return StreamingResponse(channel.frames(), media_type="text/event-stream")
"""

import asyncio
import logging
from typing import AsyncIterator

from ..config import DEFAULT_HEARTBEAT_INTERVAL
from ..exceptions import TransportError
from .events import HEARTBEAT_FRAME, StreamEvent

logger = logging.getLogger(__name__)

_CLOSED = None


class EventChannel:
    """One run's event stream, backed by an asyncio.Queue."""

    def __init__(self, heartbeat_interval: float = DEFAULT_HEARTBEAT_INTERVAL):
        self._queue: asyncio.Queue[StreamEvent | None] = asyncio.Queue()
        self._heartbeat_interval = heartbeat_interval
        self._terminated = False
        self._closed = False
        self._disconnected = False
        self._history: list[StreamEvent] = []

    @property
    def is_open(self) -> bool:
        return not (self._terminated or self._closed or self._disconnected)

    @property
    def disconnected(self) -> bool:
        return self._disconnected

    @property
    def history(self) -> list[StreamEvent]:
        """Every event the channel accepted, in order."""
        return list(self._history)

    def push(self, event: StreamEvent) -> bool:
        """Queue an event. Returns False (never raises) if it was dropped."""
        try:
            self._put(event)
        except TransportError as e:
            logger.debug(f"[Stream] Dropped {event.type}: {e.message}")
            return False
        return True

    def _put(self, event: StreamEvent) -> None:
        if self._disconnected:
            raise TransportError("consumer disconnected")
        if self._terminated or self._closed:
            raise TransportError("stream already finished")
        self._queue.put_nowait(event)
        self._history.append(event)
        if event.is_terminal:
            self._terminated = True

    def close(self) -> None:
        """Stop accepting events and release a waiting reader."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    def disconnect(self) -> None:
        """The reader is gone; later pushes become no-ops."""
        if not self._disconnected:
            self._disconnected = True
            logger.info("[Stream] Consumer disconnected")

    async def events(self) -> AsyncIterator[StreamEvent]:
        """Yield events until a terminal event or close()."""
        while True:
            event = await self._queue.get()
            if event is _CLOSED:
                return
            yield event
            if event.is_terminal:
                return

    async def frames(self) -> AsyncIterator[str]:
        """
        SSE frames for a StreamingResponse.

        Emits a heartbeat comment whenever nothing arrived within the
        heartbeat interval. Leaving the generator early (client gone) marks
        the channel disconnected.
        """
        finished = False
        try:
            while True:
                try:
                    event = await asyncio.wait_for(
                        self._queue.get(), timeout=self._heartbeat_interval
                    )
                except asyncio.TimeoutError:
                    yield HEARTBEAT_FRAME
                    continue
                if event is _CLOSED:
                    finished = True
                    return
                yield event.encode()
                if event.is_terminal:
                    finished = True
                    return
        finally:
            if not finished:
                self.disconnect()
