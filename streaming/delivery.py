"""Streaming delivery: fragments -> ordered delivery events -> SSE frames.

Event order is always ``delta* (done | error)``. A producer task drains
the fragment source into a bounded queue; the consumer maps each item to
one event. Closing the consumer cancels the producer and closes the
source.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from enum import Enum

from pydantic import BaseModel

logger = logging.getLogger(__name__)

DEFAULT_BUFFER_SIZE = 32

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}


class DeliveryEventType(str, Enum):
    DELTA = "delta"
    DONE = "done"
    ERROR = "error"


class DeliveryEvent(BaseModel):
    """One unit of a streamed response.

    Attributes:
        type: delta, done or error
        data: text fragment for delta, message for error, None for done
    """

    type: DeliveryEventType
    data: str | None = None

    @classmethod
    def delta(cls, fragment: str) -> DeliveryEvent:
        return cls(type=DeliveryEventType.DELTA, data=fragment)

    @classmethod
    def done(cls) -> DeliveryEvent:
        return cls(type=DeliveryEventType.DONE)

    @classmethod
    def error(cls, message: str) -> DeliveryEvent:
        return cls(type=DeliveryEventType.ERROR, data=message)

    @property
    def is_terminal(self) -> bool:
        return self.type is not DeliveryEventType.DELTA


def error_message(exc: BaseException) -> str:
    """Human-readable message for an error event."""
    message = getattr(exc, "message", None) or str(exc)
    return message or type(exc).__name__


def format_sse(event: DeliveryEvent) -> str:
    """Frame an event as a Server-Sent Events ``data:`` line."""
    return f"data: {event.model_dump_json()}\n\n"


async def _close_source(fragments: AsyncIterator[str]) -> None:
    aclose = getattr(fragments, "aclose", None)
    if aclose is not None:
        await aclose()


async def deliver(
    fragments: AsyncIterator[str], max_buffered: int = DEFAULT_BUFFER_SIZE
) -> AsyncIterator[DeliveryEvent]:
    """Convert a fragment stream into delivery events.

    Yields one delta per fragment in production order, then exactly one
    done, or exactly one error if the source raised. Nothing follows the
    terminal event.
    """
    queue: asyncio.Queue[DeliveryEvent] = asyncio.Queue(maxsize=max_buffered)

    async def produce() -> None:
        try:
            async for fragment in fragments:
                await queue.put(DeliveryEvent.delta(fragment))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("Generation failed mid-stream")
            await queue.put(DeliveryEvent.error(error_message(e)))
        else:
            await queue.put(DeliveryEvent.done())
        finally:
            await _close_source(fragments)

    producer = asyncio.create_task(produce())
    delivered = 0
    finished = False
    try:
        while True:
            event = await queue.get()
            if event.is_terminal:
                finished = True
                logger.info(
                    "Stream finished with %s after %d deltas", event.type.value, delivered
                )
            yield event
            if finished:
                break
            delivered += 1
    finally:
        if not finished and not producer.done():
            logger.info("Stream cancelled after %d deltas", delivered)
            producer.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await producer


async def sse_stream(
    fragments: AsyncIterator[str], max_buffered: int = DEFAULT_BUFFER_SIZE
) -> AsyncIterator[str]:
    """SSE body for a fragment stream, one ``data:`` frame per event."""
    events = deliver(fragments, max_buffered=max_buffered)
    try:
        async for event in events:
            yield format_sse(event)
    finally:
        await events.aclose()
