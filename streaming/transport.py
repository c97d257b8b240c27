"""
Socket-side tasks.

OutboundQueue  - bounded FIFO of serialized frames, many producers, one consumer
FrameWriter    - sole owner of the socket write half, drains the queue in order
FrameReader    - sole owner of the read half, decodes frames into units
UnitDispatcher - single worker that runs the processor registry per unit
"""

from __future__ import annotations
import asyncio
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional, Union

from websockets.exceptions import ConnectionClosed, ConnectionClosedOK

from protocol.errors import FrameDecodeError, QueueClosed, TransportError
from protocol.framing import decode, encode
from protocol.models import DecodedUnit, StructuredMessage
import logging

if TYPE_CHECKING:
    from streaming.processors import ProcessorRegistry

logger = logging.getLogger(__name__)

_CLOSE = object()


class OutboundQueue:
    """
    Ordered channel of frame strings to the writer.
    close() wakes producers blocked on a full queue; they get QueueClosed.
    """

    def __init__(self, maxsize: int = 20):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize)
        self._closed = False
        self._closed_event = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self._closed

    async def put(self, frame: str) -> None:
        """Enqueue a frame, waiting while the queue is full."""
        if self._closed:
            raise QueueClosed("Outbound queue is closed")
        if not self._queue.full():
            self._queue.put_nowait(frame)
            return

        put_task = asyncio.ensure_future(self._queue.put(frame))
        close_task = asyncio.ensure_future(self._closed_event.wait())
        try:
            await asyncio.wait({put_task, close_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            close_task.cancel()
            if not put_task.done():
                put_task.cancel()
        if put_task.cancelled() or not put_task.done():
            raise QueueClosed("Outbound queue closed while waiting for space")
        put_task.result()

    async def send(self, message: StructuredMessage) -> None:
        """Encode a structured message and enqueue it."""
        await self.put(encode(message))

    async def get(self) -> Optional[str]:
        """Next frame, or None once the queue is closed and drained."""
        if self._closed and self._queue.empty():
            return None
        item = await self._queue.get()
        if item is _CLOSE:
            return None
        return item

    def get_nowait(self) -> str:
        item = self._queue.get_nowait()
        if item is _CLOSE:
            raise asyncio.QueueEmpty
        return item

    def close(self) -> None:
        """Stop accepting frames; the consumer drains what is already queued."""
        if self._closed:
            return
        self._closed = True
        self._closed_event.set()
        try:
            self._queue.put_nowait(_CLOSE)
        except asyncio.QueueFull:
            # get() sees closed + empty after the backlog drains
            pass


class FrameWriter:
    """Writes queued frames to the socket verbatim, one message each."""

    def __init__(self, ws: Any, outbound: OutboundQueue):
        self.ws = ws
        self.outbound = outbound
        self.frames_sent = 0

    async def run(self) -> None:
        while True:
            frame = await self.outbound.get()
            if frame is None:
                logger.info(f"[WS-OUT] Queue closed after {self.frames_sent} frames")
                return

            logger.debug(f"[WS-OUT] {frame}")
            try:
                await self.ws.send(frame)
            except (ConnectionClosed, OSError) as e:
                logger.error(f"[WS-OUT] Send failed: {e}")
                raise TransportError(f"Failed to send frame: {e}") from e
            self.frames_sent += 1


class UnitDispatcher:
    """
    Feeds decoded units to the processor registry from a bounded inbox.
    One worker: every processor sees units in arrival order.
    """

    def __init__(
        self,
        registry: "ProcessorRegistry",
        outbound: OutboundQueue,
        maxsize: int = 100,
    ):
        self.registry = registry
        self.outbound = outbound
        self._inbox: asyncio.Queue = asyncio.Queue(maxsize)

    async def submit(self, unit: DecodedUnit) -> None:
        await self._inbox.put(unit)

    async def join(self) -> None:
        """Wait until every submitted unit has been processed."""
        await self._inbox.join()

    async def run(self) -> None:
        while True:
            unit = await self._inbox.get()
            try:
                await self.registry.dispatch(unit, self.outbound)
            finally:
                self._inbox.task_done()


class FrameReader:
    """
    Receives raw socket messages, decodes them into units,
    and submits each unit to the dispatcher.
    A unit that fails to decode is skipped; the stream continues.
    """

    def __init__(
        self,
        ws: Any,
        dispatcher: UnitDispatcher,
        on_start: Optional[Callable[[], None]] = None,
    ):
        self.ws = ws
        self.dispatcher = dispatcher
        self._on_start = on_start
        self.stats: Dict[str, int] = {
            "messages_received": 0,
            "units_decoded": 0,
            "decode_errors": 0,
        }

    async def run(self) -> None:
        if self._on_start:
            self._on_start()

        try:
            async for raw in self.ws:
                self.stats["messages_received"] += 1
                text = self._to_text(raw)
                if text is None:
                    continue
                logger.debug(f"[WS-IN] {text[:500]}")
                await self.handle_text(text)
        except ConnectionClosedOK:
            logger.info("[WS-IN] Connection closed by server")
        except (ConnectionClosed, OSError) as e:
            logger.error(f"[WS-IN] Read failed: {e}")
            raise TransportError(f"Failed to read from socket: {e}") from e

        logger.info(
            f"[WS-IN] Stream ended after {self.stats['messages_received']} messages "
            f"({self.stats['decode_errors']} decode errors)"
        )

    async def handle_text(self, text: str) -> None:
        for unit in decode(text, on_error=self._on_decode_error):
            self.stats["units_decoded"] += 1
            await self.dispatcher.submit(unit)

    def _on_decode_error(self, error: FrameDecodeError) -> None:
        self.stats["decode_errors"] += 1

    def _to_text(self, raw: Union[str, bytes]) -> Optional[str]:
        if isinstance(raw, str):
            return raw
        try:
            return bytes(raw).decode("utf-8")
        except UnicodeDecodeError as e:
            self.stats["decode_errors"] += 1
            logger.warning(f"[WS-IN] Non UTF-8 message skipped: {e}")
            return None
