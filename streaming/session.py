"""
Quote session lifecycle.

create()   -> session id generated, create/field-selection frames queued
connect()  -> handshake, writer/reader/dispatcher tasks spawned, auth frame queued
add_symbol -> subscribe once per distinct symbol
close()    -> queue closed, writer drained, reader cancelled, socket closed

States: CREATED -> CONNECTED -> STREAMING -> CLOSED (terminal).
"""

from __future__ import annotations
import asyncio
from enum import Enum
from typing import List, Optional, Union

import websockets
from websockets.exceptions import WebSocketException

from config import ConnectionConfig, SessionConfig
from protocol.errors import ProtocolInitError, QueueClosed, StreamError, TransportError
from protocol.fields import get_quote_fields
from protocol.models import StructuredMessage
from streaming.ids import generate_session_id
from streaming.processors import (
    HeartbeatProcessor,
    MessageProcessor,
    ProcessorFn,
    ProcessorRegistry,
)
from streaming.store import SymbolData, SymbolDataStore
from streaming.transport import FrameReader, FrameWriter, OutboundQueue, UnitDispatcher
import logging

logger = logging.getLogger(__name__)


class SessionStatus(Enum):
    CREATED = "CREATED"
    CONNECTED = "CONNECTED"
    STREAMING = "STREAMING"
    CLOSED = "CLOSED"


class QuoteSession:
    """One logical subscription context over a single websocket."""

    def __init__(
        self,
        config: Optional[SessionConfig] = None,
        connection: Optional[ConnectionConfig] = None,
        outbound: Optional[OutboundQueue] = None,
    ):
        self.config = config or SessionConfig()
        self.connection = connection or ConnectionConfig()

        self._session_id = generate_session_id(self.config.session_prefix)
        self._outbound = outbound or OutboundQueue(self.config.outbound_queue_size)
        self._store = SymbolDataStore()
        self._registry = ProcessorRegistry([HeartbeatProcessor()])

        self._status = SessionStatus.CREATED
        self._ws = None
        self._writer_task: Optional[asyncio.Task] = None
        self._reader_task: Optional[asyncio.Task] = None
        self._dispatch_task: Optional[asyncio.Task] = None
        self._close_task: Optional[asyncio.Task] = None

        self._error: Optional[BaseException] = None
        self._closing = False
        self._closed = asyncio.Event()
        self._shutdown_done = asyncio.Event()

    @classmethod
    async def create(
        cls,
        config: Optional[SessionConfig] = None,
        connection: Optional[ConnectionConfig] = None,
        outbound: Optional[OutboundQueue] = None,
    ) -> "QuoteSession":
        """Build a session and queue its startup frames."""
        session = cls(config=config, connection=connection, outbound=outbound)
        await session._start()
        return session

    async def _start(self):
        fields = get_quote_fields(self.config.field_set)
        try:
            await self.send(StructuredMessage("quote_create_session", (self._session_id,)))
            await self.send(
                StructuredMessage("quote_set_fields", (self._session_id, *fields))
            )
        except QueueClosed as e:
            raise ProtocolInitError(
                f"Could not queue startup frames for {self._session_id}: {e}"
            ) from e
        logger.info(
            f"[SESSION] {self._session_id} created ({self.config.field_set} fields: {len(fields)})"
        )

    # ==================== Properties ====================

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def outbound(self) -> OutboundQueue:
        return self._outbound

    @property
    def store(self) -> SymbolDataStore:
        return self._store

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    # ==================== Lifecycle ====================

    async def connect(self):
        """
        Open the websocket and start streaming.
        Raises TransportError if the handshake fails; there is no retry.
        """
        if self._status is not SessionStatus.CREATED:
            raise StreamError(f"Cannot connect a session in state {self._status.value}")

        conn = self.connection
        try:
            self._ws = await websockets.connect(
                conn.url,
                origin=conn.origin,
                open_timeout=conn.open_timeout,
                close_timeout=conn.close_timeout,
                ping_interval=conn.ping_interval,
            )
        except (OSError, WebSocketException, asyncio.TimeoutError) as e:
            logger.error(f"[SESSION] Handshake with {conn.url} failed: {e}")
            self._set_status(SessionStatus.CLOSED)
            self._closed.set()
            raise TransportError(f"Handshake with {conn.url} failed: {e}") from e

        self._set_status(SessionStatus.CONNECTED)
        logger.info(f"[SESSION] {self._session_id} connected to {conn.url}")

        dispatcher = UnitDispatcher(
            self._registry, self._outbound, self.config.inbound_queue_size
        )
        writer = FrameWriter(self._ws, self._outbound)
        reader = FrameReader(self._ws, dispatcher, on_start=self._on_streaming)

        self._dispatch_task = asyncio.create_task(dispatcher.run(), name="dispatcher")
        self._writer_task = asyncio.create_task(writer.run(), name="writer")
        self._reader_task = asyncio.create_task(reader.run(), name="reader")
        self._writer_task.add_done_callback(self._on_task_done)
        self._reader_task.add_done_callback(self._on_task_done)

        await self.send(StructuredMessage("set_auth_token", (conn.auth_token,)))

    async def add_symbol(self, symbol: str):
        """Subscribe to a symbol; repeated calls for the same string are no-ops."""
        if not self._store.reserve(symbol):
            return
        await self.send(StructuredMessage("quote_add_symbols", (self._session_id, symbol)))
        logger.info(f"[SESSION] {self._session_id} subscribed {symbol}")

    def get_data(self, symbol: str) -> SymbolData:
        """Cached (price, indicator); (0.0, 0.0) for unknown symbols."""
        return self._store.get(symbol)

    def symbols(self) -> List[str]:
        return self._store.symbols()

    def register_processor(
        self, processor: Union[MessageProcessor, ProcessorFn]
    ) -> MessageProcessor:
        """Add a processor; it sees frames arriving from now on."""
        return self._registry.register(processor)

    async def send(self, message: StructuredMessage):
        """
        Queue an arbitrary structured message for the writer.
        Raises QueueClosed after close(), or the TransportError behind it
        if a socket failure is what closed the session.
        """
        try:
            await self._outbound.send(message)
        except QueueClosed:
            if self._error is not None:
                raise TransportError(
                    f"Session {self._session_id} failed: {self._error}"
                ) from self._error
            raise

    async def wait_closed(self):
        """
        Block until the session ends, finish shutdown, and re-raise
        the fatal error that ended it, if any.
        """
        await self._closed.wait()
        await self.close()
        if self._error is not None:
            raise self._error

    async def close(self):
        """Shut the session down. Safe to call more than once."""
        if self._closing:
            await self._shutdown_done.wait()
            return
        self._closing = True
        logger.info(f"[SESSION] {self._session_id} closing...")

        self._outbound.close()

        # Let the writer flush what is already queued
        if self._writer_task and not self._writer_task.done():
            _, pending = await asyncio.wait(
                {self._writer_task}, timeout=self.connection.close_timeout
            )
            for task in pending:
                task.cancel()

        tasks = [
            t for t in (self._writer_task, self._reader_task, self._dispatch_task) if t
        ]
        for task in tasks:
            if not task.done():
                task.cancel()

        if self._ws is not None:
            try:
                await self._ws.close()
            except (OSError, WebSocketException) as e:
                logger.warning(f"[SESSION] Error closing socket: {e}")

        await asyncio.gather(*tasks, return_exceptions=True)

        self._mark_closed()
        self._shutdown_done.set()
        logger.info(f"[SESSION] {self._session_id} closed")

    # ==================== Internal ====================

    def _set_status(self, status: SessionStatus):
        if self._status is SessionStatus.CLOSED:
            return
        if status is not self._status:
            logger.debug(f"[SESSION] {self._session_id}: {self._status.value} -> {status.value}")
        self._status = status

    def _on_streaming(self):
        self._set_status(SessionStatus.STREAMING)

    def _mark_closed(self):
        self._set_status(SessionStatus.CLOSED)
        self._closed.set()

    def _on_task_done(self, task: asyncio.Task):
        if task.cancelled():
            return

        exc = task.exception()
        if exc is not None:
            if self._error is None:
                self._error = exc
            logger.error(f"[SESSION] {task.get_name()} task failed: {exc}")
        else:
            logger.info(f"[SESSION] {task.get_name()} task finished")

        self._mark_closed()
        if not self._closing:
            self._close_task = asyncio.ensure_future(self.close())
