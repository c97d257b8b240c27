"""
Message processors.
A processor receives every decoded unit together with the outbound queue;
it may enqueue replies and/or update shared state.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Callable, Coroutine, Iterable, List, Optional, Union

from protocol.framing import format_ping
from protocol.models import DecodedUnit, Heartbeat, StructuredMessage
import logging

if TYPE_CHECKING:
    from streaming.store import SymbolDataStore
    from streaming.transport import OutboundQueue

logger = logging.getLogger(__name__)

# Plain async callback form: receives (unit, outbound)
ProcessorFn = Callable[[DecodedUnit, "OutboundQueue"], Coroutine[Any, Any, None]]


class MessageProcessor(ABC):
    """Handler invoked once per decoded unit."""

    name: str = "processor"

    @abstractmethod
    async def process(self, unit: DecodedUnit, outbound: "OutboundQueue") -> None:
        ...


class CallbackProcessor(MessageProcessor):
    """Adapts an async callback to the processor interface."""

    def __init__(self, callback: ProcessorFn, name: Optional[str] = None):
        self.callback = callback
        self.name = name or getattr(callback, "__name__", "callback")

    async def process(self, unit: DecodedUnit, outbound: "OutboundQueue") -> None:
        await self.callback(unit, outbound)


class HeartbeatProcessor(MessageProcessor):
    """Echoes every heartbeat back to the server."""

    name = "heartbeat"

    async def process(self, unit: DecodedUnit, outbound: "OutboundQueue") -> None:
        if isinstance(unit, Heartbeat):
            await outbound.put(format_ping(unit.n))


class QuoteProcessor(MessageProcessor):
    """
    Extracts (price, indicator) from streaming quote updates.
    Only fields present in a record are written; the other half of
    the pair is left unchanged.
    """

    name = "quote"

    def __init__(
        self,
        store: "SymbolDataStore",
        price_field: str = "lp",
        indicator_field: Optional[str] = None,
        methods: Iterable[str] = ("qsd",),
    ):
        self.store = store
        self.price_field = price_field
        self.indicator_field = indicator_field
        self.methods = frozenset(methods)

    async def process(self, unit: DecodedUnit, outbound: "OutboundQueue") -> None:
        if not isinstance(unit, StructuredMessage) or unit.method not in self.methods:
            return

        for record in unit.records():
            # partial updates arrive without a status; only an explicit non-ok one is an error
            if record.is_error:
                logger.warning(
                    f"[QUOTE] {record.symbol}: status={record.status} {record.error or ''}".rstrip()
                )
                continue

            price = record.get_float(self.price_field)
            indicator = (
                record.get_float(self.indicator_field) if self.indicator_field else None
            )
            if price is None and indicator is None:
                continue
            self.store.update(record.symbol, price=price, indicator=indicator)


class ProcessorRegistry:
    """
    Ordered processors.
    dispatch() runs them one after another in registration order;
    a failing processor is logged and the rest still run.
    """

    def __init__(self, processors: Optional[Iterable[MessageProcessor]] = None):
        self._processors: List[MessageProcessor] = list(processors or [])

    def register(self, processor: Union[MessageProcessor, ProcessorFn]) -> MessageProcessor:
        if not isinstance(processor, MessageProcessor):
            processor = CallbackProcessor(processor)
        self._processors.append(processor)
        logger.info(f"[DISPATCH] Registered processor: {processor.name}")
        return processor

    async def dispatch(self, unit: DecodedUnit, outbound: "OutboundQueue") -> None:
        # Snapshot so processors registered mid-dispatch start with the next unit
        for processor in list(self._processors):
            try:
                await processor.process(unit, outbound)
            except Exception as e:
                logger.error(
                    f"[DISPATCH] Processor error in {processor.name}: {e}",
                    exc_info=True,
                )

    def __len__(self) -> int:
        return len(self._processors)
