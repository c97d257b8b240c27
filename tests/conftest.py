"""Pytest configuration and shared fixtures."""

import asyncio
from typing import List, Optional

import pytest
from websockets.exceptions import ConnectionClosedError

from streaming.transport import OutboundQueue


class FakeWebSocket:
    """
    In-memory stand-in for a websocket client connection.
    Iterating yields the scripted inbound messages, then either ends
    (clean close) or raises ConnectionClosedError when fail_read is set.
    With hold_open the iterator blocks after the script until close().
    """

    def __init__(
        self,
        inbound: Optional[List] = None,
        hold_open: bool = False,
        fail_read: bool = False,
        fail_send: bool = False,
    ):
        self.inbound = list(inbound or [])
        self.sent: List[str] = []
        self.hold_open = hold_open
        self.fail_read = fail_read
        self.fail_send = fail_send
        self.closed = False
        self._close_event = asyncio.Event()

    async def send(self, message: str):
        if self.fail_send or self.closed:
            raise ConnectionClosedError(None, None)
        self.sent.append(message)

    async def close(self):
        self.closed = True
        self._close_event.set()

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for message in self.inbound:
            yield message
        if self.fail_read:
            raise ConnectionClosedError(None, None)
        if self.hold_open:
            await self._close_event.wait()


def _drain(queue: OutboundQueue) -> List[str]:
    frames = []
    while True:
        try:
            frames.append(queue.get_nowait())
        except asyncio.QueueEmpty:
            return frames


@pytest.fixture
def quote_update_payload() -> str:
    return (
        '{"m":"qsd","p":["qs_abcdABCD1234",{"n":"BITMEX:XBT","s":"ok",'
        '"v":{"lp":10000.11,"ch":133.27,"chp":0.79,"volume":1e+100,'
        '"exchange":"BITMEX","typespecs":[],"currency-logoid":"country/US"}}]}'
    )


@pytest.fixture
def quote_completed_payload() -> str:
    return '{"m":"quote_completed","p":["qs_abcdABCD1234","BITMEX:XBT"]}'


@pytest.fixture
def drain():
    """Pop everything currently queued on an OutboundQueue."""
    return _drain


@pytest.fixture
def fake_ws_factory():
    return FakeWebSocket
