"""
Chart sub-session control.
Only creation and teardown are supported; both ride on the parent
quote session's outbound queue.
"""

from __future__ import annotations
from typing import TYPE_CHECKING

from protocol.models import StructuredMessage
from streaming.ids import generate_session_id
import logging

if TYPE_CHECKING:
    from streaming.session import QuoteSession

logger = logging.getLogger(__name__)


class ChartSession:
    """Named chart sub-session scoped to a quote session."""

    def __init__(self, session: "QuoteSession", chart_session_id: str):
        self.session = session
        self.chart_session_id = chart_session_id
        self._open = True

    @classmethod
    async def create(cls, session: "QuoteSession") -> "ChartSession":
        chart_session_id = generate_session_id("cs")
        await session.send(StructuredMessage("chart_create_session", (chart_session_id,)))
        logger.info(f"[CHART] {chart_session_id} created on {session.session_id}")
        return cls(session, chart_session_id)

    @property
    def is_open(self) -> bool:
        return self._open

    async def close(self) -> "QuoteSession":
        """Delete the chart session and hand back the parent session."""
        if self._open:
            self._open = False
            await self.session.send(
                StructuredMessage("chart_delete_session", (self.chart_session_id,))
            )
            logger.info(f"[CHART] {self.chart_session_id} deleted")
        return self.session
