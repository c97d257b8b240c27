"""Tests for chart sub-session control messages."""

import json
import re

import pytest

from protocol.framing import split
from streaming.chart import ChartSession
from streaming.session import QuoteSession


class TestChartSession:

    @pytest.mark.asyncio
    async def test_create_and_close(self, drain):
        session = await QuoteSession.create()
        drain(session.outbound)

        chart = await ChartSession.create(session)
        returned = await chart.close()
        await chart.close()

        frames = [json.loads(split(f)[0]) for f in drain(session.outbound)]
        assert re.fullmatch(r"cs_[A-Za-z0-9]{12}", chart.chart_session_id)
        assert frames == [
            {"m": "chart_create_session", "p": [chart.chart_session_id]},
            {"m": "chart_delete_session", "p": [chart.chart_session_id]},
        ]
        assert returned is session
        assert not chart.is_open
