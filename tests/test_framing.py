"""Tests for the frame codec."""

import pytest

from protocol.errors import FrameDecodeError, MalformedHeartbeat
from protocol.framing import classify, decode, encode, format_ping, split, wrap
from protocol.models import Heartbeat, Opaque, QuoteRecord, StructuredMessage


class TestEncode:
    """Test message serialization and length prefixing."""

    def test_encode_simple_message(self):
        frame = encode(StructuredMessage("foo", ("bar",)))
        assert frame == '~m~23~m~{"m":"foo","p":["bar"]}'

    def test_length_counts_utf8_bytes(self):
        frame = encode(StructuredMessage("foo", ("é",)))
        payload = '{"m":"foo","p":["é"]}'
        assert frame == f"~m~{len(payload) + 1}~m~{payload}"

    def test_wrap_raw_payload(self):
        assert wrap("~h~12") == "~m~5~m~~h~12"

    def test_encode_record_omits_absent_fields(self):
        record = QuoteRecord(symbol="NYSE:AAPL", status="ok", values={"lp": 190.5})
        frame = encode(StructuredMessage("qsd", ("qs_x", record)))
        assert '"v":{"lp":190.5}' in frame
        assert "volume" not in frame
        assert "errmsg" not in frame


class TestFormatPing:
    """Test heartbeat echo framing."""

    @pytest.mark.parametrize("n, expected", [
        (1, "~m~4~m~~h~1"),
        (22, "~m~5~m~~h~22"),
        (333, "~m~6~m~~h~333"),
    ])
    def test_ping_formula(self, n, expected):
        assert format_ping(n) == expected


class TestSplit:
    """Test splitting received buffers into payloads."""

    def test_single_heartbeat(self):
        assert split("~m~4~m~~h~1") == ["~h~1"]

    def test_empty_buffer(self):
        assert split("") == []

    def test_single_json_frame(self, quote_completed_payload):
        buffer = f"~m~{len(quote_completed_payload)}~m~{quote_completed_payload}"
        assert split(buffer) == [quote_completed_payload]

    def test_three_concatenated_frames(self, quote_update_payload, quote_completed_payload):
        payloads = [quote_update_payload, quote_completed_payload, quote_completed_payload]
        buffer = "".join(wrap(p) for p in payloads)

        result = split(buffer)

        assert result == payloads
        assert not any(part.isdigit() for part in result)

    def test_is_stateless(self):
        assert split("~m~4~m~~h~1") == split("~m~4~m~~h~1")


class TestClassify:
    """Test payload classification."""

    def test_heartbeat(self):
        assert classify("~h~42") == Heartbeat(42)

    def test_malformed_heartbeat(self):
        with pytest.raises(MalformedHeartbeat):
            classify("~h~abc")

    def test_negative_heartbeat_rejected(self):
        with pytest.raises(FrameDecodeError):
            classify("~h~-1")

    def test_structured_message(self, quote_completed_payload):
        unit = classify(quote_completed_payload)
        assert unit == StructuredMessage("quote_completed", ("qs_abcdABCD1234", "BITMEX:XBT"))
        assert unit.session_id == "qs_abcdABCD1234"

    def test_quote_record_drops_unknown_fields(self, quote_update_payload):
        unit = classify(quote_update_payload)

        assert isinstance(unit, StructuredMessage)
        (record,) = unit.records()
        assert record.symbol == "BITMEX:XBT"
        assert record.is_ok
        assert record.last_price == 10000.11
        assert record.get("exchange") == "BITMEX"
        assert "typespecs" not in record.values

    def test_heartbeat_marker_inside_json(self):
        payload = '{"m":"qsd","p":["qs_x",{"n":"~h~1","s":"ok","v":{"lp":1.5}}]}'
        unit = classify(payload)

        assert isinstance(unit, StructuredMessage)
        (record,) = unit.records()
        assert record.symbol == "~h~1"

    def test_marker_inside_json_round_trip(self):
        message = StructuredMessage("set_auth_token", ("tok~h~en",))
        assert classify(split(encode(message))[0]) == message

    def test_quote_record_without_status(self):
        unit = classify('{"m":"qsd","p":["qs_x",{"n":"NYSE:AAPL","v":{"lp":190.5}}]}')
        (record,) = unit.records()
        assert record.status is None
        assert not record.is_error

    def test_invalid_json_is_opaque(self):
        assert classify("{bad") == Opaque("{bad")

    def test_json_without_schema_is_opaque(self):
        payload = '{"session_id":"<0.1.2>","timestamp":1700000000}'
        assert classify(payload) == Opaque(payload)

    def test_unsupported_param_is_opaque(self):
        payload = '{"m":"du","p":["cs_x",{"sds_1":{"s":[]}}]}'
        assert classify(payload) == Opaque(payload)

    def test_round_trip(self):
        message = StructuredMessage(
            "qsd",
            ("qs_abc", QuoteRecord("BINANCE:ETHUSDT", "ok", {"lp": 3000.5, "volume": 12})),
        )
        assert classify(split(encode(message))[0]) == message


class TestDecode:
    """Test split + classify with recovery."""

    def test_skips_malformed_heartbeat(self):
        units = decode("~m~6~m~~h~abc~m~4~m~~h~7")
        assert units == [Heartbeat(7)]

    def test_mixed_units(self, quote_completed_payload):
        units = decode(wrap("~h~3") + wrap(quote_completed_payload) + wrap("{bad"))
        assert units[0] == Heartbeat(3)
        assert isinstance(units[1], StructuredMessage)
        assert units[2] == Opaque("{bad")

    def test_reports_skipped_units(self):
        errors = []
        units = decode(wrap("~h~x") + wrap("~h~1"), on_error=errors.append)

        assert units == [Heartbeat(1)]
        assert len(errors) == 1
        assert isinstance(errors[0], MalformedHeartbeat)
