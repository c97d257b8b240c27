"""
Decoded frame units and the structured message schema.
A frame payload decodes to exactly one of Heartbeat, StructuredMessage or Opaque.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union

from protocol.errors import StructuredParseError
from protocol.fields import KNOWN_FIELDS

_SCALAR_TYPES = (str, int, float, bool)


@dataclass(frozen=True)
class QuoteRecord:
    """
    Price data record carried inside the params of a quote update.
    Wire form: {"n": symbol, "s": status, "v": {field: value, ...}}.
    Only known scalar fields are kept; absent fields stay absent.
    """
    symbol: str
    status: Optional[str] = None
    values: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def is_ok(self) -> bool:
        return self.status == "ok"

    @property
    def is_error(self) -> bool:
        return self.status is not None and self.status != "ok"

    @property
    def last_price(self) -> Optional[float]:
        return self.get_float("lp")

    def get(self, name: str) -> Any:
        return self.values.get(name)

    def get_float(self, name: str) -> Optional[float]:
        value = self.values.get(name)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        return float(value)

    @classmethod
    def from_wire(cls, obj: Dict[str, Any]) -> "QuoteRecord":
        symbol = obj.get("n")
        if not isinstance(symbol, str):
            raise StructuredParseError(f"Quote record without symbol name: {obj!r:.100}")

        status = obj.get("s")
        if status is not None and not isinstance(status, str):
            raise StructuredParseError(f"Quote record {symbol}: bad status {status!r}")

        raw_values = obj.get("v", {})
        if not isinstance(raw_values, dict):
            raise StructuredParseError(f"Quote record {symbol}: values is not an object")

        values = {
            k: v for k, v in raw_values.items()
            if k in KNOWN_FIELDS and isinstance(v, _SCALAR_TYPES)
        }
        error = obj.get("errmsg")
        return cls(
            symbol=symbol,
            status=status,
            values=values,
            error=error if isinstance(error, str) else None,
        )

    def to_wire(self) -> Dict[str, Any]:
        obj: Dict[str, Any] = {"n": self.symbol}
        if self.status is not None:
            obj["s"] = self.status
        if self.error is not None:
            obj["errmsg"] = self.error
        obj["v"] = dict(self.values)
        return obj


Param = Union[str, QuoteRecord]


def parse_param(raw: Any) -> Param:
    if isinstance(raw, str):
        return raw
    if isinstance(raw, dict) and "n" in raw:
        return QuoteRecord.from_wire(raw)
    raise StructuredParseError(f"Unsupported param: {raw!r:.100}")


@dataclass(frozen=True)
class StructuredMessage:
    """Session message: {"m": method, "p": [params...]}."""
    method: str
    params: Tuple[Param, ...] = ()

    @property
    def session_id(self) -> Optional[str]:
        """First param is the session id for session-scoped methods."""
        if self.params and isinstance(self.params[0], str):
            return self.params[0]
        return None

    def records(self) -> Tuple[QuoteRecord, ...]:
        return tuple(p for p in self.params if isinstance(p, QuoteRecord))

    @classmethod
    def from_wire(cls, obj: Any) -> "StructuredMessage":
        if not isinstance(obj, dict):
            raise StructuredParseError("Message is not a JSON object")
        method = obj.get("m")
        params = obj.get("p")
        if not isinstance(method, str):
            raise StructuredParseError("Missing or non-string 'm' field")
        if not isinstance(params, list):
            raise StructuredParseError(f"{method}: missing or non-list 'p' field")
        return cls(method=method, params=tuple(parse_param(p) for p in params))

    def to_wire(self) -> Dict[str, Any]:
        return {
            "m": self.method,
            "p": [p.to_wire() if isinstance(p, QuoteRecord) else p for p in self.params],
        }


@dataclass(frozen=True)
class Heartbeat:
    n: int


@dataclass(frozen=True)
class Opaque:
    text: str


DecodedUnit = Union[Heartbeat, StructuredMessage, Opaque]
