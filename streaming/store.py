"""
Symbol Data Store.
symbol -> (price, indicator), guarded by a single lock.
Entries are created lazily and never removed.
"""

from __future__ import annotations
import threading
from typing import Dict, List, Optional, Tuple
import logging

logger = logging.getLogger(__name__)

SymbolData = Tuple[float, float]

EMPTY: SymbolData = (0.0, 0.0)


class SymbolDataStore:
    """Last known (price, indicator) per symbol."""

    def __init__(self):
        self._data: Dict[str, SymbolData] = {}
        self._lock = threading.Lock()

    def reserve(self, symbol: str) -> bool:
        """
        Create a default (0.0, 0.0) entry.
        Returns False if the symbol was already present.
        """
        with self._lock:
            if symbol in self._data:
                return False
            self._data[symbol] = EMPTY
            return True

    def update(
        self,
        symbol: str,
        price: Optional[float] = None,
        indicator: Optional[float] = None,
    ) -> SymbolData:
        """Write the given fields, leave the other one unchanged."""
        with self._lock:
            old_price, old_indicator = self._data.get(symbol, EMPTY)
            new = (
                old_price if price is None else float(price),
                old_indicator if indicator is None else float(indicator),
            )
            self._data[symbol] = new
        logger.debug(f"[STORE] {symbol}: price={new[0]}, indicator={new[1]}")
        return new

    def set_price(self, symbol: str, price: float) -> SymbolData:
        return self.update(symbol, price=price)

    def set_indicator(self, symbol: str, indicator: float) -> SymbolData:
        return self.update(symbol, indicator=indicator)

    def get(self, symbol: str) -> SymbolData:
        """Cached pair, or (0.0, 0.0) for unknown symbols."""
        with self._lock:
            return self._data.get(symbol, EMPTY)

    def symbols(self) -> List[str]:
        with self._lock:
            return list(self._data)

    def snapshot(self) -> Dict[str, SymbolData]:
        with self._lock:
            return dict(self._data)

    def __contains__(self, symbol: object) -> bool:
        with self._lock:
            return symbol in self._data

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)
