"""
Quote stream configuration.
All tunable parameters in one place.
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional

from protocol.fields import FIELD_SETS


@dataclass
class ConnectionConfig:
    url: str = "wss://data.tradingview.com/socket.io/websocket"
    origin: str = "https://s.tradingview.com"
    auth_token: str = "unauthorized_user_token"
    open_timeout: float = 10.0          # Handshake timeout (seconds)
    close_timeout: float = 5.0          # Writer drain + close handshake
    ping_interval: Optional[float] = None  # Protocol heartbeats keep the link alive


@dataclass
class SessionConfig:
    field_set: str = "price"            # "price" (5 fields) or "all" (48 fields)
    outbound_queue_size: int = 20
    inbound_queue_size: int = 100
    session_prefix: str = "qs"

    def __post_init__(self):
        if self.field_set not in FIELD_SETS:
            raise ValueError(
                f"field_set must be one of {sorted(FIELD_SETS)}, got {self.field_set!r}"
            )
        if self.outbound_queue_size < 2:
            # create() enqueues two frames before the writer exists
            raise ValueError("outbound_queue_size must be at least 2")


@dataclass
class StreamConfig:
    connection: ConnectionConfig = field(default_factory=ConnectionConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    symbols: List[str] = field(default_factory=list)
    price_field: str = "lp"
    indicator_field: Optional[str] = None
    status_interval: float = 30.0       # Seconds between data snapshots in the runner
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @classmethod
    def from_env(cls) -> "StreamConfig":
        """Load config with environment variable overrides."""
        config = cls()
        config.connection.url = os.getenv("TV_WS_URL", config.connection.url)
        config.connection.origin = os.getenv("TV_ORIGIN", config.connection.origin)
        config.connection.auth_token = os.getenv("TV_AUTH_TOKEN", config.connection.auth_token)
        config.session = SessionConfig(
            field_set=os.getenv("TV_FIELD_SET", "price").lower(),
            outbound_queue_size=int(os.getenv("TV_QUEUE_SIZE", "20")),
        )
        config.symbols = [
            s.strip() for s in os.getenv("TV_SYMBOLS", "").split(",") if s.strip()
        ]
        config.indicator_field = os.getenv("TV_INDICATOR_FIELD") or None
        config.log_level = os.getenv("LOG_LEVEL", "INFO")
        config.log_file = os.getenv("LOG_FILE") or None
        return config
