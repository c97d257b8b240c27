"""
Session id generation.
Ids look like qs_AbC123xYz789 and are never handed out twice in a process.
"""

from __future__ import annotations
import secrets
import string
import threading

_ALPHABET = string.ascii_letters + string.digits
_ID_LENGTH = 12

# Every id handed out this process; grows by one per session and is never pruned
_issued: set[str] = set()
_lock = threading.Lock()


def generate_session_id(prefix: str = "qs") -> str:
    """Return a fresh `<prefix>_<12 alphanumerics>` id."""
    with _lock:
        while True:
            suffix = "".join(secrets.choice(_ALPHABET) for _ in range(_ID_LENGTH))
            session_id = f"{prefix}_{suffix}"
            if session_id not in _issued:
                _issued.add(session_id)
                return session_id
