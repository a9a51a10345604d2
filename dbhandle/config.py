"""Connection settings for DatabaseHandle.

Environment driven with clamping + sanity logging:
    DBHANDLE_BUSY_TIMEOUT_MS   lock wait in ms (0..600000, default 30000)
    DBHANDLE_JOURNAL_MODE      DELETE|TRUNCATE|PERSIST|MEMORY|WAL|OFF for new files (default DELETE)
    DBHANDLE_FOREIGN_KEYS      1/0 (default 1)
    DBHANDLE_VERIFY_ON_OPEN    1 runs PRAGMA integrity_check after open (default 0)
"""
from __future__ import annotations
import os
from dataclasses import dataclass, asdict
from typing import Any, Dict
from .logging_util import warn

MAX_BUSY_TIMEOUT_MS = 600_000
DEFAULT_BUSY_TIMEOUT_MS = 30_000
JOURNAL_MODES = ("DELETE", "TRUNCATE", "PERSIST", "MEMORY", "WAL", "OFF")
DEFAULT_JOURNAL_MODE = "DELETE"  # WAL would add -wal/-shm files next to the database


@dataclass
class HandleConfig:
    busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS
    journal_mode: str = DEFAULT_JOURNAL_MODE
    foreign_keys: bool = True
    verify_on_open: bool = False

    @classmethod
    def from_env(cls) -> "HandleConfig":
        def _int(name: str, default: int) -> int:
            raw = os.environ.get(name)
            if raw is None:
                return default
            try:
                return int(raw)
            except ValueError:
                warn("invalid_env_int", key=name, value=raw, default=default)
                return default

        busy = _int("DBHANDLE_BUSY_TIMEOUT_MS", DEFAULT_BUSY_TIMEOUT_MS)
        if busy < 0 or busy > MAX_BUSY_TIMEOUT_MS:
            clamped = min(MAX_BUSY_TIMEOUT_MS, max(0, busy))
            warn("handle_config_clamped", original={"busy_timeout_ms": busy}, clamped={"busy_timeout_ms": clamped})
            busy = clamped

        journal = os.environ.get("DBHANDLE_JOURNAL_MODE", DEFAULT_JOURNAL_MODE).strip().upper()
        if journal not in JOURNAL_MODES:
            warn("invalid_env_choice", key="DBHANDLE_JOURNAL_MODE", value=journal, default=DEFAULT_JOURNAL_MODE)
            journal = DEFAULT_JOURNAL_MODE

        foreign_keys = os.environ.get("DBHANDLE_FOREIGN_KEYS", "1") != "0"
        verify = os.environ.get("DBHANDLE_VERIFY_ON_OPEN", "0") == "1"
        return cls(busy_timeout_ms=busy, journal_mode=journal, foreign_keys=foreign_keys, verify_on_open=verify)

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)
