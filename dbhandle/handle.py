"""Single-file SQLite database handle with property based compatibility check.

A database created through DatabaseHandle carries a reserved ``properties``
table (key TEXT, value TEXT) stamped from the handle's expected properties
(application name, schema version, ...). Reopening validates that table
against the caller's expectations so foreign or outdated files are refused.

Behavior notes:
    - create_new is all-or-nothing: schema + property rows share one transaction,
      and any failure deletes the partially written file (and journal sidecars)
    - open never creates a file (URI mode=rw / mode=ro)
    - A file failing the compatibility check is closed again before raising
    - Compatibility is value-checked per stored key, set-checked by count only
"""
from __future__ import annotations
import os, sqlite3
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Union

from . import PROPERTIES_TABLE
from .config import HandleConfig
from .errors import ErrorKind, HandleError
from .logging_util import debug, info, warn, error

SIDECAR_SUFFIXES = ("-journal", "-wal", "-shm")

Schema = Union[str, Iterable[str], None]


class HandleState(str, Enum):
    UNOPENED = "unopened"
    OPEN = "open"
    CLOSED = "closed"


def _text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _schema_script(schema: Schema) -> str:
    """Normalize a script string or a sequence of statements into one script."""
    if schema is None:
        return ""
    statements = [schema] if isinstance(schema, str) else list(schema)
    parts = [s.strip() for s in statements if s and s.strip()]
    # terminator on its own line so a trailing -- comment cannot swallow it
    return "\n".join(p if p.endswith(";") else p + "\n;" for p in parts)


def _connect(path: str, mode: str) -> sqlite3.Connection:
    if mode == "rwc":
        conn = sqlite3.connect(path)
    else:
        conn = sqlite3.connect(f"{Path(path).absolute().as_uri()}?mode={mode}", uri=True)
    conn.row_factory = sqlite3.Row
    return conn


class DatabaseHandle:
    """Handle owning one SQLite connection to an application database file.

    Responsibilities:
      - Create a new file with the properties table + caller schema atomically
      - Open an existing file and run the compatibility check
      - Release the connection and reset path/properties on close
    """

    def __init__(self, path: Union[str, os.PathLike], properties: Optional[Mapping[str, str]] = None,
                 config: Optional[HandleConfig] = None):
        self.path: str = os.fspath(path)
        self.properties: Dict[str, str] = {str(k): str(v) for k, v in (properties or {}).items()}
        self.config = config or HandleConfig.from_env()
        self.connection: Optional[sqlite3.Connection] = None
        self.state = HandleState.UNOPENED
        self.read_only = False

    def __repr__(self) -> str:
        return f"DatabaseHandle(path={self.path!r}, state={self.state.value}, properties={len(self.properties)})"

    def __enter__(self) -> "DatabaseHandle":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self.state is HandleState.OPEN

    # --- Public API -----------------------------------------------------------------
    def create_new(self, schema: Schema = None) -> None:
        """Create the database file with the properties table and ``schema``.

        ``schema`` may be a SQL script or an iterable of statements. Raises
        HandleError(FILE_ALREADY_EXISTS) if anything exists at path, or
        HandleError(FILE_CANNOT_BE_CREATED) on any engine failure, in which case
        no file is left behind.
        """
        self._release()
        path = self.path
        if os.path.exists(path):
            warn("create_failed", path=path, kind=ErrorKind.FILE_ALREADY_EXISTS.value)
            raise HandleError(ErrorKind.FILE_ALREADY_EXISTS, path=path)
        if not path:
            raise HandleError(ErrorKind.FILE_CANNOT_BE_CREATED, "empty path", path)
        try:
            script = f"BEGIN;\nCREATE TABLE {PROPERTIES_TABLE} (key TEXT, value TEXT);\n{_schema_script(schema)}"
        except (TypeError, AttributeError) as e:
            error("create_failed", path=path, stage="schema", error=str(e))
            raise HandleError(ErrorKind.FILE_CANNOT_BE_CREATED, f"invalid schema: {e}", path) from e

        try:
            conn = _connect(path, "rwc")
        except sqlite3.Error as e:
            error("create_failed", path=path, stage="connect", error=str(e))
            raise HandleError(ErrorKind.FILE_CANNOT_BE_CREATED, str(e), path) from e

        self._apply_pragmas(conn, write=True, journal=True)
        stage = "schema"
        try:
            # executescript leaves the BEGIN open so the inserts join the same transaction
            conn.executescript(script)
            stage = "properties"
            conn.executemany(
                f"INSERT INTO {PROPERTIES_TABLE} (key, value) VALUES (?, ?)",
                list(self.properties.items()),
            )
            conn.commit()
        except sqlite3.Error as e:
            self._abort_create(conn, path)
            error("create_failed", path=path, stage=stage, error=str(e))
            raise HandleError(ErrorKind.FILE_CANNOT_BE_CREATED, str(e), path) from e

        self.connection = conn
        self.read_only = False
        self.state = HandleState.OPEN
        info("database_created", path=path, properties=sorted(self.properties))

    def open(self, read_only: bool = False) -> None:
        """Open an existing file and validate its properties table.

        Raises HandleError with FILE_NOT_EXISTS, FILE_CANNOT_BE_OPEN or
        FILE_NOT_VALID_APP_DATABASE. On validation failure the connection is
        released and the handle stays unusable.
        """
        self._release()
        path = self.path
        if not path or not os.path.exists(path):
            warn("open_failed", path=path, kind=ErrorKind.FILE_NOT_EXISTS.value)
            raise HandleError(ErrorKind.FILE_NOT_EXISTS, path=path)
        if os.path.isdir(path):
            warn("open_failed", path=path, kind=ErrorKind.FILE_CANNOT_BE_OPEN.value)
            raise HandleError(ErrorKind.FILE_CANNOT_BE_OPEN, "path points to a directory", path)

        try:
            conn = _connect(path, "ro" if read_only else "rw")
        except sqlite3.Error as e:
            error("open_failed", path=path, error=str(e))
            raise HandleError(ErrorKind.FILE_CANNOT_BE_OPEN, str(e), path) from e

        self._apply_pragmas(conn, write=not read_only)
        if self.config.verify_on_open:
            self._verify_integrity(conn)
        if not self._is_compatible(conn):
            self._close_quietly(conn)
            raise HandleError(ErrorKind.FILE_NOT_VALID_APP_DATABASE, path=path)

        self.connection = conn
        self.read_only = read_only
        self.state = HandleState.OPEN
        info("database_opened", path=path, read_only=read_only)

    def close(self) -> None:
        """Release the connection and clear path + expected properties. Idempotent."""
        path = self.path
        was_open = self._release()
        self.path = ""
        self.properties = {}
        self.state = HandleState.CLOSED
        if was_open:
            info("database_closed", path=path)

    def read_properties(self) -> Dict[str, str]:
        """Return the properties stored in the open file."""
        conn = self._require_open()
        rows = conn.execute(f"SELECT key, value FROM {PROPERTIES_TABLE}").fetchall()
        return {_text(r["key"]): _text(r["value"]) for r in rows if r["key"] is not None and r["value"] is not None}

    def health_check(self) -> Dict[str, Any]:
        """Return core pragma values and basic status for the open connection."""
        if not self.is_open:
            return {"ok": False, "state": self.state.value, "error": "handle is not open"}
        conn = self.connection
        try:
            rows = {
                "journal_mode": conn.execute("PRAGMA journal_mode").fetchone()[0],
                "foreign_keys": conn.execute("PRAGMA foreign_keys").fetchone()[0],
                "busy_timeout": conn.execute("PRAGMA busy_timeout").fetchone()[0],
                "property_rows": conn.execute(f"SELECT COUNT(*) FROM {PROPERTIES_TABLE}").fetchone()[0],
            }
        except sqlite3.Error as e:
            return {"ok": False, "state": self.state.value, "path": self.path, "error": str(e)}
        return {"ok": True, "path": self.path, "state": self.state.value, "read_only": self.read_only, **rows}

    # --- Internal -------------------------------------------------------------------
    def _is_compatible(self, conn: sqlite3.Connection) -> bool:
        """Compare stored properties against the expected mapping.

        A stored key whose expected value is non-empty must match it; empty
        expected values are unconstrained. The row count must equal the number
        of expected entries. Key sets are not compared beyond that.
        """
        count = 0
        try:
            for row in conn.execute(f"SELECT key, value FROM {PROPERTIES_TABLE}"):
                key, value = row[0], row[1]
                if key is None or value is None:
                    warn("compatibility_mismatch", path=self.path, reason="null_property")
                    return False
                expected = self.properties.get(_text(key))
                if expected and expected != _text(value):
                    warn("compatibility_mismatch", path=self.path, reason="value", key=_text(key),
                         expected=expected, found=_text(value))
                    return False
                count += 1
        except sqlite3.Error as e:
            warn("compatibility_mismatch", path=self.path, reason="unreadable", error=str(e))
            return False
        if count != len(self.properties):
            warn("compatibility_mismatch", path=self.path, reason="count", expected=len(self.properties), found=count)
            return False
        return True

    def _apply_pragmas(self, conn: sqlite3.Connection, write: bool, journal: bool = False) -> None:
        # journal_mode persists in the file header: only set it on files this handle creates
        pragmas = [f"busy_timeout={self.config.busy_timeout_ms}",
                   f"foreign_keys={'ON' if self.config.foreign_keys else 'OFF'}"]
        if journal:
            pragmas.append(f"journal_mode={self.config.journal_mode}")
        if not write:
            pragmas.append("query_only=ON")
        for p in pragmas:
            try:
                conn.execute(f"PRAGMA {p}")
            except sqlite3.Error as e:
                warn("pragma_failed", pragma=p, path=self.path, error=str(e))

    def _verify_integrity(self, conn: sqlite3.Connection) -> None:
        try:
            res = conn.execute("PRAGMA integrity_check").fetchone()[0]
            if res != "ok":
                warn("integrity_check_failed", path=self.path, result=res)
        except sqlite3.Error as e:
            warn("integrity_check_error", path=self.path, error=str(e))

    def _abort_create(self, conn: sqlite3.Connection, path: str) -> None:
        if conn.in_transaction:
            try:
                conn.rollback()
            except sqlite3.Error as e:
                debug("rollback_failed", path=path, error=str(e))
        self._close_quietly(conn)
        for candidate in [path] + [path + s for s in SIDECAR_SUFFIXES]:
            try:
                os.remove(candidate)
            except FileNotFoundError:
                continue
            except OSError as e:
                warn("cleanup_failed", path=candidate, error=str(e))

    def _close_quietly(self, conn: sqlite3.Connection) -> None:
        try:
            conn.close()
        except sqlite3.Error as e:
            warn("connection_close_failed", path=self.path, error=str(e))

    def _release(self) -> bool:
        if self.connection is None:
            return False
        self._close_quietly(self.connection)
        self.connection = None
        self.read_only = False
        self.state = HandleState.CLOSED
        return True

    def _require_open(self) -> sqlite3.Connection:
        if self.connection is None:
            raise HandleError(ErrorKind.FILE_CANNOT_BE_OPEN, "handle is not open", self.path or None)
        return self.connection


def load_properties(path: Union[str, os.PathLike], config: Optional[HandleConfig] = None) -> Dict[str, Optional[str]]:
    """Read the properties table of ``path`` read-only, without validating it."""
    path = os.fspath(path)
    if not path or not os.path.isfile(path):
        raise HandleError(ErrorKind.FILE_NOT_EXISTS, path=path)
    config = config or HandleConfig.from_env()
    try:
        conn = _connect(path, "ro")
    except sqlite3.Error as e:
        raise HandleError(ErrorKind.FILE_CANNOT_BE_OPEN, str(e), path) from e
    try:
        conn.execute(f"PRAGMA busy_timeout={config.busy_timeout_ms}")
        rows = conn.execute(f"SELECT key, value FROM {PROPERTIES_TABLE}").fetchall()
    except sqlite3.Error as e:
        raise HandleError(ErrorKind.FILE_NOT_VALID_APP_DATABASE, str(e), path) from e
    finally:
        conn.close()
    return {_text(r["key"]): (None if r["value"] is None else _text(r["value"])) for r in rows if r["key"] is not None}
