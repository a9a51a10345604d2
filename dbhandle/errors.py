"""Error kinds raised by DatabaseHandle.

Every failure of create_new/open maps to exactly one ErrorKind. Engine
detail (sqlite3 messages) rides along in ``detail`` and ``__cause__``.
"""
from __future__ import annotations
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    FILE_NOT_EXISTS = "file_not_exists"
    FILE_ALREADY_EXISTS = "file_already_exists"
    FILE_CANNOT_BE_CREATED = "file_cannot_be_created"
    FILE_CANNOT_BE_OPEN = "file_cannot_be_open"
    FILE_NOT_VALID_APP_DATABASE = "file_not_valid_app_database"

    @property
    def message(self) -> str:
        return _MESSAGES[self]


_MESSAGES = {
    ErrorKind.FILE_NOT_EXISTS: "file does not exist",
    ErrorKind.FILE_ALREADY_EXISTS: "file already exists",
    ErrorKind.FILE_CANNOT_BE_CREATED: "file cannot be created",
    ErrorKind.FILE_CANNOT_BE_OPEN: "file cannot be open",
    ErrorKind.FILE_NOT_VALID_APP_DATABASE: "given file is not a valid file",
}


class HandleError(Exception):
    """Raised when a database file cannot be created, opened or validated."""

    def __init__(self, kind: ErrorKind, detail: Optional[str] = None, path: Optional[str] = None):
        self.kind = kind
        self.detail = detail
        self.path = path
        text = kind.message
        if path:
            text = f"{text}: {path}"
        if detail:
            text = f"{text} ({detail})"
        super().__init__(text)

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "error": self.kind.message, "path": self.path, "detail": self.detail}
