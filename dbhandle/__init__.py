"""dbhandle package initialization.

Single source of truth for the package version and the reserved table name
so that code, tests, and the CLI can import without duplicating literals.
"""

PACKAGE_VERSION = "0.1.0"  # Keep in sync with pyproject version.
PROPERTIES_TABLE = "properties"

from .errors import ErrorKind, HandleError  # noqa: E402
from .config import HandleConfig  # noqa: E402
from .handle import DatabaseHandle, HandleState, load_properties  # noqa: E402

__all__ = [
    "PACKAGE_VERSION",
    "PROPERTIES_TABLE",
    "ErrorKind",
    "HandleError",
    "HandleConfig",
    "DatabaseHandle",
    "HandleState",
    "load_properties",
]
