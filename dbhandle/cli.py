"""``dbhandle`` command line.

Usage:
  dbhandle create app.db --schema schema.sql --prop applicationName=X --prop databaseVersion=1
  dbhandle check app.db --prop applicationName=X --prop databaseVersion=1 [--read-only]
  dbhandle props app.db
  dbhandle health app.db --prop applicationName=X --prop databaseVersion=1

Prints one JSON object on stdout. Exit code 0 on success, 2 on usage errors,
otherwise the code mapped from the failing ErrorKind.
"""
from __future__ import annotations
import argparse, json
from pathlib import Path
from typing import Dict, List, Optional

from . import PACKAGE_VERSION
from .errors import ErrorKind, HandleError
from .handle import DatabaseHandle, load_properties

EXIT_CODES = {
    ErrorKind.FILE_NOT_EXISTS: 3,
    ErrorKind.FILE_ALREADY_EXISTS: 4,
    ErrorKind.FILE_CANNOT_BE_CREATED: 5,
    ErrorKind.FILE_CANNOT_BE_OPEN: 6,
    ErrorKind.FILE_NOT_VALID_APP_DATABASE: 7,
}


def parse_props(pairs: List[str]) -> Dict[str, str]:
    props: Dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise argparse.ArgumentTypeError(f"expected KEY=VALUE, got {pair!r}")
        props[key] = value
    return props


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="dbhandle", description="Create and validate property-stamped SQLite files")
    ap.add_argument("--version", action="version", version=f"%(prog)s {PACKAGE_VERSION}")
    sub = ap.add_subparsers(dest="command", required=True)

    def _with_props(p: argparse.ArgumentParser) -> argparse.ArgumentParser:
        p.add_argument("db", help="Path to SQLite database")
        p.add_argument("--prop", action="append", default=[], metavar="KEY=VALUE",
                       help="Expected property (repeatable)")
        return p

    create = _with_props(sub.add_parser("create", help="Create a new database file"))
    create.add_argument("--schema", type=Path, help="SQL file with the application tables")
    check = _with_props(sub.add_parser("check", help="Open and validate an existing file"))
    check.add_argument("--read-only", action="store_true", help="Open without write access")
    _with_props(sub.add_parser("health", help="Open, validate and report pragma values"))
    props = sub.add_parser("props", help="Dump stored properties without validation")
    props.add_argument("db", help="Path to SQLite database")
    return ap


def _emit(payload: dict) -> None:
    print(json.dumps(payload, indent=2, sort_keys=True))


def run(args: argparse.Namespace, props: Dict[str, str]) -> int:
    if args.command == "props":
        _emit({"success": True, "path": args.db, "properties": load_properties(args.db)})
        return 0

    handle = DatabaseHandle(args.db, props)
    with handle:
        if args.command == "create":
            schema = args.schema.read_text(encoding="utf-8") if args.schema else None
            handle.create_new(schema)
            _emit({"success": True, "path": args.db, "created": True, "properties": handle.read_properties()})
        elif args.command == "check":
            handle.open(read_only=args.read_only)
            _emit({"success": True, "path": args.db, "valid": True})
        else:
            handle.open(read_only=True)
            _emit({"success": True, "health_check": handle.health_check()})
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)
    try:
        props = parse_props(getattr(args, "prop", []))
    except argparse.ArgumentTypeError as e:
        ap.error(str(e))
    try:
        return run(args, props)
    except HandleError as e:
        _emit({"success": False, **e.to_dict()})
        return EXIT_CODES[e.kind]
    except OSError as e:
        _emit({"success": False, "error": str(e)})
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
