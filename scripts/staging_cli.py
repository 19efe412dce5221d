#!/usr/bin/env python3
"""
Operator CLI for the AP invoice staging service.

Drives InvoiceFacade from the command line and prints one JSON document
per call.  Settings come from staging_config (packaged defaults, optional
--config YAML, ORACLE_* / STAGING_* environment overrides).

Usage:
  python3 scripts/staging_cli.py init-db
  python3 scripts/staging_cli.py create --file invoice.json     (or - for stdin)
  python3 scripts/staging_cli.py status 8
  python3 scripts/staging_cli.py search WIRA-TEST-001 [--org-id 204]
  python3 scripts/staging_cli.py process --org-id 204 [--batch-id 100] [--staging-id 8]
  python3 scripts/staging_cli.py cancel 8

Exit codes:
  0  success
  1  warning, partial create, not found, or rejected cancel
  2  error (invalid input, store failure, procedure error)
"""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, TextIO

import yaml

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from staging_config import get_active_settings  # noqa: E402
from staging_config.bridges import build_facade  # noqa: E402
from staging_kernel.domain.dtos import ProcessStatus  # noqa: E402
from staging_kernel.exceptions import (  # noqa: E402
    IllegalTransitionError,
    NotFoundError,
    StagingError,
    ValidationError,
)
from staging_kernel.logging_config import configure_logging  # noqa: E402
from staging_kernel.services.invoice_facade import InvoiceFacade  # noqa: E402

EXIT_OK = 0
EXIT_WARNING = 1
EXIT_ERROR = 2


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, Enum):
        return obj.value
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def _emit(out: TextIO, payload: dict[str, Any]) -> None:
    out.write(json.dumps(payload, default=_json_default, indent=2))
    out.write("\n")


def _error_payload(exc: StagingError) -> dict[str, Any]:
    payload: dict[str, Any] = {"status": "error", "code": exc.code, "message": str(exc)}
    if isinstance(exc, ValidationError):
        payload["errors"] = exc.errors
    if isinstance(exc, IllegalTransitionError):
        payload["current_status"] = exc.current_label
    return payload


def _read_invoice(source: str) -> dict[str, Any]:
    if source == "-":
        return json.load(sys.stdin)
    with open(source, encoding="utf-8") as f:
        return json.load(f)


# ---------------------------------------------------------------------------
# Sub-commands
# ---------------------------------------------------------------------------


def cmd_init_db(facade: InvoiceFacade, args: argparse.Namespace, out: TextIO) -> int:
    facade.pool.create_tables()
    _emit(out, {"status": "success", "message": "Staging tables created"})
    return EXIT_OK


def cmd_create(facade: InvoiceFacade, args: argparse.Namespace, out: TextIO) -> int:
    try:
        data = _read_invoice(args.file)
    except (OSError, json.JSONDecodeError) as exc:
        _emit(out, {"status": "error", "code": "INVALID_INPUT", "message": str(exc)})
        return EXIT_ERROR

    result = facade.create(data)
    payload = {
        "status": "success" if result.complete else "partial",
        "staging_id": result.staging_id,
        "lines_persisted": result.lines_persisted,
        "lines_requested": result.lines_requested,
        "message": result.message,
    }
    if result.line_error:
        payload["line_error"] = result.line_error
    _emit(out, payload)
    return EXIT_OK if result.complete else EXIT_WARNING


def cmd_status(facade: InvoiceFacade, args: argparse.Namespace, out: TextIO) -> int:
    snapshot = facade.status(args.staging_id)
    if snapshot is None:
        _emit(out, {
            "status": "error",
            "code": "STAGING_NOT_FOUND",
            "message": f"Invoice with staging_id {args.staging_id} not found",
        })
        return EXIT_WARNING
    payload = asdict(snapshot)
    payload["status"] = payload.pop("status_label")
    _emit(out, payload)
    return EXIT_OK


def cmd_search(facade: InvoiceFacade, args: argparse.Namespace, out: TextIO) -> int:
    snapshot = facade.search(args.invoice_num, args.org_id)
    if snapshot is None:
        _emit(out, {
            "status": "error",
            "code": "NOT_FOUND",
            "message": f"Invoice {args.invoice_num} not found",
        })
        return EXIT_WARNING
    _emit(out, asdict(snapshot))
    return EXIT_OK


def cmd_process(facade: InvoiceFacade, args: argparse.Namespace, out: TextIO) -> int:
    result = facade.process(args.org_id, args.batch_id, args.staging_id)
    payload: dict[str, Any] = {
        "status": result.status.value,
        "return_code": result.return_code,
        "message": result.message,
    }
    if result.tracking_id is not None:
        payload["request_id"] = result.tracking_id
    _emit(out, payload)
    return {
        ProcessStatus.SUCCESS: EXIT_OK,
        ProcessStatus.WARNING: EXIT_WARNING,
        ProcessStatus.ERROR: EXIT_ERROR,
    }[result.status]


def cmd_cancel(facade: InvoiceFacade, args: argparse.Namespace, out: TextIO) -> int:
    result = facade.cancel(args.staging_id, args.user_id)
    _emit(out, {"status": "success", "staging_id": result.staging_id, "message": result.message})
    return EXIT_OK


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="AP invoice staging operator CLI")
    p.add_argument("--config", type=Path, default=None, help="Settings YAML merged over the packaged defaults")
    p.add_argument(
        "--log-level",
        default="WARNING",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level for JSON logs on stderr (default: WARNING)",
    )
    sub = p.add_subparsers(dest="command", required=True)

    s = sub.add_parser("init-db", help="Create staging and interface tables (dev/test)")
    s.set_defaults(handler=cmd_init_db)

    s = sub.add_parser("create", help="Stage an invoice from a JSON document")
    s.add_argument("--file", default="-", help="JSON file with header and lines (default: stdin)")
    s.set_defaults(handler=cmd_create)

    s = sub.add_parser("status", help="Show the process flag of a staged invoice")
    s.add_argument("staging_id", type=int)
    s.set_defaults(handler=cmd_status)

    s = sub.add_parser("search", help="Find a staged invoice by number")
    s.add_argument("invoice_num")
    s.add_argument("--org-id", type=int, default=None)
    s.set_defaults(handler=cmd_search)

    s = sub.add_parser("process", help="Run validate -> transfer -> import")
    s.add_argument("--org-id", type=int, required=True)
    s.add_argument("--batch-id", type=int, default=None)
    s.add_argument("--staging-id", type=int, default=None, help="Process one invoice (overrides --batch-id)")
    s.set_defaults(handler=cmd_process)

    s = sub.add_parser("cancel", help="Cancel a New or Error invoice")
    s.add_argument("staging_id", type=int)
    s.add_argument("--user-id", type=int, default=None)
    s.set_defaults(handler=cmd_cancel)

    return p


def main(
    argv: list[str] | None = None,
    *,
    facade: InvoiceFacade | None = None,
    out: TextIO | None = None,
) -> int:
    args = build_parser().parse_args(argv)
    out = out or sys.stdout

    configure_logging(level=args.log_level)

    owns_pool = facade is None
    if facade is None:
        try:
            settings = get_active_settings(args.config)
        except (OSError, ValueError, yaml.YAMLError) as exc:
            _emit(out, {"status": "error", "code": "INVALID_CONFIG", "message": str(exc)})
            return EXIT_ERROR
        facade = build_facade(settings)

    try:
        return args.handler(facade, args, out)
    except (NotFoundError, IllegalTransitionError) as exc:
        _emit(out, _error_payload(exc))
        return EXIT_WARNING
    except StagingError as exc:
        _emit(out, _error_payload(exc))
        return EXIT_ERROR
    finally:
        if owns_pool:
            facade.pool.close()


if __name__ == "__main__":
    sys.exit(main())
