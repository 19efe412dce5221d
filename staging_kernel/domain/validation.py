"""
Input validation for staged invoices.

Pure checks with no I/O.  Turns caller mappings (decoded JSON, CLI input)
into InvoiceHeaderInput / InvoiceLineInput, collecting every field error
before raising a single ValidationError.

The declared invoice_amount is not compared with the sum of the lines;
that check belongs to the import procedure.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from staging_kernel.domain.dtos import InvoiceHeaderInput, InvoiceLineInput, LineType
from staging_kernel.exceptions import ValidationError

DATE_FORMAT = "%Y-%m-%d"

# Integer columns are 64-bit on every supported store
INTEGER_MIN = -(2**63)
INTEGER_MAX = 2**63 - 1

_LINE_TYPES = ", ".join(t.value for t in LineType)


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    if isinstance(value, (float, Decimal)):
        try:
            if value == int(value):
                return int(value)
        except (ValueError, OverflowError):
            return None
    return None


class _Collector:
    """Accumulates field errors under an optional prefix (``lines[2].``)."""

    def __init__(self, prefix: str = ""):
        self.prefix = prefix
        self.errors: list[str] = []

    def add(self, name: str, message: str) -> None:
        self.errors.append(f"{self.prefix}{name}: {message}")

    def required_str(self, data: Mapping[str, Any], name: str) -> str | None:
        value = data.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            self.add(name, "is required")
            return None
        if not isinstance(value, (str, int)) or isinstance(value, bool):
            self.add(name, "must be a string")
            return None
        return str(value)

    def optional_str(self, data: Mapping[str, Any], name: str) -> str | None:
        value = data.get(name)
        if value is None:
            return None
        if not isinstance(value, str):
            self.add(name, "must be a string")
            return None
        return value

    def integer(self, data: Mapping[str, Any], name: str, *, required: bool = False) -> int | None:
        value = data.get(name)
        if value is None:
            if required:
                self.add(name, "is required")
            return None
        number = _as_int(value)
        if number is None:
            self.add(name, "must be an integer")
            return None
        if not INTEGER_MIN <= number <= INTEGER_MAX:
            self.add(name, f"must be between {INTEGER_MIN} and {INTEGER_MAX}")
            return None
        return number

    def decimal(
        self, data: Mapping[str, Any], name: str, *, required: bool = False
    ) -> Decimal | None:
        value = data.get(name)
        if value is None:
            if required:
                self.add(name, "is required")
            return None
        if isinstance(value, bool):
            self.add(name, "must be a number")
            return None
        try:
            # str() first so 0.1 stays 0.1 rather than its binary expansion
            amount = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
        except (InvalidOperation, TypeError, ValueError):
            self.add(name, "must be a number")
            return None
        if not amount.is_finite():
            self.add(name, "must be a finite number")
            return None
        return amount

    def calendar_date(
        self, data: Mapping[str, Any], name: str, *, required: bool = False
    ) -> date | None:
        value = data.get(name)
        if value is None or value == "":
            if required:
                self.add(name, "is required")
            return None
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if not isinstance(value, str):
            self.add(name, "must be a date string (YYYY-MM-DD)")
            return None
        try:
            return datetime.strptime(value.strip(), DATE_FORMAT).date()
        except ValueError:
            self.add(name, f"{value!r} is not a valid date (YYYY-MM-DD)")
            return None


def _summary(title: str, errors: list[str]) -> str:
    return f"{title}: {'; '.join(errors)}"


def _collect_line(data: Any, collector: _Collector) -> InvoiceLineInput | None:
    if not isinstance(data, Mapping):
        collector.add("line", "must be an object")
        return None

    before = len(collector.errors)
    line_number = collector.integer(data, "line_number", required=True)
    amount = collector.decimal(data, "amount", required=True)

    line_type = None
    raw_type = data.get("line_type")
    if raw_type is None:
        collector.add("line_type", "is required")
    else:
        try:
            line_type = LineType(str(raw_type).upper())
        except ValueError:
            collector.add("line_type", f"{raw_type!r} is not one of {_LINE_TYPES}")

    fields = {
        "description": collector.optional_str(data, "description"),
        "dist_code_ccid": collector.integer(data, "dist_code_ccid"),
        "account_code": collector.optional_str(data, "account_code"),
        "po_number": collector.optional_str(data, "po_number"),
        "po_line_number": collector.integer(data, "po_line_number"),
        "quantity": collector.decimal(data, "quantity"),
        "unit_price": collector.decimal(data, "unit_price"),
        "tax_code": collector.optional_str(data, "tax_code"),
        "tax_rate": collector.decimal(data, "tax_rate"),
        "tax_amount": collector.decimal(data, "tax_amount"),
    }
    if len(collector.errors) > before:
        return None
    return InvoiceLineInput(
        line_number=line_number, line_type=line_type, amount=amount, **fields
    )


def parse_line(data: Mapping[str, Any]) -> InvoiceLineInput:
    """Build an InvoiceLineInput or raise ValidationError listing every problem."""
    collector = _Collector()
    line = _collect_line(data, collector)
    if line is None:
        raise ValidationError(
            _summary("Invalid invoice line", collector.errors), collector.errors
        )
    return line


def parse_header(data: Mapping[str, Any]) -> InvoiceHeaderInput:
    """
    Build an InvoiceHeaderInput (with its lines) from a caller mapping.

    Required: invoice_num, invoice_date, invoice_amount, vendor_num,
    vendor_site_code, org_id.  ``lines`` is optional; each entry is checked
    with the same rules as parse_line and reported as ``lines[i].field``.

    Raises:
        ValidationError: With ``errors`` listing every field problem found.
    """
    if not isinstance(data, Mapping):
        raise ValidationError(
            "Invalid invoice: must be an object", ["invoice: must be an object"]
        )

    collector = _Collector()
    invoice_num = collector.required_str(data, "invoice_num")
    invoice_date = collector.calendar_date(data, "invoice_date", required=True)
    invoice_amount = collector.decimal(data, "invoice_amount", required=True)
    vendor_num = collector.required_str(data, "vendor_num")
    vendor_site_code = collector.required_str(data, "vendor_site_code")
    org_id = collector.integer(data, "org_id", required=True)

    optional = {
        "invoice_type": collector.optional_str(data, "invoice_type"),
        "currency_code": collector.optional_str(data, "currency_code"),
        "exchange_rate": collector.decimal(data, "exchange_rate"),
        "exchange_rate_type": collector.optional_str(data, "exchange_rate_type"),
        "exchange_date": collector.calendar_date(data, "exchange_date"),
        "terms_name": collector.optional_str(data, "terms_name"),
        "description": collector.optional_str(data, "description"),
        "gl_date": collector.calendar_date(data, "gl_date"),
        "batch_id": collector.integer(data, "batch_id"),
        "user_id": collector.integer(data, "user_id"),
    }

    raw_lines = data.get("lines") or []
    lines: list[InvoiceLineInput] = []
    if not isinstance(raw_lines, (list, tuple)):
        collector.add("lines", "must be a list")
    else:
        for index, raw in enumerate(raw_lines):
            line_collector = _Collector(prefix=f"lines[{index}].")
            line = _collect_line(raw, line_collector)
            collector.errors.extend(line_collector.errors)
            if line is not None:
                lines.append(line)

    if collector.errors:
        raise ValidationError(_summary("Invalid invoice", collector.errors), collector.errors)

    return InvoiceHeaderInput(
        invoice_num=invoice_num,
        invoice_date=invoice_date,
        invoice_amount=invoice_amount,
        vendor_num=vendor_num,
        vendor_site_code=vendor_site_code,
        org_id=org_id,
        lines=tuple(lines),
        **optional,
    )
