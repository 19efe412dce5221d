"""
Pytest fixtures for the staging kernel test suite.

Provides:
- An in-memory SQLite StorePool with all tables created per test
- FakeImportProcedure standing in for the PL/SQL import package
- A wired InvoiceFacade and sample invoice payloads
- Captured structured logs

No Oracle instance is needed; the StoredImportProcedure SQL is checked
without a database.
"""

import json
import logging
from dataclasses import dataclass, field
from io import StringIO

import pytest
from sqlalchemy import update

from staging_kernel.db.pool import StorePool
from staging_kernel.domain.dtos import ProcedureOutcome, ProcessScope
from staging_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from staging_kernel.models.staging import StagingHeaderModel, StagingLineModel
from staging_kernel.services.import_procedure import ImportProcedure
from staging_kernel.services.invoice_facade import InvoiceFacade

# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture staging_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, facade):
            facade.cancel(1)
            logs = captured_logs()
            assert any(r["message"] == "invoice_cancelled" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("staging_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Store fixtures
# =============================================================================


@pytest.fixture
def pool():
    """In-memory SQLite pool with the staging and interface tables."""
    store = StorePool("sqlite:///:memory:")
    store.create_tables()
    yield store
    store.close()


@pytest.fixture
def set_flag(pool):
    """
    Write a flag the way the import procedure does: directly, header and lines.

    Usage::

        set_flag(staging_id, "V")
        set_flag(staging_id, "E", "Invalid Vendor Number")
    """

    def _set(staging_id: int, flag: str, error_message: str | None = None) -> None:
        with pool.connection_scope() as conn:
            conn.execute(
                update(StagingHeaderModel.__table__)
                .where(StagingHeaderModel.__table__.c.staging_id == staging_id)
                .values(process_flag=flag, error_message=error_message)
            )
            conn.execute(
                update(StagingLineModel.__table__)
                .where(StagingLineModel.__table__.c.staging_id == staging_id)
                .values(process_flag=flag, error_message=error_message)
            )

    return _set


@pytest.fixture
def line_rows(pool):
    """Return the staged line rows of a header, ordered by line_staging_id."""
    from sqlalchemy import select

    def _rows(staging_id: int) -> list[StagingLineModel]:
        with pool.session_scope() as session:
            return list(
                session.execute(
                    select(StagingLineModel)
                    .where(StagingLineModel.staging_id == staging_id)
                    .order_by(StagingLineModel.line_staging_id)
                ).scalars()
            )

    return _rows


# =============================================================================
# Import procedure fake
# =============================================================================


@dataclass
class FakeImportProcedure(ImportProcedure):
    """
    Scripted stand-in for the PL/SQL import package.

    ``outcome`` is returned from every invoke; ``side_effect`` (if set) is
    called with (connection, scope) first and may write flags or raise.
    """

    outcome: ProcedureOutcome = field(
        default_factory=lambda: ProcedureOutcome(return_code="0", message=None)
    )
    side_effect: object = None
    calls: list[ProcessScope] = field(default_factory=list)

    def invoke(self, connection, scope: ProcessScope) -> ProcedureOutcome:
        self.calls.append(scope)
        if self.side_effect is not None:
            self.side_effect(connection, scope)
        return self.outcome


@pytest.fixture
def fake_procedure() -> FakeImportProcedure:
    return FakeImportProcedure()


@pytest.fixture
def facade(pool, fake_procedure) -> InvoiceFacade:
    return InvoiceFacade(pool, fake_procedure)


# =============================================================================
# Sample data
# =============================================================================


@pytest.fixture
def invoice_data() -> dict:
    """A valid create payload with two lines."""
    return {
        "invoice_num": "WIRA-TEST-001",
        "invoice_date": "2025-12-12",
        "invoice_amount": 5000,
        "vendor_num": "1000",
        "vendor_site_code": "GE PLASTICS",
        "terms_name": "Immediate",
        "description": "Test Invoice",
        "org_id": 204,
        "batch_id": 100,
        "lines": [
            {
                "line_number": 1,
                "line_type": "ITEM",
                "amount": 4500,
                "description": "Test Line Item",
                "dist_code_ccid": 17021,
            },
            {
                "line_number": 2,
                "line_type": "TAX",
                "amount": "500.00",
                "tax_code": "VAT10",
                "tax_rate": 10,
            },
        ],
    }
