"""Tests for the staging exception hierarchy and error categories."""

import pytest

from staging_kernel.exceptions import (
    ExternalProcedureError,
    IllegalTransitionError,
    NotFoundError,
    OrphanLineError,
    PersistenceError,
    ProcedureConfigurationError,
    StagingError,
    StagingNotFoundError,
    StoreNotInitializedError,
    ValidationError,
    error_category,
)


class TestHierarchy:
    @pytest.mark.parametrize(
        "exc",
        [
            ValidationError("bad"),
            StagingNotFoundError(1),
            IllegalTransitionError(1, "X", "Cancelled", "X", "nope"),
            PersistenceError("insert_header", "ORA-00001"),
            OrphanLineError(9, "FOREIGN KEY constraint failed"),
            StoreNotInitializedError(),
            ExternalProcedureError("2", "Invalid Vendor Number"),
            ProcedureConfigurationError("procedure.staging_id_param", "no single-invoice runs"),
        ],
    )
    def test_all_derive_from_staging_error(self, exc):
        assert isinstance(exc, StagingError)
        assert exc.code

    def test_codes_are_distinct(self):
        codes = {
            cls.code
            for cls in (
                StagingError,
                ValidationError,
                NotFoundError,
                StagingNotFoundError,
                IllegalTransitionError,
                PersistenceError,
                OrphanLineError,
                StoreNotInitializedError,
                ExternalProcedureError,
                ProcedureConfigurationError,
            )
        }
        assert len(codes) == 10

    def test_orphan_line_is_persistence_error(self):
        exc = OrphanLineError(9, "FK")
        assert isinstance(exc, PersistenceError)
        assert exc.operation == "insert_line"
        assert exc.staging_id == 9


class TestMessages:
    def test_not_found_message(self):
        assert str(StagingNotFoundError(999)) == "Invoice with staging_id 999 not found"

    def test_illegal_transition_carries_label(self):
        exc = IllegalTransitionError(
            staging_id=8,
            current_flag="X",
            current_label="Cancelled",
            target_flag="X",
            reason="Cannot cancel invoice with status 'Cancelled'.",
        )
        assert exc.current_label == "Cancelled"
        assert str(exc) == exc.reason

    def test_persistence_error_message(self):
        exc = PersistenceError("insert_header", "ORA-12541: no listener")
        assert str(exc) == "insert_header failed: ORA-12541: no listener"

    def test_validation_errors_list(self):
        exc = ValidationError("Invalid invoice", ["org_id: is required"])
        assert exc.errors == ["org_id: is required"]
        assert ValidationError("x").errors == []

    def test_external_procedure_diagnostic_verbatim(self):
        exc = ExternalProcedureError("2", "Invalid Vendor Number")
        assert str(exc) == "Invalid Vendor Number"
        assert exc.return_code == "2"


class TestErrorCategory:
    def test_categories(self):
        assert error_category(ValidationError("x")) == "client"
        assert error_category(StagingNotFoundError(1)) == "not_found"
        assert error_category(IllegalTransitionError(1, "V", "Validated", "X", "r")) == "conflict"
        assert error_category(PersistenceError("op", "d")) == "server"
        assert error_category(ExternalProcedureError("2", "d")) == "server"

    def test_foreign_exception_is_server(self):
        assert error_category(RuntimeError("boom")) == "server"
