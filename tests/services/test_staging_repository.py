"""Tests for StagingRepository."""

from decimal import Decimal

import pytest

from staging_kernel.domain.validation import parse_header, parse_line
from staging_kernel.exceptions import OrphanLineError, PersistenceError
from staging_kernel.services.staging_repository import StagingRepository


@pytest.fixture
def header(invoice_data):
    return parse_header(invoice_data)


def _insert(pool, header, **kwargs) -> int:
    with pool.session_scope() as session:
        return StagingRepository(session, **kwargs).insert_header(header)


class TestInsertHeader:
    def test_assigns_increasing_ids(self, pool, header):
        first = _insert(pool, header)
        second = _insert(pool, header)
        assert second > first

    def test_new_header_state_and_defaults(self, pool, header):
        staging_id = _insert(pool, header)
        with pool.session_scope() as session:
            snapshot = StagingRepository(session).search("WIRA-TEST-001", 204)
        assert snapshot.staging_id == staging_id
        assert snapshot.process_flag == "N"
        assert snapshot.process_status == "New"
        assert snapshot.error_message is None
        assert snapshot.invoice_type == "STANDARD"
        assert snapshot.currency_code == "USD"

    def test_configured_defaults(self, pool, header):
        _insert(pool, header, invoice_type="CREDIT", currency_code="MYR")
        with pool.session_scope() as session:
            snapshot = StagingRepository(session).search("WIRA-TEST-001")
        assert snapshot.invoice_type == "CREDIT"
        assert snapshot.currency_code == "MYR"

    def test_logs_insert(self, pool, header, captured_logs):
        staging_id = _insert(pool, header)
        record = next(r for r in captured_logs() if r["message"] == "header_inserted")
        assert record["staging_id"] == staging_id
        assert record["org_id"] == 204


class TestInsertLine:
    def test_line_belongs_to_header(self, pool, header, line_rows):
        staging_id = _insert(pool, header)
        with pool.session_scope() as session:
            line_id = StagingRepository(session).insert_line(staging_id, header.lines[0])
        rows = line_rows(staging_id)
        assert [r.line_staging_id for r in rows] == [line_id]
        assert rows[0].process_flag == "N"
        assert rows[0].dist_code_combination_id == 17021

    def test_orphan_line_rejected(self, pool, header):
        line = parse_line({"line_number": 1, "line_type": "ITEM", "amount": 10})
        with pytest.raises(OrphanLineError) as exc_info:
            with pool.session_scope() as session:
                StagingRepository(session).insert_line(424242, line)
        assert exc_info.value.staging_id == 424242
        assert isinstance(exc_info.value, PersistenceError)


class TestReads:
    def test_get_status_unknown_returns_none(self, pool):
        with pool.session_scope() as session:
            assert StagingRepository(session).get_status(999) is None

    def test_get_status_error_message_empty_string(self, pool, header):
        staging_id = _insert(pool, header)
        with pool.session_scope() as session:
            status = StagingRepository(session).get_status(staging_id)
        assert status.process_flag == "N"
        assert status.status_label == "New"
        assert status.error_message == ""

    def test_get_status_sees_external_writes(self, pool, header, set_flag):
        staging_id = _insert(pool, header)
        set_flag(staging_id, "E", "Invalid Vendor Number")
        with pool.session_scope() as session:
            status = StagingRepository(session).get_status(staging_id)
        assert status.status_label == "Error"
        assert status.error_message == "Invalid Vendor Number"

    def test_unknown_flag_label(self, pool, header, set_flag):
        staging_id = _insert(pool, header)
        set_flag(staging_id, "Z")
        with pool.session_scope() as session:
            assert StagingRepository(session).get_status(staging_id).status_label == "Unknown"

    def test_search_not_found(self, pool, header):
        _insert(pool, header)
        with pool.session_scope() as session:
            repo = StagingRepository(session)
            assert repo.search("NOPE", 204) is None
            assert repo.search("WIRA-TEST-001", 999) is None

    def test_search_orders_lines_by_line_number(self, pool, header):
        staging_id = _insert(pool, header)
        with pool.session_scope() as session:
            repo = StagingRepository(session)
            for number in (3, 1, 2):
                repo.insert_line(
                    staging_id,
                    parse_line({"line_number": number, "line_type": "ITEM", "amount": number}),
                )
        with pool.session_scope() as session:
            snapshot = StagingRepository(session).search("WIRA-TEST-001", 204)
        assert [line.line_number for line in snapshot.lines] == [1, 2, 3]
        assert snapshot.lines[0].amount == Decimal("1")

    def test_search_without_org_spans_orgs(self, pool, header):
        from dataclasses import replace

        _insert(pool, replace(header, org_id=301))
        with pool.session_scope() as session:
            snapshot = StagingRepository(session).search("WIRA-TEST-001")
        assert snapshot.org_id == 301

    def test_ambiguous_search_picks_oldest(self, pool, header, captured_logs):
        from dataclasses import replace

        first = _insert(pool, header)
        _insert(pool, replace(header, org_id=301))
        with pool.session_scope() as session:
            snapshot = StagingRepository(session).search("WIRA-TEST-001")
        assert snapshot.staging_id == first
        record = next(r for r in captured_logs() if r["message"] == "search_ambiguous_match")
        assert record["match_count"] == 2


class TestFlagUpdates:
    def test_update_header_and_lines(self, pool, header, line_rows):
        staging_id = _insert(pool, header)
        with pool.session_scope() as session:
            repo = StagingRepository(session)
            for line in header.lines:
                repo.insert_line(staging_id, line)

        with pool.session_scope() as session:
            repo = StagingRepository(session)
            assert repo.update_header_flag(staging_id, "E", "bad vendor", updated_by=42) == 1
            assert repo.update_lines_flag(staging_id, "E", "bad vendor", updated_by=42) == 2

        with pool.session_scope() as session:
            status = StagingRepository(session).get_status(staging_id)
        assert status.process_flag == "E"
        assert {(r.process_flag, r.error_message, r.last_updated_by) for r in line_rows(staging_id)} == {
            ("E", "bad vendor", 42)
        }

    def test_update_unknown_header_touches_nothing(self, pool):
        with pool.session_scope() as session:
            assert StagingRepository(session).update_header_flag(5, "X", "x") == 0

    def test_lock_header(self, pool, header):
        staging_id = _insert(pool, header)
        with pool.session_scope() as session:
            repo = StagingRepository(session)
            assert repo.lock_header(staging_id).staging_id == staging_id
            assert repo.lock_header(staging_id + 100) is None
