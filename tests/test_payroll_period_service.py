"""Payroll period lifecycle tests against an in-memory database."""

from __future__ import annotations

import asyncio
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select, update

from ftms_payroll.database import Database
from ftms_payroll.errors import ConflictError, IntegrationError, NotFoundError, ValidationError
from ftms_payroll.models import OutboundFailure, Payroll, PayrollItemType, PayrollPeriod
from ftms_payroll.services.payroll_period_service import (
    PayrollPeriodService,
    PeriodCreate,
    PeriodPatch,
    PeriodQuery,
    ProcessRequest,
)
from tests.factories import FakeHRClient, employee_record, entry

JAN_A = PeriodCreate(date(2026, 1, 1), date(2026, 1, 15), "2026-01A")


def scenario_record(employee_number: str = "EMP-001", **kwargs):
    """basic 20000, benefit 2000, deduction 1500 -> gross 22000, net 20500."""
    kwargs.setdefault("benefits", [entry("Rice Allowance", "2000")])
    kwargs.setdefault("deductions", [entry("SSS", "1500")])
    return employee_record(employee_number, basic_rate="20000", **kwargs)


async def processed_period(service, hr_source, actor, records=None):
    hr_source.records = records if records is not None else [scenario_record()]
    period = await service.create(JAN_A, actor)
    await service.process(period.id, ProcessRequest(), actor)
    return period


def pause_after_load(service, loaded: list[int], ready: asyncio.Event, parties: int = 2):
    """Hold each release after its read until ``parties`` releases have read."""
    load = service.repository.get_with_payrolls

    async def load_then_wait(period_id):
        period = await load(period_id)
        if not ready.is_set():
            loaded.append(period_id)
            if len(loaded) == parties:
                ready.set()
            await ready.wait()
        return period

    service.repository.get_with_payrolls = load_then_wait


# ============================================================================
# Create
# ============================================================================


class TestCreate:
    async def test_create_starts_in_draft(self, service, actor):
        period = await service.create(JAN_A, actor)

        assert period.id is not None
        assert period.status == "DRAFT"
        assert period.payroll_period_code == "2026-01A"
        assert period.created_by == "user-1"
        assert period.total_net == Decimal("0")

    async def test_overlapping_period_rejected(self, service, actor):
        await service.create(JAN_A, actor)

        with pytest.raises(ValidationError) as exc_info:
            await service.create(
                PeriodCreate(date(2026, 1, 10), date(2026, 1, 20), "2026-01B"), actor
            )
        assert "overlaps with existing period: 2026-01A" in exc_info.value.message

    async def test_touching_boundary_counts_as_overlap(self, service, actor):
        await service.create(JAN_A, actor)
        with pytest.raises(ValidationError):
            await service.create(PeriodCreate(date(2026, 1, 15), date(2026, 1, 31), "X"), actor)

    async def test_adjacent_period_allowed(self, service, actor):
        await service.create(JAN_A, actor)
        period = await service.create(
            PeriodCreate(date(2026, 1, 16), date(2026, 1, 31), "2026-01B"), actor
        )
        assert period.status == "DRAFT"

    async def test_reversed_dates_rejected(self, service, actor):
        with pytest.raises(ValidationError):
            await service.create(PeriodCreate(date(2026, 1, 15), date(2026, 1, 1), "bad"), actor)

    async def test_duplicate_code_rejected(self, service, actor):
        await service.create(JAN_A, actor)
        with pytest.raises(ValidationError) as exc_info:
            await service.create(
                PeriodCreate(date(2026, 2, 1), date(2026, 2, 15), "2026-01A"), actor
            )
        assert "already exists" in exc_info.value.message

    async def test_code_defaults_to_date_range(self, service, actor):
        period = await service.create(PeriodCreate(date(2026, 3, 1), date(2026, 3, 15)), actor)
        assert period.payroll_period_code == "2026-03-01_2026-03-15"

    async def test_deleted_period_does_not_block_overlap(self, service, actor):
        period = await service.create(JAN_A, actor)
        await service.delete(period.id, actor, "created by mistake")

        again = await service.create(
            PeriodCreate(date(2026, 1, 1), date(2026, 1, 15), "2026-01A-v2"), actor
        )
        assert again.status == "DRAFT"

    async def test_create_emits_audit_event(
        self, service, actor, context, dispatcher, audit_recorder
    ):
        period = await service.create(JAN_A, actor, context)
        await dispatcher.drain()

        [sent] = audit_recorder.entries
        assert sent["action"] == "CREATE"
        assert sent["moduleName"] == "PAYROLL"
        assert sent["recordId"] == str(period.id)
        assert sent["recordCode"] == "2026-01A"
        assert sent["performedBy"] == "user-1"
        assert sent["ipAddress"] == "10.0.0.5"
        assert audit_recorder.requests[0].headers["x-api-key"] == "audit-key"


# ============================================================================
# List / detail
# ============================================================================


class TestQueries:
    async def _seed(self, service, actor):
        for start, end, code in [
            (date(2026, 1, 1), date(2026, 1, 15), "2026-01A"),
            (date(2026, 1, 16), date(2026, 1, 31), "2026-01B"),
            (date(2026, 2, 1), date(2026, 2, 15), "2026-02A"),
        ]:
            await service.create(PeriodCreate(start, end, code), actor)

    async def test_list_sorted_newest_first(self, service, actor):
        await self._seed(service, actor)
        page = await service.list(PeriodQuery())

        assert [p.payroll_period_code for p in page.items] == ["2026-02A", "2026-01B", "2026-01A"]
        assert page.pagination.total == 3
        assert page.pagination.total_pages == 1

    async def test_list_pagination(self, service, actor):
        await self._seed(service, actor)
        page = await service.list(PeriodQuery(page=2, limit=2))

        assert [p.payroll_period_code for p in page.items] == ["2026-01A"]
        assert page.pagination.total == 3
        assert page.pagination.total_pages == 2

    async def test_list_filters(self, service, actor):
        await self._seed(service, actor)

        search = await service.list(PeriodQuery(search="01b"))
        assert [p.payroll_period_code for p in search.items] == ["2026-01B"]

        ranged = await service.list(
            PeriodQuery(date_from=date(2026, 1, 10), date_to=date(2026, 2, 1))
        )
        assert [p.payroll_period_code for p in ranged.items] == ["2026-02A", "2026-01B"]

        released = await service.list(PeriodQuery(status="RELEASED"))
        assert released.items == []
        assert released.pagination.total_pages == 0

    async def test_search_matches_wildcards_literally(self, service, actor):
        await self._seed(service, actor)
        await service.create(PeriodCreate(date(2026, 3, 1), date(2026, 3, 15)), actor)

        for term, expected in [("_", ["2026-03-01_2026-03-15"]), ("%", []), ("01\\", [])]:
            page = await service.list(PeriodQuery(search=term))
            assert [p.payroll_period_code for p in page.items] == expected, term

    async def test_list_is_idempotent(self, service, actor):
        await self._seed(service, actor)
        query = PeriodQuery(search="2026", limit=2)

        first = await service.list(query)
        second = await service.list(query)

        assert [p.id for p in first.items] == [p.id for p in second.items]
        assert first.pagination == second.pagination

    async def test_deleted_visibility(self, service, actor):
        await self._seed(service, actor)
        page = await service.list(PeriodQuery(search="2026-02A"))
        await service.delete(page.items[0].id, actor, "duplicate")

        visible = await service.list(PeriodQuery())
        deleted = await service.list(PeriodQuery(is_deleted=True))

        assert "2026-02A" not in [p.payroll_period_code for p in visible.items]
        assert [p.payroll_period_code for p in deleted.items] == ["2026-02A"]

    async def test_detail_includes_attendance_stats(self, service, hr_source, actor):
        record = scenario_record(
            attendances=[
                {"date": "2026-01-02", "status": "Present"},
                {"date": "2026-01-05", "status": "Present"},
                {"date": "2026-01-06", "status": "Absent"},
                {"date": "2026-01-07", "status": "Late"},
                {"date": "2026-01-08", "status": "Overtime", "hours": "4"},
                {"date": "2026-01-09", "status": "Overtime", "hours": "1.5"},
            ]
        )
        period = await processed_period(service, hr_source, actor, [record])

        detail = await service.get_detail(period.id)

        [employee] = detail.employees
        assert employee.attendance.present_count == 2
        assert employee.attendance.absent_count == 1
        assert employee.attendance.late_count == 1
        assert employee.attendance.overtime_hours == Decimal("5.5")
        assert len(employee.payroll.items) == 2
        assert len(employee.payroll.attendances) == 6

    async def test_detail_missing_period(self, service):
        with pytest.raises(NotFoundError):
            await service.get_detail(999)


# ============================================================================
# Update / delete
# ============================================================================


class TestUpdateDelete:
    async def test_update_fields(self, service, actor, dispatcher, audit_recorder):
        period = await service.create(JAN_A, actor)
        updated = await service.update(
            period.id, PeriodPatch(payroll_period_code="2026-JAN-1", period_end=date(2026, 1, 14)), actor
        )
        await dispatcher.drain()

        assert updated.payroll_period_code == "2026-JAN-1"
        assert updated.period_end == date(2026, 1, 14)
        assert updated.updated_by == "user-1"

        update_entry = audit_recorder.entries[-1]
        assert update_entry["action"] == "UPDATE"
        assert "payroll_period_code" in update_entry["changedFields"]
        assert "period_end" in update_entry["changedFields"]
        assert "status" not in update_entry["changedFields"]

    async def test_update_into_overlap_rejected(self, service, actor):
        await service.create(JAN_A, actor)
        second = await service.create(
            PeriodCreate(date(2026, 1, 16), date(2026, 1, 31), "2026-01B"), actor
        )
        with pytest.raises(ValidationError):
            await service.update(second.id, PeriodPatch(period_start=date(2026, 1, 10)), actor)

    async def test_update_own_range_not_an_overlap(self, service, actor):
        period = await service.create(JAN_A, actor)
        updated = await service.update(period.id, PeriodPatch(period_start=date(2026, 1, 2)), actor)
        assert updated.period_start == date(2026, 1, 2)

    async def test_status_patch_cannot_release_or_regress(self, service, hr_source, actor):
        period = await processed_period(service, hr_source, actor)

        with pytest.raises(ValidationError):
            await service.update(period.id, PeriodPatch(status="RELEASED"), actor)
        with pytest.raises(ValidationError):
            await service.update(period.id, PeriodPatch(status="DRAFT"), actor)

    async def test_released_period_is_immutable(self, service, hr_source, actor):
        period = await processed_period(service, hr_source, actor)
        await service.release(period.id, actor)

        with pytest.raises(ValidationError):
            await service.update(period.id, PeriodPatch(payroll_period_code="NEW"), actor)
        with pytest.raises(ValidationError):
            await service.delete(period.id, actor, "too late")

    async def test_delete_requires_reason(self, service, actor):
        period = await service.create(JAN_A, actor)
        with pytest.raises(ValidationError, match="reason"):
            await service.delete(period.id, actor, "   ")

    async def test_delete_is_soft_and_cascades(
        self, service, session, hr_source, actor, dispatcher, audit_recorder
    ):
        period = await processed_period(service, hr_source, actor)

        deleted = await service.delete(period.id, actor, "wrong cut-off")
        await dispatcher.drain()

        assert deleted.is_deleted is True
        assert deleted.deleted_by == "user-1"
        assert deleted.deletion_reason == "wrong cut-off"
        with pytest.raises(NotFoundError):
            await service.get_detail(period.id)

        payrolls = (
            await session.execute(
                select(Payroll)
                .where(Payroll.payroll_period_id == period.id)
                .execution_options(populate_existing=True)
            )
        ).scalars().all()
        assert payrolls and all(p.is_deleted for p in payrolls)

        delete_entry = audit_recorder.entries[-1]
        assert delete_entry["action"] == "DELETE"
        assert delete_entry["reason"] == "wrong cut-off"


# ============================================================================
# Process
# ============================================================================


class TestProcess:
    async def test_process_computes_payroll(self, service, hr_source, actor):
        period = await service.create(JAN_A, actor)
        hr_source.records = [scenario_record()]

        result = await service.process(period.id, ProcessRequest(), actor)

        assert result.status == "PARTIAL"
        assert result.outcome == "complete"
        assert result.total_processed == 1
        assert result.errors == []
        assert result.total_gross == Decimal("22000")
        assert result.total_deductions == Decimal("1500")
        assert result.total_net == Decimal("20500")

        detail = await service.get_detail(period.id)
        [employee] = detail.employees
        assert employee.payroll.gross_pay == Decimal("22000")
        assert employee.payroll.net_pay == Decimal("20500")
        assert employee.payroll.status == "PROCESSED"
        assert employee.payroll.employee_name == "Juan Dela Cruz"
        assert detail.period.status == "PARTIAL"
        assert detail.period.last_process_error_count == 0
        assert hr_source.calls == [(date(2026, 1, 1), date(2026, 1, 15), None)]

    async def test_item_types_upserted_by_code(self, service, session, hr_source, actor):
        await processed_period(
            service,
            hr_source,
            actor,
            [scenario_record("EMP-001"), scenario_record("EMP-002")],
        )
        codes = (await session.execute(select(PayrollItemType.code))).scalars().all()
        assert sorted(codes) == ["BENEFIT_RICE_ALLOWANCE", "DEDUCTION_SSS"]

    async def test_inactive_items_stored_but_not_totalled(self, service, hr_source, actor):
        record = scenario_record(
            benefits=[entry("Rice Allowance", "2000"), entry("Expired", "700", is_active=False)]
        )
        period = await processed_period(service, hr_source, actor, [record])

        [employee] = (await service.get_detail(period.id)).employees
        assert employee.payroll.total_benefits == Decimal("2000")
        applied = {i.item_type.name: i.is_applied for i in employee.payroll.items}
        assert applied == {"Rice Allowance": True, "Expired": False, "SSS": True}

    async def test_malformed_record_is_isolated(self, service, hr_source, actor):
        hr_source.records = [
            scenario_record("EMP-001"),
            employee_record("EMP-002", basic_rate="not-a-number"),
            {"first_name": "No Number"},
        ]
        period = await service.create(JAN_A, actor)

        result = await service.process(period.id, ProcessRequest(), actor)

        assert result.status == "PARTIAL"
        assert result.outcome == "completed_with_errors"
        assert result.total_processed == 1
        assert result.total_attempted == 3
        assert [e.employee_number for e in result.errors] == ["EMP-002", None]
        assert result.total_net == Decimal("20500")
        assert (await service.get_detail(period.id)).period.last_process_error_count == 2

    async def test_reprocess_upserts_and_rederives_totals(self, service, hr_source, actor):
        period = await processed_period(
            service, hr_source, actor, [scenario_record("EMP-001"), scenario_record("EMP-002")]
        )

        hr_source.records = [scenario_record("EMP-001", deductions=[entry("SSS", "500")])]
        result = await service.process(period.id, ProcessRequest(), actor)

        detail = await service.get_detail(period.id)
        nets = {e.payroll.employee_number: e.payroll.net_pay for e in detail.employees}
        assert nets == {"EMP-001": Decimal("21500"), "EMP-002": Decimal("20500")}
        assert result.total_employees == 2
        assert result.total_net == Decimal("42000")
        [emp1] = [e for e in detail.employees if e.payroll.employee_number == "EMP-001"]
        assert len(emp1.payroll.items) == 2

    async def test_employee_filter_and_window(self, service, hr_source, actor):
        period = await service.create(JAN_A, actor)
        hr_source.records = [scenario_record("EMP-001"), scenario_record("EMP-002")]

        result = await service.process(
            period.id,
            ProcessRequest(
                period_start=date(2026, 1, 1),
                period_end=date(2026, 1, 7),
                employee_number="EMP-002",
            ),
            actor,
        )

        assert result.total_processed == 1
        assert hr_source.calls == [(date(2026, 1, 1), date(2026, 1, 7), "EMP-002")]
        [employee] = (await service.get_detail(period.id)).employees
        assert employee.payroll.employee_number == "EMP-002"

    async def test_reversed_window_rejected(self, service, actor):
        period = await service.create(JAN_A, actor)
        with pytest.raises(ValidationError):
            await service.process(
                period.id,
                ProcessRequest(period_start=date(2026, 1, 10), period_end=date(2026, 1, 5)),
                actor,
            )

    async def test_hr_failure_leaves_period_untouched(self, service, hr_source, actor):
        # The failed process rolls back and expires the instance
        period_id = (await service.create(JAN_A, actor)).id
        hr_source.error = IntegrationError("HR API returned 503")

        with pytest.raises(IntegrationError):
            await service.process(period_id, ProcessRequest(), actor)

        detail = await service.get_detail(period_id)
        assert detail.period.status == "DRAFT"
        assert detail.employees == []

    async def test_process_missing_period(self, service, actor):
        with pytest.raises(NotFoundError):
            await service.process(42, ProcessRequest(), actor)

    async def test_process_released_period_rejected(self, service, hr_source, actor):
        period = await processed_period(service, hr_source, actor)
        await service.release(period.id, actor)

        with pytest.raises(ValidationError):
            await service.process(period.id, ProcessRequest(), actor)

    async def test_concurrent_status_change_is_a_conflict(self, service, session, hr_source, actor):
        period = await service.create(JAN_A, actor)
        hr_source.records = [scenario_record()]

        async def release_behind_our_back():
            await session.execute(
                update(PayrollPeriod)
                .where(PayrollPeriod.id == period.id)
                .values(status="RELEASED")
                .execution_options(synchronize_session=False)
            )

        hr_source.on_fetch = release_behind_our_back

        with pytest.raises(ConflictError):
            await service.process(period.id, ProcessRequest(), actor)


# ============================================================================
# Release
# ============================================================================


class TestRelease:
    async def test_release_draft_rejected(self, service, actor, hr_client):
        period = await service.create(JAN_A, actor)

        with pytest.raises(ValidationError):
            await service.release(period.id, actor)

        assert (await service.get_detail(period.id)).period.status == "DRAFT"
        assert hr_client.attempts == 0

    async def test_release_sends_disbursement(
        self, service, hr_source, hr_client, actor, dispatcher, audit_recorder
    ):
        record = scenario_record(
            attendances=[
                {"date": "2026-01-02", "status": "Present"},
                {"date": "2026-01-05", "status": "Present"},
                {"date": "2026-01-06", "status": "Absent"},
            ]
        )
        period = await processed_period(service, hr_source, actor, [record])

        result = await service.release(period.id, actor)
        await dispatcher.drain()

        assert result.disbursement_delivered is True
        assert result.period.status == "RELEASED"
        assert result.period.approved_by == "user-1"
        assert result.period.approved_at is not None
        assert all(p.status == "RELEASED" for p in result.period.payrolls)

        [payload] = hr_client.payloads
        assert payload["payroll_period_code"] == "2026-01A"
        assert payload["disbursed_by"] == "Ana Admin"
        [employee] = payload["employees"]
        assert employee["employee_number"] == "EMP-001"
        assert employee["present_days"] == 2
        assert Decimal(employee["basic_pay"]) == Decimal("20000")
        assert Decimal(employee["net_pay"]) == Decimal("20500")
        assert "APPROVE" in audit_recorder.actions()

    async def test_release_survives_unreachable_hr(self, service, session, hr_source, actor, caplog):
        service.hr_client.failures = 10
        period = await processed_period(service, hr_source, actor)

        result = await service.release(period.id, actor)

        assert result.disbursement_delivered is False
        assert result.period.status == "RELEASED"
        assert result.period.approved_by == "user-1"
        assert service.hr_client.attempts == 2
        assert "failed after 2 attempt(s)" in caplog.text

        [failure] = (await session.execute(select(OutboundFailure))).scalars().all()
        assert failure.target == "hr_disbursement"
        assert failure.record_id == str(period.id)
        assert failure.attempts == 2
        assert failure.payload["payroll_period_code"] == "2026-01A"

    async def test_release_retries_transient_failure(self, service, hr_source, actor):
        service.hr_client.failures = 1
        period = await processed_period(service, hr_source, actor)

        result = await service.release(period.id, actor)

        assert result.disbursement_delivered is True
        assert service.hr_client.attempts == 2

    async def test_release_twice_rejected(self, service, hr_source, actor):
        period = await processed_period(service, hr_source, actor)
        await service.release(period.id, actor)

        with pytest.raises(ValidationError):
            await service.release(period.id, actor)

    async def test_concurrent_releases_send_one_disbursement(
        self, tmp_path, settings, hr_source, actor, audit
    ):
        database = Database(f"sqlite+aiosqlite:///{tmp_path / 'release.db'}")
        await database.create_all()
        hr_client = FakeHRClient(delay=0.2)
        try:
            async with database.session_factory() as first, database.session_factory() as second:
                services = [
                    PayrollPeriodService(
                        s, settings, hr_source=hr_source, hr_client=hr_client, audit=audit
                    )
                    for s in (first, second)
                ]
                period = await processed_period(services[0], hr_source, actor)

                ready = asyncio.Event()
                loaded: list[int] = []
                for service in services:
                    pause_after_load(service, loaded, ready)

                results = await asyncio.gather(
                    *(service.release(period.id, actor) for service in services),
                    return_exceptions=True,
                )
        finally:
            await database.dispose()

        assert sorted(type(r).__name__ for r in results) == ["ConflictError", "ReleaseResult"]
        assert len(hr_client.payloads) == 1

    async def test_dead_letter_survives_service_rollback(
        self, service, database, hr_source, actor
    ):
        service.hr_client.failures = 10
        period = await processed_period(service, hr_source, actor)

        await service.release(period.id, actor)
        await service.session.rollback()

        async with database.session_factory() as other:
            failures = (await other.execute(select(OutboundFailure))).scalars().all()
        assert [f.record_id for f in failures] == [str(period.id)]

    async def test_resend_disbursement(self, service, hr_source, hr_client, actor):
        period = await processed_period(service, hr_source, actor)
        with pytest.raises(ValidationError):
            await service.resend_disbursement(period.id, actor)

        await service.release(period.id, actor)
        assert await service.resend_disbursement(period.id, actor) is True
        assert len(hr_client.payloads) == 2


# ============================================================================
# Reporting
# ============================================================================


class TestReporting:
    async def test_stats(self, service, hr_source, actor):
        period = await processed_period(service, hr_source, actor)
        await service.release(period.id, actor)
        await service.create(PeriodCreate(date(2026, 2, 1), date(2026, 2, 15), "2026-02A"), actor)

        stats = await service.stats()

        assert stats["total_periods"] == 2
        assert stats["released"] == 1
        assert stats["pending"] == 1
        assert stats["total_net_released"] == Decimal("20500")
        assert stats["total_employees_released"] == 1
        assert stats["by_status"] == {"DRAFT": 1, "PARTIAL": 0, "RELEASED": 1}

    async def test_payslip(self, service, hr_source, actor):
        period = await processed_period(service, hr_source, actor)
        [employee] = (await service.get_detail(period.id)).employees
        payroll_id = employee.payroll.id

        payslip = await service.get_payslip(period.id, payroll_id)

        assert payslip["company_name"] == "Test Bus Co"
        assert payslip["payroll_code"] == f"PAY-{payroll_id}"
        assert payslip["basic_pay"] == Decimal("20000")
        assert [b["name"] for b in payslip["benefits"]] == ["Rice Allowance"]
        assert [d["name"] for d in payslip["deductions"]] == ["SSS"]
        assert payslip["net_pay"] == Decimal("20500")

    async def test_payslip_wrong_period(self, service, hr_source, actor):
        period = await processed_period(service, hr_source, actor)
        other = await service.create(
            PeriodCreate(date(2026, 2, 1), date(2026, 2, 15), "2026-02A"), actor
        )
        [employee] = (await service.get_detail(period.id)).employees

        with pytest.raises(NotFoundError):
            await service.get_payslip(other.id, employee.payroll.id)
