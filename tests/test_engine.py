"""Unit tests for PayrollEngine run validation and orchestration."""

from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from ph_payroll.calculators.engine import PayrollEngine, StatutoryVersionNotFoundError
from ph_payroll.calculators.runners import (
    MissingStatutoryTableError,
    MonthlyRunner,
    RunCancelledError,
    SemiMonthlyRunner,
    SpecialRunner,
)
from ph_payroll.calculators.types import PeriodPart, RunRequest

REQUEST = RunRequest(date_from=date(2025, 1, 1), date_to=date(2025, 1, 15), part=PeriodPart.A)


class TestStatutoryVersionValidation:
    """The run aborts before any employee is computed."""

    def test_no_tables(self, config, make_employee):
        with pytest.raises(StatutoryVersionNotFoundError) as exc_info:
            PayrollEngine(config).run(REQUEST, [make_employee()], [], None)
        assert exc_info.value.as_of_date == date(2025, 1, 15)

    def test_unpublished_version(self, config, tables, make_employee):
        draft = replace(tables, status="DRAFT")
        with pytest.raises(StatutoryVersionNotFoundError) as exc_info:
            PayrollEngine(config).run(REQUEST, [make_employee()], [], draft)
        assert "DRAFT" in exc_info.value.reason

    def test_version_not_effective(self, config, tables, make_employee):
        request = RunRequest(date_from=date(2026, 1, 1), date_to=date(2026, 1, 15), part=PeriodPart.A)
        with pytest.raises(StatutoryVersionNotFoundError):
            PayrollEngine(config).run(request, [make_employee()], [], tables)

    def test_missing_tax_table(self, config, tables, make_employee):
        """An absent table differs from an empty one: it aborts the run."""
        without_bir = replace(tables, tax_brackets=None)
        with pytest.raises(MissingStatutoryTableError) as exc_info:
            PayrollEngine(config).run(REQUEST, [make_employee()], [], without_bir)
        assert exc_info.value.table == "BIR"
        assert exc_info.value.version_id == "PH-2025"

    def test_missing_table_allowed_when_not_needed(self, config, tables, make_employee):
        request = RunRequest(
            date_from=date(2025, 1, 1), date_to=date(2025, 1, 15), part=PeriodPart.A, compute_tax=False
        )
        result = PayrollEngine(config).run(request, [make_employee()], [], replace(tables, tax_brackets=None))
        assert result.rows[0].withholding_tax == Decimal("0")

    def test_empty_tables_degrade_with_warnings(self, config, tables, make_employee):
        empty = replace(tables, tax_brackets=[], sss_brackets=[])
        result = PayrollEngine(config).run(REQUEST, [make_employee()], [], empty)

        codes = {w.code for w in result.warnings}
        assert {"sss_table_empty", "bir_table_empty"} <= codes
        assert all(w.employee_code == "E001" for w in result.warnings)
        assert result.rows[0].statutory.sss_ee == Decimal("0")


class TestRunnerSelection:
    """Each period part maps to one runner."""

    @pytest.mark.parametrize(
        "part, runner_class",
        [
            (PeriodPart.A, SemiMonthlyRunner),
            (PeriodPart.B, SemiMonthlyRunner),
            (PeriodPart.MONTHLY, MonthlyRunner),
            (PeriodPart.SPECIAL, SpecialRunner),
        ],
    )
    def test_runner_for(self, config, tables, part, runner_class):
        runner = PayrollEngine(config).runner_for(part, tables)
        assert isinstance(runner, runner_class)
        assert runner.part == part


class TestProgressAndCancellation:
    """Caller hooks around the employee loop."""

    def test_progress_reported_from_zero_to_hundred(self, config, tables, make_employee):
        reports = []
        employees = [make_employee(f"E{i:03d}") for i in range(12)]
        PayrollEngine(config).run(REQUEST, employees, [], tables, progress=lambda p, m: reports.append(p))

        assert reports[0] == 0
        assert reports[-1] == 100
        assert reports == sorted(reports)
        assert len(reports) == 4

    def test_failing_progress_callback_does_not_abort(self, config, tables, make_employee):
        def callback(percent, message):
            raise RuntimeError("listener went away")

        result = PayrollEngine(config).run(REQUEST, [make_employee()], [], tables, progress=callback)
        assert result.total_employees == 1

    def test_cancellation_between_employees(self, config, tables, make_employee):
        calls = []

        def should_cancel():
            calls.append(1)
            return len(calls) > 2

        employees = [make_employee(f"E{i:03d}") for i in range(5)]
        with pytest.raises(RunCancelledError) as exc_info:
            PayrollEngine(config).run(REQUEST, employees, [], tables, should_cancel=should_cancel)
        assert exc_info.value.processed == 2
        assert exc_info.value.total == 5

    def test_inputs_not_mutated(self, config, tables, make_employee):
        employee = make_employee(dynamic_fields={"Allowance": Decimal("1000")})
        before = replace(employee, dynamic_fields=dict(employee.dynamic_fields))
        PayrollEngine(config).run(REQUEST, [employee], [], tables)
        assert employee == before
