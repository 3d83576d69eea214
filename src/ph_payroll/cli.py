"""Payroll Command Line Interface.

Computes runs, annualizations and final pay from JSON documents shaped like
the API request bodies.

Usage:
    python -m ph_payroll.cli compute --input run.json --output result.json
    python -m ph_payroll.cli annualize --input year.json
    python -m ph_payroll.cli pre-annualize --input projection.json
    python -m ph_payroll.cli final-pay --input separation.json --use-db --post
    python -m ph_payroll.cli load-statutory --input tables-2025.json

Exit codes: 0 success, 1 computation aborted, 2 invalid input.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Callable

from pydantic import BaseModel, TypeAdapter, ValidationError

from ph_payroll.api.schemas import (
    AnnualizationPayload,
    AnnualSummaryResponse,
    ComputeRunPayload,
    FinalPayPayload,
    FinalPayResponse,
    PreAnnualizationPayload,
    PreAnnualizationResponse,
    RowResponse,
    RunResponse,
    StatutoryTablesSchema,
)
from ph_payroll.calculators.engine import StatutoryVersionNotFoundError
from ph_payroll.calculators.rate_resolver import RateNotFoundError
from ph_payroll.calculators.runners import MissingStatutoryTableError, RunCancelledError
from ph_payroll.calculators.types import InvalidRunRequestError, UnknownEmployeeError
from ph_payroll.config import PayrollConfig, configure_logging
from ph_payroll.database import create_schema, dispose_db, get_session
from ph_payroll.services.payroll_service import PayrollService
from ph_payroll.services.statutory_versions import StatutoryVersionResolver

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INVALID_INPUT = 2

_ABORTS = (
    StatutoryVersionNotFoundError,
    MissingStatutoryTableError,
    UnknownEmployeeError,
    RateNotFoundError,
    RunCancelledError,
)


class InputError(Exception):
    """Raised when the input document cannot be read or validated."""


class PayrollCli:
    """Payroll Command Line Interface."""

    def __init__(self) -> None:
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="python -m ph_payroll.cli",
            description="Philippine payroll computation",
        )
        parser.add_argument(
            "--log-level",
            type=str,
            default=None,
            help="Logging level (default: LOG_LEVEL or INFO)",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        for name, help_text in (
            ("compute", "Compute one payroll run"),
            ("annualize", "Year-end annualization"),
            ("pre-annualize", "Mid-year tax projection"),
            ("final-pay", "Final pay at separation"),
        ):
            sub = subparsers.add_parser(name, help=help_text)
            sub.add_argument(
                "--input",
                type=str,
                required=True,
                help="Input JSON file, or - for stdin",
            )
            sub.add_argument(
                "--output",
                type=str,
                help="Output JSON file (default: stdout)",
            )
            sub.add_argument(
                "--use-db",
                action="store_true",
                help="Resolve missing statutory tables and history from DATABASE_URL",
            )
            if name in ("compute", "final-pay"):
                sub.add_argument(
                    "--post",
                    action="store_true",
                    help="Record computed rows in payroll history (requires --use-db)",
                )

        load = subparsers.add_parser(
            "load-statutory",
            help="Store a statutory version in the database",
        )
        load.add_argument(
            "--input",
            type=str,
            required=True,
            help="Statutory version JSON file, or - for stdin",
        )

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return EXIT_INVALID_INPUT

        configure_logging(parsed.log_level)

        # Dispatch to command handler
        handlers: dict[str, Callable[[argparse.Namespace], Any]] = {
            "compute": self._cmd_compute,
            "annualize": self._cmd_annualize,
            "pre-annualize": self._cmd_pre_annualize,
            "final-pay": self._cmd_final_pay,
            "load-statutory": self._cmd_load_statutory,
        }
        handler = handlers[parsed.command]

        if getattr(parsed, "post", False) and not parsed.use_db:
            print("--post requires --use-db", file=sys.stderr)
            return EXIT_INVALID_INPUT

        try:
            output = asyncio.run(self._execute(handler, parsed))
        except (InputError, InvalidRunRequestError, ValueError) as e:
            print(f"Invalid input: {e}", file=sys.stderr)
            return EXIT_INVALID_INPUT
        except _ABORTS as e:
            logger.error("%s aborted: %s", parsed.command, e)
            print(f"Error: {e}", file=sys.stderr)
            return EXIT_FAILED

        self._write(output, getattr(parsed, "output", None))
        return EXIT_OK

    @staticmethod
    async def _execute(handler: Callable, args: argparse.Namespace) -> bytes:
        try:
            return await handler(args)
        finally:
            await dispose_db()

    @staticmethod
    def _load(path: str, schema: type[BaseModel]) -> Any:
        try:
            if path == "-":
                raw = sys.stdin.read()
            else:
                with open(path, encoding="utf-8") as f:
                    raw = f.read()
            return schema.model_validate(json.loads(raw))
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            raise InputError(str(e)) from e

    @staticmethod
    def _write(document: bytes, path: str | None) -> None:
        if path:
            with open(path, "wb") as f:
                f.write(document)
            print(f"Wrote {path}", file=sys.stderr)
        else:
            sys.stdout.write(document.decode("utf-8") + "\n")

    @staticmethod
    async def _with_service(args: argparse.Namespace, config: PayrollConfig, work: Callable) -> Any:
        if not args.use_db:
            return await work(PayrollService(config))
        await create_schema()
        async with get_session() as session:
            return await work(PayrollService(config, session))

    async def _cmd_compute(self, args: argparse.Namespace) -> bytes:
        """Compute one run."""
        payload: ComputeRunPayload = self._load(args.input, ComputeRunPayload)

        async def work(service: PayrollService):
            return await service.compute_run(
                payload.run.to_domain(),
                [e.to_domain() for e in payload.employees],
                [a.to_domain() for a in payload.adjustments],
                tables=payload.statutory.to_domain() if payload.statutory else None,
                history=[r.to_domain() for r in payload.history] if payload.history is not None else None,
                recurring=[r.to_domain() for r in payload.recurring],
                attendance=[a.to_domain() for a in payload.attendance],
                post=args.post,
            )

        result = await self._with_service(args, payload.config.to_config(), work)
        print(
            f"Computed {result.period_label}: {result.total_employees} employees, "
            f"{len(result.warnings)} warnings",
            file=sys.stderr,
        )
        return RunResponse.from_result(result).model_dump_json(indent=2).encode("utf-8")

    async def _cmd_annualize(self, args: argparse.Namespace) -> bytes:
        """Year-end annualization."""
        payload: AnnualizationPayload = self._load(args.input, AnnualizationPayload)

        async def work(service: PayrollService):
            return await service.annualize(
                payload.year,
                [e.to_domain() for e in payload.employees],
                history=[r.to_domain() for r in payload.history] if payload.history is not None else None,
                tables=payload.statutory.to_domain() if payload.statutory else None,
                previous={code: p.to_domain() for code, p in payload.previous_employers.items()},
            )

        summaries = await self._with_service(args, payload.config.to_config(), work)
        adapter = TypeAdapter(list[AnnualSummaryResponse])
        return adapter.dump_json([AnnualSummaryResponse.model_validate(s) for s in summaries], indent=2)

    async def _cmd_pre_annualize(self, args: argparse.Namespace) -> bytes:
        """Mid-year projection."""
        payload: PreAnnualizationPayload = self._load(args.input, PreAnnualizationPayload)

        async def work(service: PayrollService):
            return await service.pre_annualize(
                payload.as_of,
                [e.to_domain() for e in payload.employees],
                history=[r.to_domain() for r in payload.history] if payload.history is not None else None,
                tables=payload.statutory.to_domain() if payload.statutory else None,
                recurring_extras=payload.recurring_extras,
            )

        projections = await self._with_service(args, payload.config.to_config(), work)
        adapter = TypeAdapter(list[PreAnnualizationResponse])
        return adapter.dump_json([PreAnnualizationResponse.model_validate(p) for p in projections], indent=2)

    async def _cmd_final_pay(self, args: argparse.Namespace) -> bytes:
        """Final pay at separation."""
        payload: FinalPayPayload = self._load(args.input, FinalPayPayload)

        async def work(service: PayrollService):
            return await service.final_pay(
                payload.employee.to_domain(),
                payload.separation_date,
                payload.adjustments(),
                history=[r.to_domain() for r in payload.history] if payload.history is not None else None,
                tables=payload.statutory.to_domain() if payload.statutory else None,
                previous=payload.previous_employer.to_domain() if payload.previous_employer else None,
                post=args.post,
            )

        result = await self._with_service(args, payload.config.to_config(), work)
        response = FinalPayResponse(
            row=RowResponse.from_row(result.row),
            annual=AnnualSummaryResponse.model_validate(result.annual),
            settlement=result.settlement,
        )
        return response.model_dump_json(indent=2).encode("utf-8")

    async def _cmd_load_statutory(self, args: argparse.Namespace) -> bytes:
        """Insert a statutory version and its bracket rows."""
        payload: StatutoryTablesSchema = self._load(args.input, StatutoryTablesSchema)
        tables = payload.to_domain()
        await create_schema()
        async with get_session() as session:
            version = await StatutoryVersionResolver(session).save(tables)
            summary = {
                "version_id": version.version_id,
                "status": version.status,
                "tax_rows": len(version.tax_rows),
                "sss_rows": len(version.sss_rows),
            }
        return json.dumps(summary, indent=2).encode("utf-8")


def main() -> int:
    """CLI entry point."""
    cli = PayrollCli()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
