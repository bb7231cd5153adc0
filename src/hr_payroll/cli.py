"""HR payroll command line interface.

Provides operational tools for:
- The daily probation transition batch (run by the scheduler)
- Payroll generation for one employment and month, or many at once
- Probation history lookup

Usage:
    hr-payroll process-transitions --as-of 2025-08-15
    hr-payroll process-transitions --employment ID --dry-run
    hr-payroll generate-payroll --employment ID --period 2025-08
    hr-payroll generate-payroll-bulk --period 2025-08 --employment ID --employment ID
    hr-payroll probation-history --employment ID
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import date
from typing import Any, Awaitable, Callable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hr_payroll.calculators.types import PayPeriod
from hr_payroll.config import Settings, get_settings
from hr_payroll.database import dispose_db, init_db
from hr_payroll.errors import EmploymentNotFoundError, PayrollCoreError
from hr_payroll.events import EventEmitter, LoggingEventHandler
from hr_payroll.models import Employment
from hr_payroll.services.payroll_service import BulkPayrollRunner, PayrollService
from hr_payroll.services.probation_service import ProbationTracker
from hr_payroll.services.transition_service import TransitionProcessor

logger = logging.getLogger(__name__)


def parse_date(s: str) -> date:
    """Parse ISO date string."""
    try:
        return date.fromisoformat(s)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid date {s!r}, expected YYYY-MM-DD")


def parse_uuid(s: str) -> UUID:
    """Parse UUID string."""
    try:
        return UUID(s)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid id {s!r}")


def parse_period(s: str) -> PayPeriod:
    """Parse YYYY-MM pay period."""
    try:
        return PayPeriod.parse(s)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


class HRPayrollCli:
    """Command line interface over the transition processor and payroll generator."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        settings: Settings | None = None,
        emitter: EventEmitter | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._session_factory = session_factory
        if emitter is None:
            emitter = EventEmitter()
            emitter.on_all(LoggingEventHandler())
        self.emitter = emitter
        self.parser = self._build_parser()

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            _, self._session_factory = init_db()
        return self._session_factory

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="hr-payroll",
            description="Probation transition and payroll tools",
        )
        parser.add_argument(
            "--json",
            action="store_true",
            help="Print results as JSON",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        # process-transitions command
        transitions = subparsers.add_parser(
            "process-transitions",
            help="Pass every employment whose probation completes on the given day",
        )
        transitions.add_argument(
            "--as-of",
            type=parse_date,
            default=None,
            help="Business date (default: today)",
        )
        transitions.add_argument(
            "--employment",
            type=parse_uuid,
            action="append",
            dest="employments",
            help="Only process this employment (repeatable)",
        )
        transitions.add_argument(
            "--dry-run",
            action="store_true",
            help="List ready employments without changing anything",
        )
        transitions.add_argument(
            "--concurrency",
            type=int,
            default=None,
            help="Employments processed in parallel (default: $TRANSITION_CONCURRENCY)",
        )

        # generate-payroll command
        payroll = subparsers.add_parser(
            "generate-payroll",
            help="Generate payroll records for one employment and month",
        )
        payroll.add_argument("--employment", type=parse_uuid, required=True)
        payroll.add_argument(
            "--period",
            type=parse_period,
            required=True,
            help="Pay period as YYYY-MM",
        )
        payroll.add_argument(
            "--recalculate",
            action="store_true",
            help="Replace records generated from different inputs",
        )

        # generate-payroll-bulk command
        bulk = subparsers.add_parser(
            "generate-payroll-bulk",
            help="Generate one month's payroll for several employments",
        )
        bulk.add_argument(
            "--period",
            type=parse_period,
            required=True,
            help="Pay period as YYYY-MM",
        )
        bulk.add_argument(
            "--employment",
            type=parse_uuid,
            action="append",
            dest="employments",
            required=True,
            help="Employment to pay (repeatable)",
        )
        bulk.add_argument(
            "--recalculate",
            action="store_true",
            help="Replace records generated from different inputs",
        )
        bulk.add_argument(
            "--concurrency",
            type=int,
            default=None,
            help="Employments processed in parallel (default: $PAYROLL_CONCURRENCY)",
        )

        # probation-history command
        history = subparsers.add_parser(
            "probation-history",
            help="Show the probation log of an employment",
        )
        history.add_argument("--employment", type=parse_uuid, required=True)

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        return asyncio.run(self._run_and_dispose(args))

    async def _run_and_dispose(self, args: list[str] | None) -> int:
        try:
            return await self.run_async(args)
        finally:
            await dispose_db()

    async def run_async(self, args: list[str] | None = None) -> int:
        """Parse arguments and dispatch to a command handler."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        handlers: dict[str, Callable[[argparse.Namespace], Awaitable[int]]] = {
            "process-transitions": self._cmd_process_transitions,
            "generate-payroll": self._cmd_generate_payroll,
            "generate-payroll-bulk": self._cmd_generate_payroll_bulk,
            "probation-history": self._cmd_probation_history,
        }

        handler = handlers.get(parsed.command)
        if handler is None:
            print(f"Unknown command: {parsed.command}", file=sys.stderr)
            return 1

        try:
            return await handler(parsed)
        except PayrollCoreError as e:
            print(f"ERROR [{e.code}]: {e}", file=sys.stderr)
            return 1

    async def _cmd_process_transitions(self, args: argparse.Namespace) -> int:
        """Run the probation transition batch."""
        processor = TransitionProcessor(
            self.session_factory,
            self.settings,
            self.emitter,
            concurrency=args.concurrency,
        )
        summary = await processor.process_transitions(
            args.as_of or date.today(),
            employment_ids=args.employments,
            dry_run=args.dry_run,
        )

        if args.json:
            _print_json(summary.to_dict())
        else:
            label = " [DRY RUN]" if summary.dry_run else ""
            print(f"Probation transitions for {summary.as_of.isoformat()}{label}")
            print(f"  Ready:     {summary.found}")
            print(f"  Processed: {summary.processed}")
            print(f"  Skipped:   {summary.skipped}")
            print(f"  Failed:    {summary.failed}")
            for outcome in summary.details:
                print(f"    {outcome.employment_id}  {outcome.status}")
            if summary.errors:
                print("\nErrors:")
                for error in summary.errors:
                    print(f"  - {error}")

        return 0 if summary.success else 1

    async def _cmd_generate_payroll(self, args: argparse.Namespace) -> int:
        """Generate payroll for one employment and month."""
        async with self.session_factory() as session:
            with self.emitter.batch() as events:
                async with session.begin():
                    result = await PayrollService(
                        session, self.settings, self.emitter
                    ).generate_payroll(
                        args.employment,
                        args.period,
                        recalculate=args.recalculate,
                        events=events,
                    )

        if args.json:
            _print_json(
                {
                    "employment_id": str(result.employment_id),
                    "pay_period": result.period.label,
                    "calculation_id": str(result.calculation_id),
                    "created": result.created,
                    "recalculated": result.recalculated,
                    "records": [r.to_dict() for r in result.records],
                }
            )
        else:
            state = "created" if result.created else "unchanged"
            print(f"Payroll {result.period.label} for employment {result.employment_id}: {state}")
            print(f"  Calculation ID: {result.calculation_id}")
            for record in result.records:
                print(
                    f"  allocation {record.funding_allocation_id}  fte {record.fte}  "
                    f"gross {record.gross_salary_by_fte}  tax {record.income_tax}  "
                    f"net {record.net_salary}"
                )
            print(f"  Total net: {result.total_net}")
        return 0

    async def _cmd_generate_payroll_bulk(self, args: argparse.Namespace) -> int:
        """Generate a month's payroll for several employments, one transaction each."""
        runner = BulkPayrollRunner(
            self.session_factory,
            self.settings,
            self.emitter,
            concurrency=args.concurrency,
        )
        summary = await runner.generate_bulk(
            args.employments, args.period, recalculate=args.recalculate
        )

        if args.json:
            _print_json(summary.to_dict())
        else:
            print(f"Payroll run for {summary.period.label}")
            print(f"  Requested: {summary.requested}")
            print(f"  Created:   {summary.created}")
            print(f"  Unchanged: {summary.unchanged}")
            print(f"  Failed:    {summary.failed}")
            for outcome in summary.details:
                print(f"    {outcome.employment_id}  {outcome.status}")
            print(f"  Total net: {summary.total_net}")
            if summary.errors:
                print("\nErrors:")
                for error in summary.errors:
                    print(f"  - {error}")

        return 0 if summary.success else 1

    async def _cmd_probation_history(self, args: argparse.Namespace) -> int:
        """Print the probation log of an employment."""
        async with self.session_factory() as session:
            if await session.get(Employment, args.employment) is None:
                raise EmploymentNotFoundError(args.employment)
            history = await ProbationTracker(session).get_history(args.employment)

        if args.json:
            _print_json(
                {
                    "employment_id": str(history.employment_id),
                    "current_status": history.current_status,
                    "total_extensions": history.total_extensions,
                    "original_end_date": history.original_end_date,
                    "current_end_date": history.current_end_date,
                    "can_extend": history.can_extend,
                    "records": [r.to_dict() for r in history.records],
                }
            )
            return 0

        print(f"Probation history for employment {history.employment_id}")
        print(f"  Status:        {history.current_status or 'none'}")
        print(f"  Extensions:    {history.total_extensions}")
        print(f"  Original end:  {history.original_end_date}")
        print(f"  Current end:   {history.current_end_date}")
        for record in history.records:
            marker = "*" if record.is_current else " "
            print(
                f"  {marker} {record.event_date}  {record.event_type:<9}  "
                f"until {record.probation_end_date}  {record.decision_reason or ''}".rstrip()
            )
        return 0


def main() -> int:
    """CLI entry point."""
    cli = HRPayrollCli()
    logging.basicConfig(
        level=cli.settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
