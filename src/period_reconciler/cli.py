"""Period reconciliation command line interface.

Provides operational tools for:
- Ledger diagnosis
- Automatic and root corrections
- Current period detection
- Post-closure verification

Usage:
    python -m period_reconciler.cli diagnose --company-id X
    python -m period_reconciler.cli repair --company-id X
    python -m period_reconciler.cli root-repair --company-id X --json
    python -m period_reconciler.cli detect --company-id X
    python -m period_reconciler.cli verify-closure --company-id X --period-id Y
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Any
from uuid import UUID

from pydantic import BaseModel

from period_reconciler.api.schemas import (
    ConflictResolutionResponse,
    DetectionResponse,
    DiagnosticResponse,
    PostClosureResponse,
    RootCorrectionResponse,
)
from period_reconciler.calculators.types import Periodicity
from period_reconciler.config import get_settings
from period_reconciler.database import dispose_db, get_session
from period_reconciler.services import PeriodReconciliationService

ServiceFactory = Callable[[], AbstractAsyncContextManager[PeriodReconciliationService]]


def parse_uuid(s: str) -> UUID:
    """Parse UUID string."""
    return UUID(s)


@asynccontextmanager
async def open_service() -> AsyncIterator[PeriodReconciliationService]:
    """Facade over a fresh database session."""
    try:
        async with get_session() as session:
            yield PeriodReconciliationService.for_session(session)
    finally:
        await dispose_db()


class PeriodCli:
    """Period reconciliation Command Line Interface."""

    def __init__(self, service_factory: ServiceFactory = open_service) -> None:
        self.service_factory = service_factory
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="python -m period_reconciler.cli",
            description="Payroll period reconciliation tools",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        commands = {
            "diagnose": "Diagnose the period ledger (read-only)",
            "repair": "Apply automatic corrections",
            "root-repair": "Run the root numbering correction",
            "detect": "Detect the current period status",
            "verify-closure": "Verify a period closure and suggest the next period",
        }
        for name, help_text in commands.items():
            command = subparsers.add_parser(name, help=help_text)
            command.add_argument(
                "--company-id",
                type=parse_uuid,
                required=True,
                help="Company ID to work on",
            )
            command.add_argument(
                "--json",
                action="store_true",
                help="Output as JSON",
            )
            if name in ("diagnose", "repair", "root-repair"):
                command.add_argument(
                    "--periodicity",
                    choices=[p.value for p in Periodicity],
                    help="Override the company periodicity",
                )
            if name == "verify-closure":
                command.add_argument(
                    "--period-id",
                    type=parse_uuid,
                    required=True,
                    help="Period that was just closed",
                )

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        logging.basicConfig(
            level=get_settings().log_level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

        # Dispatch to command handler
        handlers: dict[str, Callable[[argparse.Namespace], Any]] = {
            "diagnose": self._cmd_diagnose,
            "repair": self._cmd_repair,
            "root-repair": self._cmd_root_repair,
            "detect": self._cmd_detect,
            "verify-closure": self._cmd_verify_closure,
        }

        handler = handlers.get(parsed.command)
        if handler is None:
            print(f"Unknown command: {parsed.command}", file=sys.stderr)
            return 1
        return asyncio.run(handler(parsed))

    async def _cmd_diagnose(self, args: argparse.Namespace) -> int:
        """Print a diagnostic report."""
        async with self.service_factory() as service:
            report = await service.run_diagnostic(args.company_id, args.periodicity)

        if args.json:
            return self._emit(DiagnosticResponse.model_validate(report), report.success)

        print(f"Diagnostic for company {args.company_id}")
        print("=" * 40)
        print(f"Periodicity: {report.periodicity}")
        print(f"Periods: {report.total_periods}")
        for state, count in sorted(report.state_distribution.items()):
            print(f"  {state}: {count}")
        print(f"Self-test: {'passed' if report.self_test_passed else 'FAILED'}")
        self._print_list("Issues", report.issues)
        self._print_list("Recommendations", report.recommendations)
        return 0 if report.success else 1

    async def _cmd_repair(self, args: argparse.Namespace) -> int:
        """Apply automatic corrections."""
        async with self.service_factory() as service:
            result = await service.apply_auto_corrections(args.company_id, args.periodicity)

        if args.json:
            return self._emit(ConflictResolutionResponse.model_validate(result), result.success)

        print(result.message)
        print(f"  Duplicates removed: {result.duplicates_removed}")
        print(f"  Periods created:    {result.periods_created}")
        print(f"  Periods updated:    {result.periods_updated}")
        print(f"  Conflicts resolved: {result.conflicts_resolved}")
        self._print_list("Errors", result.errors)
        return 0 if result.success else 1

    async def _cmd_root_repair(self, args: argparse.Namespace) -> int:
        """Run the root correction."""
        async with self.service_factory() as service:
            result = await service.apply_root_correction(args.company_id, args.periodicity)

        if args.json:
            return self._emit(RootCorrectionResponse.model_validate(result), result.success)

        print(result.message)
        for line in result.detailed_log:
            print(f"  {line}")
        self._print_list("Remaining issues", result.issues)
        self._print_list("Errors", result.errors)
        return 0 if result.success else 1

    async def _cmd_detect(self, args: argparse.Namespace) -> int:
        """Detect the current period status."""
        async with self.service_factory() as service:
            result = await service.detect_current_period_status(args.company_id)

        if args.json:
            return self._emit(DetectionResponse.model_validate(result), result.success)

        print(f"Action: {result.action.value}")
        print(result.message)
        if result.suggested_range is not None:
            suggestion = result.suggested_range
            print(
                f"  Suggested: {suggestion.start_date} → {suggestion.end_date} "
                f"(#{suggestion.sequence_number})"
            )
        return 0 if result.success else 1

    async def _cmd_verify_closure(self, args: argparse.Namespace) -> int:
        """Verify a closure and print the next period suggestion."""
        async with self.service_factory() as service:
            result = await service.verify_closure_and_detect_next(
                args.period_id, args.company_id
            )

        if args.json:
            return self._emit(PostClosureResponse.model_validate(result), result.success)

        print(result.message)
        if result.next_period_suggestion is not None:
            suggestion = result.next_period_suggestion
            print(f"  Next: {suggestion.display_name} ({suggestion.start_date} → {suggestion.end_date})")
        if result.error:
            print(f"  Error: {result.error}", file=sys.stderr)
        return 0 if result.success else 1

    @staticmethod
    def _emit(payload: BaseModel, success: bool) -> int:
        print(json.dumps(payload.model_dump(mode="json"), indent=2))
        return 0 if success else 1

    @staticmethod
    def _print_list(title: str, items: list[str]) -> None:
        if not items:
            return
        print(f"\n{title}:")
        for item in items:
            print(f"  - {item}")


def main() -> int:
    """CLI entry point."""
    cli = PeriodCli()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
