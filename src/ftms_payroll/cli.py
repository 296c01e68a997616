"""FTMS payroll command line interface.

Usage:
    ftms-payroll serve
    ftms-payroll init-db
    ftms-payroll process --period-id 12 [--employee-number EMP-001]
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import date
from typing import Callable

from ftms_payroll.config import Settings, get_settings
from ftms_payroll.database import Database
from ftms_payroll.errors import FTMSError
from ftms_payroll.integrations.audit_client import Actor, AuditLogClient
from ftms_payroll.integrations.hr_cache_source import CachedHRPayrollSource
from ftms_payroll.integrations.hr_client import HRPayrollClient
from ftms_payroll.integrations.outbound import OutboundDispatcher
from ftms_payroll.services.payroll_period_service import (
    PayrollPeriodService,
    ProcessRequest,
)

logger = logging.getLogger(__name__)

CLI_ACTOR = Actor(id="system", name="ftms-payroll-cli", role="admin")


class PayrollCli:
    """Operational commands for the payroll service."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings
        self.parser = self._build_parser()

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="ftms-payroll",
            description="FTMS payroll period tools",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        serve = subparsers.add_parser("serve", help="Run the HTTP API with uvicorn")
        serve.add_argument("--host", help="Bind address (default: HOST)")
        serve.add_argument("--port", type=int, help="Port (default: PORT)")

        subparsers.add_parser("init-db", help="Create tables from ORM metadata")

        process = subparsers.add_parser(
            "process",
            help="Sync HR inputs and compute payroll for a period",
        )
        process.add_argument("--period-id", type=int, required=True, help="Payroll period ID")
        process.add_argument("--employee-number", help="Only sync this employee")
        process.add_argument(
            "--start", type=date.fromisoformat, help="Window start (YYYY-MM-DD)"
        )
        process.add_argument("--end", type=date.fromisoformat, help="Window end (YYYY-MM-DD)")

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        logging.basicConfig(
            level=self.settings.log_level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

        handlers: dict[str, Callable[..., int]] = {
            "serve": self._cmd_serve,
            "init-db": self._cmd_init_db,
            "process": self._cmd_process,
        }
        return handlers[parsed.command](parsed)

    def _cmd_serve(self, args: argparse.Namespace) -> int:
        import uvicorn

        from ftms_payroll.api.app import create_app

        uvicorn.run(
            create_app(self.settings),
            host=args.host or self.settings.host,
            port=args.port or self.settings.port,
            log_level=self.settings.log_level.lower(),
        )
        return 0

    def _cmd_init_db(self, args: argparse.Namespace) -> int:
        async def init() -> None:
            database = Database.from_settings(self.settings)
            try:
                await database.create_all()
            finally:
                await database.dispose()

        asyncio.run(init())
        print("Database tables created")
        return 0

    def _cmd_process(self, args: argparse.Namespace) -> int:
        try:
            summary = asyncio.run(self._process(args))
        except FTMSError as e:
            print(f"Error: {e.message}", file=sys.stderr)
            return 1
        print(json.dumps(summary, indent=2, default=str))
        return 0 if not summary["errors"] else 2

    async def _process(self, args: argparse.Namespace) -> dict:
        settings = self.settings
        database = Database.from_settings(settings)
        dispatcher = OutboundDispatcher(session_factory=database.session_factory)
        hr_client = HRPayrollClient.from_settings(settings)
        audit = AuditLogClient.from_settings(settings, dispatcher)
        try:
            async with database.session() as session:
                source = CachedHRPayrollSource(session) if settings.hr_source == "cache" else hr_client
                service = PayrollPeriodService(
                    session, settings, hr_source=source, hr_client=hr_client, audit=audit
                )
                result = await service.process(
                    args.period_id,
                    ProcessRequest(
                        period_start=args.start,
                        period_end=args.end,
                        employee_number=args.employee_number,
                    ),
                    CLI_ACTOR,
                )
            return {
                "payroll_period_id": result.payroll_period_id,
                "status": result.status,
                "outcome": result.outcome,
                "total_processed": result.total_processed,
                "total_attempted": result.total_attempted,
                "total_net": result.total_net,
                "errors": [e.to_dict() for e in result.errors],
            }
        finally:
            await dispatcher.drain()
            await audit.close()
            await hr_client.close()
            await database.dispose()


def main() -> int:
    """CLI entry point."""
    cli = PayrollCli()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
