"""
Command-line interface for the gap alert backend.

Usage:
    gapwatch alerts --status OPEN --page 2
    gapwatch stats
    gapwatch analysis 42
    gapwatch certify 7
    gapwatch escalate 7 --notes "Needs a second look"
    gapwatch breach 7 --notes "Provider outage not covered" --yes
    gapwatch audit 7
    gapwatch watch
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Awaitable, Callable
from dataclasses import replace

import httpx

from gapwatch import __version__
from gapwatch.api.models import AuditLogEntry, GapAlertStats, GapAnalysisResponse
from gapwatch.core.config import AppConfig, get_config
from gapwatch.core.constants import ActionKind, AlertSeverity, AlertStatus, AuditActionType
from gapwatch.core.exceptions import ConfigurationError, RepositoryError
from gapwatch.core.logging import configure_logging, get_logger
from gapwatch.dashboard.alert_list import CHANGE_REFRESHED, AlertFilters, AlertListController
from gapwatch.dashboard.display import (
    alert_type_label,
    format_datetime,
    gap_rows,
    is_row_clickable,
)
from gapwatch.dashboard.lifecycle import AlertLifecycleController, LoadError, OutcomeStatus
from gapwatch.dashboard.scheduler import RefreshScheduler
from gapwatch.repository.client import AlertRepository

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1

STATUS_CHOICES = [s.value for s in AlertStatus]
SEVERITY_CHOICES = [s.value for s in AlertSeverity]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gapwatch",
        description="Browse and validate vehicle data-collection gap alerts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Open alerts, second page
  gapwatch alerts --status OPEN --page 2

  # Inspect the gap analysis of a report
  gapwatch analysis 42

  # Certify the gaps of alert 7
  gapwatch certify 7

  # Keep the list refreshed in the terminal
  gapwatch watch
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", type=str, help="Path to a JSON config file")
    parser.add_argument("--api-url", type=str, help="Backend base URL (overrides config)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    parser.add_argument("--json-logs", action="store_true", help="JSON-formatted log lines")

    sub = parser.add_subparsers(dest="command", required=True)

    alerts = sub.add_parser("alerts", help="List one page of alerts")
    alerts.add_argument("--page", type=int, default=1, help="1-indexed page (default: 1)")
    alerts.add_argument("--status", choices=STATUS_CHOICES, help="Filter by status")
    alerts.add_argument("--severity", choices=SEVERITY_CHOICES, help="Filter by severity")

    sub.add_parser("stats", help="Show alert counts")

    analysis = sub.add_parser("analysis", help="Show the gap analysis of a report")
    analysis.add_argument("report_id", type=int)

    certify = sub.add_parser("certify", help="Certify the gaps of an alert")
    certify.add_argument("alert_id", type=int)

    escalate = sub.add_parser("escalate", help="Escalate an alert for second-level review")
    escalate.add_argument("alert_id", type=int)
    escalate.add_argument("--notes", type=str, default="", help="Reviewer notes")

    breach = sub.add_parser("breach", help="Declare a contract breach for an alert")
    breach.add_argument("alert_id", type=int)
    breach.add_argument("--notes", type=str, default="", help="Breach notes")
    breach.add_argument("--yes", "-y", action="store_true", help="Skip the confirmation prompt")

    audit = sub.add_parser("audit", help="Show the audit trail of an alert")
    audit.add_argument("alert_id", type=int)

    watch = sub.add_parser("watch", help="Refresh the alert list periodically")
    watch.add_argument("--count", type=int, help="Stop after N refreshes (default: run forever)")

    return parser


def load_config(args: argparse.Namespace) -> AppConfig:
    """Resolve configuration from --config or the standard search, then --api-url."""
    config = AppConfig.from_file(args.config) if args.config else get_config()
    if args.api_url:
        config = replace(config, backend=replace(config.backend, base_url=args.api_url))
    return config


# =============================================================================
# Output
# =============================================================================


def print_alerts(controller: AlertListController) -> None:
    alerts = controller.alerts
    print(
        f"Page {controller.current_page}/{max(1, controller.total_pages)} "
        f"({controller.total_count} alerts)"
    )
    if not alerts:
        print("  No alerts found")
        return
    for alert in alerts:
        marker = "*" if is_row_clickable(alert) else " "
        print(
            f" {marker} #{alert.id:<6} {alert.severity.value:<8} {alert.status.value:<16} "
            f"{alert_type_label(alert.alert_type):<20} {alert.vin or '-':<18} "
            f"{alert.company_name or '-':<20} {format_datetime(alert.detected_at)}"
        )
    print("  (* = can be validated)")


def print_stats(stats: GapAlertStats) -> None:
    print(f"Total alerts:     {stats.total_alerts}")
    for status in (AlertStatus.OPEN, AlertStatus.ESCALATED, AlertStatus.COMPLETED, AlertStatus.CONTRACT_BREACH):
        print(f"  {status.value:<16}{stats.count_for_status(status)}")
    for severity in AlertSeverity:
        print(f"  {severity.value:<16}{stats.count_for_severity(severity)}")


def print_analysis(analysis: GapAnalysisResponse) -> None:
    print(f"Report {analysis.report_id}: {analysis.vehicle_vin or '-'} ({analysis.company_name or '-'})")
    print(f"Period: {format_datetime(analysis.period_start)} - {format_datetime(analysis.period_end)}")
    if not analysis.has_gaps:
        print(analysis.message or "No gaps found in this report")
        return

    summary = analysis.summary
    print(f"Gaps: {analysis.total_gaps}, average confidence {analysis.average_confidence:.1f}%")
    print(
        f"  high {summary.high_confidence}  medium {summary.medium_confidence}  "
        f"low {summary.low_confidence}"
    )
    if analysis.outages.has_outages:
        outages = analysis.outages
        print(
            f"Outages: {outages.total}, {outages.gaps_affected} gaps affected "
            f"({outages.gaps_affected_percentage:.1f}%), downtime {outages.downtime_label}"
        )
    for row in gap_rows(analysis):
        badge = f" [{row.outage.label}]" if row.outage else ""
        failure = " [technical failure]" if row.technical_failure else ""
        print(f"  {row.timestamp}  {row.confidence_text:>6} {row.band.value:<6}{badge}{failure}")
        if row.justification:
            print(f"      {row.justification}")


def print_audit(entries: list[AuditLogEntry]) -> None:
    if not entries:
        print("No audit entries")
        return
    for entry in entries:
        action = entry.action_type.value if isinstance(entry.action_type, AuditActionType) else entry.action_type
        print(f"  {format_datetime(entry.action_at)}  {action:<16} {entry.action_by or '-'}")
        if entry.action_notes:
            print(f"      {entry.action_notes}")


# =============================================================================
# Commands
# =============================================================================


async def cmd_alerts(args: argparse.Namespace, controller: AlertListController) -> int:
    filters = AlertFilters.from_values(args.status, args.severity)
    if await controller.fetch_alerts(args.page, filters) is None:
        print(f"Error: {_last_error(controller)}", file=sys.stderr)
        return EXIT_FAILURE
    print_alerts(controller)
    return EXIT_OK


async def cmd_stats(args: argparse.Namespace, controller: AlertListController) -> int:
    stats = await controller.fetch_stats()
    if stats is None:
        print(f"Error: {_last_error(controller)}", file=sys.stderr)
        return EXIT_FAILURE
    print_stats(stats)
    return EXIT_OK


async def cmd_analysis(args: argparse.Namespace, repository: AlertRepository) -> int:
    try:
        analysis = await repository.fetch_analysis(args.report_id)
    except RepositoryError as e:
        print(f"Error: {e.operator_message}", file=sys.stderr)
        return EXIT_FAILURE
    print_analysis(analysis)
    return EXIT_OK


async def cmd_audit(args: argparse.Namespace, repository: AlertRepository) -> int:
    try:
        entries = await repository.fetch_audit_log(args.alert_id)
    except RepositoryError as e:
        print(f"Error: {e.operator_message}", file=sys.stderr)
        return EXIT_FAILURE
    print_audit(entries)
    return EXIT_OK


async def cmd_action(
    args: argparse.Namespace,
    repository: AlertRepository,
    controller: AlertListController,
    action: ActionKind,
) -> int:
    """Run one action through the full validation workflow of an alert."""
    try:
        alert = await repository.fetch_alert(args.alert_id)
    except RepositoryError as e:
        print(f"Error: {e.operator_message}", file=sys.stderr)
        return EXIT_FAILURE

    lifecycle = controller.open_validation(alert)
    if lifecycle is None:
        print(
            f"Error: alert {alert.id} cannot be validated (status {alert.status.value})",
            file=sys.stderr,
        )
        return EXIT_FAILURE

    state = await lifecycle.open()
    if isinstance(state, LoadError):
        print(f"Error: {state.message}", file=sys.stderr)
        return EXIT_FAILURE
    if lifecycle.analysis is not None:
        print_analysis(lifecycle.analysis)

    outcome = await _dispatch(lifecycle, action, getattr(args, "notes", ""))
    if outcome.status is OutcomeStatus.CANCELLED:
        print("Cancelled")
        return EXIT_OK
    if not outcome.succeeded:
        print(f"Error: {outcome.message}", file=sys.stderr)
        return EXIT_FAILURE

    print(f"{action.value} accepted (HTTP {outcome.status_code})")
    return EXIT_OK


async def _dispatch(lifecycle: AlertLifecycleController, action: ActionKind, notes: str):
    if action is ActionKind.CERTIFY:
        return await lifecycle.certify()
    if action is ActionKind.ESCALATE:
        return await lifecycle.escalate(notes)
    return await lifecycle.breach(notes)


async def cmd_watch(args: argparse.Namespace, controller: AlertListController) -> int:
    done = asyncio.Event()
    refreshes = 0

    def on_change(change: str) -> None:
        nonlocal refreshes
        if change != CHANGE_REFRESHED:
            return
        refreshes += 1
        print_alerts(controller)
        if args.count and refreshes >= args.count:
            done.set()

    controller.subscribe(on_change)
    scheduler = RefreshScheduler(controller)
    await scheduler.start()
    try:
        await done.wait()
    finally:
        await scheduler.stop()
    return EXIT_OK


def _last_error(controller: AlertListController) -> str:
    errors = controller.events.errors()
    return errors[-1].message if errors else "unknown error"


async def _confirm_on_terminal(report_id: int, notes: str | None) -> bool:
    # input() blocks, so it runs in a worker thread while the loop keeps going
    answer = await asyncio.to_thread(input, f"Declare a contract breach for report {report_id}? [y/N] ")
    return answer.strip().lower() in ("y", "yes")


async def run(
    args: argparse.Namespace,
    config: AppConfig,
    transport: httpx.AsyncBaseTransport | None = None,
    confirm_breach: Callable[[int, str | None], Awaitable[bool] | bool] | None = None,
) -> int:
    """Execute a parsed command against the backend."""
    if confirm_breach is None:
        confirm_breach = (lambda report_id, notes: True) if getattr(args, "yes", False) else _confirm_on_terminal

    async with AlertRepository(config=config.backend, transport=transport) as repository:
        controller = AlertListController(
            repository,
            config=config.dashboard,
            confirm_breach=confirm_breach,
            send_idempotency_key=config.backend.send_idempotency_key,
        )
        if args.command == "alerts":
            return await cmd_alerts(args, controller)
        if args.command == "stats":
            return await cmd_stats(args, controller)
        if args.command == "analysis":
            return await cmd_analysis(args, repository)
        if args.command == "audit":
            return await cmd_audit(args, repository)
        if args.command == "watch":
            return await cmd_watch(args, controller)
        return await cmd_action(args, repository, controller, ActionKind(args.command))


def main(argv: list[str] | None = None, transport: httpx.AsyncBaseTransport | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=args.verbose, json_format=args.json_logs)

    try:
        config = load_config(args)
    except (ConfigurationError, OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE

    try:
        return asyncio.run(run(args, config, transport=transport))
    except KeyboardInterrupt:
        return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
