"""Command-line entry point for SubTrack."""

from __future__ import annotations

import argparse
import json
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from subtrack.core import AppSettings, configure_logging, load_app_settings
from subtrack.core.models import RawEmail, ScanError, ScanReport
from subtrack.ingestion import GmailMessageParser, Rfc822Parser, SubscriptionScanner
from subtrack.intelligence import categorize
from subtrack.storage import SqliteSubscriptionRepository


def build_parser() -> argparse.ArgumentParser:
    """Create and configure the CLI argument parser."""
    parser = argparse.ArgumentParser(description="SubTrack subscription detector")
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Path to a .env file containing configuration overrides.",
    )
    parser.add_argument(
        "command",
        nargs="?",
        default="info",
        choices=["info", "scan", "categorize"],
        help="Operation to execute.",
    )
    parser.add_argument(
        "targets",
        nargs="*",
        help=(
            "For scan: .eml files or Gmail API JSON exports. "
            "For categorize: service names."
        ),
    )
    parser.add_argument(
        "--user-id",
        dest="user_id",
        default=None,
        help="Skip services this user already tracks (scan only).",
    )
    parser.add_argument(
        "--save",
        action="store_true",
        help="Import the detections for --user-id after scanning.",
    )
    return parser


def execute(args: argparse.Namespace, settings: AppSettings) -> int:
    """Execute the requested CLI command and return the exit status."""
    command = args.command
    if command == "info":
        classifier = SubscriptionScanner(settings).active_classifier()
        print("SubTrack is ready. Set SUBTRACK_ORACLE__API_KEY to enable the LLM.")
        print(f"Classifier: {classifier.provider_id}")
        print(f"Database path: {settings.storage.db_path}")
        return 0
    if command == "categorize":
        if not args.targets:
            print("Provide at least one service name.")
            return 2
        for name in args.targets:
            print(f"{name}: {categorize(name)}")
        return 0
    return _run_scan(settings, args.targets, user_id=args.user_id, save=args.save)


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = load_app_settings(env_file=args.env_file)
    configure_logging(settings.logging)
    return execute(args, settings)


def load_messages(paths: Sequence[Path]) -> tuple[list[RawEmail], list[ScanError]]:
    """Read ``.eml`` files and Gmail API JSON exports into raw emails.

    Malformed JSON message resources are returned as errors instead.
    """
    rfc822 = Rfc822Parser()
    gmail = GmailMessageParser()
    messages: list[RawEmail] = []
    failures: list[ScanError] = []
    for path in paths:
        if path.suffix.lower() == ".json":
            parsed, skipped = gmail.parse_each(_json_messages(path))
            messages.extend(parsed)
            failures.extend(skipped)
        else:
            messages.append(rfc822.parse(path.read_bytes(), message_id=path.name))
    return messages, failures


def _json_messages(path: Path) -> list[dict[str, Any]]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict) and "messages" in data:
        data = data["messages"]
    if isinstance(data, dict):
        return [data]
    return list(data)


def _run_scan(
    settings: AppSettings,
    targets: Sequence[str],
    *,
    user_id: str | None,
    save: bool,
) -> int:
    """Classify local message exports and print the detections."""
    if not targets:
        print("Provide at least one .eml or .json file to scan.")
        return 2
    if save and not user_id:
        print("--save requires --user-id.")
        return 2
    try:
        messages, parse_errors = load_messages([Path(target) for target in targets])
    except (OSError, ValueError) as exc:
        print(f"Could not read messages: {exc}")
        return 1

    scanner = SubscriptionScanner(settings)
    if user_id is None:
        report = scanner.scan(messages)
        report.errors = [*parse_errors, *report.errors]
        _print_report(report)
        return 0

    with SqliteSubscriptionRepository(settings.storage) as repository:
        report = scanner.scan(messages, repository.active_service_names(user_id))
        report.errors = [*parse_errors, *report.errors]
        _print_report(report)
        if save:
            imported = repository.import_scan(
                user_id, report.detected_subscriptions, report.cancellations
            )
            print(
                f"Imported {len(imported.imported)} subscription(s), "
                f"cancelled {len(imported.cancelled)}."
            )
            for error in imported.errors:
                print(f"  ! {error}")
    return 0


def _print_report(report: ScanReport) -> None:
    print(
        f"Processed {report.total_processed} message(s): "
        f"{len(report.detected_subscriptions)} subscription(s), "
        f"{len(report.cancellations)} cancellation(s), "
        f"{report.existing_count} already tracked."
    )
    if report.detected_subscriptions:
        header = f"{'Service':<24}  {'Amount':>10}  {'Cur':<3}  {'Renews':<10}  Category"
        print(header)
        print("-" * len(header))
        for candidate in report.detected_subscriptions:
            renews = candidate.next_renewal_date.isoformat()
            print(
                f"{candidate.service_name:<24}  {candidate.amount:>10}  "
                f"{candidate.currency:<3}  {renews:<10}  {candidate.category}"
            )
    for cancellation in report.cancellations:
        print(f"Cancelled: {cancellation.service_name} ({cancellation.source_subject})")
    for error in report.errors:
        print(f"Error: {error.subject or error.message_id}: {error.reason}")


if __name__ == "__main__":
    raise SystemExit(main())
