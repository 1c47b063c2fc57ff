"""Command-line entry point for the triage engine."""

from __future__ import annotations

import argparse
import json
from collections.abc import Sequence
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any

from triage_engine.core import AppSettings, configure_logging, load_app_settings
from triage_engine.core.datetime_utils import parse_datetime, serialize_datetime
from triage_engine.core.models import ConversationSnapshot, MessagePreview
from triage_engine.intelligence import TriageService, build_context


def build_parser() -> argparse.ArgumentParser:
    """Create and configure the CLI argument parser."""
    parser = argparse.ArgumentParser(description="Customer support email triage")
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
        choices=["info", "triage"],
        help="Operation to execute.",
    )
    parser.add_argument(
        "path",
        nargs="?",
        type=Path,
        default=None,
        help="JSON conversation file for the triage command.",
    )
    return parser


def execute(args: argparse.Namespace, settings: AppSettings) -> int:
    """Execute the requested CLI command and return an exit status."""
    command = args.command
    if command == "info":
        print("Triage engine is ready.")
        print(f"LLM provider: {settings.llm.provider} ({settings.llm.model})")
        print(
            "Semantic band: "
            f"{settings.triage.ambiguous_low}-{settings.triage.ambiguous_high}"
        )
        automation = settings.automation
        state = "enabled" if automation.auto_send_global_enabled else "disabled"
        print(f"Auto-send: {state} (daily cap {automation.max_per_day})")
        return 0
    if args.path is None:
        print("The triage command needs a conversation JSON file.")
        return 2
    return _run_triage(settings, args.path)


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = load_app_settings(env_file=args.env_file)
    configure_logging(settings.logging)
    return execute(args, settings)


def load_conversation(
    payload: dict[str, Any],
) -> tuple[ConversationSnapshot, list[MessagePreview]]:
    """Build a conversation snapshot and its messages from decoded JSON."""
    messages = [
        MessagePreview(
            subject=item.get("subject"),
            body_preview=item.get("body_preview") or item.get("body"),
            from_address=item.get("from_address") or item.get("from"),
            received_at=parse_datetime(item.get("received_at"), assume_utc=True),
        )
        for item in payload.get("messages", [])
    ]
    conversation = ConversationSnapshot(
        id=str(payload.get("id", "conversation")),
        subject=payload.get("subject"),
        message_count=int(payload.get("message_count", len(messages) or 1)),
        unread_count=int(payload.get("unread_count", 0)),
        first_message_at=parse_datetime(
            payload.get("first_message_at"), assume_utc=True
        ),
        latest_message_at=parse_datetime(
            payload.get("latest_message_at"), assume_utc=True
        ),
        primary_customer_email=payload.get("primary_customer_email"),
        verified_customer=bool(payload.get("verified_customer", False)),
        known_order_numbers=tuple(payload.get("known_order_numbers", ())),
    )
    return conversation, messages


def _run_triage(settings: AppSettings, path: Path) -> int:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        print(f"Could not read conversation file: {exc}")
        return 1

    conversation, messages = load_conversation(payload)
    with build_context(settings) as context:
        outcome = TriageService(context).triage(conversation, messages)

    report = asdict(outcome)
    report["priority"]["band_label"] = outcome.priority.band_label
    print(json.dumps(report, indent=2, default=_json_default))
    return 0


def _json_default(value: object) -> object:
    if isinstance(value, datetime):
        return serialize_datetime(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


if __name__ == "__main__":
    raise SystemExit(main())
