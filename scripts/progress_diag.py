"""Replay recorded progress messages and report registry state."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from wikify_progress.bootstrap import configure_logging, create_registry
from wikify_progress.config import ProgressSettings
from wikify_progress.integration import ProgressIntegration, TransportMessage, parse_message
from wikify_progress.notifications import NotificationConfigError
from wikify_progress.registry import ProgressRegistry


def _read_documents(path: Path) -> list[Any]:
    text = path.read_text(encoding="utf-8")
    if path.suffix in {".yml", ".yaml"}:
        documents = yaml.safe_load(text) or []
        if not isinstance(documents, list):
            raise ValueError("YAML replay file must contain a list of messages")
        return documents
    return [json.loads(line) for line in text.splitlines() if line.strip()]


def load_messages(path: Path) -> list[TransportMessage]:
    try:
        documents = _read_documents(Path(path))
        return [parse_message(document) for document in documents]
    except (OSError, ValueError, yaml.YAMLError, ValidationError, TypeError) as exc:
        print(f"Replay input invalid: {exc}")
        raise SystemExit(1)


def replay(path: Path) -> ProgressRegistry:
    try:
        registry = create_registry(ProgressSettings())
    except NotificationConfigError as exc:
        print(f"Notification config unavailable: {exc}")
        raise SystemExit(1)
    integration = ProgressIntegration(registry)
    for message in load_messages(path):
        integration.dispatch(message)
    return registry


def cmd_stats(args: argparse.Namespace) -> None:
    registry = replay(args.input)
    print(json.dumps(registry.get_stats().model_dump(mode="json"), indent=2))


def cmd_history(args: argparse.Namespace) -> None:
    registry = replay(args.input)
    entries = registry.get_history()
    if args.limit is not None and args.limit > 0:
        entries = entries[: args.limit]
    print(json.dumps([entry.model_dump(mode="json") for entry in entries], indent=2))


def cmd_live(args: argparse.Namespace) -> None:
    registry = replay(args.input)
    records = registry.get_all()
    if args.type:
        records = [record for record in records if record.type == args.type]
    if args.repository:
        records = [record for record in records if record.owning_resource == args.repository]
    records.sort(key=lambda record: record.start_time)
    print(json.dumps([record.model_dump(mode="json") for record in records], indent=2))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="wikify-progress replay diagnostics")
    sub = parser.add_subparsers(dest="cmd")

    p_stats = sub.add_parser("stats", help="Show aggregate counts after replay")
    p_stats.add_argument("input", type=Path, help="YAML list or JSON-lines message file")
    p_stats.set_defaults(func=cmd_stats)

    p_history = sub.add_parser("history", help="List finished operations, newest first")
    p_history.add_argument("input", type=Path)
    p_history.add_argument(
        "--limit",
        type=int,
        default=None,
        help="If provided, show only the newest N entries",
    )
    p_history.set_defaults(func=cmd_history)

    p_live = sub.add_parser("live", help="List operations still held by the registry")
    p_live.add_argument("input", type=Path)
    p_live.add_argument("--type", choices=["indexing", "generation", "query", "research"])
    p_live.add_argument("--repository")
    p_live.set_defaults(func=cmd_live)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(ProgressSettings().log_level)
    if not hasattr(args, "func"):
        parser.print_help()
        return
    args.func(args)


if __name__ == "__main__":
    main()
