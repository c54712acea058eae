"""Command-line surface: live session, rules, snooze and emotion history."""

from __future__ import annotations

import argparse
import asyncio
import os
import sys

from dotenv import load_dotenv

from . import config
from .capture import WebcamCapture
from .classifier import ClassificationGateway
from .emotion_log import EmotionLog, default_report_name, write_csv
from .emotions import TRIGGER_EMOTIONS, ActionKind
from .errors import CaptureUnavailable, EmotiHomeError
from .events import ErrorEvent, RulesFiredEvent
from .handoff import agent_view_json
from .matching import RuleMatcher
from .repository import RuleRepository
from .session import LiveSession
from .snooze import SnoozeController
from .store import MemoryStore, SupabaseStore
from .tips import TipPrinter, tip_for


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="emotihome", description="Emotion-driven home automation")
    parser.add_argument("--user", default=None, help=f"Owner id (default: ${config.ENV_USER_ID})")
    parser.add_argument(
        "--memory", action="store_true",
        help="Use an in-process store instead of Supabase (nothing is persisted)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Start a live detection session (Ctrl-C stops)")
    run.add_argument("--camera", type=int, default=config.CAMERA_INDEX, help="Camera index")
    run.add_argument("--interval", type=float, default=config.SAMPLE_INTERVAL, help="Seconds between samples")

    rules = sub.add_parser("rules", help="Manage automation rules")
    rules_sub = rules.add_subparsers(dest="rules_command", required=True)
    rules_sub.add_parser("list", help="List your rules")
    add = rules_sub.add_parser("add", help="Add a rule")
    add.add_argument("emotion", choices=[e.value for e in TRIGGER_EMOTIONS], type=str.lower)
    add.add_argument("action", choices=[a.value for a in ActionKind])
    add.add_argument("payload", help="; ".join(f"{a.value}: {a.payload_hint}" for a in ActionKind))
    add.add_argument("--disabled", action="store_true", help="Create the rule disabled")
    edit = rules_sub.add_parser("edit", help="Edit a rule")
    edit.add_argument("id", type=int)
    edit.add_argument("--emotion", choices=[e.value for e in TRIGGER_EMOTIONS], type=str.lower)
    edit.add_argument("--action", choices=[a.value for a in ActionKind])
    edit.add_argument("--payload")
    for name in ("enable", "disable", "toggle", "delete"):
        rules_sub.add_parser(name, help=f"{name.capitalize()} a rule").add_argument("id", type=int)
    rules_sub.add_parser("defaults", help="Copy the recommended rules to your account")

    snooze = sub.add_parser("snooze", help="Snooze rule actions (0 cancels, no value shows status)")
    snooze.add_argument("minutes", type=float, nargs="?")

    history = sub.add_parser("history", help="Show recent emotions")
    history.add_argument("--range", dest="time_range", choices=sorted(config.HISTORY_RANGES), default="day")

    export = sub.add_parser("export", help="Export recent emotions as CSV")
    export.add_argument("--range", dest="time_range", choices=sorted(config.HISTORY_RANGES), default="day")
    export.add_argument("--output", default=None, help="CSV path (default: wellness_report_<date>.csv)")

    sub.add_parser("insight", help="Weekly dominant emotion")
    tip = sub.add_parser("tip", help="Wellness tip for an emotion (default: your latest one)")
    tip.add_argument("emotion", nargs="?", type=str.lower)
    sub.add_parser("agent-view", help="Print what the local agent polls, as JSON")
    return parser


def _print_rules(rules) -> None:
    if not rules:
        print("No rules yet. Run `emotihome rules defaults` to copy the recommended set.")
    for rule in rules:
        print(rule)


def _on_rules_fired(event: RulesFiredEvent) -> None:
    for rule in event.rules:
        print(f"[EVENT] Rule fired -> {rule}")


def _on_error(event: ErrorEvent) -> None:
    if event.auth_failed:
        print(f"[EVENT] Authentication error: update {config.ENV_SUPABASE_JWT} and log in again.")


async def _run_session(session: LiveSession) -> None:
    async with session:
        print("[CLI] Session running. Press Ctrl-C to stop.")
        while True:
            await asyncio.sleep(3600)


def run_command(args: argparse.Namespace, owner: str, store) -> int:
    repository = RuleRepository(store)
    snooze = SnoozeController(store)
    emotion_log = EmotionLog(store)

    if args.command == "run":
        session = LiveSession(
            owner=owner,
            capture=WebcamCapture(camera_index=args.camera),
            gateway=ClassificationGateway(),
            emotion_log=emotion_log,
            matcher=RuleMatcher(repository, snooze),
            sample_interval=args.interval,
        )
        session.event_emitter.on_rules_fired(_on_rules_fired)
        session.event_emitter.on_error(_on_error)
        session.event_emitter.on_emotion(TipPrinter())
        try:
            asyncio.run(_run_session(session))
        except CaptureUnavailable:
            print("ERROR: Could not open camera. Check camera permissions.")
            return 1
        except KeyboardInterrupt:
            print("\n[CLI] Interrupted by user")
        return 0

    if args.command == "rules":
        cmd = args.rules_command
        if cmd == "list":
            _print_rules(repository.list(owner))
        elif cmd == "add":
            repository.create(owner, args.emotion, args.action, args.payload, enabled=not args.disabled)
        elif cmd == "edit":
            repository.update(owner, args.id, emotion=args.emotion, action=args.action, payload=args.payload)
        elif cmd == "enable":
            repository.set_enabled(owner, args.id, True)
        elif cmd == "disable":
            repository.set_enabled(owner, args.id, False)
        elif cmd == "toggle":
            repository.toggle(owner, args.id)
        elif cmd == "delete":
            repository.delete(owner, args.id)
        elif cmd == "defaults":
            _print_rules(repository.copy_defaults(owner))
        return 0

    if args.command == "snooze":
        if args.minutes is not None:
            snooze.set_snooze(owner, args.minutes)
        window = snooze.window(owner)
        if window.active_until is None:
            print("Not snoozed")
        else:
            print(f"Snoozed until {window.active_until.isoformat()}")
        return 0

    if args.command == "history":
        entries = emotion_log.history(owner, time_range=args.time_range)
        if not entries:
            print("No emotions logged in this range.")
        for entry in reversed(entries):
            print(f"{entry.observed_at.isoformat()}  {entry.emotion.value}")
        return 0

    if args.command == "export":
        entries = emotion_log.history(owner, time_range=args.time_range)
        if not entries:
            print("No emotion data to export.")
            return 0
        path = args.output or default_report_name()
        count = write_csv(entries, path)
        print(f"Wrote {count} rows to {path}")
        return 0

    if args.command == "insight":
        print(emotion_log.summary(owner).message)
        return 0

    if args.command == "tip":
        emotion = args.emotion
        if emotion is None:
            latest = emotion_log.history(owner, limit=1)
            emotion = latest[0].emotion if latest else None
        print(tip_for(emotion))
        return 0

    if args.command == "agent-view":
        print(agent_view_json(owner, repository, snooze))
        return 0

    return 2


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)

    owner = args.user or os.environ.get(config.ENV_USER_ID)
    if not owner:
        print(f"ERROR: pass --user or set {config.ENV_USER_ID}", file=sys.stderr)
        return 2

    try:
        store = MemoryStore() if args.memory else SupabaseStore.from_env()
        return run_command(args, owner, store)
    except ValueError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2
    except EmotiHomeError as e:
        print(f"ERROR: {type(e).__name__}: {e}", file=sys.stderr)
        return 1
