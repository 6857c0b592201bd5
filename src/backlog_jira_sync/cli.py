"""Command line entry point: ``backlog-jira``.

Sub-commands::

    backlog-jira push   [TASK ...] [--all] [--force] [--dry-run]
    backlog-jira pull   [TASK ...] [--all] [--force] [--dry-run]
    backlog-jira sync   [TASK ...] [--strategy NAME] [--dry-run]
    backlog-jira status [TASK ...]
    backlog-jira link   TASK ISSUE-KEY
    backlog-jira unlink TASK
    backlog-jira doctor
    backlog-jira init
    backlog-jira serve  [server options]

Exit codes: 0 all good, 1 some items failed, 2 configuration error.
Reports go to stdout; logs go to stderr.
"""

import argparse
import json
import logging
import signal
import sys
from collections.abc import Callable
from pathlib import Path

from . import __version__
from .config_loader import ensure_config
from .logger import setup_logging
from .session import SyncSession, build_session, load_unified_config
from .sync.engine import SyncEngine
from .sync.errors import ConfigurationError, SyncError
from .sync.models import BatchResult, ItemSelection
from .sync.reporter import (
    format_batch_result,
    format_dry_run_preview,
    format_status,
    result_to_json,
    status_to_json,
)
from .sync.resolver import CONFLICT_STRATEGIES
from .sync.store import SyncStore
from .validators import normalize_task_id, validate_issue_key, validate_task_id

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ITEMS_FAILED = 1
EXIT_CONFIG_ERROR = 2


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def _connection_parent() -> argparse.ArgumentParser:
    parent = argparse.ArgumentParser(add_help=False)
    group = parent.add_argument_group("connection")
    group.add_argument("--url", help="Jira base URL (overrides JIRA_URL)")
    group.add_argument("--email", help="Jira account email (overrides JIRA_EMAIL)")
    group.add_argument(
        "--api-token",
        help="Jira API token (visible in process list -- prefer JIRA_API_TOKEN)",
    )
    group.add_argument(
        "--insecure",
        action="store_true",
        help="Skip SSL certificate verification (use only for development)",
    )
    group.add_argument(
        "--project-key", help="Jira project new issues are created in"
    )
    group.add_argument(
        "--json", action="store_true", help="Print the report as JSON"
    )
    return parent


def _selection_parent(with_all: bool) -> argparse.ArgumentParser:
    parent = argparse.ArgumentParser(add_help=False)
    parent.add_argument(
        "task_ids",
        nargs="*",
        metavar="TASK",
        help="Task ids (task-12 or 12); default: tasks that need action",
    )
    if with_all:
        parent.add_argument(
            "--all",
            action="store_true",
            help="Process every mapped task",
        )
    return parent


def build_parser() -> argparse.ArgumentParser:
    """Build the ``backlog-jira`` argument parser."""
    from .mcp.server import add_server_arguments

    parser = argparse.ArgumentParser(
        prog="backlog-jira",
        description="Bidirectional sync between Backlog.md tasks and Jira issues",
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    parser.add_argument(
        "--log-format",
        choices=("text", "json"),
        default="text",
        help="Log line format on stderr (default: text)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"backlog-jira-sync version {__version__}",
    )

    sub = parser.add_subparsers(dest="command", required=True)
    connection = _connection_parent()

    for name, help_text in (
        ("push", "Push local task changes to Jira (creates missing issues)"),
        ("pull", "Pull Jira changes into mapped tasks"),
    ):
        cmd = sub.add_parser(
            name, help=help_text, parents=[connection, _selection_parent(True)]
        )
        cmd.add_argument(
            "--force",
            action="store_true",
            help="Overwrite the other side even when both sides changed",
        )
        cmd.add_argument(
            "--dry-run", action="store_true", help="Preview without changing anything"
        )

    cmd = sub.add_parser(
        "sync",
        help="Push, pull, or resolve every mapped task",
        parents=[connection, _selection_parent(False)],
    )
    cmd.add_argument(
        "--strategy",
        choices=CONFLICT_STRATEGIES,
        help="Conflict strategy (default from config)",
    )
    cmd.add_argument(
        "--dry-run", action="store_true", help="Preview without changing anything"
    )

    sub.add_parser(
        "status",
        help="Show the sync state of mapped tasks",
        parents=[connection, _selection_parent(False)],
    )

    cmd = sub.add_parser(
        "link", help="Map a task to an existing Jira issue", parents=[connection]
    )
    cmd.add_argument("task_id", metavar="TASK")
    cmd.add_argument("issue_key", metavar="ISSUE-KEY")

    cmd = sub.add_parser(
        "unlink", help="Remove the mapping of a task", parents=[connection]
    )
    cmd.add_argument("task_id", metavar="TASK")

    sub.add_parser(
        "doctor", help="Check configuration, Jira access and state", parents=[connection]
    )
    sub.add_parser("init", help="Write a starter config file if none exists")

    cmd = sub.add_parser("serve", help="Run the MCP server on stdio")
    add_server_arguments(cmd)

    return parser


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _overrides(args: argparse.Namespace) -> dict:
    overrides = {
        "url": args.url,
        "email": args.email,
        "api_token": args.api_token,
        "project_key": args.project_key,
        "debug": args.debug,
    }
    if args.insecure:
        overrides["insecure"] = True
    return {k: v for k, v in overrides.items() if v}


def _task_id(value: str) -> str:
    task_id = normalize_task_id(value)
    is_valid, error = validate_task_id(task_id)
    if not is_valid:
        raise ValueError(error)
    return task_id


def _selection(args: argparse.Namespace) -> ItemSelection:
    return ItemSelection(
        item_ids=[_task_id(t) for t in args.task_ids],
        all_mapped=getattr(args, "all", False),
    )


def _emit(text: str, structured: dict, as_json: bool) -> None:
    if as_json:
        print(json.dumps(structured, indent=2, ensure_ascii=False))
    else:
        print(text)


def _run_batch(
    session: SyncSession,
    args: argparse.Namespace,
    operation: Callable[[SyncEngine, ItemSelection], BatchResult],
) -> int:
    selection = _selection(args)
    with session.engine() as engine:
        previous = signal.signal(
            signal.SIGINT, lambda signum, frame: engine.cancel()
        )
        try:
            result = operation(engine, selection)
        finally:
            signal.signal(signal.SIGINT, previous)

    text = (
        format_dry_run_preview(result)
        if result.dry_run
        else format_batch_result(result)
    )
    _emit(text, result_to_json(result), args.json)
    return EXIT_OK if result.success else EXIT_ITEMS_FAILED


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _cmd_push(session: SyncSession, args: argparse.Namespace) -> int:
    return _run_batch(
        session,
        args,
        lambda engine, selection: engine.push(
            selection, force=args.force, dry_run=args.dry_run
        ),
    )


def _cmd_pull(session: SyncSession, args: argparse.Namespace) -> int:
    return _run_batch(
        session,
        args,
        lambda engine, selection: engine.pull(
            selection, force=args.force, dry_run=args.dry_run
        ),
    )


def _cmd_sync(session: SyncSession, args: argparse.Namespace) -> int:
    return _run_batch(
        session,
        args,
        lambda engine, selection: engine.sync(
            selection, strategy=args.strategy, dry_run=args.dry_run
        ),
    )


def _cmd_status(session: SyncSession, args: argparse.Namespace) -> int:
    selection = _selection(args)
    with session.engine() as engine:
        report = engine.status(selection)
    _emit(format_status(report), status_to_json(report), args.json)
    return EXIT_OK


def _cmd_link(session: SyncSession, args: argparse.Namespace) -> int:
    task_id = _task_id(args.task_id)
    issue_key = args.issue_key.strip().upper()
    is_valid, error = validate_issue_key(issue_key)
    if not is_valid:
        raise ValueError(error)
    with session.engine() as engine:
        engine.link(task_id, issue_key)
    _emit(
        f"Linked {task_id} <-> {issue_key}. Run 'backlog-jira sync' to record baselines.",
        {"task_id": task_id, "issue_key": issue_key, "linked": True},
        args.json,
    )
    return EXIT_OK


def _cmd_unlink(session: SyncSession, args: argparse.Namespace) -> int:
    task_id = _task_id(args.task_id)
    with session.engine() as engine:
        issue_key = engine.unlink(task_id)
    _emit(
        f"Unlinked {task_id} from {issue_key}.",
        {"task_id": task_id, "issue_key": issue_key, "linked": False},
        args.json,
    )
    return EXIT_OK


def _cmd_doctor(session: SyncSession, args: argparse.Namespace) -> int:
    """Run health checks; every check runs even after a failure."""
    checks: list[dict] = []

    def record(name: str, ok: bool, detail: str) -> None:
        checks.append({"check": name, "ok": ok, "detail": detail})

    try:
        user = session.remote.validate_connection()
        record("jira_connection", True, f"authenticated as {user}")
    except SyncError as exc:
        record("jira_connection", False, str(exc))

    project_key = session.config.jira.project_key
    if project_key:
        try:
            project = session.remote.get_project(project_key)
            record("jira_project", True, f"{project_key}: {project.get('name', '')}")
        except SyncError as exc:
            record("jira_project", False, str(exc))
    else:
        record(
            "jira_project",
            True,
            "no project_key configured (needed to create issues)",
        )

    tasks_dir = Path(session.config.backlog.tasks_dir)
    if tasks_dir.is_dir():
        count = len(session.local.list_task_ids())
        record("tasks_dir", True, f"{tasks_dir} ({count} tasks)")
    else:
        record("tasks_dir", False, f"{tasks_dir} does not exist")

    try:
        with SyncStore.open(session.state_dir) as store:
            store.test_write_access()
            mapped = len(store.all_mappings())
        record("state_store", True, f"{session.state_dir} ({mapped} mapped)")
    except SyncError as exc:
        record("state_store", False, str(exc))

    healthy = all(c["ok"] for c in checks)
    lines = [
        f"[{'ok' if c['ok'] else 'FAIL'}] {c['check']}: {c['detail']}"
        for c in checks
    ]
    _emit("\n".join(lines), {"healthy": healthy, "checks": checks}, args.json)
    return EXIT_OK if healthy else EXIT_ITEMS_FAILED


_COMMANDS: dict[str, Callable[[SyncSession, argparse.Namespace], int]] = {
    "push": _cmd_push,
    "pull": _cmd_pull,
    "sync": _cmd_sync,
    "status": _cmd_status,
    "link": _cmd_link,
    "unlink": _cmd_unlink,
    "doctor": _cmd_doctor,
}


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> int:
    """Parse *argv*, run the command and return the exit code."""
    args = build_parser().parse_args(argv)

    if args.command == "serve":
        from .mcp.server import overrides_from_args, serve

        serve(overrides_from_args(args))
        return EXIT_OK

    if args.command == "init":
        setup_logging(mode="cli", debug=args.debug, debug_format=args.log_format)
        path = ensure_config()
        print(f"Config file: {path}")
        return EXIT_OK

    try:
        unified = load_unified_config()
        setup_logging(
            mode="cli",
            debug=args.debug,
            log_file=unified.logging.file,
            debug_format=args.log_format,
            level=unified.logging.level,
        )
        session = build_session(unified, _overrides(args))
        return _COMMANDS[args.command](session, args)
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except ValueError as exc:
        print(f"Invalid argument: {exc}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except SyncError as exc:
        print(f"Error ({exc.kind}): {exc}", file=sys.stderr)
        return EXIT_ITEMS_FAILED


if __name__ == "__main__":
    sys.exit(main())
