from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, List

from labbcat.admin import LabbcatAdmin
from labbcat.config import ClientConfig
from labbcat.errors import StoreException
from labbcat.pattern import PatternBuilder
from labbcat.utils.json_safe import to_jsonable

log = logging.getLogger("labbcat.cli")


def _print_json(obj: object, indent: int = 2) -> None:
    """Print JSON to stdout."""
    print(json.dumps(to_jsonable(obj), indent=indent or None, sort_keys=True))


def _client(args: argparse.Namespace) -> LabbcatAdmin:
    """Build a client from LABBCAT_* settings, overridden by command line options.

    Security notes:
    - Prefer LABBCAT_PASSWORD over --password; command lines end up in shell history.

    """
    cfg = ClientConfig.from_env()
    url = args.url or cfg.url
    if not url:
        raise StoreException("No server URL: use --url or set LABBCAT_URL")
    c = LabbcatAdmin(
        url,
        args.username or cfg.username,
        args.password or cfg.password,
        language=args.language or cfg.language,
        timeout=cfg.timeout_sec,
        batch_mode=not args.interactive,
    )
    c.session.max_upload_bytes = cfg.max_upload_bytes
    return c


def _parse_arg(raw: str) -> Any:
    """Command line argument as JSON if it parses, otherwise as a plain string."""
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def _pattern(args: argparse.Namespace) -> Any:
    if args.pattern:
        return json.loads(args.pattern)
    if not args.match:
        raise StoreException("a pattern is required: use --pattern or --match")
    builder = PatternBuilder()
    for column in args.match:
        builder.add_column()
        for condition in column.split(","):
            layer, _, regex = condition.partition("=")
            if layer.startswith("!"):
                builder.add_not_match_layer(layer[1:], regex)
            else:
                builder.add_match_layer(layer, regex)
    return builder


def cmd_info(args: argparse.Namespace) -> int:
    """Print the server's id, version and the logged-in user."""
    c = _client(args)
    out = {
        "id": c.get_id(),
        "version": c.response.version if c.response else None,
        "user": c.get_user_info(),
    }
    _print_json(out, args.indent)
    return 0


def cmd_search(args: argparse.Namespace) -> int:
    """Run a search, print the matches, and release the server task."""
    c = _client(args)
    matches = c.search_and_get_matches(
        _pattern(args),
        participant_ids=args.participant or None,
        transcript_types=args.transcript_type or None,
        main_participant=not args.all_participants,
        aligned=args.aligned,
        matches_per_transcript=args.matches_per_transcript,
        words_context=args.words_context,
        max_matches=args.max_matches,
    )
    _print_json(matches, args.indent)
    return 0


def cmd_task_status(args: argparse.Namespace) -> int:
    c = _client(args)
    _print_json(c.task_status(args.thread_id), args.indent)
    return 0


def cmd_wait_task(args: argparse.Namespace) -> int:
    """Poll a task until it finishes; exit status 3 if it is still running."""
    c = _client(args)
    status = c.wait_for_task(args.thread_id, args.max_seconds)
    _print_json(status, args.indent)
    if status is not None and status.running:
        return 3
    return 0


def cmd_cancel_task(args: argparse.Namespace) -> int:
    c = _client(args)
    c.cancel_task(args.thread_id)
    return 0


def cmd_release_task(args: argparse.Namespace) -> int:
    c = _client(args)
    c.release_task(args.thread_id)
    return 0


def cmd_tasks(args: argparse.Namespace) -> int:
    c = _client(args)
    _print_json(c.get_tasks(), args.indent)
    return 0


def cmd_call(args: argparse.Namespace) -> int:
    """Call any public client method, e.g. ``labbcat call get_layer orthography``."""
    c = _client(args)
    name = args.function.replace("-", "_")
    fn = getattr(c, name, None)
    if name.startswith("_") or not callable(fn):
        print(f"error: unknown function: {args.function}", file=sys.stderr)
        return 2
    positional: List[Any] = [_parse_arg(a) for a in args.args]
    result = fn(*positional)
    _print_json(result, args.indent)
    return 0


def register_client_commands(sub: argparse._SubParsersAction) -> None:
    """Register server commands."""

    info = sub.add_parser("info", help="Show server id, version and current user")
    info.set_defaults(func=cmd_info)

    s = sub.add_parser("search", help="Search and print matches")
    s.add_argument("--pattern", default=None, help="Search pattern as JSON")
    s.add_argument(
        "--match",
        action="append",
        default=[],
        help="One column: LAYER=REGEX[,LAYER=REGEX...]; prefix LAYER with ! to negate. Repeatable",
    )
    s.add_argument("--participant", action="append", default=[], help="Participant id (repeatable)")
    s.add_argument(
        "--transcript-type", action="append", default=[], help="Transcript type (repeatable)"
    )
    s.add_argument(
        "--all-participants", action="store_true", help="Include non-main participants"
    )
    s.add_argument("--aligned", action="store_true", help="Only aligned words")
    s.add_argument("--matches-per-transcript", type=int, default=None)
    s.add_argument("--words-context", type=int, default=0, help="Words of context per side")
    s.add_argument("--max-matches", type=int, default=None)
    s.set_defaults(func=cmd_search)

    ts = sub.add_parser("task-status", help="Show a task's status")
    ts.add_argument("thread_id")
    ts.set_defaults(func=cmd_task_status)

    wt = sub.add_parser("wait-task", help="Wait for a task to finish")
    wt.add_argument("thread_id")
    wt.add_argument("--max-seconds", type=int, default=0, help="Give up after this long (0: never)")
    wt.set_defaults(func=cmd_wait_task)

    ct = sub.add_parser("cancel-task", help="Cancel a running task")
    ct.add_argument("thread_id")
    ct.set_defaults(func=cmd_cancel_task)

    rt = sub.add_parser("release-task", help="Release a finished task's resources")
    rt.add_argument("thread_id")
    rt.set_defaults(func=cmd_release_task)

    t = sub.add_parser("tasks", help="List server tasks")
    t.set_defaults(func=cmd_tasks)

    call = sub.add_parser("call", help="Call a client method by name; arguments parsed as JSON")
    call.add_argument("function", help="Method name, e.g. get_layer_ids")
    call.add_argument("args", nargs="*", help="Positional arguments")
    call.set_defaults(func=cmd_call)
