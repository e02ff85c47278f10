from __future__ import annotations

import argparse
import logging
import sys
from typing import List

from labbcat.cli.client_cmds import register_client_commands
from labbcat.config import ClientConfig
from labbcat.errors import ResponseException, StoreException

log = logging.getLogger("labbcat.cli")


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI parser."""
    p = argparse.ArgumentParser(prog="labbcat", description="LaBB-CAT client")
    p.add_argument("--url", default=None, help="Server URL (default: LABBCAT_URL)")
    p.add_argument("--username", default=None, help="Username (default: LABBCAT_USERNAME)")
    p.add_argument("--password", default=None, help="Password (default: LABBCAT_PASSWORD)")
    p.add_argument("--language", default=None, help="Accept-Language for server messages")
    p.add_argument(
        "--interactive", action="store_true", help="Prompt for credentials if they're needed"
    )
    p.add_argument("--indent", type=int, default=2, help="JSON indent (0 for compact output)")
    p.add_argument("-v", "--verbose", action="store_true", help="Log requests (DEBUG)")
    sub = p.add_subparsers(dest="cmd", required=True)
    register_client_commands(sub)
    return p


def _configure_logging(verbose: bool) -> None:
    level = "DEBUG" if verbose else ClientConfig.from_env().log_level
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def main(argv: List[str] | None = None) -> int:
    """CLI entry."""
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    try:
        return int(args.func(args))
    except ResponseException as e:
        log.debug("server response: %r", e.response)
        print(f"error: {e}", file=sys.stderr)
        return 2
    except StoreException as e:
        print(f"error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
