"""CLI entrypoint for recording and ranking file accesses."""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path

from .errors import EmpathError, PathResolutionError
from .paths import database_path, default_state_dir
from .ranking import RankingEngine
from .repository import FixedRepositoryResolver, GitRepositoryResolver, RepositoryResolver
from .store import EventStore
from .utils import canonicalize_path, display_path, is_within, parse_timestamp, path_exists

logger = logging.getLogger(__name__)

RANKINGS = {
    "frecent": RankingEngine.frecent,
    "recent": RankingEngine.recent,
    "frequent": RankingEngine.frequent,
}


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )


def repository_resolver(args) -> RepositoryResolver:
    if getattr(args, "repo", None):
        return FixedRepositoryResolver(args.repo)
    return GitRepositoryResolver()


def resolve_repository(args) -> Path:
    return repository_resolver(args).resolve(Path.cwd())


def open_store() -> EventStore:
    store = EventStore(database_path(default_state_dir()))
    store.initialize()
    return store


def cmd_record(args) -> int:
    repo = resolve_repository(args)
    store = open_store()
    for raw_path in args.paths:
        try:
            path = canonicalize_path(raw_path)
        except PathResolutionError as exc:
            logger.warning("Skipping %s", exc)
            continue
        # Files outside the repo are mostly editor scratch files.
        if not is_within(path, repo):
            logger.debug("Skipping %s: outside repository %s", path, repo)
            continue
        store.record(repo, path, args.time)
    return 0


def cmd_forget(args) -> int:
    repo = resolve_repository(args)
    store = open_store()
    for raw_path in args.paths:
        # The file may already be gone.
        try:
            path = str(canonicalize_path(raw_path))
        except PathResolutionError:
            path = raw_path
        store.forget(repo, path)
    return 0


def cmd_query(args) -> int:
    repo = resolve_repository(args)
    engine = RankingEngine(open_store())
    cwd = Path.cwd()
    for path in RANKINGS[args.ranking](engine, repo):
        if not path_exists(path):
            continue
        print(display_path(path, cwd, args.absolute))
    return 0


def _timestamp_arg(value: str) -> datetime:
    try:
        return parse_timestamp(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid timestamp '{value}': {exc}") from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="empath", description="Track and rank file accesses per repository")
    parser.add_argument(
        "--repo",
        default=None,
        help="Run as if started in another Git repo instead of working directory",
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", dest="log_level", action="store_const", const="DEBUG")
    verbosity.add_argument("-q", "--quiet", dest="log_level", action="store_const", const="ERROR")
    parser.set_defaults(log_level="WARNING")
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_record = subparsers.add_parser("record", help="Record path access")
    p_record.add_argument(
        "--time",
        type=_timestamp_arg,
        default=None,
        help="Record as if accessed at a different time (ISO-8601)",
    )
    p_record.add_argument("paths", metavar="PATH", nargs="+")
    p_record.set_defaults(func=cmd_record)

    p_forget = subparsers.add_parser("forget", help="Forget paths")
    p_forget.add_argument("paths", metavar="PATH", nargs="+")
    p_forget.set_defaults(func=cmd_forget)

    for name, help_text in (
        ("frecent", "Print most frequent+recently accessed paths"),
        ("recent", "Print most recently accessed paths"),
        ("frequent", "Print most frequently accessed paths"),
    ):
        p_query = subparsers.add_parser(name, help=help_text)
        p_query.add_argument("--absolute", action="store_true", help="Print absolute paths")
        p_query.set_defaults(func=cmd_query, ranking=name)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _setup_logging(args.log_level)
    try:
        return int(args.func(args))
    except EmpathError as exc:
        print(f"empath: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
