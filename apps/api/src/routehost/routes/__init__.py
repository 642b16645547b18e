"""Route units: standalone programs invoked with one query-string argument."""

import argparse
import json
import sys
from urllib.parse import parse_qsl


def build_parser(prog: str, description: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=prog, description=description)
    parser.add_argument(
        "query",
        nargs="?",
        default="",
        help="Raw query string, augmented with __post=<file> (and __sid on async start)",
    )
    return parser


def read_query(parser: argparse.ArgumentParser, argv: list[str] | None = None) -> str:
    """Return the single payload argument, even when it starts with "-"."""
    args = sys.argv[1:] if argv is None else argv
    return parser.parse_args(["--", *args]).query


def parse_query(raw: str) -> dict[str, str]:
    return dict(parse_qsl(raw, keep_blank_values=True))


def emit(payload: dict[str, object]) -> None:
    print(json.dumps(payload, separators=(",", ":")), flush=True)
