from __future__ import annotations

import time

from routehost.routes import build_parser, emit, parse_query, read_query

DEFAULT_SECONDS = 5


def _seconds(value: str | None) -> int:
    if value is None:
        return DEFAULT_SECONDS
    try:
        return int(value)
    except ValueError:
        return DEFAULT_SECONDS


def long_demo(raw_query: str, *, sleep=time.sleep) -> dict[str, object]:
    query = parse_query(raw_query)
    seconds = _seconds(query.get("seconds"))

    started_ms = int(time.time() * 1000)
    sleep(max(0, seconds))
    ended_ms = int(time.time() * 1000)

    return {
        "route": "LongDemo",
        "sid": query.get("__sid", ""),
        "sleptSeconds": seconds,
        "startedMs": started_ms,
        "endedMs": ended_ms,
        "durationMs": ended_ms - started_ms,
    }


def main() -> None:
    parser = build_parser("long-demo", "Simulate a long task; ?seconds=N (default 5)")
    emit(long_demo(read_query(parser)))


if __name__ == "__main__":
    main()
