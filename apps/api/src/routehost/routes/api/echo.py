from __future__ import annotations

from pathlib import Path

from routehost.routes import build_parser, emit, parse_query, read_query

PREVIEW_CHARS = 256


def _read_body(post_path: str) -> str:
    try:
        return Path(post_path).read_text(encoding="utf-8", errors="replace")
    except OSError:
        return ""


def echo(raw_query: str) -> dict[str, object]:
    query = parse_query(raw_query)
    post_path = query.get("__post", "build/post_body.txt")
    body = _read_body(post_path)
    return {
        "route": "Echo",
        "queryRaw": raw_query,
        "query": query,
        "postPath": post_path,
        "postBodyLength": len(body),
        "postBodyPreview": body[:PREVIEW_CHARS],
    }


def main() -> None:
    parser = build_parser("echo", "Echo the query and request body back as JSON")
    emit(echo(read_query(parser)))


if __name__ == "__main__":
    main()
