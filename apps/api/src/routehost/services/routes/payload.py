from pathlib import Path
from urllib.parse import quote_plus

POST_KEY = "__post"
SID_KEY = "__sid"


def augment_query(raw_query: str | None, *, post_path: Path, sid: str | None = None) -> str:
    """Append the reserved ``__post`` (and optionally ``__sid``) keys to a raw query.

    Reserved keys are appended last, so a unit parsing the query with
    last-write-wins semantics sees the injected values.
    """
    parts = [raw_query] if raw_query else []
    parts.append(f"{POST_KEY}={quote_plus(str(post_path))}")
    if sid is not None:
        parts.append(f"{SID_KEY}={quote_plus(sid)}")
    return "&".join(parts)
