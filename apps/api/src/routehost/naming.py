import re

ROUTE_NAMESPACE = "routes.api"
DEFAULT_UNIT = "Echo"

_DISALLOWED = re.compile(r"[^A-Za-z0-9_]")


def to_unit_name(text: str | None) -> str:
    """Map a path segment or keyword to a unit name: ``"my-name!"`` -> ``"Myname"``."""
    stripped = _DISALLOWED.sub("", text or "")
    if not stripped:
        return DEFAULT_UNIT
    return stripped[0].upper() + stripped[1:]


def qualify_unit_name(text: str | None) -> str:
    return f"{ROUTE_NAMESPACE}.{to_unit_name(text)}"


def module_to_unit_name(module_name: str) -> str:
    """``long_demo`` -> ``LongDemo``."""
    return "".join(part[:1].upper() + part[1:] for part in module_name.split("_") if part)
