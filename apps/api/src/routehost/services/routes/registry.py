from __future__ import annotations

from dataclasses import dataclass, field
import importlib
import logging
import os
from pathlib import Path
import pkgutil
import sys
from threading import Lock

from routehost.errors import UnknownRouteError
from routehost.naming import ROUTE_NAMESPACE, module_to_unit_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RouteUnit:
    """Something that can be spawned with one payload argument."""

    name: str
    argv: tuple[str, ...]
    env: dict[str, str] = field(default_factory=dict, compare=False)

    def command(self, payload: str) -> list[str]:
        return [*self.argv, payload]

    def environment(self) -> dict[str, str] | None:
        if not self.env:
            return None
        merged = dict(os.environ)
        merged.update(self.env)
        return merged


class RouteRegistry:
    def __init__(self, units: list[RouteUnit] | None = None) -> None:
        self._units: dict[str, RouteUnit] = {}
        self._lock = Lock()
        for unit in units or []:
            self.register(unit)

    def register(self, unit: RouteUnit) -> None:
        with self._lock:
            self._units[unit.name] = unit

    def resolve(self, unit_name: str) -> RouteUnit:
        with self._lock:
            unit = self._units.get(unit_name)
        if unit is None:
            raise UnknownRouteError(unit_name)
        return unit

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._units)

    def __contains__(self, unit_name: object) -> bool:
        with self._lock:
            return unit_name in self._units

    def __len__(self) -> int:
        with self._lock:
            return len(self._units)

    @classmethod
    def discover(
        cls,
        package: str = "routehost.routes.api",
        *,
        namespace: str = ROUTE_NAMESPACE,
        python: str | None = None,
    ) -> RouteRegistry:
        """Register every public module of ``package`` as ``<namespace>.<PascalName>``.

        Each unit runs as ``python -m <module> <payload>``; the source root of
        the package is put on the child's PYTHONPATH so units resolve even when
        the package is not installed.
        """
        module = importlib.import_module(package)
        search_path = getattr(module, "__path__", None)
        if search_path is None:
            raise ValueError(f"{package} is not a package")

        env = {"PYTHONPATH": _pythonpath_with(_source_root(package))}
        registry = cls()
        for info in pkgutil.iter_modules(search_path):
            if info.ispkg or info.name.startswith("_"):
                continue
            unit = RouteUnit(
                name=f"{namespace}.{module_to_unit_name(info.name)}",
                argv=(python or sys.executable, "-m", f"{package}.{info.name}"),
                env=env,
            )
            registry.register(unit)

        logger.info("discovered %d route units in %s: %s", len(registry), package, registry.names())
        return registry


def _source_root(package: str) -> str:
    top_level = importlib.import_module(package.split(".")[0])
    return str(Path(top_level.__file__).resolve().parent.parent)


def _pythonpath_with(entry: str) -> str:
    existing = os.environ.get("PYTHONPATH")
    if not existing:
        return entry
    return os.pathsep.join([entry, existing])
