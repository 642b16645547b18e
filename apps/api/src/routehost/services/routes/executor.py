from __future__ import annotations

import logging
from pathlib import Path
import subprocess
from typing import Protocol

from routehost.errors import UnknownRouteError
from routehost.models import NOT_FINISHED, ExecResult
from routehost.services.routes.registry import RouteRegistry

logger = logging.getLogger(__name__)


class RouteExecutor(Protocol):
    def execute_once(self, unit_name: str, payload: str) -> ExecResult: ...

    def execute_to_files(
        self,
        unit_name: str,
        payload: str,
        *,
        stdout_path: Path,
        stderr_path: Path,
    ) -> int: ...


class SubprocessRouteExecutor:
    """Runs registered route units as child processes, one per call."""

    def __init__(self, registry: RouteRegistry) -> None:
        self._registry = registry

    def execute_once(self, unit_name: str, payload: str) -> ExecResult:
        try:
            unit = self._registry.resolve(unit_name)
        except UnknownRouteError as exc:
            return ExecResult(exit=NOT_FINISHED, stdout="", stderr=str(exc))

        try:
            completed = subprocess.run(
                unit.command(payload),
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                env=unit.environment(),
                check=False,
            )
        except (OSError, subprocess.SubprocessError) as exc:
            logger.warning("route %s failed to run: %r", unit_name, exc)
            return ExecResult(exit=NOT_FINISHED, stdout="", stderr=f"Exception: {exc!r}")

        if completed.returncode != 0:
            stderr = completed.stderr.strip()
            stderr_first_line = stderr.splitlines()[0] if stderr else "<empty>"
            logger.info(
                "route %s exited %d stderr_first=%s",
                unit_name,
                completed.returncode,
                stderr_first_line,
            )
        return ExecResult(exit=completed.returncode, stdout=completed.stdout, stderr=completed.stderr)

    def execute_to_files(
        self,
        unit_name: str,
        payload: str,
        *,
        stdout_path: Path,
        stderr_path: Path,
    ) -> int:
        unit = self._registry.resolve(unit_name)
        stdout_path.parent.mkdir(parents=True, exist_ok=True)
        stderr_path.parent.mkdir(parents=True, exist_ok=True)
        with open(stdout_path, "wb") as stdout, open(stderr_path, "wb") as stderr:
            completed = subprocess.run(
                unit.command(payload),
                stdout=stdout,
                stderr=stderr,
                env=unit.environment(),
                check=False,
            )
        return completed.returncode
