from collections import deque
from collections.abc import Callable, Iterator
from pathlib import Path
import sys
from threading import Event, Lock
import time

import pytest
from fastapi.testclient import TestClient

from routehost.config import get_settings
from routehost.main import app, get_orchestrator
from routehost.models import ExecResult, JobSnapshot, JobState
from routehost.services.jobs import JobOrchestrator, JobStore
from routehost.services.routes import RouteRegistry, RouteUnit

FAKE_UNIT = "routes.api.Fake"


class FakeRouteExecutor:
    """Records invocations and replays canned results instead of spawning processes."""

    def __init__(self, fallback: ExecResult | None = None) -> None:
        self.invocations: list[tuple[str, str]] = []
        self.results: deque[ExecResult] = deque()
        self.fallback = fallback or ExecResult(exit=0, stdout="", stderr="")
        self.error: Exception | None = None
        self.gate: Event | None = None
        self._lock = Lock()

    def _next(self, unit_name: str, payload: str) -> ExecResult:
        with self._lock:
            self.invocations.append((unit_name, payload))
            return self.results.popleft() if self.results else self.fallback

    def execute_once(self, unit_name: str, payload: str) -> ExecResult:
        return self._next(unit_name, payload)

    def execute_to_files(
        self,
        unit_name: str,
        payload: str,
        *,
        stdout_path: Path,
        stderr_path: Path,
    ) -> int:
        if self.gate is not None:
            self.gate.wait(timeout=10)
        if self.error is not None:
            raise self.error
        result = self._next(unit_name, payload)
        stdout_path.write_text(result.stdout, encoding="utf-8")
        stderr_path.write_text(result.stderr, encoding="utf-8")
        return result.exit


def python_unit(name: str, code: str) -> RouteUnit:
    return RouteUnit(name=name, argv=(sys.executable, "-c", code))


@pytest.fixture(autouse=True)
def reset_caches(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[None]:
    monkeypatch.setenv("ROUTEHOST_BUILD_DIR", str(tmp_path / "build"))
    get_settings.cache_clear()
    get_orchestrator.cache_clear()
    yield
    if get_orchestrator.cache_info().currsize:
        get_orchestrator().shutdown(wait=True)
    get_settings.cache_clear()
    get_orchestrator.cache_clear()
    app.dependency_overrides.clear()


@pytest.fixture
def client() -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def fake_executor() -> FakeRouteExecutor:
    return FakeRouteExecutor()


@pytest.fixture
def make_orchestrator(tmp_path: Path) -> Iterator[Callable[..., JobOrchestrator]]:
    created: list[JobOrchestrator] = []

    def factory(
        executor,
        *,
        registry: RouteRegistry | None = None,
        store: JobStore | None = None,
        worker_count: int = 2,
    ) -> JobOrchestrator:
        if registry is None:
            registry = RouteRegistry([RouteUnit(name=FAKE_UNIT, argv=("fake",))])
        orchestrator = JobOrchestrator(
            executor=executor,
            registry=registry,
            store=store if store is not None else JobStore(),
            jobs_dir=tmp_path / "jobs",
            post_dir=tmp_path / "post",
            worker_count=worker_count,
        )
        created.append(orchestrator)
        return orchestrator

    yield factory

    for orchestrator in created:
        orchestrator.shutdown(wait=True)


@pytest.fixture
def wait_until_done() -> Callable[..., JobSnapshot]:
    def wait(orchestrator: JobOrchestrator, job_id: str, *, timeout: float = 15.0) -> JobSnapshot:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            job = orchestrator.get(job_id)
            assert job is not None
            if job.state is JobState.DONE:
                return job
            time.sleep(0.02)
        raise AssertionError(f"job {job_id} did not finish within {timeout}s")

    return wait
