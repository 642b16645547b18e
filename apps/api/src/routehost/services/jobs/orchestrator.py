from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
import logging
from pathlib import Path
import uuid

from routehost.errors import JobNotFoundError, OutputReadError
from routehost.models import NOT_FINISHED, ExecResult, Job, JobSnapshot, JobState
from routehost.services.jobs.store import JobStore
from routehost.services.routes.executor import RouteExecutor
from routehost.services.routes.registry import RouteRegistry

logger = logging.getLogger(__name__)

STREAMS = ("stdout", "stderr")


class JobOrchestrator:
    """Runs route units synchronously or as tracked jobs on a fixed worker pool."""

    def __init__(
        self,
        *,
        executor: RouteExecutor,
        registry: RouteRegistry,
        store: JobStore,
        jobs_dir: Path,
        post_dir: Path,
        worker_count: int = 2,
    ) -> None:
        self._executor = executor
        self._registry = registry
        self._store = store
        self._jobs_dir = jobs_dir
        self._post_dir = post_dir
        self._jobs_dir.mkdir(parents=True, exist_ok=True)
        self._post_dir.mkdir(parents=True, exist_ok=True)
        self._pool = ThreadPoolExecutor(
            max_workers=max(2, worker_count),
            thread_name_prefix="routehost-job",
        )

    @property
    def store(self) -> JobStore:
        return self._store

    @property
    def registry(self) -> RouteRegistry:
        return self._registry

    def exec_sync(self, unit_name: str, payload: str) -> ExecResult:
        return self._executor.execute_once(unit_name, payload)

    def enqueue(self, unit_name: str, payload: str, sid: str | None = None) -> JobSnapshot:
        self._registry.resolve(unit_name)

        job = Job(unit_name, payload, sid, self._jobs_dir)
        snapshot = job.snapshot()
        self._store.add(job)
        self._pool.submit(self._run_job, job)
        logger.info("job queued job_id=%s class=%s sid=%s", job.id, unit_name, job.sid)

        self._discard(self._store.evict())
        return snapshot

    def get(self, job_id: str) -> JobSnapshot | None:
        job = self._store.get(job_id)
        if job is None:
            return None
        return job.snapshot()

    def read_output(self, job_id: str, stream: str = "stdout") -> bytes:
        if stream not in STREAMS:
            raise ValueError(f"stream must be one of {STREAMS}")
        snapshot = self.get(job_id)
        if snapshot is None:
            raise JobNotFoundError(job_id)
        if snapshot.state is JobState.QUEUED:
            return b""

        path = snapshot.stdout_path if stream == "stdout" else snapshot.stderr_path
        try:
            return path.read_bytes()
        except FileNotFoundError as exc:
            # evicted between get() and the read; its files are already gone
            if job_id not in self._store:
                raise JobNotFoundError(job_id) from exc
            if snapshot.state is JobState.RUNNING:
                return b""
            raise OutputReadError(f"Reading output failed: {exc}") from exc
        except OSError as exc:
            raise OutputReadError(f"Reading output failed: {exc}") from exc

    def persist_body(self, body: bytes | None) -> Path:
        post_path = self._post_dir / f"{uuid.uuid4()}.txt"
        post_path.write_bytes(body or b"")
        return post_path

    def shutdown(self, *, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)

    def _run_job(self, job: Job) -> None:
        if not job.start():
            logger.warning("job %s was not queued; skipping", job.id)
            return

        exit_code = NOT_FINISHED
        try:
            exit_code = self._executor.execute_to_files(
                job.unit_name,
                job.payload,
                stdout_path=job.stdout_path,
                stderr_path=job.stderr_path,
            )
        except Exception as exc:
            logger.exception("job failed to run job_id=%s class=%s", job.id, job.unit_name)
            self._append_failure(job, exc)
        finally:
            job.finish(exit_code)

        snapshot = job.snapshot()
        logger.info(
            "job done job_id=%s exit=%d runtime_ms=%d",
            job.id,
            snapshot.exit,
            snapshot.runtime_ms(),
        )

    def _append_failure(self, job: Job, exc: BaseException) -> None:
        try:
            job.stderr_path.parent.mkdir(parents=True, exist_ok=True)
            with open(job.stderr_path, "a", encoding="utf-8") as stderr:
                stderr.write(f"Exception: {exc!r}\n")
        except OSError:
            logger.exception("could not record failure for job_id=%s", job.id)

    def _discard(self, evicted: list[JobSnapshot]) -> None:
        for snapshot in evicted:
            for path in (snapshot.stdout_path, snapshot.stderr_path):
                try:
                    path.unlink(missing_ok=True)
                except OSError as exc:
                    logger.warning("could not remove %s: %r", path, exc)
        if evicted:
            logger.info("evicted %d finished jobs", len(evicted))
