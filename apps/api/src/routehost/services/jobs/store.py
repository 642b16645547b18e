from __future__ import annotations

from collections import OrderedDict
from threading import Lock

from routehost.models import Job, JobSnapshot, JobState, now_ms


class JobStore:
    """In-memory job records keyed by id, oldest first.

    Finished jobs are evicted once they are older than ``ttl_seconds`` or
    when more than ``max_jobs`` records are held. Queued and running jobs
    are never evicted, so the store may briefly exceed ``max_jobs``.
    """

    def __init__(self, *, max_jobs: int = 1000, ttl_seconds: int = 3600) -> None:
        if max_jobs < 1:
            raise ValueError("max_jobs must be at least 1")
        self._jobs: OrderedDict[str, Job] = OrderedDict()
        self._lock = Lock()
        self._max_jobs = max_jobs
        self._ttl_ms = max(0, ttl_seconds) * 1000

    def add(self, job: Job) -> None:
        with self._lock:
            if job.id in self._jobs:
                raise ValueError(f"duplicate job id {job.id}")
            self._jobs[job.id] = job

    def get(self, job_id: str) -> Job | None:
        with self._lock:
            return self._jobs.get(job_id)

    def snapshots(self) -> list[JobSnapshot]:
        with self._lock:
            jobs = list(self._jobs.values())
        return [job.snapshot() for job in jobs]

    def evict(self, at_ms: int | None = None) -> list[JobSnapshot]:
        current = at_ms if at_ms is not None else now_ms()
        evicted: list[JobSnapshot] = []
        with self._lock:
            finished = [
                snapshot
                for snapshot in (job.snapshot() for job in self._jobs.values())
                if snapshot.state is JobState.DONE
            ]
            finished.sort(key=lambda snapshot: snapshot.end_ms)
            overflow = len(self._jobs) - self._max_jobs
            for snapshot in finished:
                expired = current - snapshot.end_ms > self._ttl_ms
                if not expired and overflow <= 0:
                    continue
                del self._jobs[snapshot.id]
                evicted.append(snapshot)
                overflow -= 1
        return evicted

    def __contains__(self, job_id: object) -> bool:
        with self._lock:
            return job_id in self._jobs

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)
