from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from threading import Lock
import time
import uuid

NOT_FINISHED = -1


def now_ms() -> int:
    return int(time.time() * 1000)


class JobState(str, Enum):
    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    DONE = "DONE"


@dataclass(frozen=True)
class ExecResult:
    exit: int
    stdout: str
    stderr: str


@dataclass(frozen=True)
class JobSnapshot:
    id: str
    unit_name: str
    payload: str
    sid: str
    state: JobState
    exit: int
    start_ms: int
    end_ms: int
    stdout_path: Path
    stderr_path: Path

    def runtime_ms(self, now: int | None = None) -> int:
        if self.start_ms == 0:
            return 0
        if self.end_ms == 0:
            return (now if now is not None else now_ms()) - self.start_ms
        return self.end_ms - self.start_ms


class Job:
    """A tracked asynchronous invocation of a route unit.

    Identity, unit, payload, session and output paths are fixed at creation.
    State, exit code and timestamps change only through ``start`` and
    ``finish``, which are compare-and-swap transitions under a per-job lock,
    so a reader taking a ``snapshot`` never sees a half-applied transition.
    """

    def __init__(self, unit_name: str, payload: str, sid: str | None, jobs_dir: Path) -> None:
        self.id = str(uuid.uuid4())
        self.unit_name = unit_name
        self.payload = payload
        self.sid = sid or ""
        self.stdout_path = jobs_dir / f"{self.id}.out"
        self.stderr_path = jobs_dir / f"{self.id}.err"

        self._lock = Lock()
        self._state = JobState.QUEUED
        self._exit = NOT_FINISHED
        self._start_ms = 0
        self._end_ms = 0

    def start(self, at_ms: int | None = None) -> bool:
        with self._lock:
            if self._state is not JobState.QUEUED:
                return False
            self._start_ms = at_ms if at_ms is not None else now_ms()
            self._state = JobState.RUNNING
            return True

    def finish(self, exit_code: int, at_ms: int | None = None) -> bool:
        with self._lock:
            if self._state is not JobState.RUNNING:
                return False
            self._exit = exit_code
            self._end_ms = max(self._start_ms, at_ms if at_ms is not None else now_ms())
            self._state = JobState.DONE
            return True

    def snapshot(self) -> JobSnapshot:
        with self._lock:
            return JobSnapshot(
                id=self.id,
                unit_name=self.unit_name,
                payload=self.payload,
                sid=self.sid,
                state=self._state,
                exit=self._exit,
                start_ms=self._start_ms,
                end_ms=self._end_ms,
                stdout_path=self.stdout_path,
                stderr_path=self.stderr_path,
            )
