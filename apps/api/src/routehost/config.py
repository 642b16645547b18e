from dataclasses import dataclass
from functools import lru_cache
import os
from pathlib import Path


def _to_int(value: str | None, *, default: int, minimum: int) -> int:
    if value is None:
        return max(minimum, default)
    parsed = int(value)
    return max(minimum, parsed)


def _default_worker_count() -> int:
    return (os.cpu_count() or 1) // 2


@dataclass(frozen=True)
class Settings:
    build_dir: str
    worker_count: int
    max_jobs: int
    job_ttl_seconds: int
    route_package: str
    host: str
    port: int
    log_level: str

    @property
    def post_dir(self) -> Path:
        return Path(self.build_dir) / "post"

    @property
    def jobs_dir(self) -> Path:
        return Path(self.build_dir) / "jobs"

    @property
    def log_file(self) -> Path:
        return Path(self.build_dir) / "logs" / "app.log"


@lru_cache
def get_settings() -> Settings:
    return Settings(
        build_dir=os.getenv("ROUTEHOST_BUILD_DIR", "build"),
        worker_count=_to_int(
            os.getenv("ROUTEHOST_WORKERS"),
            default=_default_worker_count(),
            minimum=2,
        ),
        max_jobs=_to_int(os.getenv("ROUTEHOST_MAX_JOBS"), default=1000, minimum=1),
        job_ttl_seconds=_to_int(os.getenv("ROUTEHOST_JOB_TTL_SECONDS"), default=3600, minimum=0),
        route_package=os.getenv("ROUTEHOST_ROUTE_PACKAGE", "routehost.routes.api"),
        host=os.getenv("ROUTEHOST_HOST", "0.0.0.0"),
        port=_to_int(os.getenv("ROUTEHOST_PORT"), default=8080, minimum=1),
        log_level=os.getenv("ROUTEHOST_LOG_LEVEL", "INFO").upper(),
    )
