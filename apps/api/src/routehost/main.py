from functools import lru_cache
import logging
from pathlib import Path
from typing import Annotated

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from pydantic import BaseModel, ConfigDict, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from routehost.config import get_settings
from routehost.errors import JobNotFoundError, OutputReadError, UnknownRouteError
from routehost.logging_setup import configure_logging
from routehost.models import JobSnapshot, JobState
from routehost.naming import qualify_unit_name
from routehost.services.jobs import JobOrchestrator, JobStore
from routehost.services.routes import RouteRegistry, SubprocessRouteExecutor, augment_query

logger = logging.getLogger(__name__)

app = FastAPI(title="Route Host", version="0.1.0")

ANY_METHOD = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
BODY_METHODS = {"POST", "PUT", "PATCH"}


class JobStartView(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(alias="jobId")
    state: JobState
    sid: str


class JobStatusView(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(alias="jobId")
    sid: str
    unit_name: str = Field(alias="class")
    state: JobState
    exit: int
    start_ms: int = Field(alias="startMs")
    end_ms: int = Field(alias="endMs")
    runtime_ms: int = Field(alias="runtimeMs")

    @classmethod
    def from_snapshot(cls, job: JobSnapshot) -> "JobStatusView":
        return cls(
            job_id=job.id,
            sid=job.sid,
            unit_name=job.unit_name,
            state=job.state,
            exit=job.exit,
            start_ms=job.start_ms,
            end_ms=job.end_ms,
            runtime_ms=job.runtime_ms(),
        )


@lru_cache
def get_orchestrator() -> JobOrchestrator:
    settings = get_settings()
    registry = RouteRegistry.discover(settings.route_package)
    return JobOrchestrator(
        executor=SubprocessRouteExecutor(registry),
        registry=registry,
        store=JobStore(max_jobs=settings.max_jobs, ttl_seconds=settings.job_ttl_seconds),
        jobs_dir=settings.jobs_dir,
        post_dir=settings.post_dir,
        worker_count=settings.worker_count,
    )


Orchestrator = Annotated[JobOrchestrator, Depends(get_orchestrator)]


@app.on_event("startup")
def startup() -> None:
    get_orchestrator()


@app.on_event("shutdown")
def shutdown() -> None:
    if get_orchestrator.cache_info().currsize:
        get_orchestrator().shutdown(wait=False)


@app.exception_handler(StarletteHTTPException)
async def plain_text_http_error(request: Request, exc: StarletteHTTPException) -> PlainTextResponse:
    return PlainTextResponse(str(exc.detail), status_code=exc.status_code, headers=exc.headers)


def _is_blank(value: str | None) -> bool:
    return value is None or not value.strip()


async def _persist_body(request: Request, orchestrator: JobOrchestrator) -> Path:
    body = await request.body() if request.method.upper() in BODY_METHODS else b""
    return await run_in_threadpool(orchestrator.persist_body, body)


def _require_unit(orchestrator: JobOrchestrator, unit_name: str) -> None:
    if unit_name not in orchestrator.registry:
        raise HTTPException(status_code=404, detail=f"No such route: {unit_name}")


def _require_job(orchestrator: JobOrchestrator, job_id: str | None) -> JobSnapshot:
    if _is_blank(job_id):
        raise HTTPException(status_code=400, detail="Missing id")
    job = orchestrator.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="No such job")
    return job


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.api_route("/api/job/start", methods=ANY_METHOD)
async def start_job(
    request: Request,
    orchestrator: Orchestrator,
    name: str | None = Query(default=None),
    unit_class: str | None = Query(default=None, alias="class"),
    sid: str = Query(default=""),
) -> JSONResponse:
    if _is_blank(name) and _is_blank(unit_class):
        raise HTTPException(status_code=400, detail="Missing name= or class=")

    unit_name = unit_class if not _is_blank(unit_class) else qualify_unit_name(name)
    _require_unit(orchestrator, unit_name)

    post_path = await _persist_body(request, orchestrator)
    payload = augment_query(request.url.query, post_path=post_path, sid=sid)
    try:
        job = orchestrator.enqueue(unit_name, payload, sid)
    except UnknownRouteError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc

    view = JobStartView(job_id=job.id, state=job.state, sid=job.sid)
    return JSONResponse(content=view.model_dump(mode="json", by_alias=True))


@app.api_route("/api/job/status", methods=ANY_METHOD)
def job_status(
    orchestrator: Orchestrator,
    job_id: str | None = Query(default=None, alias="id"),
) -> JSONResponse:
    job = _require_job(orchestrator, job_id)
    view = JobStatusView.from_snapshot(job)
    return JSONResponse(content=view.model_dump(mode="json", by_alias=True))


@app.api_route("/api/job/output", methods=ANY_METHOD)
def job_output(
    orchestrator: Orchestrator,
    job_id: str | None = Query(default=None, alias="id"),
    stream: str = Query(default="stdout"),
) -> Response:
    job = _require_job(orchestrator, job_id)
    if stream not in ("stdout", "stderr"):
        raise HTTPException(status_code=400, detail="stream must be stdout or stderr")

    try:
        content = orchestrator.read_output(job.id, stream)
    except JobNotFoundError as exc:
        raise HTTPException(status_code=404, detail="No such job") from exc
    except OutputReadError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    return Response(content=content, media_type="text/plain; charset=utf-8")


async def _run_route(request: Request, orchestrator: JobOrchestrator, segment: str) -> Response:
    unit_name = qualify_unit_name(segment)
    _require_unit(orchestrator, unit_name)

    post_path = await _persist_body(request, orchestrator)
    payload = augment_query(request.url.query, post_path=post_path)
    result = await run_in_threadpool(orchestrator.exec_sync, unit_name, payload)

    if result.exit != 0:
        return PlainTextResponse(
            f"Route process failed (exit {result.exit})\n{result.stderr}",
            status_code=500,
        )
    return Response(content=result.stdout, media_type="application/json; charset=utf-8")


@app.api_route("/api", methods=ANY_METHOD)
async def run_default_route(request: Request, orchestrator: Orchestrator) -> Response:
    return await _run_route(request, orchestrator, "")


@app.api_route("/api/{segment}", methods=ANY_METHOD)
async def run_route(request: Request, orchestrator: Orchestrator, segment: str) -> Response:
    return await _run_route(request, orchestrator, segment)


def run() -> None:
    import uvicorn

    settings = get_settings()
    configure_logging(settings)
    logger.info("starting route host on %s:%d", settings.host, settings.port)
    uvicorn.run("routehost.main:app", host=settings.host, port=settings.port, reload=False)


if __name__ == "__main__":
    run()
