from pathlib import Path

from fastapi.testclient import TestClient

from conftest import python_unit
from routehost.main import app, get_orchestrator
from routehost.services.routes import RouteRegistry, SubprocessRouteExecutor

BOOM = python_unit("routes.api.Boom", "import sys; sys.stderr.write('boom'); sys.exit(3)")


def test_sync_route_returns_unit_stdout(client: TestClient) -> None:
    response = client.get("/api/echo?greeting=hello%20world")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/json")
    body = response.json()
    assert body["route"] == "Echo"
    assert body["query"]["greeting"] == "hello world"
    assert body["queryRaw"].startswith("greeting=hello%20world&__post=")
    assert body["postBodyLength"] == 0
    assert Path(body["postPath"]).parent.name == "post"


def test_sync_route_without_segment_defaults_to_echo(client: TestClient) -> None:
    response = client.get("/api")

    assert response.status_code == 200
    assert response.json()["route"] == "Echo"


def test_sync_route_accepts_query_starting_with_dash(client: TestClient) -> None:
    response = client.get("/api/echo?-x=1")

    assert response.status_code == 200, response.text
    body = response.json()
    assert body["queryRaw"].startswith("-x=1&__post=")
    assert body["query"]["-x"] == "1"


def test_sync_route_answers_head(client: TestClient) -> None:
    response = client.head("/api/echo?greeting=hi")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/json")


def test_sync_route_segment_is_normalized(client: TestClient) -> None:
    response = client.get("/api/e-cho!")

    assert response.status_code == 200
    assert response.json()["route"] == "Echo"


def test_sync_route_passes_post_body_through_file(client: TestClient) -> None:
    response = client.put("/api/echo", content=b"x" * 300)

    assert response.status_code == 200
    body = response.json()
    assert body["postBodyLength"] == 300
    assert body["postBodyPreview"] == "x" * 256
    assert body["query"] == {"__post": body["postPath"]}


def test_sync_route_unknown_unit_is_404(client: TestClient) -> None:
    response = client.get("/api/nothingHere")

    assert response.status_code == 404
    assert response.text == "No such route: routes.api.NothingHere"


def test_sync_route_failure_returns_500_with_stderr(client: TestClient, make_orchestrator) -> None:
    registry = RouteRegistry([BOOM])
    orchestrator = make_orchestrator(SubprocessRouteExecutor(registry), registry=registry)
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator

    response = client.get("/api/boom")

    assert response.status_code == 500
    assert response.text.startswith("Route process failed (exit 3)\n")
    assert "boom" in response.text
