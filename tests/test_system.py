from fastapi import FastAPI
from fastapi.testclient import TestClient

from classpoints.core.middleware import RateLimitMiddleware
from tests.conftest import teacher_headers


def test_health_and_info(app_client: TestClient):
    health = app_client.get("/health")
    assert health.status_code == 200
    assert health.json()["status"] == "ok"
    assert health.headers["X-Request-ID"]

    info = app_client.get("/system/info")
    assert info.status_code == 200
    assert info.json()["data"]["sseConnections"] == 0
    assert info.json()["data"]["weekStart"] == "sunday"


def test_bootstrap_teacher_is_created(app_client: TestClient, services):
    assert services.accounts.teacher("admin") is not None
    assert teacher_headers(app_client)


def test_request_id_is_echoed(app_client: TestClient):
    response = app_client.get("/config/mode", headers={"X-Request-ID": "abc123"})
    assert response.headers["X-Request-ID"] == "abc123"


def test_unknown_route_uses_envelope(app_client: TestClient):
    response = app_client.get("/nowhere")
    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Not Found", "code": "RESOURCE_NOT_FOUND"}


def test_oversized_body_is_rejected(app_client: TestClient):
    response = app_client.post(
        "/auth/student-login",
        content=b"x" * (1024 * 1024 + 1),
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 413
    assert response.json()["code"] == "PAYLOAD_TOO_LARGE"


def test_unexpected_errors_are_masked(services, monkeypatch):
    from classpoints.main import create_app

    def explode():
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(services.ledger, "statistics", explode)
    app = create_app(services)
    with TestClient(app, raise_server_exceptions=False) as client:
        response = client.get("/points/statistics", headers=teacher_headers(client))

    assert response.status_code == 500
    body = response.json()
    assert body["code"] == "INTERNAL_ERROR"
    assert "disk on fire" not in body["message"]
    assert body["data"]["correlationId"]


def test_rate_limit_middleware():
    now = [0.0]
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, limit_per_minute=2, clock=lambda: now[0])

    @app.get("/ping")
    def ping():
        return {"success": True}

    client = TestClient(app)
    assert client.get("/ping").status_code == 200
    assert client.get("/ping").status_code == 200
    limited = client.get("/ping")
    assert limited.status_code == 429
    assert limited.json()["code"] == "RATE_LIMITED"
    assert limited.headers["Retry-After"] == "60"

    now[0] = 61.0
    assert client.get("/ping").status_code == 200


def test_sse_status_and_test_event(app_client: TestClient):
    status = app_client.get("/sse/status")
    assert status.status_code == 200
    assert status.json()["data"]["activeConnections"] == 0

    assert app_client.post("/sse/test", json={"message": "hi"}).status_code == 401
    response = app_client.post("/sse/test", headers=teacher_headers(app_client), json={"message": "hi"})
    assert response.status_code == 200
    assert response.json()["data"]["delivered"] == 0


def test_application_module_imports(settings_env):
    import importlib

    from fastapi import FastAPI

    module = importlib.import_module("classpoints.main")
    assert isinstance(module.app, FastAPI)


def test_service_annotations_resolve(settings_env):
    import inspect
    import typing

    from classpoints.services.products import ProductService
    from classpoints.services.reservations import ReservationEngine
    from classpoints.services.students import StudentService

    # these classes define a method named list; their other annotations must still use the builtin
    for cls in (ProductService, ReservationEngine, StudentService):
        for name, member in inspect.getmembers(cls, inspect.isfunction):
            typing.get_type_hints(member)
    assert typing.get_type_hints(ProductService.batch_status)["product_ids"] == list[str]


def test_rate_limit_forgets_idle_clients():
    from collections import deque

    middleware = RateLimitMiddleware(FastAPI(), limit_per_minute=5)
    middleware._hits = {"10.0.0.1": deque([0.0]), "10.0.0.2": deque([50.0]), "10.0.0.3": deque()}

    middleware._sweep(100.0)

    assert list(middleware._hits) == ["10.0.0.2"]


def test_rate_limit_sweeps_while_serving():
    now = [0.0]
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, limit_per_minute=1, clock=lambda: now[0])

    @app.get("/ping")
    def ping():
        return {"success": True}

    client = TestClient(app)
    assert client.get("/ping", headers={"X-Forwarded-For": "10.0.0.1"}).status_code == 200
    now[0] = 30.0
    assert client.get("/ping", headers={"X-Forwarded-For": "10.0.0.2"}).status_code == 200
    now[0] = 75.0
    # 10.0.0.1 has been idle for over a minute and is dropped; 10.0.0.2 is still limited
    assert client.get("/ping", headers={"X-Forwarded-For": "10.0.0.3"}).status_code == 200
    assert client.get("/ping", headers={"X-Forwarded-For": "10.0.0.2"}).status_code == 429


def test_logout_needs_no_token(app_client: TestClient):
    response = app_client.post("/auth/logout")
    assert response.status_code == 200
    assert response.json()["success"] is True


def test_domain_error_statuses():
    from classpoints.core import exceptions

    assert exceptions.StudentIdInUse().status_code == 409
    assert exceptions.StudentIdInUse().code == "STUDENT_ID_IN_USE"
    assert exceptions.InsufficientPoints().status_code == 400
    assert exceptions.OutOfStock().status_code == 409
    assert exceptions.ResetDisabled().status_code == 403
    # writers are serialized by collection locks; there is no optimistic conflict error
    assert not hasattr(exceptions, "WriteConflict")
