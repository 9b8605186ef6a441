from pathlib import Path

import pytest
from fastapi.testclient import TestClient


@pytest.fixture()
def settings_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    data_dir = tmp_path / "data"
    monkeypatch.setenv("DATA_DIR", str(data_dir))
    monkeypatch.setenv("AUTO_CREATE_TEACHER", "true")
    monkeypatch.setenv("BOOTSTRAP_TEACHER_LOGIN", "admin")
    monkeypatch.setenv("BOOTSTRAP_TEACHER_PASSWORD", "admin123")
    monkeypatch.setenv("JWT_SECRET", "test-secret")
    monkeypatch.setenv("RATE_LIMIT_PER_MINUTE", "0")
    monkeypatch.setenv("LOG_LEVEL", "WARNING")

    from classpoints.core.config import clear_settings_cache, get_settings

    clear_settings_cache()
    yield get_settings()
    clear_settings_cache()


@pytest.fixture()
def services(settings_env):
    from classpoints.services.container import ServiceContainer

    return ServiceContainer(settings_env)


@pytest.fixture()
def app_client(services):
    from classpoints.main import create_app

    app = create_app(services)
    with TestClient(app) as client:
        yield client


def teacher_headers(client: TestClient, login: str = "admin", password: str = "admin123") -> dict[str, str]:
    response = client.post("/auth/teacher-login", json={"teacherId": login, "password": password})
    assert response.status_code == 200, response.text
    token = response.json()["data"]["token"]
    return {"Authorization": f"Bearer {token}"}


def student_headers(client: TestClient, student_id: str) -> dict[str, str]:
    response = client.post("/auth/student-login", json={"studentId": student_id})
    assert response.status_code == 200, response.text
    token = response.json()["data"]["token"]
    return {"Authorization": f"Bearer {token}"}


def make_student(services, student_id: str, balance: int = 0, name: str | None = None):
    services.students.create(student_id, name or f"Student {student_id}", "1A", publish=False)
    if balance:
        services.ledger.append(student_id, balance, "opening balance", "admin", "add")
    return services.students.get(student_id)


def make_product(services, name: str = "Notebook", price: int = 50, stock: int = 10):
    return services.products.create(name, price, stock)
