from fastapi.testclient import TestClient

from tests.conftest import make_student, student_headers, teacher_headers


def test_mode_is_public_to_read(app_client: TestClient):
    response = app_client.get("/config/mode")
    assert response.status_code == 200
    assert response.json()["data"] == {"mode": "normal", "modeText": "平时模式"}


def test_entering_class_mode_requires_teacher(app_client: TestClient, services):
    make_student(services, "s1")

    anonymous = app_client.post("/config/mode", json={"mode": "class"})
    assert anonymous.status_code == 401

    student = app_client.post("/config/mode", json={"mode": "class"}, headers=student_headers(app_client, "s1"))
    assert student.status_code == 403

    teacher = app_client.post("/config/mode", json={"mode": "class"}, headers=teacher_headers(app_client))
    assert teacher.status_code == 200
    assert teacher.json()["data"]["modeText"] == "上课模式"

    back = app_client.post("/config/mode", json={"mode": "normal"})
    assert back.status_code == 200
    assert services.config.get().mode == "normal"

    bad = app_client.post("/config/mode", json={"mode": "party"})
    assert bad.status_code == 400
    assert bad.json()["code"] == "INVALID_MODE"


def test_config_update_is_validated(app_client: TestClient):
    teacher = teacher_headers(app_client)
    assert app_client.get("/config").status_code == 401

    response = app_client.put("/config", headers=teacher, json={"maxPointsPerOperation": 0})
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_MAX_POINTS"

    response = app_client.put("/config", headers=teacher, json={"autoRefreshInterval": 301})
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_REFRESH_INTERVAL"

    response = app_client.put(
        "/config", headers=teacher, json={"maxPointsPerOperation": 500, "className": "Sunflowers"}
    )
    assert response.status_code == 200
    config = app_client.get("/config", headers=teacher).json()["data"]
    assert config["maxPointsPerOperation"] == 500
    assert config["className"] == "Sunflowers"
    assert config["autoRefreshInterval"] == 30


def test_reset_points_requires_toggle(app_client: TestClient, services):
    make_student(services, "s1", balance=25)
    teacher = teacher_headers(app_client)

    response = app_client.post("/config/reset-points", headers=teacher, json={"reason": "new term"})
    assert response.status_code == 403
    assert response.json()["code"] == "RESET_DISABLED"

    toggled = app_client.post("/config/reset-points/toggle", headers=teacher, json={"enabled": True})
    assert toggled.json()["data"]["pointsResetEnabled"] is True

    response = app_client.post("/config/reset-points", headers=teacher, json={"reason": "new term"})
    assert response.status_code == 200
    assert response.json()["data"]["affectedStudents"] == 1
    assert services.students.get("s1").balance == 0
    assert services.ledger.balance_of("s1") == 0
