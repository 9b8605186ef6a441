from concurrent.futures import ThreadPoolExecutor

from fastapi.testclient import TestClient

from tests.conftest import make_product, make_student, student_headers, teacher_headers


def _reserve(client: TestClient, headers, student_id: str, product_id: str):
    return client.post("/orders/reserve", headers=headers, json={"studentId": student_id, "productId": product_id})


def test_insufficient_points(app_client: TestClient, services):
    make_student(services, "s1", balance=20)
    product = make_product(services, price=50, stock=10)

    response = _reserve(app_client, student_headers(app_client, "s1"), "s1", product.id)
    assert response.status_code == 400
    assert response.json()["code"] == "INSUFFICIENT_POINTS"
    assert services.students.get("s1").balance == 20
    assert services.reservations.list() == []


def test_duplicate_then_confirm(app_client: TestClient, services):
    make_student(services, "s1", balance=200)
    product = make_product(services, price=50, stock=10)
    headers = student_headers(app_client, "s1")

    first = _reserve(app_client, headers, "s1", product.id)
    assert first.status_code == 201, first.text
    second = _reserve(app_client, headers, "s1", product.id)
    assert second.status_code == 409
    assert second.json()["code"] == "DUPLICATE_RESERVATION"
    assert services.students.get("s1").balance == 150
    assert len(services.reservations.list(status="pending")) == 1

    order_id = first.json()["data"]["id"]
    response = app_client.post(f"/orders/{order_id}/confirm", headers=teacher_headers(app_client))
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "confirmed"
    assert services.products.get(product.id).stock == 9
    assert services.students.get("s1").balance == 150
    latest = services.ledger.history_of("s1")[0]
    assert latest.points == -50
    assert latest.kind.value == "purchase"


def test_cancel_flow(app_client: TestClient, services):
    make_student(services, "s1", balance=200)
    product = make_product(services, price=50, stock=10)
    headers = student_headers(app_client, "s1")
    order_id = _reserve(app_client, headers, "s1", product.id).json()["data"]["id"]
    records_before = len(services.ledger.records())

    response = app_client.post(f"/orders/{order_id}/cancel", headers=headers)
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "cancelled"
    assert services.students.get("s1").balance == 200
    assert len(services.ledger.records()) == records_before
    assert services.products.get(product.id).stock == 10

    again = app_client.post(f"/orders/{order_id}/cancel", headers=headers)
    assert again.status_code == 409
    assert again.json()["code"] == "INVALID_ORDER_STATUS"


def test_concurrent_stock_race(app_client: TestClient, services):
    product = make_product(services, price=10, stock=2)
    attempts = []
    for index in range(3):
        student_id = f"race{index}"
        make_student(services, student_id, balance=100)
        attempts.append((student_id, student_headers(app_client, student_id)))

    with ThreadPoolExecutor(max_workers=3) as pool:
        responses = list(pool.map(lambda item: _reserve(app_client, item[1], item[0], product.id), attempts))

    statuses = sorted(response.status_code for response in responses)
    assert statuses == [201, 201, 409]
    failed = next(response for response in responses if response.status_code == 409)
    assert failed.json()["code"] == "OUT_OF_STOCK"

    teacher = teacher_headers(app_client)
    for response in responses:
        if response.status_code == 201:
            order_id = response.json()["data"]["id"]
            assert app_client.post(f"/orders/{order_id}/confirm", headers=teacher).status_code == 200
    assert services.products.get(product.id).stock == 0


def test_order_visibility_rules(app_client: TestClient, services):
    make_student(services, "s1", balance=100)
    make_student(services, "s2", balance=100)
    product = make_product(services, price=10, stock=10)
    s1 = student_headers(app_client, "s1")
    s2 = student_headers(app_client, "s2")

    response = _reserve(app_client, s1, "s2", product.id)
    assert response.status_code == 403

    order_id = _reserve(app_client, s1, "s1", product.id).json()["data"]["id"]
    _reserve(app_client, s2, "s2", product.id)

    own = app_client.get("/orders", headers=s1)
    assert own.status_code == 200
    assert [order["studentId"] for order in own.json()["data"]["orders"]] == ["s1"]

    assert app_client.get(f"/orders/{order_id}", headers=s2).status_code == 403
    assert app_client.post(f"/orders/{order_id}/cancel", headers=s2).status_code == 403
    assert app_client.post(f"/orders/{order_id}/confirm", headers=s1).status_code == 403
    assert app_client.get("/orders/pending", headers=s1).status_code == 403

    teacher = teacher_headers(app_client)
    everything = app_client.get("/orders", headers=teacher, params={"status": "pending"})
    assert everything.json()["data"]["total"] == 2
    pending = app_client.get("/orders/pending", headers=teacher)
    assert pending.json()["data"]["total"] == 2
    assert pending.json()["data"]["orders"][0]["product"]["name"] == "Notebook"

    stats = app_client.get("/orders/statistics", headers=teacher)
    assert stats.json()["data"]["pending"] == 2

    missing = app_client.get("/orders/order_missing", headers=teacher)
    assert missing.status_code == 404
    assert missing.json()["code"] == "ORDER_NOT_FOUND"


def test_confirm_after_product_deleted(app_client: TestClient, services):
    make_student(services, "s1", balance=100)
    product = make_product(services, price=10, stock=10)
    order_id = _reserve(app_client, student_headers(app_client, "s1"), "s1", product.id).json()["data"]["id"]
    teacher = teacher_headers(app_client)

    assert app_client.delete(f"/products/{product.id}", headers=teacher).status_code == 200
    response = app_client.post(f"/orders/{order_id}/confirm", headers=teacher)
    assert response.status_code == 404
    assert response.json()["code"] == "PRODUCT_NOT_FOUND"
    assert app_client.get(f"/orders/{order_id}", headers=teacher).json()["data"]["status"] == "pending"
