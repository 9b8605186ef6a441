from datetime import UTC, datetime, timedelta

import pytest

from classpoints.core.exceptions import StudentNotFound, ValidationError
from classpoints.db.documents import CONFIG, POINTS, STUDENTS
from classpoints.models import RecordKind
from classpoints.services.ledger import PointOperation
from tests.conftest import make_product, make_student


def test_add_updates_balance_and_ledger(services):
    make_student(services, "2024001")
    record, balance = services.ledger.add_points("2024001", 10, "excellent", "admin")

    assert balance == 10
    assert record.kind == RecordKind.ADD
    assert record.id.startswith("point_")
    assert services.ledger.balance_of("2024001") == 10
    assert services.students.get("2024001").balance == 10


def test_subtract_writes_negative_record(services):
    make_student(services, "s1", balance=30)
    record, balance = services.ledger.subtract_points("s1", 5, "late", "admin")
    assert record.points == -5
    assert record.kind == RecordKind.SUBTRACT
    assert balance == 25


@pytest.mark.parametrize("points", [0, -3, 101])
def test_add_rejects_bad_amounts(services, points):
    make_student(services, "s1")
    with pytest.raises(ValidationError) as exc_info:
        services.ledger.add_points("s1", points, "reason", "admin")
    assert exc_info.value.code == "INVALID_POINTS"
    assert services.ledger.records() == []


def test_max_points_follows_config(services):
    make_student(services, "s1")
    config = services.store.read(CONFIG)
    config.max_points_per_operation = 200
    services.store.write(CONFIG, config)
    _, balance = services.ledger.add_points("s1", 150, "project", "admin")
    assert balance == 150


def test_append_validation(services):
    make_student(services, "s1")
    with pytest.raises(ValidationError) as exc_info:
        services.ledger.append("s1", 5, "   ", "admin", RecordKind.ADD)
    assert exc_info.value.code == "INVALID_REASON"

    with pytest.raises(ValidationError):
        services.ledger.append("s1", 5, "wrong sign", "admin", RecordKind.SUBTRACT)

    with pytest.raises(ValidationError):
        services.ledger.append("s1", 5, "unknown", "admin", "bonus")

    with pytest.raises(StudentNotFound):
        services.ledger.append("ghost", 5, "reason", "admin", RecordKind.ADD)


def test_history_is_newest_first_and_limited(services):
    make_student(services, "s1")
    make_student(services, "s2")
    for points in (1, 2, 3):
        services.ledger.add_points("s1", points, f"r{points}", "admin")
    services.ledger.add_points("s2", 9, "other", "admin")

    history = services.ledger.history_of("s1")
    assert [record.points for record in history] == [3, 2, 1]
    assert [record.points for record in services.ledger.history_of("s1", limit=2)] == [3, 2]


def test_records_between(services):
    make_student(services, "s1")
    make_student(services, "s2")
    services.ledger.add_points("s1", 4, "a", "admin")
    services.ledger.add_points("s2", 6, "b", "admin")

    now = datetime.now(UTC)
    assert len(services.ledger.records_between(now - timedelta(hours=1), now + timedelta(hours=1))) == 2
    assert len(services.ledger.records_between(now - timedelta(hours=1), None, "s2")) == 1
    assert services.ledger.records_between(now + timedelta(hours=1), None) == []

    with pytest.raises(ValidationError) as exc_info:
        services.ledger.records_between(now, now - timedelta(days=1))
    assert exc_info.value.code == "INVALID_DATE_RANGE"


def test_batch_partitions_results(services):
    make_student(services, "s1")
    result = services.ledger.batch_append(
        [
            PointOperation("s1", 5, "good"),
            PointOperation("ghost", 5, "good"),
            PointOperation("s1", -2, "noise"),
            PointOperation("s1", 500, "too much"),
        ],
        "admin",
    )
    assert [item["index"] for item in result.succeeded] == [0, 2]
    assert [(item["index"], item["code"]) for item in result.failed] == [
        (1, "STUDENT_NOT_FOUND"),
        (3, "INVALID_POINTS"),
    ]
    assert services.students.get("s1").balance == 3


def test_reset_all_zeroes_ledger_sums(services):
    make_student(services, "s1", balance=40)
    make_student(services, "s2", balance=15)
    services.ledger.subtract_points("s2", 20, "penalty", "admin")
    make_student(services, "s3")

    written = services.ledger.reset_all("admin", "new term")
    assert len(written) == 2
    for student_id in ("s1", "s2", "s3"):
        assert services.ledger.balance_of(student_id) == 0
        assert services.students.get(student_id).balance == 0
    kinds = {record.student_id: record.kind for record in written}
    assert kinds == {"s1": RecordKind.SUBTRACT, "s2": RecordKind.ADD}
    # history is kept
    assert len(services.ledger.records()) == 5


def test_reconcile_corrects_drift_and_respects_frozen(services):
    make_student(services, "s1", balance=100)
    make_student(services, "s2", balance=10)
    product = make_product(services, price=30)
    services.reservations.reserve("s1", product.id)

    students = services.store.read(STUDENTS)
    students.find("s2").balance = 999
    services.store.write(STUDENTS, students)

    corrections = services.ledger.reconcile()
    assert corrections == [{"studentId": "s2", "previousBalance": 999, "balance": 10}]
    assert services.students.get("s1").balance == 70
    assert services.ledger.reconcile() == []


def test_ledger_is_append_only(services):
    make_student(services, "s1")
    services.ledger.add_points("s1", 5, "a", "admin")
    first = [record.id for record in services.store.read(POINTS).records]
    services.ledger.subtract_points("s1", 2, "b", "admin")
    second = [record.id for record in services.store.read(POINTS).records]
    assert second[: len(first)] == first


def test_statistics(services):
    make_student(services, "s1", balance=20)
    make_student(services, "s2")
    services.ledger.subtract_points("s1", 5, "noise", "admin")

    stats = services.ledger.statistics()
    assert stats["totalRecords"] == 2
    assert stats["totalPointsAwarded"] == 20
    assert stats["totalPointsDeducted"] == 5
    assert stats["averageBalance"] == 7.5
    assert stats["activeStudents"] == 1
    assert len(stats["recentActivity"]) == 2
