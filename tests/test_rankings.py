from datetime import UTC, datetime
from pathlib import Path

import pytest

from classpoints.core.exceptions import StudentNotFound, ValidationError
from classpoints.db.documents import POINTS, STUDENTS
from classpoints.db.store import JsonStore
from classpoints.models import PointRecord, PointsDocument, RecordKind, Student, StudentsDocument
from classpoints.services.rankings import RankingsService, RankingView

# Wednesday 2025-03-12 10:00 in Asia/Shanghai
NOW = datetime(2025, 3, 12, 2, 0, tzinfo=UTC)


def _record(student_id: str, points: int, when: datetime) -> PointRecord:
    return PointRecord(student_id=student_id, points=points, reason="seed", kind=RecordKind.ADD, timestamp=when)


@pytest.fixture()
def store(tmp_path: Path) -> JsonStore:
    store = JsonStore(tmp_path / "data")
    store.write(
        STUDENTS,
        StudentsDocument(
            students=[
                Student(id="c", name="Carol", class_name="1A", balance=10),
                Student(id="a", name="Alice", class_name="1A", balance=115),
                Student(id="b", name="Bob", class_name="1B", balance=20),
            ]
        ),
    )
    store.write(
        POINTS,
        PointsDocument(
            records=[
                _record("a", 100, datetime(2025, 2, 1, tzinfo=UTC)),
                _record("a", 5, datetime(2025, 3, 9, 0, 0, tzinfo=UTC)),
                _record("b", 20, datetime(2025, 3, 11, 15, 0, tzinfo=UTC)),
                _record("a", 10, datetime(2025, 3, 12, 1, 0, tzinfo=UTC)),
                _record("c", 10, datetime(2025, 3, 12, 3, 0, tzinfo=UTC)),
            ]
        ),
    )
    return store


def _service(store: JsonStore, week_start: int = 6) -> RankingsService:
    return RankingsService(store, timezone="Asia/Shanghai", week_start=week_start, now=lambda: NOW)


def _order(entries):
    return [(entry["studentId"], entry["points"], entry["rank"]) for entry in entries]


def test_total_ranking_uses_balances(store):
    entries = _service(store).get(RankingView.TOTAL, 50)
    assert _order(entries) == [("a", 115, 1), ("b", 20, 2), ("c", 10, 3)]
    assert entries[0]["name"] == "Alice"
    assert entries[0]["class"] == "1A"
    assert entries[0]["type"] == "total"


def test_daily_ranking_uses_local_day_and_breaks_ties_by_id(store):
    entries = _service(store).get("daily", 50)
    assert _order(entries) == [("a", 10, 1), ("c", 10, 2), ("b", 0, 3)]


def test_weekly_ranking_starts_on_sunday(store):
    entries = _service(store).get(RankingView.WEEKLY, 50)
    assert _order(entries) == [("b", 20, 1), ("a", 15, 2), ("c", 10, 3)]


def test_week_start_is_configurable(store):
    entries = _service(store, week_start=0).get(RankingView.WEEKLY, 50)
    assert _order(entries) == [("b", 20, 1), ("a", 10, 2), ("c", 10, 3)]


def test_limit_truncates(store):
    assert _order(_service(store).get(RankingView.TOTAL, 2)) == [("a", 115, 1), ("b", 20, 2)]


def test_rankings_are_deterministic(store):
    service = _service(store)
    first = service.get(RankingView.DAILY, 50)
    service.invalidate()
    assert service.get(RankingView.DAILY, 50) == first


def test_invalid_view_and_limit(store):
    service = _service(store)
    with pytest.raises(ValidationError) as exc_info:
        service.get("monthly", 10)
    assert exc_info.value.code == "INVALID_RANKING_TYPE"
    with pytest.raises(ValidationError) as exc_info:
        service.get(RankingView.TOTAL, 0)
    assert exc_info.value.code == "INVALID_LIMIT"


def test_cache_hits_until_store_changes(store, monkeypatch):
    service = _service(store)
    calls = []
    original = service._compute

    def counting(view, limit):
        calls.append((view, limit))
        return original(view, limit)

    monkeypatch.setattr(service, "_compute", counting)
    service.get(RankingView.TOTAL, 10)
    service.get(RankingView.TOTAL, 10)
    assert len(calls) == 1

    students = store.read(STUDENTS)
    students.find("c").balance = 500
    store.write(STUDENTS, students)
    entries = service.get(RankingView.TOTAL, 10)
    assert len(calls) == 2
    assert entries[0]["studentId"] == "c"


def test_deleted_students_are_excluded(store):
    students = store.read(STUDENTS)
    students.students = [student for student in students.students if student.id != "a"]
    store.write(STUDENTS, students)

    entries = _service(store).get(RankingView.WEEKLY, 50)
    assert [entry["studentId"] for entry in entries] == ["b", "c"]


def test_student_rank(store):
    rank = _service(store).student_rank("c")
    assert rank["totalRank"] == 3
    assert rank["dailyRank"] == 2
    assert rank["weeklyRank"] == 3
    assert rank["totalStudents"] == 3

    with pytest.raises(StudentNotFound):
        _service(store).student_rank("ghost")


def test_all_rankings_has_three_views(store):
    result = _service(store).all_rankings(2)
    assert set(result) == {"total", "daily", "weekly"}
    assert all(len(entries) == 2 for entries in result.values())
