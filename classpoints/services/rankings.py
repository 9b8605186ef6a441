import copy
import heapq
import logging
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any, Callable

import pytz

from classpoints.core.exceptions import StudentNotFound, ValidationError
from classpoints.db.cache import TTLCache
from classpoints.db.documents import POINTS, STUDENTS
from classpoints.db.store import JsonStore

logger = logging.getLogger(__name__)


class RankingView(str, Enum):
    TOTAL = "total"
    DAILY = "daily"
    WEEKLY = "weekly"


def parse_view(value: str) -> RankingView:
    try:
        return RankingView(value)
    except ValueError as exc:
        raise ValidationError(
            "Ranking type must be one of total, daily, weekly", code="INVALID_RANKING_TYPE"
        ) from exc


class RankingsService:
    def __init__(
        self,
        store: JsonStore,
        timezone: str = "Asia/Shanghai",
        week_start: int = 6,
        cache_ttl_seconds: float = 60.0,
        cache_size: int = 50,
        broadcast_limit: int = 50,
        now: Callable[[], datetime] | None = None,
    ):
        self.store = store
        self.tz = pytz.timezone(timezone)
        # Monday == 0, as in datetime.weekday()
        self.week_start = week_start
        self.broadcast_limit = broadcast_limit
        self._cache = TTLCache(cache_ttl_seconds, cache_size)
        self._now = now or (lambda: datetime.now(pytz.utc))

    def local_midnight(self, day: date) -> datetime:
        return self.tz.localize(datetime.combine(day, time()))

    def window(self, view: RankingView) -> tuple[datetime, datetime] | None:
        """[start, end) of the local calendar window, None for the total view."""
        if view == RankingView.TOTAL:
            return None
        today = self._now().astimezone(self.tz).date()
        if view == RankingView.DAILY:
            return self.local_midnight(today), self.local_midnight(today + timedelta(days=1))
        first_day = today - timedelta(days=(today.weekday() - self.week_start) % 7)
        return self.local_midnight(first_day), self.local_midnight(first_day + timedelta(days=7))

    def _versions(self) -> tuple[int, int]:
        return self.store.version(STUDENTS), self.store.version(POINTS)

    def get(self, view: RankingView | str, limit: int = 50) -> list[dict[str, Any]]:
        view = parse_view(view) if not isinstance(view, RankingView) else view
        if limit < 1:
            raise ValidationError("Limit must be a positive integer", code="INVALID_LIMIT")

        key = (view.value, limit)
        cached = self._cache.get(key)
        versions = self._versions()
        if cached is not None and cached[0] == versions:
            return copy.deepcopy(cached[1])

        entries = self._compute(view, limit)
        self._cache.set(key, (versions, entries))
        return copy.deepcopy(entries)

    def _compute(self, view: RankingView, limit: int) -> list[dict[str, Any]]:
        students = self.store.read(STUDENTS).students
        scores = {student.id: 0 for student in students}

        window = self.window(view)
        if window is None:
            for student in students:
                scores[student.id] = student.balance
        else:
            start, end = window
            for record in self.store.read(POINTS).records:
                if record.student_id in scores and start <= record.timestamp < end:
                    scores[record.student_id] += record.points

        top = heapq.nsmallest(limit, students, key=lambda student: (-scores[student.id], student.id))
        return [
            {
                "id": student.id,
                "studentId": student.id,
                "name": student.name,
                "studentName": student.name,
                "class": student.class_name,
                "points": scores[student.id],
                "balance": student.balance,
                "type": view.value,
                "rank": index + 1,
            }
            for index, student in enumerate(top)
        ]

    def all_rankings(self, limit: int = 50) -> dict[str, list[dict[str, Any]]]:
        return {view.value: self.get(view, limit) for view in RankingView}

    def snapshot(self) -> dict[str, list[dict[str, Any]]]:
        return self.all_rankings(self.broadcast_limit)

    def student_rank(self, student_id: str) -> dict[str, Any]:
        students = self.store.read(STUDENTS).students
        if not any(student.id == student_id for student in students):
            raise StudentNotFound(details={"studentId": student_id})

        result: dict[str, Any] = {"studentId": student_id}
        for view in RankingView:
            entries = self.get(view, max(1, len(students)))
            entry = next((item for item in entries if item["studentId"] == student_id), None)
            result[f"{view.value}Rank"] = entry["rank"] if entry else None
            result[f"{view.value}Points"] = entry["points"] if entry else None
        result["totalStudents"] = len(students)
        return result

    def invalidate(self) -> None:
        self._cache.clear()

    def warmup(self) -> None:
        for limit in (10, 50):
            self.all_rankings(limit)
        logger.info("Rankings cache warmed up")
