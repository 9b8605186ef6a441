import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable

from classpoints.core.exceptions import AppError, StudentNotFound, ValidationError
from classpoints.db.documents import CONFIG, ORDERS, POINTS, STUDENTS
from classpoints.db.store import JsonStore
from classpoints.models import PointRecord, RecordKind
from classpoints.services.events import EventBus

logger = logging.getLogger(__name__)


@dataclass
class PointOperation:
    student_id: str
    points: int
    reason: str


@dataclass
class BatchResult:
    succeeded: list[dict[str, Any]] = field(default_factory=list)
    failed: list[dict[str, Any]] = field(default_factory=list)

    def to_json(self) -> dict[str, Any]:
        return {
            "succeeded": self.succeeded,
            "failed": self.failed,
            "successCount": len(self.succeeded),
            "failedCount": len(self.failed),
        }


class Ledger:
    """Append-only point history and the balance projection kept on students."""

    def __init__(self, store: JsonStore, bus: EventBus):
        self.store = store
        self.bus = bus

    def append(
        self,
        student_id: str,
        points: int,
        reason: str,
        operator_id: str,
        kind: RecordKind,
        project_balance: bool = True,
        publish: bool = True,
    ) -> tuple[PointRecord, int]:
        student_id = (student_id or "").strip()
        reason = (reason or "").strip()
        if not student_id:
            raise ValidationError("Student id is required", code="INVALID_STUDENT_ID")
        if not reason:
            raise ValidationError("Reason is required", code="INVALID_REASON")
        if not isinstance(points, int) or isinstance(points, bool) or points == 0:
            raise ValidationError("Points must be a non-zero integer", code="INVALID_POINTS")
        try:
            kind = RecordKind(kind)
        except ValueError as exc:
            raise ValidationError(f"Unknown record kind: {kind}", code="INVALID_TYPE") from exc
        if kind.is_credit != (points > 0):
            raise ValidationError(f"Sign of points does not match kind {kind.value}", code="INVALID_POINTS")

        with self.store.transaction(STUDENTS, POINTS):
            students = self.store.read(STUDENTS)
            student = students.find(student_id)
            if student is None:
                raise StudentNotFound(details={"studentId": student_id})

            record = PointRecord(
                student_id=student_id,
                points=points,
                reason=reason,
                operator_id=operator_id,
                kind=kind,
            )
            ledger = self.store.read(POINTS)
            ledger.records.append(record)
            self.store.write(POINTS, ledger)

            if project_balance:
                student.balance += points
                self.store.write(STUDENTS, students)
            balance = student.balance
            student_name = student.name

        logger.info(
            "Ledger %s %+d for %s by %s (%s), balance %s",
            kind.value, points, student_id, operator_id, reason, balance,
        )
        if publish:
            self.bus.points_updated(
                {
                    "studentId": student_id,
                    "studentName": student_name,
                    "points": points,
                    "newBalance": balance,
                    "reason": reason,
                    "operatorId": operator_id,
                    "type": kind.value,
                    "recordId": record.id,
                }
            )
        return record, balance

    def _check_amount(self, points: int) -> None:
        if not isinstance(points, int) or isinstance(points, bool) or points <= 0:
            raise ValidationError("Points must be a positive integer", code="INVALID_POINTS")
        limit = self.store.read(CONFIG).max_points_per_operation
        if points > limit:
            raise ValidationError(
                f"A single operation cannot exceed {limit} points",
                code="INVALID_POINTS",
                details={"maxPointsPerOperation": limit},
            )

    def add_points(self, student_id: str, points: int, reason: str, operator_id: str) -> tuple[PointRecord, int]:
        self._check_amount(points)
        return self.append(student_id, points, reason, operator_id, RecordKind.ADD)

    def subtract_points(self, student_id: str, points: int, reason: str, operator_id: str) -> tuple[PointRecord, int]:
        self._check_amount(points)
        return self.append(student_id, -points, reason, operator_id, RecordKind.SUBTRACT)

    def batch_append(self, operations: Iterable[PointOperation], operator_id: str) -> BatchResult:
        result = BatchResult()
        limit = self.store.read(CONFIG).max_points_per_operation
        for index, operation in enumerate(operations):
            try:
                if abs(operation.points) > limit:
                    raise ValidationError(
                        f"A single operation cannot exceed {limit} points", code="INVALID_POINTS"
                    )
                kind = RecordKind.ADD if operation.points > 0 else RecordKind.SUBTRACT
                record, balance = self.append(
                    operation.student_id, operation.points, operation.reason, operator_id, kind
                )
            except AppError as exc:
                result.failed.append(
                    {
                        "index": index,
                        "studentId": operation.student_id,
                        "points": operation.points,
                        "code": exc.code,
                        "message": exc.message,
                    }
                )
                continue
            result.succeeded.append({"index": index, "record": record.to_json(), "newBalance": balance})
        logger.info("Batch of %s point operations: %s ok, %s failed",
                    len(result.succeeded) + len(result.failed), len(result.succeeded), len(result.failed))
        return result

    def records(self) -> list[PointRecord]:
        return self.store.read(POINTS).records

    def balance_of(self, student_id: str) -> int:
        return sum(record.points for record in self.records() if record.student_id == student_id)

    def history_of(self, student_id: str, limit: int | None = None) -> list[PointRecord]:
        # records are stored in commit order; reversing first keeps ties newest-first
        history = [record for record in reversed(self.records()) if record.student_id == student_id]
        history.sort(key=lambda record: record.timestamp, reverse=True)
        if limit is not None:
            history = history[:limit]
        return history

    def records_between(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        student_id: str | None = None,
    ) -> list[PointRecord]:
        if start and end and start > end:
            raise ValidationError("Start date must not be after end date", code="INVALID_DATE_RANGE")
        selected = []
        for record in self.records():
            if student_id and record.student_id != student_id:
                continue
            if start and record.timestamp < start:
                continue
            if end and record.timestamp > end:
                continue
            selected.append(record)
        selected.sort(key=lambda record: record.timestamp, reverse=True)
        return selected

    def reset_all(self, operator_id: str, reason: str = "积分清零") -> list[PointRecord]:
        """Appends compensating records so every student's ledger sum becomes zero."""
        reason = (reason or "").strip() or "积分清零"
        written: list[PointRecord] = []
        with self.store.transaction(STUDENTS, POINTS):
            sums = self._ledger_sums()
            for student in self.store.read(STUDENTS).students:
                total = sums.get(student.id, 0)
                if total == 0:
                    continue
                kind = RecordKind.SUBTRACT if total > 0 else RecordKind.ADD
                record, _ = self.append(student.id, -total, reason, operator_id, kind, publish=False)
                written.append(record)

        logger.warning("Points reset by %s: %s compensating records", operator_id, len(written))
        self.bus.data_reset({"type": "points", "operatorId": operator_id, "affectedStudents": len(written)})
        return written

    def _ledger_sums(self) -> dict[str, int]:
        sums: dict[str, int] = defaultdict(int)
        for record in self.records():
            sums[record.student_id] += record.points
        return sums

    def reconcile(self) -> list[dict[str, Any]]:
        """Recomputes every balance as ledger sum minus frozen reservations."""
        corrections = []
        with self.store.transaction(STUDENTS, ORDERS, POINTS):
            sums = self._ledger_sums()
            frozen: dict[str, int] = defaultdict(int)
            for order in self.store.read(ORDERS).pending():
                frozen[order.student_id] += order.price

            students = self.store.read(STUDENTS)
            for student in students.students:
                expected = sums.get(student.id, 0) - frozen.get(student.id, 0)
                if student.balance != expected:
                    corrections.append(
                        {"studentId": student.id, "previousBalance": student.balance, "balance": expected}
                    )
                    student.balance = expected
            if corrections:
                self.store.write(STUDENTS, students)

        if corrections:
            logger.warning("Reconciliation corrected %s balances", len(corrections))
        else:
            logger.info("Reconciliation found no drift")
        return corrections

    def statistics(self) -> dict[str, Any]:
        records = self.records()
        students = self.store.read(STUDENTS).students
        awarded = sum(record.points for record in records if record.points > 0)
        deducted = sum(-record.points for record in records if record.points < 0)
        total_balance = sum(student.balance for student in students)
        recent = sorted(records, key=lambda record: record.timestamp, reverse=True)[:10]
        return {
            "totalRecords": len(records),
            "totalPointsAwarded": awarded,
            "totalPointsDeducted": deducted,
            "averageBalance": round(total_balance / len(students), 2) if students else 0,
            "activeStudents": len({record.student_id for record in records}),
            "totalStudents": len(students),
            "recentActivity": [record.to_json() for record in recent],
        }
