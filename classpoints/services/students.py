from __future__ import annotations

import logging
from typing import Any

from classpoints.core.exceptions import DuplicateStudent, StudentIdInUse, StudentNotFound, ValidationError
from classpoints.db.documents import ORDERS, POINTS, STUDENTS
from classpoints.db.store import JsonStore
from classpoints.models import Student
from classpoints.services.events import EventBus

logger = logging.getLogger(__name__)


class StudentService:
    def __init__(self, store: JsonStore, bus: EventBus):
        self.store = store
        self.bus = bus

    def list(self, class_name: str | None = None, search: str | None = None) -> list[Student]:
        students = self.store.read(STUDENTS).students
        if class_name:
            students = [student for student in students if student.class_name == class_name]
        if search:
            keyword = search.strip().lower()
            students = [
                student
                for student in students
                if keyword in student.id.lower()
                or keyword in student.name.lower()
                or keyword in student.class_name.lower()
            ]
        return sorted(students, key=lambda student: student.id)

    def get(self, student_id: str) -> Student:
        student = self.store.read(STUDENTS).find(student_id)
        if student is None:
            raise StudentNotFound(details={"studentId": student_id})
        return student

    def exists(self, student_id: str) -> bool:
        return self.store.read(STUDENTS).find(student_id) is not None

    def create(self, student_id: str, name: str, class_name: str = "", publish: bool = True) -> Student:
        student_id = student_id.strip()
        name = name.strip()
        if not student_id:
            raise ValidationError("Student id is required", code="INVALID_STUDENT_ID")
        if not name:
            raise ValidationError("Student name is required", code="INVALID_NAME")

        with self.store.transaction(STUDENTS, ORDERS, POINTS):
            document = self.store.read(STUDENTS)
            if document.find(student_id) is not None:
                raise DuplicateStudent(details={"studentId": student_id})
            # deleted ids keep their orphaned ledger rows and orders
            if self._has_history(student_id):
                raise StudentIdInUse(details={"studentId": student_id})
            student = Student(id=student_id, name=name, class_name=class_name.strip())
            document.students.append(student)
            self.store.write(STUDENTS, document)

        logger.info("Created student %s (%s)", student.name, student.id)
        if publish:
            self.bus.student_updated("created", student.to_json())
        return student

    def _has_history(self, student_id: str) -> bool:
        if any(record.student_id == student_id for record in self.store.read(POINTS).records):
            return True
        return any(order.student_id == student_id for order in self.store.read(ORDERS).pending())

    def batch_create(self, entries: list[dict[str, str]]) -> dict[str, Any]:
        created, failed = [], []
        for index, entry in enumerate(entries):
            try:
                student = self.create(entry["id"], entry["name"], entry.get("class_name", ""), publish=False)
            except (DuplicateStudent, ValidationError) as exc:
                failed.append({"index": index, "studentId": entry.get("id"), "code": exc.code, "message": exc.message})
                continue
            created.append(student.to_json())
        if created:
            self.bus.student_updated("created", {"count": len(created), "ids": [item["id"] for item in created]})
        return {"succeeded": created, "failed": failed, "successCount": len(created), "failedCount": len(failed)}

    def update(self, student_id: str, name: str | None = None, class_name: str | None = None) -> Student:
        if name is None and class_name is None:
            raise ValidationError("Nothing to update", code="NO_UPDATE_DATA")

        with self.store.transaction(STUDENTS):
            document = self.store.read(STUDENTS)
            student = document.find(student_id)
            if student is None:
                raise StudentNotFound(details={"studentId": student_id})
            if name is not None:
                if not name.strip():
                    raise ValidationError("Student name is required", code="INVALID_NAME")
                student.name = name.strip()
            if class_name is not None:
                student.class_name = class_name.strip()
            self.store.write(STUDENTS, document)

        logger.info("Updated student %s", student_id)
        self.bus.student_updated("updated", student.to_json())
        return student

    def delete(self, student_id: str) -> Student:
        # ledger rows and orders of the student are kept as orphans
        with self.store.transaction(STUDENTS):
            document = self.store.read(STUDENTS)
            student = document.find(student_id)
            if student is None:
                raise StudentNotFound(details={"studentId": student_id})
            document.students = [item for item in document.students if item.id != student_id]
            self.store.write(STUDENTS, document)

        logger.info("Deleted student %s (%s)", student.name, student.id)
        self.bus.student_updated("deleted", {"id": student.id, "name": student.name})
        return student

    def statistics(self) -> dict[str, Any]:
        students = self.store.read(STUDENTS).students
        balances = [student.balance for student in students]
        class_counts: dict[str, int] = {}
        for student in students:
            class_counts[student.class_name] = class_counts.get(student.class_name, 0) + 1
        return {
            "totalStudents": len(students),
            "totalBalance": sum(balances),
            "averageBalance": round(sum(balances) / len(balances), 2) if balances else 0,
            "maxBalance": max(balances, default=0),
            "minBalance": min(balances, default=0),
            "classCounts": class_counts,
        }
