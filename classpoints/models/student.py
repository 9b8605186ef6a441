from datetime import datetime

from pydantic import Field

from classpoints.models.common import StoredModel, utcnow


class Student(StoredModel):
    id: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1, max_length=64)
    class_name: str = Field(default="", alias="class", max_length=64)
    balance: int = 0
    created_at: datetime = Field(default_factory=utcnow)


class StudentsDocument(StoredModel):
    students: list[Student] = Field(default_factory=list)

    def find(self, student_id: str) -> Student | None:
        for student in self.students:
            if student.id == student_id:
                return student
        return None
