from datetime import datetime
from typing import Literal

from pydantic import Field

from classpoints.models.common import StoredModel, utcnow


class TeacherAccount(StoredModel):
    id: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1, max_length=64)
    password_hash: str
    role: Literal["admin", "teacher"] = "teacher"
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)


class TeachersDocument(StoredModel):
    teachers: list[TeacherAccount] = Field(default_factory=list)

    def find(self, teacher_id: str) -> TeacherAccount | None:
        for teacher in self.teachers:
            if teacher.id == teacher_id:
                return teacher
        return None
