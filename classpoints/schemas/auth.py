from pydantic import Field

from classpoints.schemas.common import RequestModel


class StudentLoginRequest(RequestModel):
    student_id: str = Field(..., min_length=1, max_length=64)


class TeacherLoginRequest(RequestModel):
    teacher_id: str = Field(..., min_length=1, max_length=64)
    password: str = Field(..., min_length=1, max_length=128)
