from pydantic import Field

from classpoints.schemas.common import RequestModel


class StudentCreate(RequestModel):
    id: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1, max_length=64)
    class_name: str = Field(default="", alias="class", max_length=64)


class StudentUpdate(RequestModel):
    name: str | None = Field(default=None, min_length=1, max_length=64)
    class_name: str | None = Field(default=None, alias="class", max_length=64)


class StudentBatchCreate(RequestModel):
    students: list[StudentCreate] = Field(..., min_length=1, max_length=50)
