
from pydantic import Field, field_validator

from classpoints.schemas.common import RequestModel


class PointsChangeRequest(RequestModel):
    student_id: str = Field(..., min_length=1, max_length=64)
    points: int = Field(..., gt=0, le=1000)
    reason: str = Field(..., min_length=1, max_length=200)

    @field_validator("student_id", "reason")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class BatchOperation(RequestModel):
    student_id: str = Field(..., min_length=1, max_length=64)
    points: int = Field(..., ge=-1000, le=1000)
    reason: str = Field(..., min_length=1, max_length=200)

    @field_validator("points")
    @classmethod
    def _non_zero(cls, value: int) -> int:
        if value == 0:
            raise ValueError("points must be non-zero")
        return value


class BatchPointsRequest(RequestModel):
    operations: list[BatchOperation] = Field(..., min_length=1, max_length=50)


class ResetPointsRequest(RequestModel):
    reason: str = Field(default="积分清零", min_length=1, max_length=200)
