from pydantic import Field

from classpoints.schemas.common import RequestModel


class ReserveRequest(RequestModel):
    student_id: str = Field(..., min_length=1, max_length=64)
    product_id: str = Field(..., min_length=1, max_length=64)


class CancelRequest(RequestModel):
    reason: str | None = Field(default=None, max_length=200)
