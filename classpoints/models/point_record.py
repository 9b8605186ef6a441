from datetime import datetime
from enum import Enum

from pydantic import Field, model_validator

from classpoints.models.common import StoredModel, new_id, utcnow


class RecordKind(str, Enum):
    ADD = "add"
    SUBTRACT = "subtract"
    PURCHASE = "purchase"
    REFUND = "refund"

    @property
    def is_credit(self) -> bool:
        return self in (RecordKind.ADD, RecordKind.REFUND)


class PointRecord(StoredModel):
    id: str = Field(default_factory=lambda: new_id("point"))
    student_id: str = Field(..., min_length=1)
    points: int
    reason: str = Field(..., min_length=1, max_length=200)
    operator_id: str = "system"
    timestamp: datetime = Field(default_factory=utcnow)
    kind: RecordKind = Field(..., alias="type")

    @model_validator(mode="after")
    def _sign_matches_kind(self):
        if self.points == 0:
            raise ValueError("points must be non-zero")
        if self.kind.is_credit and self.points < 0:
            raise ValueError(f"{self.kind.value} records carry positive points")
        if not self.kind.is_credit and self.points > 0:
            raise ValueError(f"{self.kind.value} records carry negative points")
        return self


class PointsDocument(StoredModel):
    records: list[PointRecord] = Field(default_factory=list)
