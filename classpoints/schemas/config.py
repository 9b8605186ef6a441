from datetime import date

from pydantic import Field

from classpoints.models.system_config import Mode
from classpoints.schemas.common import RequestModel


class ModeRequest(RequestModel):
    mode: Mode


class ConfigUpdate(RequestModel):
    mode: Mode | None = None
    auto_refresh_interval: int | None = Field(default=None, ge=5, le=300)
    points_reset_enabled: bool | None = None
    max_points_per_operation: int | None = Field(default=None, ge=1, le=1000)
    semester_start_date: date | None = None
    class_name: str | None = Field(default=None, max_length=100)
    author: str | None = Field(default=None, max_length=100)
    copyright: str | None = Field(default=None, max_length=200)


class ResetToggleRequest(RequestModel):
    enabled: bool | None = None
