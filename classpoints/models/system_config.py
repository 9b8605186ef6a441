from datetime import date, datetime
from typing import Literal

from pydantic import Field

from classpoints.models.common import StoredModel, utcnow

Mode = Literal["normal", "class"]

MODE_LABELS = {"class": "上课模式", "normal": "平时模式"}


class SystemConfig(StoredModel):
    mode: Mode = "normal"
    auto_refresh_interval: int = Field(default=30, ge=5, le=300)
    points_reset_enabled: bool = False
    max_points_per_operation: int = Field(default=100, ge=1, le=1000)
    semester_start_date: date | None = None
    class_name: str = Field(default="花儿起舞", max_length=100)
    author: str = Field(default="茗雨", max_length=100)
    copyright: str = Field(default="© 2025 花儿起舞班级积分管理系统 | 作者：茗雨", max_length=200)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def mode_label(self) -> str:
        return MODE_LABELS.get(self.mode, MODE_LABELS["normal"])
