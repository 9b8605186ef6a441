from typing import Literal

from pydantic import Field

from classpoints.schemas.common import RequestModel


class SseTestRequest(RequestModel):
    message: str = Field(default="SSE test notification", min_length=1, max_length=500)
    level: Literal["info", "success", "warning", "error"] = "info"
