from datetime import datetime, timezone

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    code: str
    detail: str | None = None
    request_id: str | None = None
    retry_after: int | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))
