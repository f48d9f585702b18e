from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel


class NotificationRead(BaseModel):
    id: int
    message: str
    link: str
    meta: dict[str, Any] | None = None
    read: bool
    resolved_at: datetime | None = None
    created_at: datetime

    model_config = {"from_attributes": True}
