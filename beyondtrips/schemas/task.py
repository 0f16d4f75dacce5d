"""Operator view of the side-effect queue."""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from beyondtrips.schemas.common import ApiModel


class TaskItem(ApiModel):
    id: uuid.UUID
    kind: str
    payload: Dict[str, Any]
    status: str
    attempts: int
    next_attempt_at: datetime
    last_error: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: datetime


class TaskListResponse(ApiModel):
    tasks: List[TaskItem]
    total: int
