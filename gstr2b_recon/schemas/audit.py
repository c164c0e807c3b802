from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime, timezone
import uuid
from enum import Enum

class AuditStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"

class AuditAction(str, Enum):
    RECONCILE = "RECONCILE"
    REPORT = "REPORT"
    DOWNLOAD = "DOWNLOAD"
    HEALTH_CHECK = "HEALTH_CHECK"
    UNKNOWN = "UNKNOWN"

class AuditLogEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    endpoint: str
    method: str
    action_type: AuditAction
    actor: str = "system"
    input_hash: Optional[str] = None
    output_hash: Optional[str] = None
    status_code: Optional[int] = None
    status: AuditStatus
