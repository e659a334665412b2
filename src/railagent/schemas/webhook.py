from datetime import datetime
from typing import Any, Dict, Literal

from pydantic import BaseModel, ConfigDict

WebhookEventType = Literal["transfer.submitted", "transfer.settled", "transfer.failed"]


class WebhookTarget(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    url: str
    created_at: datetime


class WebhookEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    type: WebhookEventType
    timestamp: datetime
    data: Dict[str, Any]
