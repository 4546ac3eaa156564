# model/subscription.py
from pydantic import BaseModel, Field
from util.constants import ACK_DEADLINE_SECONDS


class SubscriptionConfig(BaseModel):
    """Registry entry describing a durable subscription."""

    name: str
    topic: str
    ack_deadline_seconds: int = Field(default=ACK_DEADLINE_SECONDS, ge=0)
    created_at: float
