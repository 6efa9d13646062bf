from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..enums import SubscriptionStatus


class PlanRead(BaseModel):
    id: int
    name: str
    description: Optional[str]
    price: int
    currency: str
    billing_interval: str
    max_bots: int
    max_messages_per_month: int
    features: List[str] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class SubscriptionRead(BaseModel):
    id: int
    status: SubscriptionStatus
    current_period_start: Optional[datetime]
    current_period_end: Optional[datetime]
    messages_used_this_month: int
    plan: PlanRead

    model_config = ConfigDict(from_attributes=True)
