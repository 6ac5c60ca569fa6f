from sqlmodel import SQLModel, Field
from typing import Optional
from enum import Enum
from datetime import datetime
from uuid import UUID


class ActivityType(str, Enum):
    LEAD = "lead"
    APPROVAL = "approval"
    EARNING = "earning"
    PAYOUT = "payout"
    DISPUTE = "dispute"


class Activity(SQLModel, table=True):
    __tablename__ = "activities"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: Optional[UUID] = Field(default=None, index=True)
    type: ActivityType
    title: str
    description: Optional[str] = None
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)


class ActivityRead(SQLModel):
    id: str
    type: ActivityType
    title: str
    description: Optional[str] = None
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    created_at: datetime
