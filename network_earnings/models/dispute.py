from sqlmodel import SQLModel, Field, Column, JSON
from typing import Optional, Any, Dict, List
from enum import Enum
from datetime import datetime
from uuid import UUID


class DisputeStatus(str, Enum):
    PENDING = "pending"
    ESCALATED = "escalated"
    RESOLVED = "resolved"
    # Older rows stored the decision directly in the status
    APPROVED = "approved"
    REJECTED = "rejected"


class DisputeDecision(str, Enum):
    APPROVED = "approved"
    REJECTED = "rejected"


OPEN_DISPUTE_STATUSES = (DisputeStatus.PENDING, DisputeStatus.ESCALATED)


class Dispute(SQLModel, table=True):
    __tablename__ = "disputes"

    id: Optional[int] = Field(default=None, primary_key=True)
    case_id: str = Field(index=True, unique=True)
    referrer_id: Optional[UUID] = Field(default=None, index=True)
    business_id: Optional[UUID] = Field(default=None, index=True)
    admin_id: Optional[UUID] = None
    lead_id: Optional[int] = Field(default=None, foreign_key="leads.id")
    business_claim: str
    referrer_response: Optional[str] = None
    status: DisputeStatus = Field(default=DisputeStatus.PENDING)
    decision: Optional[DisputeDecision] = None
    evidence: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)
    resolved_at: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_DISPUTE_STATUSES


class DisputeCreate(SQLModel):
    lead_id: int
    business_claim: str = Field(min_length=1)
    evidence: Optional[Dict[str, Any]] = None


class DisputeResponse(SQLModel):
    referrer_response: str = Field(min_length=1)


class DisputeResolve(SQLModel):
    decision: DisputeDecision


class DisputeRead(SQLModel):
    id: int
    case_id: str
    referrer_id: Optional[UUID]
    business_id: Optional[UUID]
    admin_id: Optional[UUID] = None
    lead_id: Optional[int]
    business_claim: str
    referrer_response: Optional[str] = None
    status: DisputeStatus
    decision: Optional[DisputeDecision] = None
    evidence: Optional[Dict[str, Any]] = None
    created_at: datetime
    resolved_at: Optional[datetime] = None


class DisputeBoard(SQLModel):
    pending: List[DisputeRead]
    resolved: List[DisputeRead]
