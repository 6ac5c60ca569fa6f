from sqlmodel import SQLModel, Field
from typing import Optional
from enum import Enum
from datetime import datetime
from decimal import Decimal
from uuid import UUID


class LeadStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"
    # Legacy spelling of COMPLETED still present in older rows
    SUCCESSFUL = "successful"


CONVERTED_STATUSES = (LeadStatus.APPROVED, LeadStatus.COMPLETED, LeadStatus.SUCCESSFUL)

# Status changes a business owner or admin may apply
LEAD_TRANSITIONS = {
    LeadStatus.PENDING: {LeadStatus.APPROVED, LeadStatus.REJECTED},
    LeadStatus.APPROVED: {LeadStatus.COMPLETED, LeadStatus.REJECTED},
    LeadStatus.REJECTED: set(),
    LeadStatus.COMPLETED: set(),
    LeadStatus.SUCCESSFUL: set(),
}


class LeadBase(SQLModel):
    campaign_id: Optional[int] = Field(default=None, foreign_key="campaigns.id")
    customer_name: str = Field(min_length=1, max_length=255)
    service: str = Field(min_length=1, max_length=255)
    value: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    business_name: Optional[str] = None


class Lead(LeadBase, table=True):
    __tablename__ = "leads"

    id: Optional[int] = Field(default=None, primary_key=True)
    referrer_id: Optional[UUID] = Field(default=None, index=True)
    status: LeadStatus = Field(default=LeadStatus.PENDING)
    created_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)


class LeadCreate(LeadBase):
    # Ignored for referrers, who always submit leads as themselves
    referrer_id: Optional[UUID] = None


class LeadUpdate(SQLModel):
    customer_name: Optional[str] = Field(default=None, min_length=1)
    service: Optional[str] = Field(default=None, min_length=1)
    value: Optional[Decimal] = Field(default=None, ge=0)
    business_name: Optional[str] = None


class LeadStatusUpdate(SQLModel):
    status: LeadStatus


class LeadRead(LeadBase):
    id: int
    referrer_id: Optional[UUID]
    status: LeadStatus
    created_at: datetime
