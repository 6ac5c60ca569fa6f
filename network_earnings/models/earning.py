from sqlmodel import SQLModel, Field
from typing import Optional
from enum import Enum
from datetime import datetime
from decimal import Decimal
from uuid import UUID


class EarningStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"


class Earning(SQLModel, table=True):
    __tablename__ = "earnings"

    id: Optional[int] = Field(default=None, primary_key=True)
    referrer_id: Optional[UUID] = Field(default=None, index=True)
    lead_id: Optional[int] = Field(default=None, foreign_key="leads.id")
    campaign_id: Optional[int] = Field(default=None, foreign_key="campaigns.id")
    amount: Decimal = Field(max_digits=10, decimal_places=2)
    status: EarningStatus = Field(default=EarningStatus.PENDING)
    # Set together with status=paid, never without it
    payout_reference: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)
    paid_at: Optional[datetime] = None


class EarningCreate(SQLModel):
    referrer_id: UUID
    lead_id: Optional[int] = None
    campaign_id: Optional[int] = None
    amount: Decimal = Field(ge=0, max_digits=10, decimal_places=2)


class EarningMarkPaid(SQLModel):
    payout_reference: str


class EarningRead(SQLModel):
    id: int
    referrer_id: Optional[UUID]
    lead_id: Optional[int]
    campaign_id: Optional[int]
    amount: Decimal
    status: EarningStatus
    payout_reference: Optional[str] = None
    created_at: datetime
    paid_at: Optional[datetime] = None
