from sqlmodel import SQLModel, Field
from typing import Optional
from enum import Enum
from datetime import datetime
from decimal import Decimal
from uuid import UUID


class PayoutStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    # Older rows use "paid" for completed withdrawals
    PAID = "paid"
    FAILED = "failed"


SETTLED_PAYOUT_STATUSES = (PayoutStatus.COMPLETED, PayoutStatus.PAID)


class Payout(SQLModel, table=True):
    __tablename__ = "payouts"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: Optional[UUID] = Field(default=None, index=True)
    date: datetime = Field(default_factory=datetime.utcnow, nullable=False)
    amount: Decimal = Field(max_digits=10, decimal_places=2)
    method: str
    status: PayoutStatus = Field(default=PayoutStatus.PENDING)
    reference: Optional[str] = None
    paid_at: Optional[datetime] = None


class PayoutRequest(SQLModel):
    amount: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    # Either a saved payout method or a free-form method name
    payout_method_id: Optional[int] = None
    method: Optional[str] = None


class PayoutComplete(SQLModel):
    reference: str


class PayoutRead(SQLModel):
    id: int
    user_id: Optional[UUID]
    date: datetime
    amount: Decimal
    method: str
    status: PayoutStatus
    reference: Optional[str] = None
    paid_at: Optional[datetime] = None
