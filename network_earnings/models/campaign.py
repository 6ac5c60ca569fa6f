from sqlmodel import SQLModel, Field
from typing import Optional
from pydantic import model_validator
from enum import Enum
from datetime import datetime
from decimal import Decimal
from uuid import UUID


class CampaignStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


class CampaignBase(SQLModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    reward_per_conversion: Decimal = Field(max_digits=10, decimal_places=2)
    max_budget: Decimal = Field(max_digits=10, decimal_places=2)
    status: CampaignStatus = Field(default=CampaignStatus.ACTIVE)
    start_date: datetime
    end_date: datetime
    service_area: Optional[str] = None
    postcode_start: Optional[str] = None
    postcode_end: Optional[str] = None


class Campaign(CampaignBase, table=True):
    __tablename__ = "campaigns"

    id: Optional[int] = Field(default=None, primary_key=True)
    business_id: Optional[UUID] = Field(default=None, index=True)
    budget_used: Decimal = Field(default=Decimal("0"), max_digits=10, decimal_places=2)
    leads: int = Field(default=0)
    conversions: int = Field(default=0)
    created_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)

    @property
    def remaining_budget(self) -> Decimal:
        return Decimal(self.max_budget) - Decimal(self.budget_used or 0)


class CampaignCreate(CampaignBase):
    # Only admins may create a campaign on behalf of another business
    business_id: Optional[UUID] = None

    @model_validator(mode="after")
    def validate_amounts_and_dates(self):
        if self.reward_per_conversion <= 0:
            raise ValueError("reward_per_conversion must be greater than zero.")
        if self.max_budget < self.reward_per_conversion:
            raise ValueError("max_budget must cover at least one conversion.")
        if self.end_date < self.start_date:
            raise ValueError("end_date cannot be before start_date.")
        return self


class CampaignUpdate(SQLModel):
    name: Optional[str] = None
    description: Optional[str] = None
    reward_per_conversion: Optional[Decimal] = Field(default=None, gt=0)
    max_budget: Optional[Decimal] = Field(default=None, ge=0)
    status: Optional[CampaignStatus] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    service_area: Optional[str] = None
    postcode_start: Optional[str] = None
    postcode_end: Optional[str] = None


class CampaignRead(CampaignBase):
    id: int
    business_id: Optional[UUID]
    budget_used: Decimal
    leads: int
    conversions: int
    created_at: datetime

    class Config:
        from_attributes = True
