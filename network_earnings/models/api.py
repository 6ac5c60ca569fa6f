"""camelCase shapes of the passthrough ``/api`` endpoints."""
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from network_earnings.models.campaign import CampaignStatus
from network_earnings.models.dispute import DisputeDecision, DisputeStatus
from network_earnings.models.earning import EarningStatus
from network_earnings.models.lead import LeadStatus
from network_earnings.models.user import UserRole, UserTier


class ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ApiUser(ApiModel):
    id: UUID
    email: str
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: UserRole
    tier: UserTier
    avatar: Optional[str] = None
    created_at: Optional[datetime] = None


class ApiLead(ApiModel):
    id: int
    referrer_id: Optional[UUID] = None
    campaign_id: Optional[int] = None
    customer_name: str
    service: str
    value: Decimal
    status: LeadStatus
    business_name: Optional[str] = None
    created_at: datetime


class ApiLeadCreate(ApiModel):
    referrer_id: Optional[UUID] = None
    campaign_id: Optional[int] = None
    customer_name: str = Field(min_length=1)
    service: str = Field(min_length=1)
    value: Decimal = Field(ge=0)
    status: LeadStatus = LeadStatus.PENDING
    business_name: Optional[str] = None


class ApiLeadUpdate(ApiModel):
    customer_name: Optional[str] = Field(default=None, min_length=1)
    service: Optional[str] = Field(default=None, min_length=1)
    value: Optional[Decimal] = Field(default=None, ge=0)
    status: Optional[LeadStatus] = None
    business_name: Optional[str] = None


class ApiCampaign(ApiModel):
    id: int
    business_id: Optional[UUID] = None
    name: str
    description: Optional[str] = None
    reward_per_conversion: Decimal
    max_budget: Decimal
    budget_used: Decimal
    leads: int
    conversions: int
    status: CampaignStatus
    start_date: datetime
    end_date: datetime
    service_area: Optional[str] = None
    postcode_start: Optional[str] = None
    postcode_end: Optional[str] = None
    created_at: datetime


class ApiCampaignCreate(ApiModel):
    business_id: Optional[UUID] = None
    name: str
    description: Optional[str] = None
    reward_per_conversion: Decimal
    max_budget: Decimal
    status: CampaignStatus = CampaignStatus.ACTIVE
    start_date: datetime
    end_date: datetime
    service_area: Optional[str] = None
    postcode_start: Optional[str] = None
    postcode_end: Optional[str] = None


class ApiCampaignUpdate(ApiModel):
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


class ApiEarning(ApiModel):
    id: int
    referrer_id: Optional[UUID] = None
    lead_id: Optional[int] = None
    campaign_id: Optional[int] = None
    amount: Decimal
    status: EarningStatus
    payout_reference: Optional[str] = None
    created_at: datetime
    paid_at: Optional[datetime] = None


class ApiDispute(ApiModel):
    id: int
    case_id: str
    referrer_id: Optional[UUID] = None
    business_id: Optional[UUID] = None
    admin_id: Optional[UUID] = None
    lead_id: Optional[int] = None
    business_claim: str
    referrer_response: Optional[str] = None
    status: DisputeStatus
    decision: Optional[DisputeDecision] = None
    evidence: Optional[Dict[str, Any]] = None
    created_at: datetime
    resolved_at: Optional[datetime] = None


class ApiDisputeCreate(ApiModel):
    lead_id: int
    business_claim: str = Field(min_length=1)
    evidence: Optional[Dict[str, Any]] = None


class ApiDisputeUpdate(ApiModel):
    referrer_response: Optional[str] = None
    decision: Optional[DisputeDecision] = None
    admin_id: Optional[UUID] = None


class ApiActivity(ApiModel):
    id: int
    user_id: Optional[UUID] = None
    type: str
    title: str
    description: Optional[str] = None
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    created_at: datetime


class ApiAnalyticsOverview(ApiModel):
    total_referrals: int
    conversion_rate: float
    total_payouts: Decimal
    active_campaigns: int
    pending_disputes: int
