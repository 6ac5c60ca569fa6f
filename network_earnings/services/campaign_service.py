from decimal import Decimal
from fastapi import HTTPException, status
from sqlmodel import Session
from typing import Any, Dict, List, Optional
import logging

from network_earnings.core.security import Principal
from network_earnings.models.campaign import Campaign, CampaignCreate, CampaignUpdate
from network_earnings.models.user import UserRole
from network_earnings.utils.visibility import ListFilters, get_visible, list_visible

logger = logging.getLogger(__name__)


def check_campaign_changes(campaign: Campaign, changes: Dict[str, Any]) -> None:
    """Reject updates that would leave ``campaign`` with bad dates or budget."""
    start_date = changes.get("start_date", campaign.start_date)
    end_date = changes.get("end_date", campaign.end_date)
    if end_date < start_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="end_date cannot be before start_date")
    max_budget = Decimal(changes.get("max_budget", campaign.max_budget))
    if max_budget < Decimal(campaign.budget_used or 0):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="max_budget cannot be lower than the budget already used")
    reward = Decimal(changes.get("reward_per_conversion", campaign.reward_per_conversion))
    if max_budget < reward:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="max_budget must cover at least one conversion")


class CampaignService:
    def __init__(self, session: Session):
        self.session = session

    def list_campaigns(self, principal: Principal, filters: Optional[ListFilters] = None) -> List[Campaign]:
        return list_visible(self.session, Campaign, principal, filters)

    def get_campaign(self, principal: Principal, campaign_id: int) -> Campaign:
        campaign = get_visible(self.session, Campaign, campaign_id, principal)
        if not campaign:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Campaign not found")
        return campaign

    def create_campaign(self, principal: Principal, data: CampaignCreate) -> Campaign:
        if principal.role == UserRole.REFERRER:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only businesses can create campaigns")

        business_id = principal.id
        if principal.is_admin and data.business_id:
            business_id = data.business_id

        campaign = Campaign(**data.model_dump(exclude={"business_id"}), business_id=business_id)
        self.session.add(campaign)
        self.session.commit()
        self.session.refresh(campaign)
        logger.info("Campaign %s created for business %s", campaign.id, business_id)
        return campaign

    def update_campaign(self, principal: Principal, campaign_id: int, data: CampaignUpdate) -> Campaign:
        campaign = self.get_campaign(principal, campaign_id)
        if not principal.is_admin and campaign.business_id != principal.id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You can only update your own campaigns")

        changes = data.model_dump(exclude_unset=True)
        check_campaign_changes(campaign, changes)

        for key, value in changes.items():
            setattr(campaign, key, value)
        self.session.add(campaign)
        self.session.commit()
        self.session.refresh(campaign)
        return campaign
