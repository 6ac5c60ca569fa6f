from decimal import Decimal
from fastapi import HTTPException, status
from sqlmodel import Session, select
from typing import List, Optional
import logging

from network_earnings.core.security import Principal
from network_earnings.models.activity import ActivityType
from network_earnings.models.campaign import Campaign, CampaignStatus
from network_earnings.models.earning import Earning, EarningStatus
from network_earnings.models.lead import (
    LEAD_TRANSITIONS, Lead, LeadCreate, LeadStatus, LeadUpdate
)
from network_earnings.models.user import UserRole
from network_earnings.services.activity_service import ActivityService
from network_earnings.utils.visibility import ListFilters, get_visible, list_visible

logger = logging.getLogger(__name__)

# Statuses that earn the referrer the campaign reward
REWARDED_STATUSES = (LeadStatus.APPROVED, LeadStatus.COMPLETED)
# Statuses that take the reward back
WITHDRAWN_STATUSES = (LeadStatus.PENDING, LeadStatus.REJECTED)


class LeadService:
    def __init__(self, session: Session):
        self.session = session
        self.activities = ActivityService(session)

    def list_leads(self, principal: Principal, filters: Optional[ListFilters] = None) -> List[Lead]:
        return list_visible(self.session, Lead, principal, filters)

    def get_lead(self, principal: Principal, lead_id: int) -> Lead:
        lead = get_visible(self.session, Lead, lead_id, principal)
        if not lead:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Lead not found")
        return lead

    def create_lead(self, principal: Principal, data: LeadCreate) -> Lead:
        if principal.role == UserRole.BUSINESS:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only referrers can submit leads")

        referrer_id = principal.id
        if principal.is_admin and data.referrer_id:
            referrer_id = data.referrer_id

        campaign = None
        if data.campaign_id is not None:
            campaign = get_visible(self.session, Campaign, data.campaign_id, principal)
            if not campaign:
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND, detail="Campaign not found")
            if campaign.status != CampaignStatus.ACTIVE:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Campaign is not active")

        try:
            lead = Lead(**data.model_dump(exclude={"referrer_id"}), referrer_id=referrer_id)
            self.session.add(lead)
            if campaign is not None:
                campaign.leads += 1
                self.session.add(campaign)
            self.session.flush()
            self.activities.record(
                referrer_id, ActivityType.LEAD, f"New lead: {lead.customer_name}",
                description=lead.service, entity_type="lead", entity_id=lead.id)
            self.session.commit()
            self.session.refresh(lead)
        except Exception:
            self.session.rollback()
            raise
        logger.info("Lead %s submitted by %s", lead.id, referrer_id)
        return lead

    def update_lead(self, principal: Principal, lead_id: int, data: LeadUpdate) -> Lead:
        lead = self.get_lead(principal, lead_id)
        if not principal.is_admin:
            if lead.referrer_id != principal.id or lead.status != LeadStatus.PENDING:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail="Only the referrer of a pending lead can edit it")

        for key, value in data.model_dump(exclude_unset=True).items():
            setattr(lead, key, value)
        self.session.add(lead)
        self.session.commit()
        self.session.refresh(lead)
        return lead

    def change_status(self, principal: Principal, lead_id: int, new_status: LeadStatus) -> Lead:
        """Move a lead along its lifecycle.

        Approving or completing a lead creates its earning and charges the
        campaign budget in the same transaction as the status change.
        Rejecting an approved lead removes its unpaid earning and refunds the
        budget; a paid one blocks the rejection with 409.
        """
        if principal.role == UserRole.REFERRER:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only the campaign owner can change a lead's status")

        lead = self.get_lead(principal, lead_id)
        current = LeadStatus(lead.status)
        if new_status not in LEAD_TRANSITIONS[current]:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Cannot change lead status from {current.value} to {new_status.value}")

        try:
            if new_status in REWARDED_STATUSES:
                self.award_earning(lead)
            elif new_status in WITHDRAWN_STATUSES:
                self.revoke_earning(lead)
            lead.status = new_status
            self.session.add(lead)
            if new_status == LeadStatus.APPROVED:
                self.activities.record(
                    lead.referrer_id, ActivityType.APPROVAL,
                    f"Lead approved: {lead.customer_name}",
                    entity_type="lead", entity_id=lead.id)
            self.session.commit()
            self.session.refresh(lead)
        except Exception:
            self.session.rollback()
            raise
        logger.info("Lead %s moved from %s to %s", lead.id, current.value, new_status.value)
        return lead

    def award_earning(self, lead: Lead) -> Optional[Earning]:
        if lead.campaign_id is None:
            return None
        existing = self.session.exec(
            select(Earning).where(Earning.lead_id == lead.id)
        ).first()
        if existing:
            return None

        campaign = self.session.exec(
            select(Campaign).where(Campaign.id == lead.campaign_id).with_for_update()
        ).one()
        reward = Decimal(campaign.reward_per_conversion)
        if campaign.remaining_budget < reward:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Campaign budget is exhausted")

        campaign.budget_used = Decimal(campaign.budget_used or 0) + reward
        campaign.conversions += 1
        earning = Earning(
            referrer_id=lead.referrer_id,
            lead_id=lead.id,
            campaign_id=campaign.id,
            amount=reward,
        )
        self.session.add(campaign)
        self.session.add(earning)
        self.session.flush()
        self.activities.record(
            lead.referrer_id, ActivityType.EARNING, f"Earned {reward} from {campaign.name}",
            entity_type="earning", entity_id=earning.id)
        return earning

    def revoke_earning(self, lead: Lead) -> Optional[Earning]:
        """Remove the earning of a lead that no longer converts and refund its campaign."""
        earning = self.session.exec(
            select(Earning).where(Earning.lead_id == lead.id)
        ).first()
        if not earning:
            return None
        if earning.status == EarningStatus.PAID:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="The earning for this lead has already been paid")

        if earning.campaign_id is not None:
            campaign = self.session.exec(
                select(Campaign).where(Campaign.id == earning.campaign_id).with_for_update()
            ).one()
            campaign.budget_used = max(
                Decimal(campaign.budget_used or 0) - Decimal(earning.amount), Decimal("0"))
            campaign.conversions = max(campaign.conversions - 1, 0)
            self.session.add(campaign)
        self.session.delete(earning)
        self.session.flush()
        logger.info("Earning %s for lead %s revoked", earning.id, lead.id)
        return earning
