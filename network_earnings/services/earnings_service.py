from datetime import datetime
from fastapi import HTTPException, status
from sqlmodel import Session, col, select
from typing import List, Optional
import logging

from network_earnings.core.config import settings
from network_earnings.core.security import Principal
from network_earnings.models.activity import ActivityType
from network_earnings.models.campaign import Campaign
from network_earnings.models.earning import Earning, EarningCreate, EarningStatus
from network_earnings.models.lead import Lead
from network_earnings.models.payout import Payout
from network_earnings.models.user import UserRole
from network_earnings.services.activity_service import ActivityService
from network_earnings.utils.aggregation import (
    EarningSource, EarningsSummary, MonthBucket, earnings_by_source,
    earnings_summary, monthly_series
)
from network_earnings.utils.visibility import ListFilters, get_visible, list_visible

logger = logging.getLogger(__name__)

# Upper bound on rows pulled into a summary
SUMMARY_ROW_LIMIT = 10000


class EarningsService:
    def __init__(self, session: Session):
        self.session = session
        self.activities = ActivityService(session)

    def list_earnings(self, principal: Principal, filters: Optional[ListFilters] = None) -> List[Earning]:
        return list_visible(self.session, Earning, principal, filters)

    def get_earning(self, principal: Principal, earning_id: int) -> Earning:
        earning = get_visible(self.session, Earning, earning_id, principal)
        if not earning:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Earning not found")
        return earning

    def create_earning(self, principal: Principal, data: EarningCreate) -> Earning:
        """Record a manual earning. Admin only."""
        if data.lead_id is not None:
            if not self.session.get(Lead, data.lead_id):
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND, detail="Lead not found")
            existing = self.session.exec(
                select(Earning).where(Earning.lead_id == data.lead_id)
            ).first()
            if existing:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="Lead already has an earning")
        if data.campaign_id is not None and not self.session.get(Campaign, data.campaign_id):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Campaign not found")

        earning = Earning(**data.model_dump())
        self.session.add(earning)
        self.session.flush()
        self.activities.record(
            earning.referrer_id, ActivityType.EARNING, f"Earned {earning.amount}",
            entity_type="earning", entity_id=earning.id)
        self.session.commit()
        self.session.refresh(earning)
        logger.info("Manual earning %s created by %s", earning.id, principal.id)
        return earning

    def mark_paid(self, principal: Principal, earning_id: int, payout_reference: str) -> Earning:
        if principal.role == UserRole.REFERRER:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only admins or the campaign owner can pay earnings")

        earning = self.get_earning(principal, earning_id)
        reference = (payout_reference or "").strip()
        if not reference:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="A payout reference is required")
        if earning.status == EarningStatus.PAID:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Earning is already paid")

        earning.status = EarningStatus.PAID
        earning.payout_reference = reference
        earning.paid_at = datetime.utcnow()
        self.session.add(earning)
        self.session.commit()
        self.session.refresh(earning)
        return earning

    def _own_rows(self, principal: Principal):
        earnings = self.session.exec(
            select(Earning).where(Earning.referrer_id == principal.id)
            .limit(SUMMARY_ROW_LIMIT)
        ).all()
        payouts = self.session.exec(
            select(Payout).where(Payout.user_id == principal.id)
            .limit(SUMMARY_ROW_LIMIT)
        ).all()
        return earnings, payouts

    def get_summary(self, principal: Principal) -> EarningsSummary:
        """Balances of the caller as a referrer."""
        earnings, payouts = self._own_rows(principal)
        return earnings_summary(earnings, payouts)

    def get_sources(self, principal: Principal) -> List[EarningSource]:
        earnings = list_visible(
            self.session, Earning, principal, ListFilters(limit=SUMMARY_ROW_LIMIT))
        campaign_ids = {e.campaign_id for e in earnings if e.campaign_id is not None}
        campaigns = self.session.exec(
            select(Campaign).where(col(Campaign.id).in_(campaign_ids))
        ).all() if campaign_ids else []
        return earnings_by_source(earnings, campaigns)

    def get_monthly(self, principal: Principal, months: Optional[int] = None) -> List[MonthBucket]:
        earnings, payouts = self._own_rows(principal)
        return monthly_series(
            [], earnings, payouts, months=months or settings.METRICS_WINDOW_MONTHS)
