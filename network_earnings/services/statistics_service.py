from datetime import datetime
from sqlmodel import Session, select
from typing import Any, Dict, List, Optional
from uuid import UUID

from network_earnings.core.config import settings
from network_earnings.core.db import table_exists
from network_earnings.core.security import Principal
from network_earnings.models.campaign import Campaign, CampaignStatus
from network_earnings.models.dispute import Dispute, OPEN_DISPUTE_STATUSES
from network_earnings.models.earning import Earning
from network_earnings.models.lead import Lead
from network_earnings.models.payout import Payout
from network_earnings.models.user import UserRole
from network_earnings.services.identity_provider import IdentityProvider
from network_earnings.utils.aggregation import (
    LeadSummary, MonthBucket, NetworkStats, ReferralLink, ZERO,
    lead_summary, monthly_series, network_stats, referral_links
)
from network_earnings.utils.visibility import ListFilters, list_visible

# Upper bound on rows pulled into one dashboard computation
DASHBOARD_ROW_LIMIT = 10000


class StatisticsService:
    def __init__(self, session: Session):
        self.session = session

    def _visible(self, model, principal: Principal, created_from: Optional[datetime] = None):
        filters = ListFilters(created_from=created_from, limit=DASHBOARD_ROW_LIMIT)
        return list_visible(self.session, model, principal, filters)

    def get_lead_summary(self, principal: Principal) -> LeadSummary:
        return lead_summary(self._visible(Lead, principal))

    def get_performance(self, principal: Principal, months: Optional[int] = None) -> List[MonthBucket]:
        """Monthly leads, conversions, earnings and payouts of the caller."""
        months = months or settings.METRICS_WINDOW_MONTHS
        return monthly_series(
            self._visible(Lead, principal),
            self._visible(Earning, principal),
            self._visible(Payout, principal),
            months=months,
        )

    def get_referral_links(self, principal: Principal) -> List[ReferralLink]:
        campaigns = self._visible(Campaign, principal)
        leads = self._visible(Lead, principal)
        return referral_links(principal.id, campaigns, leads, settings.REFERRAL_BASE_URL)

    def get_network(self, principal: Principal, provider: IdentityProvider) -> NetworkStats:
        leads = self._visible(Lead, principal)
        payouts = self._visible(Payout, principal)
        referrer_ids: List[UUID] = []
        if principal.is_admin:
            referrer_ids = [
                identity.id for identity in provider.list_identities()
                if identity.user_metadata.get("role", UserRole.REFERRER.value)
                == UserRole.REFERRER.value
            ]
        return network_stats(
            leads, payouts, referrer_ids, months=settings.METRICS_WINDOW_MONTHS)

    def get_overview(self) -> Dict[str, Any]:
        """System-wide counters served on the public analytics endpoint."""
        leads = self.session.exec(select(Lead)).all()
        earnings = self.session.exec(select(Earning)).all()
        active_campaigns = self.session.exec(
            select(Campaign).where(Campaign.status == CampaignStatus.ACTIVE)
        ).all()
        pending_disputes = 0
        if table_exists(self.session, Dispute.__tablename__):
            pending_disputes = len([
                d for d in self.session.exec(select(Dispute)).all()
                if d.status in OPEN_DISPUTE_STATUSES
            ])

        summary = lead_summary(leads)
        return {
            "total_referrals": summary.total,
            "conversion_rate": summary.conversion_rate,
            "total_payouts": sum((e.amount for e in earnings), ZERO),
            "active_campaigns": len(active_campaigns),
            "pending_disputes": pending_disputes,
        }
