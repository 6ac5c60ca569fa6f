from fastapi import APIRouter, Query
from pydantic import BaseModel
from typing import List, Optional

from network_earnings.core.db import SessionDep
from network_earnings.core.dependencies.auth import CurrentPrincipal, IdentityProviderDep
from network_earnings.services.earnings_service import EarningsService
from network_earnings.services.statistics_service import StatisticsService
from network_earnings.utils.aggregation import (
    EarningsSummary, LeadSummary, MonthBucket, NetworkStats, ReferralLink
)

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


class DashboardSummary(BaseModel):
    leads: LeadSummary
    earnings: EarningsSummary


@router.get("/summary", response_model=DashboardSummary)
def get_summary(principal: CurrentPrincipal, session: SessionDep):
    return DashboardSummary(
        leads=StatisticsService(session).get_lead_summary(principal),
        earnings=EarningsService(session).get_summary(principal),
    )


@router.get("/performance", response_model=List[MonthBucket])
def get_performance(
    principal: CurrentPrincipal,
    session: SessionDep,
    months: Optional[int] = Query(None, ge=1, le=24),
):
    """
    One entry per calendar month of the trailing window, oldest first.

    Months without activity are included with zero values.
    """
    return StatisticsService(session).get_performance(principal, months)


@router.get("/referral-links", response_model=List[ReferralLink])
def get_referral_links(principal: CurrentPrincipal, session: SessionDep):
    return StatisticsService(session).get_referral_links(principal)


@router.get("/network", response_model=NetworkStats)
def get_network(principal: CurrentPrincipal, session: SessionDep, provider: IdentityProviderDep):
    return StatisticsService(session).get_network(principal, provider)
