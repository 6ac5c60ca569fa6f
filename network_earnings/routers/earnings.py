from fastapi import APIRouter, Depends, Query, status
from typing import List, Optional

from network_earnings.core.db import SessionDep
from network_earnings.core.dependencies.auth import AdminPrincipal, CurrentPrincipal
from network_earnings.models.earning import EarningCreate, EarningMarkPaid, EarningRead
from network_earnings.services.earnings_service import EarningsService
from network_earnings.utils.aggregation import EarningSource, EarningsSummary, MonthBucket
from network_earnings.utils.visibility import ListFilters, list_filters

router = APIRouter(prefix="/earnings", tags=["earnings"])


@router.get("/", response_model=List[EarningRead])
def list_earnings(
    principal: CurrentPrincipal,
    session: SessionDep,
    filters: ListFilters = Depends(list_filters),
):
    return EarningsService(session).list_earnings(principal, filters)


@router.get("/summary", response_model=EarningsSummary)
def get_earnings_summary(principal: CurrentPrincipal, session: SessionDep):
    """
    Balances of the caller.

    `available_balance` counts paid earnings only; pending earnings are
    reported in `pending_earnings`. `withdrawable` is what a payout request
    may ask for.
    """
    return EarningsService(session).get_summary(principal)


@router.get("/sources", response_model=List[EarningSource])
def get_earnings_by_source(principal: CurrentPrincipal, session: SessionDep):
    return EarningsService(session).get_sources(principal)


@router.get("/monthly", response_model=List[MonthBucket])
def get_monthly_earnings(
    principal: CurrentPrincipal,
    session: SessionDep,
    months: Optional[int] = Query(None, ge=1, le=24),
):
    return EarningsService(session).get_monthly(principal, months)


@router.post("/", response_model=EarningRead, status_code=status.HTTP_201_CREATED)
def create_earning(data: EarningCreate, admin: AdminPrincipal, session: SessionDep):
    return EarningsService(session).create_earning(admin, data)


@router.get("/{earning_id}", response_model=EarningRead)
def get_earning(earning_id: int, principal: CurrentPrincipal, session: SessionDep):
    return EarningsService(session).get_earning(principal, earning_id)


@router.post("/{earning_id}/pay", response_model=EarningRead)
def mark_earning_paid(
    earning_id: int, data: EarningMarkPaid, principal: CurrentPrincipal, session: SessionDep
):
    return EarningsService(session).mark_paid(principal, earning_id, data.payout_reference)
