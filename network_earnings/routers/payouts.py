from fastapi import APIRouter, Depends, status
from typing import List

from network_earnings.core.db import SessionDep
from network_earnings.core.dependencies.auth import AdminPrincipal, CurrentPrincipal
from network_earnings.models.payout import PayoutComplete, PayoutRead, PayoutRequest
from network_earnings.services.payout_service import PayoutService
from network_earnings.utils.visibility import ListFilters, list_filters

router = APIRouter(prefix="/payouts", tags=["payouts"])


@router.get("/", response_model=List[PayoutRead])
def list_payouts(
    principal: CurrentPrincipal,
    session: SessionDep,
    filters: ListFilters = Depends(list_filters),
):
    return PayoutService(session).list_payouts(principal, filters)


@router.post("/", response_model=PayoutRead, status_code=status.HTTP_201_CREATED)
def request_payout(data: PayoutRequest, principal: CurrentPrincipal, session: SessionDep):
    """
    Request a withdrawal. The amount must not exceed the withdrawable
    balance reported by `/earnings/summary`.
    """
    return PayoutService(session).request_payout(principal, data)


@router.get("/{payout_id}", response_model=PayoutRead)
def get_payout(payout_id: int, principal: CurrentPrincipal, session: SessionDep):
    return PayoutService(session).get_payout(principal, payout_id)


@router.post("/{payout_id}/complete", response_model=PayoutRead)
def complete_payout(payout_id: int, data: PayoutComplete, admin: AdminPrincipal, session: SessionDep):
    return PayoutService(session).complete_payout(admin, payout_id, data.reference)


@router.post("/{payout_id}/fail", response_model=PayoutRead)
def fail_payout(payout_id: int, admin: AdminPrincipal, session: SessionDep):
    return PayoutService(session).fail_payout(admin, payout_id)
