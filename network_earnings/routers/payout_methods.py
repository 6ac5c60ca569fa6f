from fastapi import APIRouter, status
from typing import List

from network_earnings.core.db import SessionDep
from network_earnings.core.dependencies.auth import CurrentPrincipal
from network_earnings.models.payout_method import PayoutMethodCreate, PayoutMethodRead
from network_earnings.services.payout_method_service import PayoutMethodService

router = APIRouter(prefix="/payout-methods", tags=["payout methods"])


@router.get("/", response_model=List[PayoutMethodRead])
def list_payout_methods(principal: CurrentPrincipal, session: SessionDep):
    """Payout methods of the caller; account numbers are masked."""
    return PayoutMethodService(session).list_methods(principal)


@router.post("/", response_model=PayoutMethodRead, status_code=status.HTTP_201_CREATED)
def create_payout_method(data: PayoutMethodCreate, principal: CurrentPrincipal, session: SessionDep):
    return PayoutMethodService(session).create_method(principal, data)


@router.post("/{method_id}/default", response_model=PayoutMethodRead)
def set_default_payout_method(method_id: int, principal: CurrentPrincipal, session: SessionDep):
    return PayoutMethodService(session).set_default(principal, method_id)


@router.delete("/{method_id}")
def delete_payout_method(method_id: int, principal: CurrentPrincipal, session: SessionDep):
    return PayoutMethodService(session).delete_method(principal, method_id)
