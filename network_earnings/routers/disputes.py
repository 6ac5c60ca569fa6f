from fastapi import APIRouter, Depends, status
from typing import List

from network_earnings.core.db import SessionDep
from network_earnings.core.dependencies.auth import AdminPrincipal, CurrentPrincipal
from network_earnings.models.dispute import (
    DisputeBoard, DisputeCreate, DisputeRead, DisputeResolve, DisputeResponse
)
from network_earnings.services.dispute_service import DisputeService
from network_earnings.utils.visibility import ListFilters, list_filters

router = APIRouter(prefix="/disputes", tags=["disputes"])


@router.get("/", response_model=List[DisputeRead])
def list_disputes(
    principal: CurrentPrincipal,
    session: SessionDep,
    filters: ListFilters = Depends(list_filters),
):
    return DisputeService(session).list_disputes(principal, filters)


@router.get("/board", response_model=DisputeBoard)
def get_dispute_board(principal: CurrentPrincipal, session: SessionDep):
    """Open cases (pending or escalated) and resolved cases, each exactly once."""
    return DisputeService(session).get_board(principal)


@router.get("/{dispute_id}", response_model=DisputeRead)
def get_dispute(dispute_id: int, principal: CurrentPrincipal, session: SessionDep):
    return DisputeService(session).get_dispute(principal, dispute_id)


@router.post("/", response_model=DisputeRead, status_code=status.HTTP_201_CREATED)
def open_dispute(data: DisputeCreate, principal: CurrentPrincipal, session: SessionDep):
    return DisputeService(session).open_dispute(principal, data)


@router.post("/{dispute_id}/respond", response_model=DisputeRead)
def respond_to_dispute(
    dispute_id: int, data: DisputeResponse, principal: CurrentPrincipal, session: SessionDep
):
    return DisputeService(session).respond(principal, dispute_id, data.referrer_response)


@router.post("/{dispute_id}/escalate", response_model=DisputeRead)
def escalate_dispute(dispute_id: int, admin: AdminPrincipal, session: SessionDep):
    return DisputeService(session).escalate(admin, dispute_id)


@router.post("/{dispute_id}/resolve", response_model=DisputeRead)
def resolve_dispute(dispute_id: int, data: DisputeResolve, admin: AdminPrincipal, session: SessionDep):
    return DisputeService(session).resolve(admin, dispute_id, data.decision)
