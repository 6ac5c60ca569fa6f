from fastapi import APIRouter, Depends, status
from typing import List

from network_earnings.core.db import SessionDep
from network_earnings.core.dependencies.auth import CurrentPrincipal
from network_earnings.models.lead import LeadCreate, LeadRead, LeadStatusUpdate, LeadUpdate
from network_earnings.services.lead_service import LeadService
from network_earnings.utils.visibility import ListFilters, list_filters

router = APIRouter(prefix="/leads", tags=["leads"])


@router.get("/", response_model=List[LeadRead])
def list_leads(
    principal: CurrentPrincipal,
    session: SessionDep,
    filters: ListFilters = Depends(list_filters),
):
    """
    Leads visible to the caller, newest first.

    Referrers see the leads they submitted, businesses the leads on their
    campaigns and admins every lead.
    """
    return LeadService(session).list_leads(principal, filters)


@router.post("/", response_model=LeadRead, status_code=status.HTTP_201_CREATED)
def create_lead(data: LeadCreate, principal: CurrentPrincipal, session: SessionDep):
    return LeadService(session).create_lead(principal, data)


@router.get("/{lead_id}", response_model=LeadRead)
def get_lead(lead_id: int, principal: CurrentPrincipal, session: SessionDep):
    return LeadService(session).get_lead(principal, lead_id)


@router.patch("/{lead_id}", response_model=LeadRead)
def update_lead(lead_id: int, data: LeadUpdate, principal: CurrentPrincipal, session: SessionDep):
    return LeadService(session).update_lead(principal, lead_id, data)


@router.patch("/{lead_id}/status", response_model=LeadRead)
def change_lead_status(
    lead_id: int, data: LeadStatusUpdate, principal: CurrentPrincipal, session: SessionDep
):
    """Approve, reject or complete a lead. Approval and completion pay the campaign reward."""
    return LeadService(session).change_status(principal, lead_id, data.status)
