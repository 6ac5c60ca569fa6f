from fastapi import APIRouter, Depends, status
from typing import List

from network_earnings.core.db import SessionDep
from network_earnings.core.dependencies.auth import CurrentPrincipal
from network_earnings.models.campaign import CampaignCreate, CampaignRead, CampaignUpdate
from network_earnings.services.campaign_service import CampaignService
from network_earnings.utils.visibility import ListFilters, list_filters

router = APIRouter(prefix="/campaigns", tags=["campaigns"])


@router.get("/", response_model=List[CampaignRead])
def list_campaigns(
    principal: CurrentPrincipal,
    session: SessionDep,
    filters: ListFilters = Depends(list_filters),
):
    return CampaignService(session).list_campaigns(principal, filters)


@router.post("/", response_model=CampaignRead, status_code=status.HTTP_201_CREATED)
def create_campaign(data: CampaignCreate, principal: CurrentPrincipal, session: SessionDep):
    return CampaignService(session).create_campaign(principal, data)


@router.get("/{campaign_id}", response_model=CampaignRead)
def get_campaign(campaign_id: int, principal: CurrentPrincipal, session: SessionDep):
    return CampaignService(session).get_campaign(principal, campaign_id)


@router.patch("/{campaign_id}", response_model=CampaignRead)
def update_campaign(
    campaign_id: int, data: CampaignUpdate, principal: CurrentPrincipal, session: SessionDep
):
    return CampaignService(session).update_campaign(principal, campaign_id, data)
