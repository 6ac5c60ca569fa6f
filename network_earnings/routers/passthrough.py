"""
Thin JSON endpoints kept for existing clients.

They answer in camelCase and report errors as ``{"message": ...}`` (see the
``/api`` branch of the exception handlers in ``main``). Disputes and
activities are optional tables: when a deployment lacks them the endpoints
answer with empty lists and 404s instead of failing.
"""
from datetime import datetime
from fastapi import APIRouter, Body, HTTPException, status
from pydantic import ValidationError
from sqlmodel import col, select
from typing import Any, Dict, List
from uuid import UUID
import logging

from network_earnings.core.db import SessionDep, table_exists
from network_earnings.core.dependencies.auth import IdentityProviderDep
from network_earnings.models.activity import Activity
from network_earnings.models.api import (
    ApiActivity, ApiAnalyticsOverview, ApiCampaign, ApiCampaignCreate,
    ApiCampaignUpdate, ApiDispute, ApiDisputeCreate, ApiDisputeUpdate,
    ApiEarning, ApiLead, ApiLeadCreate, ApiLeadUpdate, ApiUser
)
from network_earnings.models.campaign import Campaign, CampaignCreate
from network_earnings.models.dispute import Dispute, DisputeStatus
from network_earnings.models.earning import Earning
from network_earnings.models.lead import Lead, LeadStatus
from network_earnings.models.user import UserProfile
from network_earnings.services.campaign_service import check_campaign_changes
from network_earnings.services.dispute_service import DISPUTES_UNAVAILABLE, generate_case_id
from network_earnings.services.lead_service import REWARDED_STATUSES, WITHDRAWN_STATUSES, LeadService
from network_earnings.services.statistics_service import StatisticsService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["passthrough"])


def _invalid(message: str, error: ValidationError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={
            "message": message,
            "errors": error.errors(include_url=False, include_context=False, include_input=False),
        },
    )


def _not_found(entity: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{entity} not found")


# Users

@router.get("/users", response_model=List[ApiUser])
def list_users(provider: IdentityProviderDep):
    return [UserProfile.from_identity(identity) for identity in provider.list_identities()]


@router.get("/users/{user_id}", response_model=ApiUser)
def get_user(user_id: UUID, provider: IdentityProviderDep):
    identity = provider.get_identity(user_id)
    if not identity:
        raise _not_found("User")
    return UserProfile.from_identity(identity)


# Leads

@router.get("/leads", response_model=List[ApiLead])
def list_leads(session: SessionDep):
    return session.exec(select(Lead).order_by(col(Lead.created_at).desc(), col(Lead.id).desc())).all()


@router.get("/leads/{lead_id}", response_model=ApiLead)
def get_lead(lead_id: int, session: SessionDep):
    lead = session.get(Lead, lead_id)
    if not lead:
        raise _not_found("Lead")
    return lead


@router.post("/leads", response_model=ApiLead, status_code=status.HTTP_201_CREATED)
def create_lead(session: SessionDep, payload: Dict[str, Any] = Body(...)):
    try:
        data = ApiLeadCreate.model_validate(payload)
    except ValidationError as e:
        raise _invalid("Invalid lead data", e)
    campaign = None
    if data.campaign_id is not None:
        campaign = session.get(Campaign, data.campaign_id)
        if not campaign:
            raise _not_found("Campaign")

    # Leads start pending; a requested status is applied like a PATCH would
    lead = Lead(**data.model_dump(exclude={"status"}))
    try:
        session.add(lead)
        if campaign is not None:
            campaign.leads += 1
            session.add(campaign)
        session.flush()
        if data.status in REWARDED_STATUSES:
            LeadService(session).award_earning(lead)
        lead.status = data.status
        session.add(lead)
        session.commit()
    except Exception:
        session.rollback()
        raise
    session.refresh(lead)
    return lead


@router.patch("/leads/{lead_id}", response_model=ApiLead)
def update_lead(lead_id: int, session: SessionDep, payload: Dict[str, Any] = Body(...)):
    lead = session.get(Lead, lead_id)
    if not lead:
        raise _not_found("Lead")
    try:
        data = ApiLeadUpdate.model_validate(payload)
    except ValidationError as e:
        raise _invalid("Invalid lead data", e)

    changes = data.model_dump(exclude_unset=True)
    new_status = changes.get("status")
    try:
        if new_status in REWARDED_STATUSES and LeadStatus(lead.status) != new_status:
            LeadService(session).award_earning(lead)
        elif new_status in WITHDRAWN_STATUSES:
            LeadService(session).revoke_earning(lead)
        for key, value in changes.items():
            setattr(lead, key, value)
        session.add(lead)
        session.commit()
    except Exception:
        session.rollback()
        raise
    session.refresh(lead)
    return lead


# Campaigns

@router.get("/campaigns", response_model=List[ApiCampaign])
def list_campaigns(session: SessionDep):
    return session.exec(
        select(Campaign).order_by(col(Campaign.created_at).desc(), col(Campaign.id).desc())
    ).all()


@router.get("/campaigns/{campaign_id}", response_model=ApiCampaign)
def get_campaign(campaign_id: int, session: SessionDep):
    campaign = session.get(Campaign, campaign_id)
    if not campaign:
        raise _not_found("Campaign")
    return campaign


@router.post("/campaigns", response_model=ApiCampaign, status_code=status.HTTP_201_CREATED)
def create_campaign(session: SessionDep, payload: Dict[str, Any] = Body(...)):
    try:
        data = CampaignCreate.model_validate(
            ApiCampaignCreate.model_validate(payload).model_dump())
    except ValidationError as e:
        raise _invalid("Invalid campaign data", e)

    campaign = Campaign(**data.model_dump())
    session.add(campaign)
    session.commit()
    session.refresh(campaign)
    return campaign


@router.patch("/campaigns/{campaign_id}", response_model=ApiCampaign)
def update_campaign(campaign_id: int, session: SessionDep, payload: Dict[str, Any] = Body(...)):
    campaign = session.get(Campaign, campaign_id)
    if not campaign:
        raise _not_found("Campaign")
    try:
        data = ApiCampaignUpdate.model_validate(payload)
    except ValidationError as e:
        raise _invalid("Invalid campaign data", e)

    changes = data.model_dump(exclude_unset=True)
    check_campaign_changes(campaign, changes)
    for key, value in changes.items():
        setattr(campaign, key, value)
    session.add(campaign)
    session.commit()
    session.refresh(campaign)
    return campaign


# Earnings

@router.get("/earnings", response_model=List[ApiEarning])
def list_earnings(session: SessionDep):
    return session.exec(
        select(Earning).order_by(col(Earning.created_at).desc(), col(Earning.id).desc())
    ).all()


@router.get("/earnings/referrer/{referrer_id}", response_model=List[ApiEarning])
def list_referrer_earnings(referrer_id: UUID, session: SessionDep):
    return session.exec(
        select(Earning)
        .where(Earning.referrer_id == referrer_id)
        .order_by(col(Earning.created_at).desc(), col(Earning.id).desc())
    ).all()


# Disputes

def _disputes_available(session) -> bool:
    available = table_exists(session, Dispute.__tablename__)
    if not available:
        logger.warning("Disputes endpoint called but the disputes table does not exist")
    return available


@router.get("/disputes", response_model=List[ApiDispute])
def list_disputes(session: SessionDep):
    if not _disputes_available(session):
        return []
    return session.exec(
        select(Dispute).order_by(col(Dispute.created_at).desc(), col(Dispute.id).desc())
    ).all()


@router.get("/disputes/{dispute_id}", response_model=ApiDispute)
def get_dispute(dispute_id: int, session: SessionDep):
    dispute = session.get(Dispute, dispute_id) if _disputes_available(session) else None
    if not dispute:
        raise _not_found("Dispute")
    return dispute


@router.post("/disputes", response_model=ApiDispute, status_code=status.HTTP_201_CREATED)
def create_dispute(session: SessionDep, payload: Dict[str, Any] = Body(...)):
    if not _disputes_available(session):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=DISPUTES_UNAVAILABLE)
    try:
        data = ApiDisputeCreate.model_validate(payload)
    except ValidationError as e:
        raise _invalid("Invalid dispute data", e)

    lead = session.get(Lead, data.lead_id)
    if not lead:
        raise _not_found("Lead")
    campaign = session.get(Campaign, lead.campaign_id) if lead.campaign_id else None
    dispute = Dispute(
        case_id=generate_case_id(),
        referrer_id=lead.referrer_id,
        business_id=campaign.business_id if campaign else None,
        lead_id=lead.id,
        business_claim=data.business_claim,
        evidence=data.evidence,
    )
    session.add(dispute)
    session.commit()
    session.refresh(dispute)
    return dispute


@router.patch("/disputes/{dispute_id}", response_model=ApiDispute)
def update_dispute(dispute_id: int, session: SessionDep, payload: Dict[str, Any] = Body(...)):
    dispute = session.get(Dispute, dispute_id) if _disputes_available(session) else None
    if not dispute:
        raise _not_found("Dispute")
    try:
        data = ApiDisputeUpdate.model_validate(payload)
    except ValidationError as e:
        raise _invalid("Invalid dispute data", e)
    if not dispute.is_open:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail="Dispute has already been resolved")

    if data.referrer_response is not None:
        dispute.referrer_response = data.referrer_response
    if data.decision is not None:
        dispute.decision = data.decision
        dispute.admin_id = data.admin_id
        dispute.status = DisputeStatus.RESOLVED
        dispute.resolved_at = datetime.utcnow()
    session.add(dispute)
    session.commit()
    session.refresh(dispute)
    return dispute


# Activities

@router.get("/activities", response_model=List[ApiActivity])
def list_activities(session: SessionDep):
    if not table_exists(session, Activity.__tablename__):
        logger.warning("Activities endpoint called but the activities table does not exist")
        return []
    return session.exec(
        select(Activity).order_by(col(Activity.created_at).desc(), col(Activity.id).desc())
    ).all()


@router.get("/activities/{activity_id}", response_model=ApiActivity)
def get_activity(activity_id: int, session: SessionDep):
    activity = None
    if table_exists(session, Activity.__tablename__):
        activity = session.get(Activity, activity_id)
    else:
        logger.warning("Activities endpoint called but the activities table does not exist")
    if not activity:
        raise _not_found("Activity")
    return activity


# Analytics

@router.get("/analytics/overview", response_model=ApiAnalyticsOverview)
def analytics_overview(session: SessionDep):
    return StatisticsService(session).get_overview()
