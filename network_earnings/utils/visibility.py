"""Row-level visibility.

Every read of a table goes through ``scoped`` so a caller only ever sees the
rows the policy for their role allows. The same rules are installed as
Postgres policies by ``network_earnings.core.rls``.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from fastapi import HTTPException, Query, status
from sqlmodel import Session, col, select

from network_earnings.core.security import Principal
from network_earnings.models.activity import Activity
from network_earnings.models.campaign import Campaign, CampaignStatus
from network_earnings.models.dispute import Dispute
from network_earnings.models.earning import Earning
from network_earnings.models.lead import Lead
from network_earnings.models.payout import Payout
from network_earnings.models.payout_method import PayoutMethod
from network_earnings.models.user import UserRole


def owned_campaign_ids(principal: Principal):
    return select(Campaign.id).where(Campaign.business_id == principal.id)


def _scope_leads(statement, principal):
    if principal.role == UserRole.BUSINESS:
        return statement.where(col(Lead.campaign_id).in_(owned_campaign_ids(principal)))
    return statement.where(Lead.referrer_id == principal.id)


def _scope_campaigns(statement, principal):
    if principal.role == UserRole.BUSINESS:
        return statement.where(Campaign.business_id == principal.id)
    return statement.where(Campaign.status == CampaignStatus.ACTIVE)


def _scope_earnings(statement, principal):
    if principal.role == UserRole.BUSINESS:
        return statement.where(col(Earning.campaign_id).in_(owned_campaign_ids(principal)))
    return statement.where(Earning.referrer_id == principal.id)


def _scope_disputes(statement, principal):
    if principal.role == UserRole.BUSINESS:
        return statement.where(Dispute.business_id == principal.id)
    return statement.where(Dispute.referrer_id == principal.id)


def _scope_by_user(model):
    def scope(statement, principal):
        return statement.where(model.user_id == principal.id)
    return scope


SCOPES = {
    Lead: _scope_leads,
    Campaign: _scope_campaigns,
    Earning: _scope_earnings,
    Dispute: _scope_disputes,
    Payout: _scope_by_user(Payout),
    PayoutMethod: _scope_by_user(PayoutMethod),
    Activity: _scope_by_user(Activity),
}

# Column each table is ordered and date-filtered by
CREATED_COLUMNS = {
    Payout: Payout.date,
}


def scoped(statement, model, principal: Principal):
    """Restrict ``statement`` over ``model`` to the rows ``principal`` may see."""
    if principal.is_admin:
        return statement
    return SCOPES[model](statement, principal)


def get_visible(session: Session, model, row_id, principal: Principal):
    """Return the row with ``row_id`` or None when it does not exist or is not visible."""
    statement = scoped(select(model).where(model.id == row_id), model, principal)
    return session.exec(statement).first()


@dataclass
class ListFilters:
    status: Optional[str] = None
    campaign_id: Optional[int] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None
    limit: int = 100


def list_filters(
    status: Optional[str] = None,
    campaign_id: Optional[int] = None,
    created_from: Optional[datetime] = None,
    created_to: Optional[datetime] = None,
    limit: int = Query(100, ge=1, le=500),
) -> ListFilters:
    return ListFilters(status, campaign_id, created_from, created_to, limit)


def list_visible(session: Session, model, principal: Principal, filters: Optional[ListFilters] = None):
    """List visible rows of ``model``, newest first."""
    filters = filters or ListFilters()
    created = CREATED_COLUMNS.get(model, getattr(model, "created_at", None))
    statement = scoped(select(model), model, principal)

    if filters.status and hasattr(model, "status"):
        status_type = model.model_fields["status"].annotation
        try:
            wanted = status_type(filters.status)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unknown status: {filters.status}")
        statement = statement.where(model.status == wanted)
    if filters.campaign_id is not None and hasattr(model, "campaign_id"):
        statement = statement.where(model.campaign_id == filters.campaign_id)
    if filters.created_from and created is not None:
        statement = statement.where(created >= filters.created_from)
    if filters.created_to and created is not None:
        statement = statement.where(created <= filters.created_to)

    # id breaks ties so repeated reads return rows in the same order
    if created is not None:
        statement = statement.order_by(col(created).desc(), col(model.id).desc())
    else:
        statement = statement.order_by(col(model.id).desc())
    return session.exec(statement.limit(filters.limit)).all()
