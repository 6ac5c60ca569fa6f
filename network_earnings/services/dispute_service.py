from datetime import datetime
from fastapi import HTTPException, status
from sqlmodel import Session, col, select
from typing import List, Optional
from uuid import uuid4
import logging

from network_earnings.core.db import table_exists
from network_earnings.core.security import Principal
from network_earnings.models.activity import ActivityType
from network_earnings.models.campaign import Campaign
from network_earnings.models.dispute import (
    OPEN_DISPUTE_STATUSES, Dispute, DisputeBoard, DisputeCreate, DisputeDecision,
    DisputeRead, DisputeStatus
)
from network_earnings.models.lead import Lead
from network_earnings.models.user import UserRole
from network_earnings.services.activity_service import ActivityService
from network_earnings.utils.visibility import ListFilters, get_visible, list_visible

logger = logging.getLogger(__name__)

DISPUTES_UNAVAILABLE = "Disputes functionality is not available"


def generate_case_id() -> str:
    return f"CASE-{uuid4().hex[:8].upper()}"


class DisputeService:
    def __init__(self, session: Session):
        self.session = session
        self.activities = ActivityService(session)

    def is_available(self) -> bool:
        return table_exists(self.session, Dispute.__tablename__)

    def _require_table(self):
        if not self.is_available():
            logger.warning("Dispute write attempted but the disputes table does not exist")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail=DISPUTES_UNAVAILABLE)

    def list_disputes(self, principal: Principal, filters: Optional[ListFilters] = None) -> List[Dispute]:
        if not self.is_available():
            logger.warning("Disputes requested but the disputes table does not exist")
            return []
        return list_visible(self.session, Dispute, principal, filters)

    def get_dispute(self, principal: Principal, dispute_id: int) -> Dispute:
        dispute = None
        if self.is_available():
            dispute = get_visible(self.session, Dispute, dispute_id, principal)
        if not dispute:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Dispute not found")
        return dispute

    def get_board(self, principal: Principal) -> DisputeBoard:
        """Split the visible disputes into open and resolved cases."""
        disputes = self.list_disputes(principal, ListFilters(limit=500))
        return DisputeBoard(
            pending=[DisputeRead.model_validate(d, from_attributes=True)
                     for d in disputes if d.is_open],
            resolved=[DisputeRead.model_validate(d, from_attributes=True)
                      for d in disputes if not d.is_open],
        )

    def open_dispute(self, principal: Principal, data: DisputeCreate) -> Dispute:
        if principal.role == UserRole.REFERRER:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only the business that received a lead can dispute it")
        self._require_table()

        lead = get_visible(self.session, Lead, data.lead_id, principal)
        if not lead:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Lead not found")

        open_case = self.session.exec(
            select(Dispute).where(
                Dispute.lead_id == lead.id,
                col(Dispute.status).in_(OPEN_DISPUTE_STATUSES),
            )
        ).first()
        if open_case:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Lead already has an open dispute ({open_case.case_id})")

        business_id = principal.id
        if principal.is_admin:
            campaign = self.session.get(Campaign, lead.campaign_id) if lead.campaign_id else None
            business_id = campaign.business_id if campaign else None

        dispute = Dispute(
            case_id=generate_case_id(),
            referrer_id=lead.referrer_id,
            business_id=business_id,
            lead_id=lead.id,
            business_claim=data.business_claim,
            evidence=data.evidence,
        )
        self.session.add(dispute)
        self.session.flush()
        self.activities.record(
            lead.referrer_id, ActivityType.DISPUTE,
            f"Dispute {dispute.case_id} opened on lead {lead.customer_name}",
            entity_type="dispute", entity_id=dispute.id)
        self.session.commit()
        self.session.refresh(dispute)
        logger.info("Dispute %s opened on lead %s", dispute.case_id, lead.id)
        return dispute

    def _get_open(self, principal: Principal, dispute_id: int) -> Dispute:
        self._require_table()
        dispute = self.get_dispute(principal, dispute_id)
        if not dispute.is_open:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Dispute has already been resolved")
        return dispute

    def respond(self, principal: Principal, dispute_id: int, response: str) -> Dispute:
        dispute = self._get_open(principal, dispute_id)
        if not principal.is_admin and dispute.referrer_id != principal.id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only the referrer of the disputed lead can respond")
        dispute.referrer_response = response
        self.session.add(dispute)
        self.session.commit()
        self.session.refresh(dispute)
        return dispute

    def escalate(self, principal: Principal, dispute_id: int) -> Dispute:
        dispute = self._get_open(principal, dispute_id)
        if dispute.status == DisputeStatus.ESCALATED:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Dispute is already escalated")
        dispute.status = DisputeStatus.ESCALATED
        self.session.add(dispute)
        self.session.commit()
        self.session.refresh(dispute)
        return dispute

    def resolve(self, principal: Principal, dispute_id: int, decision: DisputeDecision) -> Dispute:
        """Record the admin decision. A dispute is resolved exactly once."""
        dispute = self._get_open(principal, dispute_id)
        dispute.decision = decision
        dispute.admin_id = principal.id
        dispute.resolved_at = datetime.utcnow()
        dispute.status = DisputeStatus.RESOLVED
        self.session.add(dispute)
        self.activities.record(
            dispute.referrer_id, ActivityType.DISPUTE,
            f"Dispute {dispute.case_id} resolved: {decision.value}",
            entity_type="dispute", entity_id=dispute.id)
        self.session.commit()
        self.session.refresh(dispute)
        logger.info("Dispute %s resolved as %s by %s", dispute.case_id, decision.value, principal.id)
        return dispute
