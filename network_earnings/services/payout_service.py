from datetime import datetime
from fastapi import HTTPException, status
from sqlmodel import Session
from typing import List, Optional
import logging

from network_earnings.core.security import Principal
from network_earnings.models.activity import ActivityType
from network_earnings.models.payout import Payout, PayoutRequest, PayoutStatus
from network_earnings.models.payout_method import PayoutMethod, PayoutMethodType
from network_earnings.services.activity_service import ActivityService
from network_earnings.services.earnings_service import EarningsService
from network_earnings.services.payout_method_service import PayoutMethodService
from network_earnings.utils.visibility import ListFilters, get_visible, list_visible

logger = logging.getLogger(__name__)


class PayoutService:
    def __init__(self, session: Session):
        self.session = session
        self.activities = ActivityService(session)

    def list_payouts(self, principal: Principal, filters: Optional[ListFilters] = None) -> List[Payout]:
        return list_visible(self.session, Payout, principal, filters)

    def get_payout(self, principal: Principal, payout_id: int) -> Payout:
        payout = get_visible(self.session, Payout, payout_id, principal)
        if not payout:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Payout not found")
        return payout

    def _resolve_method(self, principal: Principal, data: PayoutRequest) -> str:
        if data.payout_method_id is not None:
            method = get_visible(self.session, PayoutMethod, data.payout_method_id, principal)
            if not method or method.user_id != principal.id:
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND, detail="Payout method not found")
            return PayoutMethodType(method.type).value
        if data.method:
            return data.method
        default = PayoutMethodService(self.session).get_default(principal)
        if not default:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="A payout method is required")
        return PayoutMethodType(default.type).value

    def request_payout(self, principal: Principal, data: PayoutRequest) -> Payout:
        """
        Request a withdrawal of paid earnings.

        The amount must not exceed the withdrawable balance: paid earnings
        minus payouts that are pending or already completed.
        """
        method = self._resolve_method(principal, data)
        summary = EarningsService(self.session).get_summary(principal)
        if data.amount > summary.withdrawable:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Insufficient balance: {summary.withdrawable} available for withdrawal")

        payout = Payout(user_id=principal.id, amount=data.amount, method=method)
        self.session.add(payout)
        self.session.flush()
        self.activities.record(
            principal.id, ActivityType.PAYOUT, f"Payout of {data.amount} requested",
            description=method, entity_type="payout", entity_id=payout.id)
        self.session.commit()
        self.session.refresh(payout)
        logger.info("Payout %s requested by %s", payout.id, principal.id)
        return payout

    def _get_pending(self, principal: Principal, payout_id: int) -> Payout:
        payout = self.get_payout(principal, payout_id)
        if payout.status != PayoutStatus.PENDING:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Payout is already {PayoutStatus(payout.status).value}")
        return payout

    def complete_payout(self, principal: Principal, payout_id: int, reference: str) -> Payout:
        payout = self._get_pending(principal, payout_id)
        reference = (reference or "").strip()
        if not reference:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="A payout reference is required")
        payout.status = PayoutStatus.COMPLETED
        payout.reference = reference
        payout.paid_at = datetime.utcnow()
        self.session.add(payout)
        self.session.commit()
        self.session.refresh(payout)
        return payout

    def fail_payout(self, principal: Principal, payout_id: int) -> Payout:
        payout = self._get_pending(principal, payout_id)
        payout.status = PayoutStatus.FAILED
        self.session.add(payout)
        self.session.commit()
        self.session.refresh(payout)
        logger.warning("Payout %s marked as failed by %s", payout.id, principal.id)
        return payout
