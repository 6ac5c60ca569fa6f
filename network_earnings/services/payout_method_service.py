from fastapi import HTTPException, status
from sqlmodel import Session, select
from typing import List

from network_earnings.core.security import Principal
from network_earnings.models.payout_method import PayoutMethod, PayoutMethodCreate, PayoutMethodRead
from network_earnings.utils.visibility import get_visible, list_visible


class PayoutMethodService:
    def __init__(self, session: Session):
        self.session = session

    def _get_method(self, principal: Principal, method_id: int) -> PayoutMethod:
        method = get_visible(self.session, PayoutMethod, method_id, principal)
        if not method:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Payout method not found")
        return method

    def _clear_default(self, user_id):
        current = self.session.exec(
            select(PayoutMethod).where(
                PayoutMethod.user_id == user_id,
                PayoutMethod.is_default == True  # noqa: E712
            )
        ).all()
        for method in current:
            method.is_default = False
            self.session.add(method)

    def list_methods(self, principal: Principal) -> List[PayoutMethodRead]:
        methods = list_visible(self.session, PayoutMethod, principal)
        return [PayoutMethodRead.from_method(method) for method in methods]

    def get_default(self, principal: Principal):
        return self.session.exec(
            select(PayoutMethod).where(
                PayoutMethod.user_id == principal.id,
                PayoutMethod.is_default == True  # noqa: E712
            )
        ).first()

    def create_method(self, principal: Principal, data: PayoutMethodCreate) -> PayoutMethodRead:
        has_methods = self.session.exec(
            select(PayoutMethod).where(PayoutMethod.user_id == principal.id)
        ).first() is not None
        # The first method of a user is always the default
        is_default = data.is_default or not has_methods
        if is_default:
            self._clear_default(principal.id)

        method = PayoutMethod(
            user_id=principal.id,
            type=data.type,
            details=data.encrypt_sensitive_data(),
            is_default=is_default,
        )
        self.session.add(method)
        self.session.commit()
        self.session.refresh(method)
        return PayoutMethodRead.from_method(method)

    def set_default(self, principal: Principal, method_id: int) -> PayoutMethodRead:
        method = self._get_method(principal, method_id)
        self._clear_default(method.user_id)
        method.is_default = True
        self.session.add(method)
        self.session.commit()
        self.session.refresh(method)
        return PayoutMethodRead.from_method(method)

    def delete_method(self, principal: Principal, method_id: int):
        method = self._get_method(principal, method_id)
        self.session.delete(method)
        self.session.commit()
        return {"message": "Payout method deleted"}
