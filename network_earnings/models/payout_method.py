from sqlmodel import SQLModel, Field, Column, JSON
from typing import Optional, Any, Dict
from enum import Enum
from uuid import UUID
from network_earnings.utils.encryption import encryption_service


class PayoutMethodType(str, Enum):
    BANK_TRANSFER = "bank_transfer"
    PAYPAL = "paypal"
    STRIPE = "stripe"
    OTHER = "other"


class PayoutMethod(SQLModel, table=True):
    __tablename__ = "payout_methods"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: Optional[UUID] = Field(default=None, index=True)
    type: PayoutMethodType
    # Sensitive values are stored encrypted, see utils.encryption
    details: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    is_default: bool = Field(default=False)


class PayoutMethodCreate(SQLModel):
    type: PayoutMethodType
    details: Dict[str, Any] = {}
    is_default: bool = False

    def encrypt_sensitive_data(self) -> Dict[str, Any]:
        """Return ``details`` with sensitive values encrypted for storage."""
        return encryption_service.encrypt_details(self.details)


class PayoutMethodRead(SQLModel):
    id: int
    user_id: Optional[UUID]
    type: PayoutMethodType
    details: Dict[str, Any]
    is_default: bool

    @classmethod
    def from_method(cls, method: PayoutMethod) -> "PayoutMethodRead":
        """Build the read model with sensitive detail values masked."""
        return cls(
            id=method.id,
            user_id=method.user_id,
            type=method.type,
            details=encryption_service.masked_details(method.details),
            is_default=method.is_default,
        )
