from sqlmodel import SQLModel, Field, Column, JSON
from typing import Optional, Any, Dict
from pydantic import BaseModel, EmailStr, field_validator
from enum import Enum
from datetime import datetime
from uuid import UUID, uuid4
import re
import phonenumbers

from network_earnings.core.config import settings


class UserRole(str, Enum):
    REFERRER = "referrer"
    BUSINESS = "business"
    ADMIN = "admin"


class UserTier(str, Enum):
    STANDARD = "standard"
    PREMIUM = "premium"


# Keys a user may change on their own profile. Role and tier are managed by admins.
PROFILE_FIELDS = ("first_name", "last_name", "username", "avatar")

# Metadata never copied into tokens or API responses
PRIVATE_METADATA_KEYS = ("verification_code",)


class AuthUser(SQLModel, table=True):
    """Identity row of the local identity provider.

    Profile data lives in ``user_metadata``, mirroring the hosted auth
    provider; there is no separate profile table.
    """
    __tablename__ = "auth_users"

    id: Optional[UUID] = Field(default_factory=uuid4, primary_key=True, unique=True)
    email: str = Field(index=True, unique=True, max_length=255)
    password_hash: str
    user_metadata: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)
    last_sign_in_at: Optional[datetime] = None


class AuthSessionRecord(SQLModel, table=True):
    __tablename__ = "auth_sessions"

    id: Optional[UUID] = Field(default_factory=uuid4, primary_key=True, unique=True)
    user_id: UUID = Field(foreign_key="auth_users.id", index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)
    revoked_at: Optional[datetime] = None


class Identity(BaseModel):
    """Identity as returned by any identity provider."""
    id: UUID
    email: str
    user_metadata: Dict[str, Any] = {}
    created_at: Optional[datetime] = None


class UserProfile(BaseModel):
    id: UUID
    email: str
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: UserRole = UserRole.REFERRER
    tier: UserTier = UserTier.STANDARD
    avatar: Optional[str] = None
    phone: Optional[str] = None
    phone_verified: bool = False
    created_at: Optional[datetime] = None

    @classmethod
    def from_identity(cls, identity: Identity) -> "UserProfile":
        metadata = identity.user_metadata or {}
        return cls(
            id=identity.id,
            email=identity.email or "",
            username=metadata.get("username"),
            first_name=metadata.get("first_name"),
            last_name=metadata.get("last_name"),
            role=metadata.get("role") or UserRole.REFERRER,
            tier=metadata.get("tier") or UserTier.STANDARD,
            avatar=metadata.get("avatar"),
            phone=metadata.get("phone"),
            phone_verified=bool(metadata.get("phone_verified", False)),
            created_at=metadata.get("created_at") or identity.created_at,
        )


class SignUpRequest(BaseModel):
    email: EmailStr
    password: str
    first_name: str
    last_name: str
    username: Optional[str] = None
    role: UserRole = UserRole.REFERRER
    phone: Optional[str] = None

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        if len(value) < 8:
            raise ValueError("Password must be at least 8 characters long.")
        return value

    @field_validator("first_name", "last_name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Name cannot be empty.")
        return value

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, value: Optional[str]) -> Optional[str]:
        return normalize_phone(value) if value else None

    @field_validator("username")
    @classmethod
    def validate_username(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        if not re.match(r"^[A-Za-z0-9_.-]{3,30}$", value):
            raise ValueError(
                "Username must be 3-30 characters: letters, digits, '_', '.' or '-'.")
        return value

    def profile_metadata(self) -> Dict[str, Any]:
        return {
            "first_name": self.first_name,
            "last_name": self.last_name,
            "username": self.username,
            "role": self.role.value,
            "tier": UserTier.STANDARD.value,
            "avatar": None,
            "created_at": datetime.utcnow().isoformat(),
            "phone": self.phone,
            "phone_verified": False,
        }


class SignInRequest(BaseModel):
    email: EmailStr
    password: str


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    username: Optional[str] = None
    avatar: Optional[str] = None


class AuthSessionRead(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: Optional[datetime] = None
    user: UserProfile


def normalize_phone(value: str, region: Optional[str] = None) -> str:
    """Parse ``value`` and return it in E.164 form."""
    try:
        parsed = phonenumbers.parse(value, region or settings.DEFAULT_PHONE_REGION)
    except phonenumbers.NumberParseException as e:
        raise ValueError("Invalid phone number format.") from e
    if not phonenumbers.is_valid_number(parsed):
        raise ValueError("Invalid phone number.")
    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)


class PhoneSendRequest(BaseModel):
    phone: str

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, value: str) -> str:
        return normalize_phone(value)


class PhoneVerifyRequest(SQLModel):
    code: str = Field(min_length=6, max_length=6)
