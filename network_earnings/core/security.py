from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional
from uuid import UUID
from jose import jwt, JWTError
from passlib.hash import bcrypt

from network_earnings.core.config import settings
from network_earnings.models.user import Identity, UserRole, PRIVATE_METADATA_KEYS


class InvalidTokenError(Exception):
    pass


@dataclass(frozen=True)
class Principal:
    """The authenticated caller, as read from an access token."""
    id: UUID
    email: str
    role: UserRole
    session_id: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @classmethod
    def from_claims(cls, claims: Dict[str, Any]) -> "Principal":
        metadata = claims.get("user_metadata") or {}
        try:
            role = UserRole(metadata.get("role") or UserRole.REFERRER)
        except ValueError:
            role = UserRole.REFERRER
        return cls(
            id=UUID(claims["sub"]),
            email=claims.get("email") or "",
            role=role,
            session_id=claims.get("session_id"),
        )


def hash_password(password: str) -> str:
    return bcrypt.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return bcrypt.verify(password, password_hash)


def create_access_token(identity: Identity, session_id: UUID) -> tuple[str, datetime]:
    """Issue a token carrying the same claims the hosted auth provider uses."""
    expire = datetime.utcnow() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode = {
        "sub": str(identity.id),
        "email": identity.email,
        "aud": settings.JWT_AUDIENCE,
        "role": "authenticated",
        "user_metadata": {
            key: value for key, value in (identity.user_metadata or {}).items()
            if key not in PRIVATE_METADATA_KEYS
        },
        "session_id": str(session_id),
        "exp": expire,
    }
    encoded_jwt = jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.ALGORITHM)
    return encoded_jwt, expire


def decode_access_token(token: str) -> Dict[str, Any]:
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.ALGORITHM],
            audience=settings.JWT_AUDIENCE,
        )
    except JWTError as e:
        raise InvalidTokenError(str(e)) from e
    if not payload.get("sub"):
        raise InvalidTokenError("Token has no subject")
    return payload
