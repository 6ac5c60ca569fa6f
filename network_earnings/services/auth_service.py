from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Optional
import logging
import random

from fastapi import HTTPException, status
from sqlmodel import Session

from network_earnings.core.config import settings
from network_earnings.core.security import Principal
from network_earnings.core.session import LOGIN_ROUTE
from network_earnings.models.user import (
    Identity, ProfileUpdate, SignInRequest, SignUpRequest, UserProfile,
    UserRole, UserTier
)
from network_earnings.services.identity_provider import (
    IdentityProvider, IdentityProviderError, IssuedSession
)

logger = logging.getLogger(__name__)

SUPPORTED_OAUTH_PROVIDERS = ("google",)


class SignupStage(str, Enum):
    STARTED = "started"
    # Identity exists but its profile metadata has not been written yet
    PROFILE_PENDING = "profile_pending"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class SignupAttempt:
    email: str
    stage: SignupStage = SignupStage.STARTED
    used_fallback: bool = False
    identity: Optional[Identity] = None
    session: Optional[IssuedSession] = None
    error: Optional[str] = None


class SignupError(Exception):
    """Signup did not reach COMPLETED; ``attempt.stage`` says where it stopped."""

    def __init__(self, attempt: SignupAttempt):
        super().__init__(attempt.error)
        self.attempt = attempt


class AuthService:
    def __init__(self, session: Session, provider: IdentityProvider):
        self.session = session
        self.provider = provider

    def sign_up(self, data: SignUpRequest) -> SignupAttempt:
        """Create an identity carrying the profile metadata.

        The provider is first asked to create the identity with its metadata
        in one call. If it rejects that, the identity is created from email
        and password alone and the metadata is written in a second call.
        """
        if data.role == UserRole.ADMIN:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Admin accounts cannot be created through signup")

        metadata = data.profile_metadata()
        attempt = SignupAttempt(email=data.email)

        try:
            identity, issued = self.provider.create_identity(
                data.email, data.password, metadata)
        except IdentityProviderError as e:
            logger.warning(
                "Signup with metadata rejected for %s (%s), retrying without metadata",
                data.email, e.message)
            attempt.used_fallback = True
            identity, issued = self._sign_up_without_metadata(attempt, data, metadata)

        attempt.identity = identity
        attempt.session = issued or self.provider.open_session(identity)
        attempt.stage = SignupStage.COMPLETED
        logger.info("Signup completed for %s (fallback=%s)", identity.id, attempt.used_fallback)
        return attempt

    def _sign_up_without_metadata(
        self, attempt: SignupAttempt, data: SignUpRequest, metadata: Dict[str, Any]
    ):
        try:
            identity, issued = self.provider.create_identity(data.email, data.password)
        except IdentityProviderError as e:
            attempt.stage = SignupStage.FAILED
            attempt.error = e.message
            raise SignupError(attempt) from e

        attempt.stage = SignupStage.PROFILE_PENDING
        attempt.identity = identity

        try:
            identity = self.provider.update_metadata(identity.id, metadata)
        except IdentityProviderError as e:
            attempt.error = e.message
            logger.error(
                "Identity %s created but its profile could not be saved: %s",
                identity.id, e.message)
            raise SignupError(attempt) from e
        return identity, issued

    def sign_in(self, data: SignInRequest) -> IssuedSession:
        try:
            return self.provider.authenticate(data.email, data.password)
        except IdentityProviderError as e:
            raise HTTPException(status_code=e.status_code, detail=e.message)

    def oauth_url(self, provider_name: str, redirect_to: Optional[str] = None) -> str:
        if provider_name not in SUPPORTED_OAUTH_PROVIDERS:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unsupported OAuth provider: {provider_name}")
        redirect_to = redirect_to or f"{settings.SITE_URL}/auth/callback"
        try:
            return self.provider.oauth_authorize_url(provider_name, redirect_to)
        except IdentityProviderError as e:
            raise HTTPException(status_code=e.status_code, detail=e.message)

    def complete_callback(self, access_token: Optional[str]) -> IssuedSession:
        """Turn the token from an OAuth redirect into a session."""
        if not access_token:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="No authentication data found in URL")
        try:
            identity = self.provider.identity_from_token(access_token)
            if not identity.user_metadata.get("role"):
                # First OAuth sign-in: no profile was written at signup
                identity = self.provider.update_metadata(identity.id, {
                    "role": UserRole.REFERRER.value,
                    "tier": UserTier.STANDARD.value,
                    "phone_verified": False,
                    "created_at": datetime.utcnow().isoformat(),
                })
        except IdentityProviderError as e:
            raise HTTPException(status_code=e.status_code, detail=e.message)
        return IssuedSession(access_token=access_token, identity=identity)

    def sign_out(self, access_token: str, claims: Dict[str, Any]) -> str:
        try:
            self.provider.sign_out(access_token, claims)
        except IdentityProviderError as e:
            raise HTTPException(status_code=e.status_code, detail=e.message)
        logger.info("Signed out %s", claims.get("sub"))
        return LOGIN_ROUTE

    def _get_identity(self, principal: Principal) -> Identity:
        identity = self.provider.get_identity(principal.id)
        if not identity:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        return identity

    def get_profile(self, principal: Principal) -> UserProfile:
        return UserProfile.from_identity(self._get_identity(principal))

    def update_profile(self, principal: Principal, data: ProfileUpdate) -> UserProfile:
        changes = data.model_dump(exclude_unset=True)
        if not changes:
            return self.get_profile(principal)
        try:
            identity = self.provider.update_metadata(principal.id, changes)
        except IdentityProviderError as e:
            raise HTTPException(status_code=e.status_code, detail=e.message)
        return UserProfile.from_identity(identity)

    def generate_verification_code(self) -> str:
        return ''.join(random.choices('0123456789', k=6))

    def send_phone_code(self, principal: Principal, phone: str) -> str:
        """Store ``phone`` unverified with a fresh code; returns the code."""
        self._get_identity(principal)
        code = self.generate_verification_code()
        try:
            self.provider.update_metadata(principal.id, {
                "phone": phone,
                "phone_verified": False,
                "verification_code": code,
                "verification_sent_at": datetime.utcnow().isoformat(),
                "verification_attempts": 0,
            })
        except IdentityProviderError as e:
            raise HTTPException(status_code=e.status_code, detail=e.message)
        logger.info("Verification code issued for %s", principal.id)
        return code

    def verify_phone(self, principal: Principal, code: str) -> UserProfile:
        metadata = self._get_identity(principal).user_metadata
        expected = metadata.get("verification_code")
        sent_at = metadata.get("verification_sent_at")
        if not expected or not sent_at:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="No active verification found")

        expires_at = datetime.fromisoformat(sent_at) + timedelta(
            minutes=settings.VERIFICATION_CODE_EXPIRY_MINUTES)
        if datetime.utcnow() > expires_at:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Verification code has expired")

        attempts = int(metadata.get("verification_attempts") or 0)
        if attempts >= settings.MAX_VERIFICATION_ATTEMPTS:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Maximum verification attempts exceeded")

        try:
            if code != expected:
                self.provider.update_metadata(
                    principal.id, {"verification_attempts": attempts + 1})
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Invalid verification code")

            identity = self.provider.update_metadata(principal.id, {
                "phone_verified": True,
                "verification_code": None,
                "verification_attempts": 0,
            })
        except IdentityProviderError as e:
            raise HTTPException(status_code=e.status_code, detail=e.message)
        return UserProfile.from_identity(identity)
