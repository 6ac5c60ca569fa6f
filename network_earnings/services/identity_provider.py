"""Identity providers.

Both providers expose the same contract: identities carry their profile in a
``user_metadata`` blob, sessions are bearer JWTs with ``sub``, ``email``,
``aud`` and ``user_metadata`` claims.

``SupabaseIdentityProvider`` talks to the hosted auth service: admin calls
go through one service role client, user sign-up and sign-in through a
fresh client each time. ``LocalIdentityProvider`` keeps identities in the
application database and is used for development, tests and self-hosting.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple
from uuid import UUID
import logging

from sqlmodel import Session, select
from supabase import AuthError, Client, ClientOptions, create_client

from network_earnings.core.config import settings
from network_earnings.core.security import (
    InvalidTokenError, create_access_token, decode_access_token,
    hash_password, verify_password
)
from network_earnings.models.user import AuthSessionRecord, AuthUser, Identity

logger = logging.getLogger(__name__)


class IdentityProviderError(Exception):
    """A call to the identity provider was rejected."""

    def __init__(self, message: str, code: Optional[str] = None, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code


@dataclass
class IssuedSession:
    access_token: str
    identity: Identity
    expires_at: Optional[datetime] = None


class IdentityProvider:
    """Operations the rest of the application needs from an identity provider."""

    def create_identity(
        self, email: str, password: str, metadata: Optional[Dict[str, Any]] = None
    ) -> Tuple[Identity, Optional[IssuedSession]]:
        raise NotImplementedError

    def update_metadata(self, user_id: UUID, metadata: Dict[str, Any]) -> Identity:
        raise NotImplementedError

    def authenticate(self, email: str, password: str) -> IssuedSession:
        raise NotImplementedError

    def open_session(self, identity: Identity) -> Optional[IssuedSession]:
        return None

    def get_identity(self, user_id: UUID) -> Optional[Identity]:
        raise NotImplementedError

    def list_identities(self) -> List[Identity]:
        raise NotImplementedError

    def delete_identity(self, user_id: UUID) -> None:
        raise NotImplementedError

    def oauth_authorize_url(
        self, provider: str, redirect_to: str, metadata: Optional[Dict[str, Any]] = None
    ) -> str:
        raise NotImplementedError

    def identity_from_token(self, access_token: str) -> Identity:
        raise NotImplementedError

    def sign_out(self, access_token: str, claims: Dict[str, Any]) -> None:
        raise NotImplementedError

    def is_session_active(self, claims: Dict[str, Any]) -> bool:
        return True


def _identity_from_row(user: AuthUser) -> Identity:
    return Identity(
        id=user.id,
        email=user.email,
        user_metadata=dict(user.user_metadata or {}),
        created_at=user.created_at,
    )


class LocalIdentityProvider(IdentityProvider):
    def __init__(self, session: Session):
        self.session = session

    def _get_row(self, user_id: UUID) -> AuthUser:
        user = self.session.get(AuthUser, user_id)
        if not user:
            raise IdentityProviderError("User not found", code="user_not_found", status_code=404)
        return user

    def create_identity(self, email, password, metadata=None):
        email = email.strip().lower()
        existing = self.session.exec(
            select(AuthUser).where(AuthUser.email == email)
        ).first()
        if existing:
            raise IdentityProviderError(
                "User already registered", code="user_already_exists")

        user = AuthUser(
            email=email,
            password_hash=hash_password(password),
            user_metadata=dict(metadata or {}),
        )
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        logger.info("Created local identity %s", user.id)
        return _identity_from_row(user), None

    def update_metadata(self, user_id, metadata):
        user = self._get_row(user_id)
        merged = dict(user.user_metadata or {})
        merged.update(metadata)
        # Reassign so the JSON column is flagged as modified
        user.user_metadata = merged
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return _identity_from_row(user)

    def open_session(self, identity):
        record = AuthSessionRecord(user_id=identity.id)
        self.session.add(record)
        self.session.commit()
        self.session.refresh(record)
        token, expires_at = create_access_token(identity, record.id)
        return IssuedSession(access_token=token, identity=identity, expires_at=expires_at)

    def authenticate(self, email, password):
        user = self.session.exec(
            select(AuthUser).where(AuthUser.email == email.strip().lower())
        ).first()
        if not user or not verify_password(password, user.password_hash):
            raise IdentityProviderError(
                "Invalid login credentials", code="invalid_credentials")
        user.last_sign_in_at = datetime.utcnow()
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return self.open_session(_identity_from_row(user))

    def get_identity(self, user_id):
        user = self.session.get(AuthUser, user_id)
        return _identity_from_row(user) if user else None

    def list_identities(self):
        users = self.session.exec(select(AuthUser).order_by(AuthUser.created_at)).all()
        return [_identity_from_row(user) for user in users]

    def delete_identity(self, user_id):
        user = self._get_row(user_id)
        records = self.session.exec(
            select(AuthSessionRecord).where(AuthSessionRecord.user_id == user.id)
        ).all()
        for record in records:
            self.session.delete(record)
        self.session.delete(user)
        self.session.commit()

    def oauth_authorize_url(self, provider, redirect_to, metadata=None):
        raise IdentityProviderError(
            "OAuth sign-in requires the hosted identity provider",
            code="oauth_unavailable")

    def identity_from_token(self, access_token):
        try:
            claims = decode_access_token(access_token)
        except InvalidTokenError as e:
            raise IdentityProviderError(str(e), code="invalid_token", status_code=401) from e
        if not self.is_session_active(claims):
            raise IdentityProviderError(
                "Session has been signed out", code="session_not_found", status_code=401)
        identity = self.get_identity(UUID(claims["sub"]))
        if not identity:
            raise IdentityProviderError("User not found", code="user_not_found", status_code=404)
        return identity

    def sign_out(self, access_token, claims):
        session_id = claims.get("session_id")
        if not session_id:
            return
        record = self.session.get(AuthSessionRecord, UUID(session_id))
        if record and record.revoked_at is None:
            record.revoked_at = datetime.utcnow()
            self.session.add(record)
            self.session.commit()

    def is_session_active(self, claims):
        session_id = claims.get("session_id")
        if not session_id:
            return False
        record = self.session.get(AuthSessionRecord, UUID(session_id))
        return record is not None and record.revoked_at is None


def _identity_from_supabase(user: Any) -> Identity:
    return Identity(
        id=UUID(str(user.id)),
        email=user.email or "",
        user_metadata=dict(user.user_metadata or {}),
        created_at=user.created_at,
    )


def _issued_from_supabase(response: Any) -> Optional[IssuedSession]:
    session = getattr(response, "session", None)
    if session is None or response.user is None:
        return None
    expires_at = datetime.utcfromtimestamp(session.expires_at) if session.expires_at else None
    return IssuedSession(
        access_token=session.access_token,
        identity=_identity_from_supabase(response.user),
        expires_at=expires_at,
    )


def _provider_error(error: AuthError) -> IdentityProviderError:
    status_code = getattr(error, "status", None) or 400
    return IdentityProviderError(
        error.message, code=getattr(error, "code", None),
        status_code=status_code if 400 <= status_code < 500 else 502)


def _client_options() -> ClientOptions:
    return ClientOptions(
        flow_type="implicit",
        auto_refresh_token=False,
        persist_session=False,
    )


def _check_credentials():
    if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_KEY:
        raise ValueError(
            "Supabase credentials not configured. "
            "Set SUPABASE_URL and SUPABASE_SERVICE_KEY environment variables.")


class SupabaseIdentityProvider(IdentityProvider):
    _client: Optional[Client] = None

    def __init__(
        self,
        client: Optional[Client] = None,
        auth_client_factory: Optional[Callable[[], Client]] = None,
    ):
        self.client = client or self.get_client()
        self.new_auth_client = auth_client_factory or self.create_auth_client

    @classmethod
    def get_client(cls) -> Client:
        """Service role client for ``auth.admin`` calls and token lookups."""
        if cls._client is None:
            _check_credentials()
            cls._client = create_client(
                settings.SUPABASE_URL, settings.SUPABASE_SERVICE_KEY, options=_client_options())
        return cls._client

    @staticmethod
    def create_auth_client() -> Client:
        """
        A throwaway client for calls made on behalf of a user.

        Signing in rewrites the Authorization header of the client it runs on,
        admin endpoints included, so these calls never touch the shared
        service role client.
        """
        _check_credentials()
        return create_client(
            settings.SUPABASE_URL,
            settings.SUPABASE_ANON_KEY or settings.SUPABASE_SERVICE_KEY,
            options=_client_options(),
        )

    def create_identity(self, email, password, metadata=None):
        options: Dict[str, Any] = {"email_redirect_to": f"{settings.SITE_URL}/login"}
        if metadata is not None:
            options["data"] = metadata
        try:
            response = self.new_auth_client().auth.sign_up(
                {"email": email, "password": password, "options": options})
        except AuthError as e:
            raise _provider_error(e) from e
        if response.user is None:
            raise IdentityProviderError("Sign up returned no user", status_code=502)
        return _identity_from_supabase(response.user), _issued_from_supabase(response)

    def update_metadata(self, user_id, metadata):
        try:
            response = self.client.auth.admin.update_user_by_id(
                str(user_id), {"user_metadata": metadata})
        except AuthError as e:
            raise _provider_error(e) from e
        return _identity_from_supabase(response.user)

    def authenticate(self, email, password):
        try:
            response = self.new_auth_client().auth.sign_in_with_password(
                {"email": email, "password": password})
        except AuthError as e:
            raise _provider_error(e) from e
        issued = _issued_from_supabase(response)
        if issued is None:
            raise IdentityProviderError("Email not confirmed", code="email_not_confirmed")
        return issued

    def get_identity(self, user_id):
        try:
            response = self.client.auth.admin.get_user_by_id(str(user_id))
        except AuthError as e:
            if getattr(e, "status", None) == 404:
                return None
            raise _provider_error(e) from e
        return _identity_from_supabase(response.user) if response.user else None

    def list_identities(self):
        try:
            users = self.client.auth.admin.list_users()
        except AuthError as e:
            raise _provider_error(e) from e
        return [_identity_from_supabase(user) for user in users]

    def delete_identity(self, user_id):
        try:
            self.client.auth.admin.delete_user(str(user_id))
        except AuthError as e:
            raise _provider_error(e) from e

    def oauth_authorize_url(self, provider, redirect_to, metadata=None):
        try:
            response = self.new_auth_client().auth.sign_in_with_oauth({
                "provider": provider,
                "options": {
                    "redirect_to": redirect_to,
                    "query_params": {"access_type": "offline", "prompt": "consent"},
                },
            })
        except AuthError as e:
            raise _provider_error(e) from e
        return response.url

    def identity_from_token(self, access_token):
        try:
            response = self.client.auth.get_user(access_token)
        except AuthError as e:
            raise _provider_error(e) from e
        if response is None or response.user is None:
            raise IdentityProviderError("No session data returned", status_code=401)
        return _identity_from_supabase(response.user)

    def sign_out(self, access_token, claims):
        try:
            self.client.auth.admin.sign_out(access_token)
        except AuthError as e:
            raise _provider_error(e) from e


def build_identity_provider(session: Session) -> IdentityProvider:
    if settings.AUTH_PROVIDER == "supabase":
        return SupabaseIdentityProvider()
    return LocalIdentityProvider(session)
