from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel
from typing import Optional
from urllib.parse import parse_qs

from network_earnings.core.config import settings
from network_earnings.core.db import SessionDep
from network_earnings.core.dependencies.auth import CurrentPrincipal, IdentityProviderDep
from network_earnings.core.security import InvalidTokenError, decode_access_token
from network_earnings.core.session import resolve_route
from network_earnings.models.user import (
    AuthSessionRead, PhoneSendRequest, PhoneVerifyRequest, ProfileUpdate,
    SignInRequest, SignUpRequest, UserProfile
)
from network_earnings.services.auth_service import AuthService, SignupError, SignupStage
from network_earnings.services.identity_provider import IssuedSession

router = APIRouter(prefix="/auth", tags=["auth"])
optional_bearer = HTTPBearer(auto_error=False)


class SignupResponse(BaseModel):
    stage: SignupStage
    used_fallback: bool
    user: UserProfile
    # Absent when the provider requires email confirmation first
    session: Optional[AuthSessionRead] = None


class CallbackRequest(BaseModel):
    access_token: Optional[str] = None
    # Raw URL fragment of the OAuth redirect, e.g. "access_token=...&expires_in=3600"
    fragment: Optional[str] = None


class OAuthUrlResponse(BaseModel):
    url: str


class LogoutResponse(BaseModel):
    message: str
    redirect_to: str


class PhoneSendResponse(BaseModel):
    message: str
    phone: str
    code: Optional[str] = None


class RouteGuardResponse(BaseModel):
    path: str
    authenticated: bool
    redirect_to: Optional[str] = None


def _session_read(issued: IssuedSession) -> AuthSessionRead:
    return AuthSessionRead(
        access_token=issued.access_token,
        expires_at=issued.expires_at,
        user=UserProfile.from_identity(issued.identity),
    )


@router.post("/signup", response_model=SignupResponse, status_code=status.HTTP_201_CREATED)
def signup(data: SignUpRequest, session: SessionDep, provider: IdentityProviderDep):
    """
    Register a referrer or business.

    The identity is created with its profile in one call when the provider
    accepts it, otherwise in two calls (identity, then profile). The
    response reports the stage reached and whether the fallback was used.
    """
    service = AuthService(session, provider)
    try:
        attempt = service.sign_up(data)
    except SignupError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.attempt.error)
    return SignupResponse(
        stage=attempt.stage,
        used_fallback=attempt.used_fallback,
        user=UserProfile.from_identity(attempt.identity),
        session=_session_read(attempt.session) if attempt.session else None,
    )


@router.post("/login", response_model=AuthSessionRead)
def login(data: SignInRequest, session: SessionDep, provider: IdentityProviderDep):
    issued = AuthService(session, provider).sign_in(data)
    return _session_read(issued)


@router.get("/oauth/{provider_name}", response_model=OAuthUrlResponse)
def oauth_url(
    provider_name: str,
    session: SessionDep,
    provider: IdentityProviderDep,
    redirect_to: Optional[str] = None,
):
    """URL to send the browser to for a third-party sign-in."""
    url = AuthService(session, provider).oauth_url(provider_name, redirect_to)
    return OAuthUrlResponse(url=url)


@router.post("/callback", response_model=AuthSessionRead)
def oauth_callback(data: CallbackRequest, session: SessionDep, provider: IdentityProviderDep):
    access_token = data.access_token
    if not access_token and data.fragment:
        params = parse_qs(data.fragment.lstrip("#"))
        access_token = (params.get("access_token") or [None])[0]
    issued = AuthService(session, provider).complete_callback(access_token)
    return _session_read(issued)


@router.post("/logout", response_model=LogoutResponse)
def logout(
    request: Request,
    principal: CurrentPrincipal,
    session: SessionDep,
    provider: IdentityProviderDep,
):
    redirect_to = AuthService(session, provider).sign_out(
        request.state.access_token, request.state.claims)
    return LogoutResponse(message="Signed out", redirect_to=redirect_to)


@router.get("/me", response_model=UserProfile)
def get_me(principal: CurrentPrincipal, session: SessionDep, provider: IdentityProviderDep):
    return AuthService(session, provider).get_profile(principal)


@router.patch("/me", response_model=UserProfile)
def update_me(
    data: ProfileUpdate,
    principal: CurrentPrincipal,
    session: SessionDep,
    provider: IdentityProviderDep,
):
    return AuthService(session, provider).update_profile(principal, data)


@router.post("/phone/send", response_model=PhoneSendResponse, status_code=status.HTTP_201_CREATED)
def send_phone_code(
    data: PhoneSendRequest,
    principal: CurrentPrincipal,
    session: SessionDep,
    provider: IdentityProviderDep,
):
    code = AuthService(session, provider).send_phone_code(principal, data.phone)
    return PhoneSendResponse(
        message="Verification code sent successfully",
        phone=data.phone,
        # No SMS gateway is configured; debug builds hand the code back
        code=code if settings.DEBUG else None,
    )


@router.post("/phone/verify", response_model=UserProfile)
def verify_phone(
    data: PhoneVerifyRequest,
    principal: CurrentPrincipal,
    session: SessionDep,
    provider: IdentityProviderDep,
):
    return AuthService(session, provider).verify_phone(principal, data.code)


@router.get("/route-guard", response_model=RouteGuardResponse)
def route_guard(
    path: str,
    provider: IdentityProviderDep,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_bearer),
):
    """Where a client showing ``path`` should redirect to, given its session."""
    authenticated = False
    if credentials:
        try:
            claims = decode_access_token(credentials.credentials)
            authenticated = provider.is_session_active(claims)
        except InvalidTokenError:
            authenticated = False
    return RouteGuardResponse(
        path=path,
        authenticated=authenticated,
        redirect_to=resolve_route(path, authenticated),
    )
