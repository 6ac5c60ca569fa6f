from fastapi import Request, Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Annotated

from network_earnings.core.db import SessionDep
from network_earnings.core.security import Principal, decode_access_token, InvalidTokenError
from network_earnings.models.user import UserRole
from network_earnings.services.identity_provider import IdentityProvider, build_identity_provider

bearer_scheme = HTTPBearer()


def get_identity_provider(session: SessionDep) -> IdentityProvider:
    return build_identity_provider(session)


IdentityProviderDep = Annotated[IdentityProvider, Depends(get_identity_provider)]


def get_current_principal(
    request: Request,
    provider: IdentityProviderDep,
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
) -> Principal:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        claims = decode_access_token(credentials.credentials)
    except InvalidTokenError:
        raise credentials_exception

    if not provider.is_session_active(claims):
        raise credentials_exception

    request.state.claims = claims
    request.state.access_token = credentials.credentials
    principal = Principal.from_claims(claims)
    request.state.user_id = principal.id
    return principal


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]


def require_roles(*roles: UserRole):
    """Dependency that only lets callers with one of ``roles`` through."""
    def dependency(principal: CurrentPrincipal) -> Principal:
        if principal.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have permission to perform this action"
            )
        return principal
    return dependency


AdminPrincipal = Annotated[Principal, Depends(require_roles(UserRole.ADMIN))]
