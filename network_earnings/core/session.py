"""Client-side session state and the routing rules that depend on it."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional, Any
import logging

logger = logging.getLogger(__name__)

LOGIN_ROUTE = "/login"
HOME_ROUTE = "/dashboard"

# Routes reachable without a session
PUBLIC_ROUTES = ("/login", "/signup", "/auth/callback", "/verify-phone")


class AuthEvent(str, Enum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    USER_UPDATED = "USER_UPDATED"


@dataclass
class AuthSession:
    access_token: str
    user: Dict[str, Any] = field(default_factory=dict)
    expires_at: Optional[datetime] = None


Listener = Callable[[AuthEvent, Optional[AuthSession]], None]


class SessionStore:
    """Holds the current session and notifies subscribers on every change.

    Subscribers are called synchronously, in subscription order, from the
    thread that changed the session.
    """

    def __init__(self):
        self._session: Optional[AuthSession] = None
        self._listeners: List[Listener] = []

    @property
    def session(self) -> Optional[AuthSession]:
        return self._session

    @property
    def is_authenticated(self) -> bool:
        return self._session is not None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set(self, session: AuthSession, event: AuthEvent = AuthEvent.SIGNED_IN):
        self._session = session
        self._notify(event)

    def clear(self):
        self._session = None
        self._notify(AuthEvent.SIGNED_OUT)

    def _notify(self, event: AuthEvent):
        logger.debug("Session event %s", event.value)
        for listener in list(self._listeners):
            listener(event, self._session)


def is_public_route(path: str) -> bool:
    return any(path == route or path.startswith(route + "/") for route in PUBLIC_ROUTES)


def resolve_route(path: str, authenticated: bool) -> Optional[str]:
    """Return where ``path`` should redirect to, or None to stay."""
    if authenticated and path == LOGIN_ROUTE:
        return HOME_ROUTE
    if not authenticated and not is_public_route(path):
        return LOGIN_ROUTE
    return None


class RouteGuard:
    """Applies the routing rules to a ``SessionStore``.

    Signing out queues a redirect to the login route, which the caller
    consumes with ``pop_redirect``.
    """

    def __init__(self, store: SessionStore):
        self.store = store
        self.pending_redirect: Optional[str] = None
        self._unsubscribe = store.subscribe(self._on_event)

    def _on_event(self, event: AuthEvent, session: Optional[AuthSession]):
        if event == AuthEvent.SIGNED_OUT:
            self.pending_redirect = LOGIN_ROUTE

    def check(self, path: str) -> Optional[str]:
        return resolve_route(path, self.store.is_authenticated)

    def pop_redirect(self) -> Optional[str]:
        redirect, self.pending_redirect = self.pending_redirect, None
        return redirect

    def close(self):
        self._unsubscribe()
