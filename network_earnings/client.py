"""HTTP client for the API that keeps a ``SessionStore`` in sync with it."""
from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

import httpx

from network_earnings.core.session import AuthEvent, AuthSession, RouteGuard, SessionStore

logger = logging.getLogger(__name__)


class ApiError(Exception):
    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class NetworkEarningsClient:
    """
    Thin wrapper over the REST API.

    Signing in fills ``store``; signing out clears it, which makes ``guard``
    queue a redirect to the login route. Pass ``http`` to reuse an existing
    ``httpx.Client`` (for example a test client).
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        store: Optional[SessionStore] = None,
        http: Optional[httpx.Client] = None,
        timeout: float = 10.0,
    ):
        self.store = store or SessionStore()
        self.guard = RouteGuard(self.store)
        self.http = http or httpx.Client(base_url=base_url, timeout=timeout)

    def close(self):
        self.guard.close()
        self.http.close()

    def _headers(self) -> Dict[str, str]:
        session = self.store.session
        if session is None:
            return {}
        return {"Authorization": f"Bearer {session.access_token}"}

    def _request(self, method: str, url: str, **kwargs) -> Any:
        response = self.http.request(method, url, headers=self._headers(), **kwargs)
        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = {}
            message = body.get("detail") or body.get("message") or response.text
            raise ApiError(response.status_code, str(message))
        return response.json()

    def _store_session(self, data: Dict[str, Any], event: AuthEvent = AuthEvent.SIGNED_IN):
        expires_at = data.get("expires_at")
        self.store.set(AuthSession(
            access_token=data["access_token"],
            user=data.get("user") or {},
            expires_at=datetime.fromisoformat(expires_at) if expires_at else None,
        ), event)

    def sign_up(self, email: str, password: str, first_name: str, last_name: str, **profile) -> Dict[str, Any]:
        payload = {"email": email, "password": password,
                   "first_name": first_name, "last_name": last_name, **profile}
        data = self._request("POST", "/auth/signup", json=payload)
        if data.get("session"):
            self._store_session(data["session"])
        return data

    def sign_in(self, email: str, password: str) -> Dict[str, Any]:
        data = self._request("POST", "/auth/login", json={"email": email, "password": password})
        self._store_session(data)
        return data

    def complete_oauth(self, fragment: str) -> Dict[str, Any]:
        data = self._request("POST", "/auth/callback", json={"fragment": fragment})
        self._store_session(data)
        return data

    def sign_out(self) -> str:
        """Invalidate the session on the server and clear it locally.

        Returns the route the client should navigate to.
        """
        redirect_to = "/login"
        if self.store.session is not None:
            try:
                redirect_to = self._request("POST", "/auth/logout")["redirect_to"]
            finally:
                self.store.clear()
        return redirect_to

    def me(self) -> Dict[str, Any]:
        return self._request("GET", "/auth/me")

    def update_profile(self, **changes) -> Dict[str, Any]:
        profile = self._request("PATCH", "/auth/me", json=changes)
        session = self.store.session
        if session is not None:
            self.store.set(
                AuthSession(session.access_token, profile, session.expires_at),
                AuthEvent.USER_UPDATED,
            )
        return profile

    def list_leads(self, **filters) -> List[Dict[str, Any]]:
        return self._request("GET", "/leads/", params=filters)

    def create_lead(self, **lead) -> Dict[str, Any]:
        return self._request("POST", "/leads/", json=lead)

    def list_campaigns(self, **filters) -> List[Dict[str, Any]]:
        return self._request("GET", "/campaigns/", params=filters)

    def earnings_summary(self) -> Dict[str, Any]:
        return self._request("GET", "/earnings/summary")

    def performance(self, months: Optional[int] = None) -> List[Dict[str, Any]]:
        params = {"months": months} if months else None
        return self._request("GET", "/dashboard/performance", params=params)

    def request_payout(self, amount, payout_method_id: Optional[int] = None) -> Dict[str, Any]:
        payload = {"amount": str(amount), "payout_method_id": payout_method_id}
        return self._request("POST", "/payouts/", json=payload)
