from types import SimpleNamespace
from uuid import uuid4

import pytest
from supabase import AuthError

from network_earnings.models.user import SignUpRequest
from network_earnings.services.auth_service import AuthService, SignupStage
from network_earnings.services.identity_provider import (
    IdentityProviderError, SupabaseIdentityProvider
)

SERVICE_AUTHORIZATION = "Bearer service-role-key"


class FakeAdmin:
    def __init__(self, auth):
        self.auth = auth
        self.authorization = SERVICE_AUTHORIZATION

    def _require_service_key(self):
        if self.authorization != SERVICE_AUTHORIZATION:
            raise AuthError("User not allowed", None)

    def update_user_by_id(self, user_id, attributes):
        self._require_service_key()
        user = self.auth.users[user_id]
        user.user_metadata = {**user.user_metadata, **attributes["user_metadata"]}
        return SimpleNamespace(user=user)

    def get_user_by_id(self, user_id):
        self._require_service_key()
        return SimpleNamespace(user=self.auth.users.get(user_id))

    def list_users(self):
        self._require_service_key()
        return list(self.auth.users.values())


class FakeAuth:
    """In-memory stand-in for the hosted auth API.

    Clients made with ``new_client`` share the same user store, like several
    clients pointed at one project.
    """

    def __init__(self, reject_metadata=False, project=None):
        self.project = project or self
        self.reject_metadata = reject_metadata
        self.users = {} if project is None else project.users
        self.signups = [] if project is None else project.signups
        self.admin = FakeAdmin(self)

    def new_client(self):
        return SimpleNamespace(auth=FakeAuth(project=self))

    def sign_up(self, credentials):
        self.signups.append(credentials)
        data = credentials["options"].get("data")
        if data and self.project.reject_metadata:
            raise AuthError("Database error saving new user", None)
        user = SimpleNamespace(
            id=str(uuid4()), email=credentials["email"],
            user_metadata=dict(data or {}), created_at=None,
        )
        self.users[user.id] = user
        return SimpleNamespace(user=user, session=None)

    def sign_in_with_password(self, credentials):
        user = next((u for u in self.users.values() if u.email == credentials["email"]), None)
        if user is None:
            raise AuthError("Invalid login credentials", None)
        # The signed-in client sends the user's token on every later request
        self.admin.authorization = "Bearer user-jwt"
        return SimpleNamespace(
            user=user, session=SimpleNamespace(access_token="user-jwt", expires_at=None))

    def sign_in_with_oauth(self, credentials):
        return SimpleNamespace(url=f"https://auth.example.com/authorize?provider={credentials['provider']}")


def provider_with(auth):
    return SupabaseIdentityProvider(
        client=SimpleNamespace(auth=auth), auth_client_factory=auth.new_client)


def request(email="hosted@example.com"):
    return SignUpRequest(
        email=email, password="password123",
        first_name="Hana", last_name="Ito", role="referrer",
    )


def test_combined_signup_sends_metadata(session):
    auth = FakeAuth()
    attempt = AuthService(session, provider_with(auth)).sign_up(request())

    assert attempt.stage == SignupStage.COMPLETED
    assert attempt.used_fallback is False
    # Email confirmation pending: no session yet
    assert attempt.session is None
    assert auth.signups[0]["options"]["data"]["first_name"] == "Hana"


def test_rejected_metadata_falls_back_to_two_calls(session):
    auth = FakeAuth(reject_metadata=True)
    attempt = AuthService(session, provider_with(auth)).sign_up(request())

    assert attempt.stage == SignupStage.COMPLETED
    assert attempt.used_fallback is True
    assert len(auth.users) == 1
    user = next(iter(auth.users.values()))
    assert user.user_metadata["role"] == "referrer"
    assert user.user_metadata["last_name"] == "Ito"


def test_provider_errors_are_translated():
    auth = FakeAuth(reject_metadata=True)
    with pytest.raises(IdentityProviderError) as exc_info:
        provider_with(auth).create_identity("x@example.com", "password123", {"role": "referrer"})
    assert exc_info.value.message == "Database error saving new user"
    assert exc_info.value.status_code == 400


def test_oauth_url_comes_from_provider():
    url = provider_with(FakeAuth()).oauth_authorize_url("google", "http://localhost/auth/callback")
    assert url.endswith("provider=google")


def test_sign_in_leaves_admin_calls_on_the_service_key(session):
    auth = FakeAuth()
    provider = provider_with(auth)
    AuthService(session, provider).sign_up(request())

    issued = provider.authenticate("hosted@example.com", "password123")
    assert issued.access_token == "user-jwt"
    assert auth.admin.authorization == SERVICE_AUTHORIZATION

    auth.reject_metadata = True
    attempt = AuthService(session, provider).sign_up(request("second@example.com"))
    assert attempt.stage == SignupStage.COMPLETED
    assert attempt.used_fallback is True
    assert len(provider.list_identities()) == 2
