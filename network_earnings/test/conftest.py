from datetime import datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

from network_earnings.main import app
from network_earnings.core.db import get_session
from network_earnings.core.security import Principal
from network_earnings.models.campaign import Campaign, CampaignStatus
from network_earnings.models.earning import Earning, EarningStatus
from network_earnings.models.lead import Lead, LeadStatus
from network_earnings.models.user import UserRole
from network_earnings.services.identity_provider import LocalIdentityProvider


def auth_headers(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(name="engine")
def engine_fixture():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="session")
def session_fixture(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture(name="client")
def client_fixture(session: Session):
    def get_session_override():
        return session
    app.dependency_overrides[get_session] = get_session_override
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture(name="make_user")
def make_user_fixture(session: Session):
    """Create an identity with a profile and an open session."""
    provider = LocalIdentityProvider(session)

    def make_user(role=UserRole.REFERRER, email=None, first_name="Test", **metadata):
        email = email or f"{role.value}-{uuid4().hex[:8]}@example.com"
        identity, _ = provider.create_identity(email, "password123", {
            "first_name": first_name,
            "last_name": role.value.title(),
            "role": role.value,
            "tier": "standard",
            "phone_verified": False,
            **metadata,
        })
        issued = provider.open_session(identity)
        return SimpleNamespace(
            id=identity.id,
            email=identity.email,
            token=issued.access_token,
            headers=auth_headers(issued.access_token),
            principal=Principal(id=identity.id, email=identity.email, role=role),
        )
    return make_user


@pytest.fixture(name="referrer")
def referrer_fixture(make_user):
    return make_user(UserRole.REFERRER, first_name="Rita")


@pytest.fixture(name="business")
def business_fixture(make_user):
    return make_user(UserRole.BUSINESS, first_name="Bob")


@pytest.fixture(name="admin")
def admin_fixture(make_user):
    return make_user(UserRole.ADMIN, first_name="Ada")


@pytest.fixture(name="make_campaign")
def make_campaign_fixture(session: Session):
    def make_campaign(business_id, name="Spring Referrals", reward="50.00", budget="500.00",
                      status=CampaignStatus.ACTIVE, **fields):
        now = datetime.utcnow()
        campaign = Campaign(
            name=name,
            reward_per_conversion=Decimal(reward),
            max_budget=Decimal(budget),
            status=status,
            start_date=now - timedelta(days=30),
            end_date=now + timedelta(days=30),
            business_id=business_id,
            **fields,
        )
        session.add(campaign)
        session.commit()
        session.refresh(campaign)
        return campaign
    return make_campaign


@pytest.fixture(name="make_lead")
def make_lead_fixture(session: Session):
    def make_lead(referrer_id, campaign_id=None, customer_name="Alice Brown", value="100.00",
                  status=LeadStatus.PENDING, created_at=None):
        lead = Lead(
            referrer_id=referrer_id,
            campaign_id=campaign_id,
            customer_name=customer_name,
            service="Garden design",
            value=Decimal(value),
            status=status,
            created_at=created_at or datetime.utcnow(),
        )
        session.add(lead)
        session.commit()
        session.refresh(lead)
        return lead
    return make_lead


@pytest.fixture(name="make_earning")
def make_earning_fixture(session: Session):
    def make_earning(referrer_id, amount, status=EarningStatus.PENDING, campaign_id=None,
                     lead_id=None, created_at=None):
        paid = status == EarningStatus.PAID
        earning = Earning(
            referrer_id=referrer_id,
            campaign_id=campaign_id,
            lead_id=lead_id,
            amount=Decimal(amount),
            status=status,
            payout_reference="REF-TEST" if paid else None,
            paid_at=datetime.utcnow() if paid else None,
            created_at=created_at or datetime.utcnow(),
        )
        session.add(earning)
        session.commit()
        session.refresh(earning)
        return earning
    return make_earning
