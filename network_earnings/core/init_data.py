from sqlmodel import Session, select
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict
from uuid import UUID
import logging

from network_earnings.core.db import table_exists
from network_earnings.models.campaign import Campaign, CampaignStatus
from network_earnings.models.dispute import Dispute, DisputeDecision, DisputeStatus
from network_earnings.models.earning import Earning, EarningStatus
from network_earnings.models.lead import Lead, LeadStatus
from network_earnings.models.payout import Payout, PayoutStatus
from network_earnings.models.payout_method import PayoutMethod, PayoutMethodCreate, PayoutMethodType
from network_earnings.models.user import UserRole, UserTier
from network_earnings.services.identity_provider import IdentityProvider

logger = logging.getLogger(__name__)

DEMO_PASSWORD = "password123"

DEMO_USERS = [
    ("referrer1", "referrer1@example.com", "John", "Doe", UserRole.REFERRER, UserTier.STANDARD),
    ("referrer2", "referrer2@example.com", "Jane", "Smith", UserRole.REFERRER, UserTier.PREMIUM),
    ("business", "business@example.com", "Business", "Owner", UserRole.BUSINESS, UserTier.PREMIUM),
    ("admin", "admin@example.com", "Admin", "User", UserRole.ADMIN, UserTier.PREMIUM),
]

# name, description, reward, max budget, service area, postcode range
DEMO_CAMPAIGNS = [
    ("Summer Referral Program", "Earn rewards for referring new customers to our summer services",
     "50.00", "5000.00", "Melbourne Metro", ("3000", "3207")),
    ("Tech Product Launch", "Help us promote our new tech product and earn per qualified lead",
     "75.00", "10000.00", "Sydney Metro", ("2000", "2250")),
    ("Education Services", "Refer students to our education services and earn rewards",
     "45.00", "3000.00", "Brisbane", ("4000", "4179")),
    ("Wellness Program", "Promote health & wellness services for your contacts",
     "60.00", "4000.00", "Perth", ("6000", "6175")),
]

# customer, service, value, status, business name, referrer, campaign index, days ago
DEMO_LEADS = [
    ("Sarah Johnson", "Summer Landscaping", "500.00", LeadStatus.APPROVED, "GreenScapes Ltd", "referrer1", 0, 120),
    ("Michael Chen", "Tech Support Package", "750.00", LeadStatus.PENDING, "TechSolutions Inc", "referrer1", 1, 95),
    ("Lisa Taylor", "Education Tutoring", "350.00", LeadStatus.COMPLETED, "BrightMinds Education", "referrer1", 2, 70),
    ("Robert Garcia", "Wellness Consultation", "600.00", LeadStatus.APPROVED, "WellnessWave", "referrer2", 3, 45),
    ("Emily Wright", "Tech Product Demo", "1200.00", LeadStatus.PENDING, "TechSolutions Inc", "referrer2", 1, 20),
    ("James Wilson", "Summer Pool Service", "800.00", LeadStatus.COMPLETED, "GreenScapes Ltd", "referrer2", 0, 5),
]


def create_demo_users(provider: IdentityProvider) -> Dict[str, UUID]:
    existing = {identity.email: identity.id for identity in provider.list_identities()}
    user_ids = {}
    for key, email, first_name, last_name, role, tier in DEMO_USERS:
        if email in existing:
            user_ids[key] = existing[email]
            continue
        identity, _ = provider.create_identity(email, DEMO_PASSWORD, {
            "first_name": first_name,
            "last_name": last_name,
            "username": key,
            "role": role.value,
            "tier": tier.value,
            "avatar": f"https://ui-avatars.com/api/?name={first_name}+{last_name}",
            "created_at": datetime.utcnow().isoformat(),
            "phone_verified": False,
        })
        user_ids[key] = identity.id
        logger.info("Created demo user %s", email)
    return user_ids


def create_demo_campaigns(session: Session, business_id: UUID):
    now = datetime.utcnow()
    campaigns = []
    for name, description, reward, budget, area, (postcode_start, postcode_end) in DEMO_CAMPAIGNS:
        campaign = Campaign(
            name=name,
            description=description,
            reward_per_conversion=Decimal(reward),
            max_budget=Decimal(budget),
            status=CampaignStatus.ACTIVE,
            start_date=now - timedelta(days=150),
            end_date=now + timedelta(days=120),
            service_area=area,
            postcode_start=postcode_start,
            postcode_end=postcode_end,
            business_id=business_id,
        )
        session.add(campaign)
        campaigns.append(campaign)
    session.flush()
    return campaigns


def create_demo_leads(session: Session, user_ids: Dict[str, UUID], campaigns):
    """Leads with the earnings they produced; campaign counters follow the rows."""
    now = datetime.utcnow()
    leads = []
    for customer, service, value, status, business_name, referrer, index, days_ago in DEMO_LEADS:
        campaign = campaigns[index]
        created_at = now - timedelta(days=days_ago)
        lead = Lead(
            customer_name=customer,
            service=service,
            value=Decimal(value),
            status=status,
            business_name=business_name,
            referrer_id=user_ids[referrer],
            campaign_id=campaign.id,
            created_at=created_at,
        )
        session.add(lead)
        session.flush()
        campaign.leads += 1
        leads.append(lead)

        if status == LeadStatus.PENDING:
            continue
        paid = status == LeadStatus.COMPLETED
        reward = Decimal(campaign.reward_per_conversion)
        session.add(Earning(
            referrer_id=lead.referrer_id,
            lead_id=lead.id,
            campaign_id=campaign.id,
            amount=reward,
            status=EarningStatus.PAID if paid else EarningStatus.PENDING,
            payout_reference=f"SEED-{lead.id:04d}" if paid else None,
            created_at=created_at,
            paid_at=now if paid else None,
        ))
        campaign.budget_used = Decimal(campaign.budget_used or 0) + reward
        campaign.conversions += 1
    for campaign in campaigns:
        session.add(campaign)
    return leads


def create_demo_payouts(session: Session, user_ids: Dict[str, UUID]):
    now = datetime.utcnow()
    session.add(Payout(
        user_id=user_ids["referrer1"], date=now - timedelta(days=30), amount=Decimal("40.00"),
        method=PayoutMethodType.BANK_TRANSFER.value, status=PayoutStatus.COMPLETED,
        reference="PAY-0001", paid_at=now - timedelta(days=28),
    ))
    session.add(Payout(
        user_id=user_ids["referrer2"], date=now - timedelta(days=2), amount=Decimal("30.00"),
        method=PayoutMethodType.PAYPAL.value, status=PayoutStatus.PENDING,
    ))
    for key, method_type, details in (
        ("referrer1", PayoutMethodType.BANK_TRANSFER,
         {"account_name": "John Doe", "account_number": "12345678", "sort_code": "112233"}),
        ("referrer2", PayoutMethodType.PAYPAL, {"email": "referrer2@example.com"}),
    ):
        data = PayoutMethodCreate(type=method_type, details=details, is_default=True)
        session.add(PayoutMethod(
            user_id=user_ids[key], type=data.type,
            details=data.encrypt_sensitive_data(), is_default=True,
        ))


def create_demo_disputes(session: Session, user_ids: Dict[str, UUID], leads):
    if not table_exists(session, Dispute.__tablename__):
        logger.info("No disputes table, skipping demo disputes")
        return
    session.add(Dispute(
        case_id="CASE-DEMO0001",
        referrer_id=leads[3].referrer_id,
        business_id=user_ids["business"],
        lead_id=leads[3].id,
        business_claim="Customer says they found us through a search engine, not a referral.",
        status=DisputeStatus.PENDING,
    ))
    session.add(Dispute(
        case_id="CASE-DEMO0002",
        referrer_id=leads[0].referrer_id,
        business_id=user_ids["business"],
        admin_id=user_ids["admin"],
        lead_id=leads[0].id,
        business_claim="Duplicate lead for an existing customer.",
        referrer_response="The customer was new to the business at the time of referral.",
        status=DisputeStatus.RESOLVED,
        decision=DisputeDecision.REJECTED,
        resolved_at=datetime.utcnow() - timedelta(days=10),
    ))


def seed_demo_data(session: Session, provider: IdentityProvider) -> bool:
    """Populate an empty database with demo users and activity.

    Returns False without changes when campaigns already exist.
    """
    if session.exec(select(Campaign)).first():
        logger.info("Campaigns already present, demo data not loaded")
        return False

    user_ids = create_demo_users(provider)
    try:
        campaigns = create_demo_campaigns(session, user_ids["business"])
        leads = create_demo_leads(session, user_ids, campaigns)
        create_demo_payouts(session, user_ids)
        create_demo_disputes(session, user_ids, leads)
        session.commit()
    except Exception:
        session.rollback()
        raise
    logger.info("Demo data loaded: %d campaigns, %d leads", len(campaigns), len(leads))
    return True
