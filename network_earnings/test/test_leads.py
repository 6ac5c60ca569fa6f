from datetime import datetime, timedelta
from decimal import Decimal

from fastapi import status
from sqlmodel import select

from network_earnings.models.campaign import Campaign, CampaignStatus
from network_earnings.models.earning import Earning
from network_earnings.models.lead import Lead, LeadStatus
from network_earnings.models.user import UserRole

LEAD = {"customer_name": "Carol White", "service": "Roof repair", "value": "350.00"}


def test_referrer_submits_lead(client, session, referrer, business, make_campaign):
    campaign = make_campaign(business.id)
    response = client.post("/leads/", headers=referrer.headers, json={**LEAD, "campaign_id": campaign.id})
    assert response.status_code == status.HTTP_201_CREATED
    body = response.json()
    assert body["referrer_id"] == str(referrer.id)
    assert body["status"] == "pending"

    session.refresh(campaign)
    assert campaign.leads == 1


def test_lead_timestamp_is_naive_utc(client, session, referrer):
    before = datetime.utcnow()
    response = client.post("/leads/", headers=referrer.headers, json=LEAD)
    assert response.status_code == status.HTTP_201_CREATED

    lead = session.get(Lead, response.json()["id"])
    assert lead.created_at.tzinfo is None
    assert before <= lead.created_at <= datetime.utcnow()


def test_referrer_cannot_submit_for_someone_else(client, referrer, make_user):
    other = make_user(UserRole.REFERRER)
    response = client.post("/leads/", headers=referrer.headers, json={**LEAD, "referrer_id": str(other.id)})
    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["referrer_id"] == str(referrer.id)


def test_business_cannot_submit_leads(client, business):
    response = client.post("/leads/", headers=business.headers, json=LEAD)
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_lead_on_paused_campaign_rejected(client, referrer, business, make_campaign):
    campaign = make_campaign(business.id, status=CampaignStatus.PAUSED)
    response = client.post("/leads/", headers=referrer.headers, json={**LEAD, "campaign_id": campaign.id})
    # Paused campaigns are not visible to referrers
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_invalid_lead_payload(client, referrer):
    response = client.post("/leads/", headers=referrer.headers, json={**LEAD, "value": "-5"})
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_approval_creates_earning_and_charges_budget(
    client, session, referrer, business, make_campaign, make_lead
):
    campaign = make_campaign(business.id, reward="50.00", budget="500.00")
    lead = make_lead(referrer.id, campaign.id)

    response = client.patch(f"/leads/{lead.id}/status", headers=business.headers, json={"status": "approved"})
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "approved"

    earnings = session.exec(select(Earning).where(Earning.lead_id == lead.id)).all()
    assert len(earnings) == 1
    assert earnings[0].amount == Decimal("50.00")
    assert earnings[0].referrer_id == referrer.id
    session.refresh(campaign)
    assert campaign.budget_used == Decimal("50.00")
    assert campaign.conversions == 1

    # Completing the same lead does not pay twice
    response = client.patch(f"/leads/{lead.id}/status", headers=business.headers, json={"status": "completed"})
    assert response.status_code == status.HTTP_200_OK
    assert len(session.exec(select(Earning).where(Earning.lead_id == lead.id)).all()) == 1
    session.refresh(campaign)
    assert campaign.budget_used == Decimal("50.00")


def test_approval_refused_when_budget_exhausted(
    client, session, referrer, business, make_campaign, make_lead
):
    campaign = make_campaign(business.id, reward="50.00", budget="50.00")
    campaign.budget_used = Decimal("20.00")
    session.add(campaign)
    session.commit()
    lead = make_lead(referrer.id, campaign.id)

    response = client.patch(f"/leads/{lead.id}/status", headers=business.headers, json={"status": "approved"})
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "Campaign budget is exhausted"

    session.refresh(lead)
    session.refresh(campaign)
    assert lead.status == LeadStatus.PENDING
    assert campaign.budget_used == Decimal("20.00")
    assert session.exec(select(Earning)).all() == []


def test_rejecting_approved_lead_refunds_budget(
    client, session, referrer, business, make_campaign, make_lead
):
    campaign = make_campaign(business.id, reward="50.00", budget="500.00")
    lead = make_lead(referrer.id, campaign.id)
    url = f"/leads/{lead.id}/status"
    client.patch(url, headers=business.headers, json={"status": "approved"})

    response = client.patch(url, headers=business.headers, json={"status": "rejected"})
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "rejected"

    session.refresh(campaign)
    assert campaign.budget_used == Decimal("0.00")
    assert campaign.conversions == 0
    assert session.exec(select(Earning).where(Earning.lead_id == lead.id)).all() == []
    summary = client.get("/earnings/summary", headers=referrer.headers).json()
    assert Decimal(summary["pending_earnings"]) == Decimal("0")


def test_paid_earning_blocks_rejection(client, session, referrer, business, make_campaign, make_lead):
    campaign = make_campaign(business.id, reward="50.00")
    lead = make_lead(referrer.id, campaign.id)
    url = f"/leads/{lead.id}/status"
    client.patch(url, headers=business.headers, json={"status": "approved"})
    earning = session.exec(select(Earning).where(Earning.lead_id == lead.id)).one()
    response = client.post(f"/earnings/{earning.id}/pay", headers=business.headers,
                           json={"payout_reference": "PAY-001"})
    assert response.status_code == status.HTTP_200_OK

    response = client.patch(url, headers=business.headers, json={"status": "rejected"})
    assert response.status_code == status.HTTP_409_CONFLICT
    session.refresh(lead)
    session.refresh(campaign)
    assert lead.status == LeadStatus.APPROVED
    assert campaign.budget_used == Decimal("50.00")


def test_invalid_status_transition(client, referrer, business, make_campaign, make_lead):
    campaign = make_campaign(business.id)
    lead = make_lead(referrer.id, campaign.id, status=LeadStatus.REJECTED)
    response = client.patch(f"/leads/{lead.id}/status", headers=business.headers, json={"status": "approved"})
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_referrer_cannot_change_status(client, referrer, business, make_campaign, make_lead):
    campaign = make_campaign(business.id)
    lead = make_lead(referrer.id, campaign.id)
    response = client.patch(f"/leads/{lead.id}/status", headers=referrer.headers, json={"status": "approved"})
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_referrer_edits_pending_lead_only(client, referrer, business, make_campaign, make_lead):
    campaign = make_campaign(business.id)
    pending = make_lead(referrer.id, campaign.id)
    approved = make_lead(referrer.id, campaign.id, status=LeadStatus.APPROVED)

    response = client.patch(f"/leads/{pending.id}", headers=referrer.headers, json={"service": "Gutters"})
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["service"] == "Gutters"

    response = client.patch(f"/leads/{approved.id}", headers=referrer.headers, json={"service": "Gutters"})
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_business_creates_campaign(client, business):
    now = datetime.utcnow()
    payload = {
        "name": "Autumn Offer",
        "reward_per_conversion": "25.00",
        "max_budget": "1000.00",
        "start_date": now.isoformat(),
        "end_date": (now + timedelta(days=60)).isoformat(),
    }
    response = client.post("/campaigns/", headers=business.headers, json=payload)
    assert response.status_code == status.HTTP_201_CREATED
    body = response.json()
    assert body["business_id"] == str(business.id)
    assert Decimal(body["budget_used"]) == Decimal("0")

    payload["end_date"] = (now - timedelta(days=1)).isoformat()
    response = client.post("/campaigns/", headers=business.headers, json=payload)
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_referrer_cannot_create_campaign(client, referrer):
    now = datetime.utcnow()
    response = client.post("/campaigns/", headers=referrer.headers, json={
        "name": "Mine",
        "reward_per_conversion": "10.00",
        "max_budget": "100.00",
        "start_date": now.isoformat(),
        "end_date": now.isoformat(),
    })
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_campaign_update_rules(client, session, business, make_user, make_campaign):
    campaign = make_campaign(business.id, budget="500.00")
    campaign.budget_used = Decimal("200.00")
    session.add(campaign)
    session.commit()

    response = client.patch(f"/campaigns/{campaign.id}", headers=business.headers, json={"max_budget": "100.00"})
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    response = client.patch(f"/campaigns/{campaign.id}", headers=business.headers,
                            json={"reward_per_conversion": "600.00"})
    assert response.status_code == status.HTTP_400_BAD_REQUEST

    response = client.patch(f"/campaigns/{campaign.id}", headers=business.headers, json={"status": "paused"})
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "paused"

    other = make_user(UserRole.BUSINESS)
    response = client.patch(f"/campaigns/{campaign.id}", headers=other.headers, json={"name": "Taken"})
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert session.get(Campaign, campaign.id).name == "Spring Referrals"
