from datetime import datetime, timedelta
from decimal import Decimal

from fastapi import status
from sqlmodel import select

from network_earnings.models.activity import Activity
from network_earnings.models.dispute import Dispute, DisputeStatus
from network_earnings.models.earning import Earning
from network_earnings.models.lead import LeadStatus


def test_leads_are_camel_case(client, referrer, business, make_campaign, make_lead):
    campaign = make_campaign(business.id)
    lead = make_lead(referrer.id, campaign.id, customer_name="Olga")

    response = client.get("/api/leads")
    assert response.status_code == status.HTTP_200_OK
    row = response.json()[0]
    assert row["customerName"] == "Olga"
    assert row["referrerId"] == str(referrer.id)
    assert row["campaignId"] == campaign.id
    assert "customer_name" not in row

    assert client.get(f"/api/leads/{lead.id}").json()["id"] == lead.id


def test_missing_rows_answer_with_message(client):
    response = client.get("/api/leads/999")
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json() == {"message": "Lead not found"}


def test_create_lead(client, referrer):
    response = client.post("/api/leads", json={
        "referrerId": str(referrer.id),
        "customerName": "Pia",
        "service": "Window cleaning",
        "value": "120.00",
    })
    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["status"] == "pending"

    response = client.post("/api/leads", json={"customerName": "", "service": "x", "value": "1"})
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["message"] == "Invalid lead data"
    assert response.json()["errors"]


def test_patch_lead_to_approved_awards_earning(client, session, referrer, business, make_campaign, make_lead):
    campaign = make_campaign(business.id, reward="40.00")
    lead = make_lead(referrer.id, campaign.id)

    response = client.patch(f"/api/leads/{lead.id}", json={"status": "approved"})
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "approved"

    earnings = session.exec(select(Earning).where(Earning.lead_id == lead.id)).all()
    assert [e.amount for e in earnings] == [Decimal("40.00")]

    earnings = client.get(f"/api/earnings/referrer/{referrer.id}").json()
    assert [e["leadId"] for e in earnings] == [lead.id]


def test_campaign_validation(client, business):
    now = datetime.utcnow()
    payload = {
        "businessId": str(business.id),
        "name": "Passthrough Campaign",
        "rewardPerConversion": "10.00",
        "maxBudget": "100.00",
        "startDate": now.isoformat(),
        "endDate": (now + timedelta(days=10)).isoformat(),
    }
    response = client.post("/api/campaigns", json=payload)
    assert response.status_code == status.HTTP_201_CREATED
    campaign = response.json()
    assert campaign["budgetUsed"] in ("0", "0.00")

    for invalid in (
        {"maxBudget": "5.00"},
        {"rewardPerConversion": "0"},
        {"endDate": (now - timedelta(days=1)).isoformat()},
    ):
        response = client.post("/api/campaigns", json={**payload, **invalid})
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        body = response.json()
        assert body["message"] == "Invalid campaign data"
        assert body["errors"]
        assert all("input" not in error for error in body["errors"])

    response = client.patch(f"/api/campaigns/{campaign['id']}",
                            json={"endDate": (now - timedelta(days=1)).isoformat()})
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_create_lead_with_converted_status_awards_earning(client, session, referrer, business, make_campaign):
    campaign = make_campaign(business.id, reward="30.00")
    response = client.post("/api/leads", json={
        "referrerId": str(referrer.id),
        "campaignId": campaign.id,
        "customerName": "Rui",
        "service": "Boiler service",
        "value": "90.00",
        "status": "completed",
    })
    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["status"] == "completed"

    session.refresh(campaign)
    assert campaign.leads == 1
    assert campaign.conversions == 1
    assert campaign.budget_used == Decimal("30.00")
    earnings = session.exec(select(Earning).where(Earning.lead_id == response.json()["id"])).all()
    assert [e.amount for e in earnings] == [Decimal("30.00")]


def test_create_lead_refused_when_budget_exhausted(client, session, referrer, business, make_campaign):
    campaign = make_campaign(business.id, reward="30.00", budget="30.00")
    campaign.budget_used = Decimal("30.00")
    session.add(campaign)
    session.commit()

    response = client.post("/api/leads", json={
        "referrerId": str(referrer.id),
        "campaignId": campaign.id,
        "customerName": "Rui",
        "service": "Boiler service",
        "value": "90.00",
        "status": "approved",
    })
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json() == {"message": "Campaign budget is exhausted"}
    assert client.get("/api/leads").json() == []
    session.refresh(campaign)
    assert campaign.leads == 0


def test_patch_lead_to_rejected_refunds_budget(client, session, referrer, business, make_campaign, make_lead):
    campaign = make_campaign(business.id, reward="40.00")
    lead = make_lead(referrer.id, campaign.id)
    client.patch(f"/api/leads/{lead.id}", json={"status": "approved"})

    response = client.patch(f"/api/leads/{lead.id}", json={"status": "rejected"})
    assert response.status_code == status.HTTP_200_OK
    session.refresh(campaign)
    assert campaign.budget_used == Decimal("0.00")
    assert client.get(f"/api/earnings/referrer/{referrer.id}").json() == []


def test_campaign_budget_cannot_drop_below_spend(client, session, referrer, business, make_campaign, make_lead):
    campaign = make_campaign(business.id, reward="50.00", budget="500.00")
    lead = make_lead(referrer.id, campaign.id)
    client.patch(f"/api/leads/{lead.id}", json={"status": "approved"})

    response = client.patch(f"/api/campaigns/{campaign.id}", json={"maxBudget": "10.00"})
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert "message" in response.json()
    session.refresh(campaign)
    assert campaign.max_budget == Decimal("500.00")

    response = client.patch(f"/api/campaigns/{campaign.id}", json={"maxBudget": "75.00"})
    assert response.status_code == status.HTTP_200_OK
    assert Decimal(response.json()["maxBudget"]) == Decimal("75.00")


def test_dispute_patch_resolves_once(client, admin, referrer, business, make_campaign, make_lead):
    campaign = make_campaign(business.id)
    lead = make_lead(referrer.id, campaign.id)

    response = client.post("/api/disputes", json={"leadId": lead.id, "businessClaim": "Existing customer"})
    assert response.status_code == status.HTTP_201_CREATED
    dispute = response.json()
    assert dispute["businessId"] == str(business.id)
    assert dispute["status"] == "pending"

    url = f"/api/disputes/{dispute['id']}"
    response = client.patch(url, json={"decision": "approved", "adminId": str(admin.id)})
    assert response.json()["status"] == "resolved"
    assert response.json()["resolvedAt"] is not None

    response = client.patch(url, json={"decision": "rejected"})
    assert response.status_code == status.HTTP_409_CONFLICT


def test_analytics_overview(client, session, referrer, business, make_campaign, make_lead, make_earning):
    campaign = make_campaign(business.id)
    make_lead(referrer.id, campaign.id, status=LeadStatus.APPROVED)
    make_lead(referrer.id, campaign.id, status=LeadStatus.COMPLETED)
    make_lead(referrer.id, campaign.id, status=LeadStatus.REJECTED)
    make_lead(referrer.id, campaign.id)
    make_earning(referrer.id, "50.00")
    make_earning(referrer.id, "25.00")
    session.add(Dispute(case_id="CASE-OPEN0001", business_claim="Claim", status=DisputeStatus.ESCALATED))
    session.add(Dispute(case_id="CASE-DONE0001", business_claim="Claim", status=DisputeStatus.RESOLVED))
    session.commit()

    body = client.get("/api/analytics/overview").json()
    assert body["totalReferrals"] == 4
    assert body["conversionRate"] == 50.0
    assert Decimal(body["totalPayouts"]) == Decimal("75.00")
    assert body["activeCampaigns"] == 1
    assert body["pendingDisputes"] == 1


def test_missing_optional_tables_degrade(client, engine):
    Dispute.__table__.drop(engine)
    Activity.__table__.drop(engine)

    assert client.get("/api/disputes").json() == []
    assert client.get("/api/activities").json() == []

    response = client.get("/api/disputes/1")
    assert response.status_code == status.HTTP_404_NOT_FOUND
    response = client.get("/api/activities/1")
    assert response.status_code == status.HTTP_404_NOT_FOUND

    response = client.post("/api/disputes", json={"leadId": 1, "businessClaim": "Claim"})
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json() == {"message": "Disputes functionality is not available"}

    assert client.get("/api/analytics/overview").json()["pendingDisputes"] == 0


def test_missing_optional_tables_keep_core_api_working(client, engine, referrer, business, make_campaign, make_lead):
    campaign = make_campaign(business.id)
    lead = make_lead(referrer.id, campaign.id)
    Dispute.__table__.drop(engine)
    Activity.__table__.drop(engine)

    response = client.patch(f"/leads/{lead.id}/status", headers=business.headers, json={"status": "approved"})
    assert response.status_code == status.HTTP_200_OK

    assert client.get("/disputes/", headers=business.headers).json() == []
    response = client.post("/disputes/", headers=business.headers,
                           json={"lead_id": lead.id, "business_claim": "Claim"})
    assert response.status_code == status.HTTP_400_BAD_REQUEST

    recent = client.get("/activities/recent", headers=referrer.headers).json()
    assert {item["id"] for item in recent} >= {f"lead-{lead.id}"}
