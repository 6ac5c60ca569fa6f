from decimal import Decimal

from cryptography.fernet import Fernet
from fastapi import status
from sqlmodel import select

from network_earnings.models.earning import EarningStatus
from network_earnings.models.payout_method import PayoutMethod
from network_earnings.models.user import UserRole
from network_earnings.utils.encryption import EncryptionService, encryption_service


def test_summary_counts_paid_earnings_as_available(client, referrer, make_earning):
    make_earning(referrer.id, "50.00", EarningStatus.PAID)
    make_earning(referrer.id, "20.00", EarningStatus.PENDING)

    response = client.get("/earnings/summary", headers=referrer.headers)
    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert Decimal(body["available_balance"]) == Decimal("50.00")
    assert Decimal(body["pending_earnings"]) == Decimal("20.00")
    assert Decimal(body["total_earned"]) == Decimal("70.00")
    assert Decimal(body["withdrawable"]) == Decimal("50.00")


def test_earning_sources_and_monthly(client, referrer, business, make_campaign, make_earning):
    campaign = make_campaign(business.id, name="Summer")
    make_earning(referrer.id, "30.00", campaign_id=campaign.id)
    make_earning(referrer.id, "10.00")

    sources = client.get("/earnings/sources", headers=referrer.headers).json()
    assert [source["name"] for source in sources] == ["Summer", "Other"]
    assert [source["percentage"] for source in sources] == [75.0, 25.0]

    monthly = client.get("/earnings/monthly", headers=referrer.headers, params={"months": 3}).json()
    assert len(monthly) == 3
    assert Decimal(monthly[-1]["earnings"]) == Decimal("40.00")


def test_mark_earning_paid(client, referrer, business, make_campaign, make_earning):
    campaign = make_campaign(business.id)
    earning = make_earning(referrer.id, "50.00", campaign_id=campaign.id)
    url = f"/earnings/{earning.id}/pay"

    response = client.post(url, headers=referrer.headers, json={"payout_reference": "TX-1"})
    assert response.status_code == status.HTTP_403_FORBIDDEN

    response = client.post(url, headers=business.headers, json={"payout_reference": "  "})
    assert response.status_code == status.HTTP_400_BAD_REQUEST

    response = client.post(url, headers=business.headers, json={"payout_reference": "TX-1"})
    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["status"] == "paid"
    assert body["payout_reference"] == "TX-1"
    assert body["paid_at"] is not None

    response = client.post(url, headers=business.headers, json={"payout_reference": "TX-2"})
    assert response.status_code == status.HTTP_409_CONFLICT


def test_admin_creates_manual_earning_once_per_lead(client, referrer, admin, make_lead):
    lead = make_lead(referrer.id)
    payload = {"referrer_id": str(referrer.id), "lead_id": lead.id, "amount": "15.00"}

    response = client.post("/earnings/", headers=admin.headers, json=payload)
    assert response.status_code == status.HTTP_201_CREATED

    response = client.post("/earnings/", headers=admin.headers, json=payload)
    assert response.status_code == status.HTTP_409_CONFLICT

    response = client.post("/earnings/", headers=referrer.headers, json=payload)
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_payout_limited_to_withdrawable_balance(client, referrer, make_earning):
    make_earning(referrer.id, "50.00", EarningStatus.PAID)
    make_earning(referrer.id, "100.00", EarningStatus.PENDING)

    response = client.post("/payouts/", headers=referrer.headers, json={"amount": "60.00", "method": "paypal"})
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"].startswith("Insufficient balance")

    response = client.post("/payouts/", headers=referrer.headers, json={"amount": "30.00", "method": "paypal"})
    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["status"] == "pending"

    # The pending payout is already reserved
    response = client.post("/payouts/", headers=referrer.headers, json={"amount": "30.00", "method": "paypal"})
    assert response.status_code == status.HTTP_400_BAD_REQUEST

    summary = client.get("/earnings/summary", headers=referrer.headers).json()
    assert Decimal(summary["pending_payouts"]) == Decimal("30.00")
    assert Decimal(summary["withdrawable"]) == Decimal("20.00")


def test_payout_needs_a_method(client, referrer, make_earning):
    make_earning(referrer.id, "50.00", EarningStatus.PAID)
    response = client.post("/payouts/", headers=referrer.headers, json={"amount": "10.00"})
    assert response.status_code == status.HTTP_400_BAD_REQUEST

    client.post("/payout-methods/", headers=referrer.headers, json={
        "type": "paypal", "details": {"email": "rita@example.com"}})
    response = client.post("/payouts/", headers=referrer.headers, json={"amount": "10.00"})
    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["method"] == "paypal"


def test_admin_completes_and_fails_payouts(client, referrer, admin, make_earning):
    make_earning(referrer.id, "100.00", EarningStatus.PAID)
    first = client.post("/payouts/", headers=referrer.headers, json={"amount": "40.00", "method": "bank_transfer"}).json()
    second = client.post("/payouts/", headers=referrer.headers, json={"amount": "10.00", "method": "bank_transfer"}).json()

    response = client.post(f"/payouts/{first['id']}/complete", headers=admin.headers, json={"reference": "BANK-9"})
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "completed"
    assert response.json()["paid_at"] is not None

    response = client.post(f"/payouts/{first['id']}/complete", headers=admin.headers, json={"reference": "BANK-9"})
    assert response.status_code == status.HTTP_409_CONFLICT

    response = client.post(f"/payouts/{second['id']}/fail", headers=admin.headers)
    assert response.json()["status"] == "failed"

    summary = client.get("/earnings/summary", headers=referrer.headers).json()
    assert Decimal(summary["withdrawn"]) == Decimal("40.00")
    assert Decimal(summary["withdrawable"]) == Decimal("60.00")


def test_payouts_visible_to_owner_and_admin(client, referrer, admin, make_user, make_earning):
    make_earning(referrer.id, "20.00", EarningStatus.PAID)
    payout = client.post("/payouts/", headers=referrer.headers, json={"amount": "20.00", "method": "paypal"}).json()
    other = make_user(UserRole.REFERRER)

    assert client.get(f"/payouts/{payout['id']}", headers=other.headers).status_code == status.HTTP_404_NOT_FOUND
    assert client.get(f"/payouts/{payout['id']}", headers=admin.headers).status_code == status.HTTP_200_OK
    assert [row["id"] for row in client.get("/payouts/", headers=referrer.headers).json()] == [payout["id"]]


def test_payout_method_details_are_masked(client, session, referrer):
    response = client.post("/payout-methods/", headers=referrer.headers, json={
        "type": "bank_transfer",
        "details": {"account_name": "Rita", "account_number": "12345678", "sort_code": "112233"},
    })
    assert response.status_code == status.HTTP_201_CREATED
    body = response.json()
    assert body["is_default"] is True
    assert body["details"]["account_number"] == "****5678"
    assert body["details"]["account_name"] == "Rita"

    stored = session.exec(select(PayoutMethod)).one()
    assert stored.details["account_number"] != "12345678"
    assert encryption_service.decrypt(stored.details["account_number"]) == "12345678"


def test_details_from_another_key_stay_hidden():
    stored = EncryptionService(Fernet.generate_key()).encrypt_details(
        {"account_name": "Rita", "iban": "GB29NWBK60161331926819"})
    masked = EncryptionService(Fernet.generate_key()).masked_details(stored)
    assert masked == {"account_name": "Rita", "iban": "**********"}


def test_single_default_payout_method(client, referrer):
    first = client.post("/payout-methods/", headers=referrer.headers, json={
        "type": "paypal", "details": {"email": "a@example.com"}}).json()
    second = client.post("/payout-methods/", headers=referrer.headers, json={
        "type": "stripe", "details": {"account": "acct_1"}}).json()
    assert second["is_default"] is False

    response = client.post(f"/payout-methods/{second['id']}/default", headers=referrer.headers)
    assert response.json()["is_default"] is True

    methods = {m["id"]: m["is_default"] for m in client.get("/payout-methods/", headers=referrer.headers).json()}
    assert methods == {first["id"]: False, second["id"]: True}

    response = client.delete(f"/payout-methods/{first['id']}", headers=referrer.headers)
    assert response.json() == {"message": "Payout method deleted"}
