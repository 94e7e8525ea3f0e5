import pytest
from sqlalchemy import select

from app.config import get_settings
from app.models import AuditLog, Escrow, EscrowStatus, Notification


def _escrow_payload(seller_id: int, **overrides) -> dict:
    payload = {
        "title": "Used camera",
        "description": "Mirrorless body, two lenses",
        "amount": 500_000,
        "seller_id": seller_id,
        "item_title": "Camera",
        "item_images": ["https://img.example.com/1.jpg"],
    }
    payload.update(overrides)
    return payload


@pytest.mark.anyio
async def test_create_escrow_opens_zeroed_wallet(client, db_session, buyer, seller, buyer_headers):
    resp = await client.post("/escrows", json=_escrow_payload(seller.id), headers=buyer_headers)
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["status"] == "created"
    assert body["buyer_id"] == buyer.id
    assert body["currency"] == get_settings().DEFAULT_CURRENCY
    assert body["expires_at"] is not None

    wallet = await client.get(f"/escrows/{body['id']}/wallet", headers=buyer_headers)
    assert wallet.status_code == 200
    assert wallet.json()["total_funded"] == 0
    assert wallet.json()["current_balance"] == 0

    notif = db_session.scalars(select(Notification).where(Notification.user_id == seller.id)).one()
    assert notif.type == "escrow_created"
    audit = db_session.scalars(
        select(AuditLog).where(AuditLog.entity_type == "escrow", AuditLog.entity_id == body["id"])
    ).one()
    assert audit.action == "created"
    assert audit.actor == f"user:{buyer.id}"


@pytest.mark.anyio
async def test_create_escrow_with_self_as_seller_is_rejected(client, buyer, buyer_headers):
    resp = await client.post("/escrows", json=_escrow_payload(buyer.id), headers=buyer_headers)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "SELF_ESCROW"


@pytest.mark.anyio
async def test_create_escrow_rejects_non_positive_amount(client, seller, buyer_headers):
    resp = await client.post("/escrows", json=_escrow_payload(seller.id, amount=0), headers=buyer_headers)
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.anyio
async def test_create_escrow_unknown_seller(client, buyer_headers):
    resp = await client.post("/escrows", json=_escrow_payload(999_999), headers=buyer_headers)
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "USER_NOT_FOUND"


@pytest.mark.anyio
async def test_requests_without_valid_key_are_unauthorized(client, seller):
    resp = await client.post("/escrows", json=_escrow_payload(seller.id))
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "NO_API_KEY"

    resp = await client.get("/escrows/mine?role=buyer", headers={"Authorization": "Bearer nope"})
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "UNAUTHORIZED"


@pytest.mark.anyio
async def test_frozen_buyer_cannot_create_escrow(client, make_user, headers_for, seller):
    frozen = make_user("frozen", is_frozen=True)
    resp = await client.post("/escrows", json=_escrow_payload(seller.id), headers=headers_for(frozen))
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "ACCOUNT_FROZEN"


@pytest.mark.anyio
async def test_full_lifecycle_moves_money_to_seller(
    client, db_session, buyer, seller, buyer_headers, seller_headers
):
    created = await client.post("/escrows", json=_escrow_payload(seller.id), headers=buyer_headers)
    escrow_id = created.json()["id"]

    initiated = await client.post(
        f"/escrows/{escrow_id}/initiate-payment",
        json={"payment_method": "bank_transfer"},
        headers=buyer_headers,
    )
    assert initiated.status_code == 200
    link = initiated.json()
    assert link["payment_id"].startswith("PAY-")
    assert link["payment_url"] == f"{get_settings().PAYMENT_BASE_URL}/{link['payment_id']}"

    confirmed = await client.post(f"/escrows/{escrow_id}/confirm-payment", headers=buyer_headers)
    assert confirmed.status_code == 200
    assert confirmed.json()["status"] == "funded"
    assert confirmed.json()["funded_at"] is not None

    wallet = (await client.get(f"/escrows/{escrow_id}/wallet", headers=seller_headers)).json()
    assert wallet["total_funded"] == 500_000
    assert wallet["current_balance"] == 500_000

    started = await client.post(f"/escrows/{escrow_id}/start", headers=seller_headers)
    assert started.json()["status"] == "in_progress"

    released = await client.post(f"/escrows/{escrow_id}/release", headers=buyer_headers)
    assert released.status_code == 200
    assert released.json()["status"] == "completed"
    assert released.json()["completed_at"] is not None

    wallet = (await client.get(f"/escrows/{escrow_id}/wallet", headers=buyer_headers)).json()
    assert wallet["total_released"] == 500_000
    assert wallet["seller_amount"] == 500_000
    assert wallet["current_balance"] == 0

    txs = (await client.get(f"/escrows/{escrow_id}/transactions", headers=buyer_headers)).json()
    assert [tx["type"] for tx in txs] == ["fund", "release"]
    assert txs[0]["payment_gateway_id"] == link["payment_id"]
    assert txs[1]["to_user_id"] == seller.id

    db_session.expire_all()
    assert buyer.completed_deals == 1
    assert seller.completed_deals == 1
    assert buyer.total_deals == 1


@pytest.mark.anyio
async def test_release_from_funded_skips_start(client, make_escrow, buyer_headers):
    escrow = make_escrow(funded=True)
    resp = await client.post(f"/escrows/{escrow.id}/release", headers=buyer_headers)
    assert resp.status_code == 200
    assert resp.json()["status"] == "completed"


@pytest.mark.anyio
async def test_only_buyer_may_release(client, make_escrow, seller_headers, outsider_headers):
    escrow = make_escrow(in_progress=True)
    resp = await client.post(f"/escrows/{escrow.id}/release", headers=seller_headers)
    assert resp.status_code == 403
    assert resp.json()["error"] == {"code": "FORBIDDEN", "message": "Only buyer can release payment"}

    resp = await client.post(f"/escrows/{escrow.id}/release", headers=outsider_headers)
    assert resp.status_code == 403


@pytest.mark.anyio
async def test_only_seller_may_start_work(client, make_escrow, buyer_headers):
    escrow = make_escrow(funded=True)
    resp = await client.post(f"/escrows/{escrow.id}/start", headers=buyer_headers)
    assert resp.status_code == 403


@pytest.mark.anyio
async def test_release_before_funding_is_invalid_transition(client, db_session, make_escrow, buyer_headers):
    escrow = make_escrow()
    resp = await client.post(f"/escrows/{escrow.id}/release", headers=buyer_headers)
    assert resp.status_code == 409
    error = resp.json()["error"]
    assert error["code"] == "INVALID_TRANSITION"
    assert error["details"] == {"from": "created", "to": "completed"}

    db_session.expire_all()
    assert db_session.get(Escrow, escrow.id).status == EscrowStatus.created


@pytest.mark.anyio
async def test_confirm_twice_does_not_double_fund(client, make_escrow, buyer_headers):
    escrow = make_escrow()
    first = await client.post(f"/escrows/{escrow.id}/confirm-payment", headers=buyer_headers)
    assert first.status_code == 200
    second = await client.post(f"/escrows/{escrow.id}/confirm-payment", headers=buyer_headers)
    assert second.status_code == 409

    wallet = (await client.get(f"/escrows/{escrow.id}/wallet", headers=buyer_headers)).json()
    assert wallet["total_funded"] == escrow.amount


@pytest.mark.anyio
async def test_cancel_unfunded_escrow_notifies_seller(client, db_session, seller, make_escrow, buyer_headers):
    escrow = make_escrow()
    resp = await client.post(
        f"/escrows/{escrow.id}/cancel", json={"reason": "changed my mind"}, headers=buyer_headers
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "cancelled"
    assert resp.json()["cancelled_at"] is not None

    types = db_session.scalars(select(Notification.type).where(Notification.user_id == seller.id)).all()
    assert "escrow_cancelled" in types


@pytest.mark.anyio
async def test_cannot_cancel_funded_escrow(client, make_escrow, buyer_headers):
    escrow = make_escrow(funded=True)
    resp = await client.post(f"/escrows/{escrow.id}/cancel", headers=buyer_headers)
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "INVALID_TRANSITION"


@pytest.mark.anyio
async def test_escrow_visibility(client, make_escrow, seller_headers, outsider_headers, admin_headers):
    escrow = make_escrow()
    assert (await client.get(f"/escrows/{escrow.id}", headers=seller_headers)).status_code == 200
    assert (await client.get(f"/escrows/{escrow.id}", headers=admin_headers)).status_code == 200

    resp = await client.get(f"/escrows/{escrow.id}", headers=outsider_headers)
    assert resp.status_code == 403
    resp = await client.get(f"/escrows/{escrow.id}/transactions", headers=outsider_headers)
    assert resp.status_code == 403

    missing = await client.get("/escrows/does-not-exist", headers=seller_headers)
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "ESCROW_NOT_FOUND"


@pytest.mark.anyio
async def test_my_escrows_filters_by_role(client, make_escrow, buyer_headers, seller_headers):
    first = make_escrow(title="First")
    second = make_escrow(title="Second")

    as_buyer = await client.get("/escrows/mine", params={"role": "buyer"}, headers=buyer_headers)
    assert as_buyer.status_code == 200
    assert {e["id"] for e in as_buyer.json()} == {first.id, second.id}

    as_seller = await client.get("/escrows/mine", params={"role": "buyer"}, headers=seller_headers)
    assert as_seller.json() == []

    paged = await client.get("/escrows/mine", params={"role": "seller", "limit": 1}, headers=seller_headers)
    assert len(paged.json()) == 1

    bad = await client.get("/escrows/mine", params={"role": "mediator"}, headers=buyer_headers)
    assert bad.status_code == 422

    too_many = await client.get("/escrows/mine", params={"role": "buyer", "limit": 1000}, headers=buyer_headers)
    assert too_many.status_code == 422
    assert too_many.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.anyio
async def test_reinitiating_payment_replaces_the_link(client, db_session, make_escrow, buyer_headers):
    escrow = make_escrow()
    url = f"/escrows/{escrow.id}/initiate-payment"

    first = await client.post(url, json={"payment_method": "bank_transfer"}, headers=buyer_headers)
    second = await client.post(url, json={"payment_method": "ewallet"}, headers=buyer_headers)
    assert first.status_code == 200
    assert second.status_code == 200
    assert second.json()["payment_id"] != first.json()["payment_id"]

    db_session.expire_all()
    stored = db_session.get(Escrow, escrow.id)
    assert stored.status == EscrowStatus.pending_payment
    assert stored.payment_id == second.json()["payment_id"]
    assert stored.payment_method == "ewallet"


@pytest.mark.anyio
async def test_frozen_buyer_cannot_cancel(client, db_session, buyer, make_escrow, buyer_headers):
    escrow = make_escrow()
    buyer.is_frozen = True
    db_session.commit()

    resp = await client.post(f"/escrows/{escrow.id}/cancel", headers=buyer_headers)
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "ACCOUNT_FROZEN"

    db_session.expire_all()
    assert db_session.get(Escrow, escrow.id).status == EscrowStatus.created
