import pytest


@pytest.mark.anyio
async def test_me_returns_calling_user(client, buyer, buyer_headers):
    resp = await client.get("/users/me", headers=buyer_headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["id"] == buyer.id
    assert body["role"] == "user"
    assert body["kyc_status"] == "pending"
    assert body["is_frozen"] is False


@pytest.mark.anyio
async def test_inactive_user_is_rejected(client, make_user, headers_for):
    disabled = make_user("disabled", is_active=False)
    resp = await client.get("/users/me", headers=headers_for(disabled))
    assert resp.status_code == 401


@pytest.mark.anyio
async def test_revoked_key_is_rejected(client, buyer, headers_for):
    resp = await client.get("/users/me", headers=headers_for(buyer, is_active=False))
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "UNAUTHORIZED"


@pytest.mark.anyio
async def test_notifications_list_and_mark_read(client, make_escrow, seller_headers, buyer_headers):
    escrow = make_escrow(funded=True)

    listed = await client.get("/users/me/notifications", headers=seller_headers)
    assert listed.status_code == 200
    notifications = listed.json()
    assert [n["type"] for n in notifications] == ["escrow_funded", "escrow_created"]
    assert all(n["related_entity_id"] == escrow.id for n in notifications)

    target = notifications[0]["id"]
    read = await client.post(f"/users/me/notifications/{target}/read", headers=seller_headers)
    assert read.status_code == 200
    assert read.json()["is_read"] is True
    first_read_at = read.json()["read_at"]

    again = await client.post(f"/users/me/notifications/{target}/read", headers=seller_headers)
    assert again.json()["read_at"] == first_read_at

    unread = await client.get("/users/me/notifications", params={"unread_only": True}, headers=seller_headers)
    assert [n["type"] for n in unread.json()] == ["escrow_created"]

    foreign = await client.post(f"/users/me/notifications/{target}/read", headers=buyer_headers)
    assert foreign.status_code == 404
    assert foreign.json()["error"]["code"] == "NOTIFICATION_NOT_FOUND"
