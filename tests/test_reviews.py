import pytest
from sqlalchemy import select

from app.models import Notification


def _review(escrow_id: str, reviewee_id: int, **overrides) -> dict:
    payload = {
        "escrow_id": escrow_id,
        "reviewee_id": reviewee_id,
        "rating": 5,
        "title": "Smooth deal",
        "communication_rating": 5,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
async def completed_escrow(client, make_escrow, buyer_headers):
    escrow = make_escrow(funded=True)
    resp = await client.post(f"/escrows/{escrow.id}/release", headers=buyer_headers)
    assert resp.status_code == 200
    return escrow


@pytest.mark.anyio
async def test_buyer_reviews_seller_once(client, db_session, seller, completed_escrow, buyer_headers):
    resp = await client.post("/reviews", json=_review(completed_escrow.id, seller.id), headers=buyer_headers)
    assert resp.status_code == 201, resp.text
    assert resp.json()["rating"] == 5

    notified = db_session.scalars(
        select(Notification).where(Notification.user_id == seller.id, Notification.type == "review_received")
    ).all()
    assert len(notified) == 1

    again = await client.post("/reviews", json=_review(completed_escrow.id, seller.id), headers=buyer_headers)
    assert again.status_code == 409
    assert again.json()["error"]["code"] == "REVIEW_EXISTS"


@pytest.mark.anyio
async def test_both_parties_may_review_each_other(client, buyer, seller, completed_escrow, buyer_headers, seller_headers):
    first = await client.post("/reviews", json=_review(completed_escrow.id, seller.id), headers=buyer_headers)
    second = await client.post("/reviews", json=_review(completed_escrow.id, buyer.id), headers=seller_headers)
    assert first.status_code == 201
    assert second.status_code == 201


@pytest.mark.anyio
async def test_reviewee_must_be_the_counterparty(client, buyer, completed_escrow, buyer_headers):
    resp = await client.post("/reviews", json=_review(completed_escrow.id, buyer.id), headers=buyer_headers)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "INVALID_REVIEWEE"


@pytest.mark.anyio
async def test_only_completed_escrows_can_be_reviewed(client, seller, make_escrow, buyer_headers):
    escrow = make_escrow(funded=True)
    resp = await client.post("/reviews", json=_review(escrow.id, seller.id), headers=buyer_headers)
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "ESCROW_NOT_COMPLETED"


@pytest.mark.anyio
async def test_outsider_cannot_review(client, seller, completed_escrow, outsider_headers):
    resp = await client.post("/reviews", json=_review(completed_escrow.id, seller.id), headers=outsider_headers)
    assert resp.status_code == 403


@pytest.mark.anyio
async def test_rating_out_of_range_is_rejected(client, seller, completed_escrow, buyer_headers):
    resp = await client.post("/reviews", json=_review(completed_escrow.id, seller.id, rating=6), headers=buyer_headers)
    assert resp.status_code == 422


@pytest.mark.anyio
async def test_frozen_reviewer_is_rejected(client, db_session, buyer, seller, completed_escrow, buyer_headers):
    buyer.is_frozen = True
    db_session.commit()

    resp = await client.post("/reviews", json=_review(completed_escrow.id, seller.id), headers=buyer_headers)
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "ACCOUNT_FROZEN"
