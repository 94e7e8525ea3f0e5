import logging

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from app.models import AuditLog, Escrow, EscrowStatus, Notification
from app.services import effects
from app.services import escrow as escrow_service
from app.services.effects import AuditEffect, NotifyEffect, dispatch_effects


@pytest.mark.anyio
async def test_notification_failure_does_not_undo_transition(
    client, db_session, monkeypatch, make_escrow, buyer_headers, caplog
):
    escrow = make_escrow()

    def _broken_notification(*args, **kwargs):
        raise RuntimeError("notification sink down")

    monkeypatch.setattr(effects, "create_notification", _broken_notification)
    with caplog.at_level(logging.ERROR, logger="app.services.effects"):
        resp = await client.post(f"/escrows/{escrow.id}/confirm-payment", headers=buyer_headers)

    assert resp.status_code == 200
    assert resp.json()["status"] == "funded"
    assert "Side effect dispatch failed" in caplog.text

    db_session.expire_all()
    assert db_session.get(Escrow, escrow.id).status == EscrowStatus.funded
    actions = db_session.scalars(select(AuditLog.action).where(AuditLog.entity_id == escrow.id)).all()
    assert "payment_confirmed" in actions


def test_dispatch_isolates_each_effect(db_session, monkeypatch, seller):
    calls = []
    real = effects.log_audit

    def _flaky_audit(db, **kwargs):
        calls.append(kwargs["action"])
        if kwargs["action"] == "boom":
            raise RuntimeError("audit store unavailable")
        return real(db, **kwargs)

    monkeypatch.setattr(effects, "log_audit", _flaky_audit)
    failures = dispatch_effects(
        db_session,
        [
            AuditEffect(actor="system", action="boom", entity_type="escrow", entity_id="e-1"),
            NotifyEffect(user_id=seller.id, type="ping", title="Ping", message="hello"),
            AuditEffect(actor="system", action="ok", entity_type="escrow", entity_id="e-1"),
        ],
    )

    assert failures == 1
    assert calls == ["boom", "ok"]
    assert db_session.scalars(select(Notification).where(Notification.user_id == seller.id)).one().type == "ping"
    assert db_session.scalars(select(AuditLog.action)).all() == ["ok"]


def test_list_reads_degrade_to_empty_on_outage(buyer, caplog):
    class _DownSession:
        def scalars(self, *args, **kwargs):
            raise OperationalError("SELECT 1", {}, Exception("database is locked"))

    with caplog.at_level(logging.ERROR, logger="app.db"):
        assert escrow_service.list_my_escrows(_DownSession(), buyer, role="buyer") == []
    assert "Store unavailable" in caplog.text
