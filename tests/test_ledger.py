import pytest

from app.models import TransactionStatus, TransactionType
from app.services import ledger


def _assert_balanced(wallet) -> None:
    assert wallet.current_balance == wallet.total_funded - wallet.total_released - wallet.total_refunded


def test_record_transaction_rejects_non_positive_amounts(db_session, make_escrow):
    escrow = make_escrow()
    for amount in (0, -5):
        with pytest.raises(ValueError):
            ledger.record_transaction(
                db_session,
                escrow,
                type=TransactionType.fund,
                amount=amount,
                from_user_id=escrow.buyer_id,
                to_user_id=None,
            )


def test_wallet_is_derived_from_completed_transactions(db_session, make_escrow):
    escrow = make_escrow()
    ledger.record_transaction(
        db_session, escrow, type=TransactionType.fund, amount=1_000, from_user_id=escrow.buyer_id, to_user_id=None
    )
    ledger.record_transaction(
        db_session,
        escrow,
        type=TransactionType.release,
        amount=400,
        from_user_id=escrow.buyer_id,
        to_user_id=escrow.seller_id,
    )
    ledger.record_transaction(
        db_session, escrow, type=TransactionType.refund, amount=100, from_user_id=None, to_user_id=escrow.buyer_id
    )
    ledger.record_transaction(
        db_session, escrow, type=TransactionType.fee, amount=25, from_user_id=escrow.buyer_id, to_user_id=None
    )
    db_session.commit()

    wallet = ledger.get_wallet(db_session, escrow.id)
    assert wallet.total_funded == 1_000
    assert wallet.total_released == 400
    assert wallet.total_refunded == 100
    assert wallet.current_balance == 500
    assert wallet.seller_amount == 400
    assert wallet.buyer_amount == 100
    assert wallet.platform_amount == 25
    _assert_balanced(wallet)


def test_pending_and_failed_entries_do_not_move_balance(db_session, make_escrow):
    escrow = make_escrow()
    for tx_status in (TransactionStatus.pending, TransactionStatus.failed):
        entry = ledger.record_transaction(
            db_session,
            escrow,
            type=TransactionType.fund,
            amount=escrow.amount,
            from_user_id=escrow.buyer_id,
            to_user_id=None,
            status=tx_status,
        )
        assert entry.completed_at is None
    db_session.commit()

    wallet = ledger.get_wallet(db_session, escrow.id)
    assert wallet.total_funded == 0
    assert wallet.current_balance == 0
    assert len(ledger.list_transactions(db_session, escrow.id)) == 2


def test_adjustments_are_recorded_without_touching_aggregates(db_session, make_escrow):
    escrow = make_escrow(funded=True)
    ledger.record_transaction(
        db_session,
        escrow,
        type=TransactionType.adjustment,
        amount=10,
        from_user_id=None,
        to_user_id=escrow.seller_id,
        metadata={"ticket": "OPS-1"},
    )
    db_session.commit()

    wallet = ledger.get_wallet(db_session, escrow.id)
    assert wallet.current_balance == escrow.amount
    assert ledger.list_transactions(db_session, escrow.id)[-1].metadata_json == {"ticket": "OPS-1"}


def test_recompute_requires_a_wallet(db_session):
    with pytest.raises(LookupError):
        ledger.recompute_wallet(db_session, "no-such-escrow")


def test_transactions_inherit_escrow_currency(db_session, make_escrow):
    escrow = make_escrow(currency="usd", funded=True)
    assert escrow.currency == "USD"
    (fund,) = ledger.list_transactions(db_session, escrow.id)
    assert fund.currency == "USD"
    assert fund.type == TransactionType.fund
    assert fund.status == TransactionStatus.completed
