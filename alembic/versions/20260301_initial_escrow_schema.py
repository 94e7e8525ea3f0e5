"""Initial escrow marketplace schema."""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "20260301_initial_escrow_schema"
down_revision = None
branch_labels = None
depends_on = None

USER_ROLE = sa.Enum("user", "admin", "agent_admin", "mediator", name="userrole")
KYC_STATUS = sa.Enum("pending", "verified", "rejected", "expired", name="kycstatus")
ESCROW_STATUS = sa.Enum(
    "created",
    "pending_payment",
    "funded",
    "in_progress",
    "completed",
    "disputed",
    "cancelled",
    "refunded",
    name="escrowstatus",
)
RELEASE_CONDITION = sa.Enum(
    "manual", "confirmation", "delivery_proof", "milestone", "auto", name="releasecondition"
)
TRANSACTION_TYPE = sa.Enum(
    "fund", "release", "refund", "fee", "payout", "adjustment", name="transactiontype"
)
TRANSACTION_STATUS = sa.Enum("pending", "completed", "failed", "cancelled", name="transactionstatus")
DISPUTE_STATUS = sa.Enum(
    "open", "in_review", "mediation", "escalated", "resolved", "closed", name="disputestatus"
)
DISPUTE_RESOLUTION = sa.Enum(
    "pending", "split", "full_refund", "full_release", "custom", name="disputeresolution"
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def _uuid_pk() -> sa.Column:
    return sa.Column("id", sa.String(length=64), primary_key=True)


def _int_pk() -> sa.Column:
    return sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True)


def upgrade() -> None:
    op.create_table(
        "users",
        _int_pk(),
        sa.Column("username", sa.String(length=100), nullable=False, unique=True),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("phone", sa.String(length=20), nullable=True),
        sa.Column("role", USER_ROLE, nullable=False),
        sa.Column("kyc_status", KYC_STATUS, nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("is_frozen", sa.Boolean(), nullable=False),
        sa.Column("freeze_reason", sa.Text(), nullable=True),
        sa.Column("total_deals", sa.Integer(), nullable=False),
        sa.Column("completed_deals", sa.Integer(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_users_kyc_status", "users", ["kyc_status"])

    op.create_table(
        "api_keys",
        _int_pk(),
        sa.Column("name", sa.String(length=120), nullable=False, unique=True),
        sa.Column("prefix", sa.String(length=32), nullable=False),
        sa.Column("key_hash", sa.String(length=128), nullable=False, unique=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_api_keys_key_hash", "api_keys", ["key_hash"])
    op.create_index("ix_api_keys_user_id", "api_keys", ["user_id"])

    op.create_table(
        "audit_logs",
        _int_pk(),
        sa.Column("actor", sa.String(length=100), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=False),
        sa.Column("before_json", sa.JSON(), nullable=False),
        sa.Column("after_json", sa.JSON(), nullable=False),
        sa.Column("at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_audit_logs_entity", "audit_logs", ["entity_type", "entity_id"])
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_user_id", "audit_logs", ["user_id"])

    op.create_table(
        "notifications",
        _int_pk(),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("type", sa.String(length=50), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("related_entity_type", sa.String(length=50), nullable=True),
        sa.Column("related_entity_id", sa.String(length=64), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_notifications_user_read", "notifications", ["user_id", "is_read"])
    op.create_index("ix_notifications_type", "notifications", ["type"])

    op.create_table(
        "escrows",
        _uuid_pk(),
        sa.Column("buyer_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("seller_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("mediator_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("item_title", sa.String(length=255), nullable=True),
        sa.Column("item_description", sa.Text(), nullable=True),
        sa.Column("item_images", sa.JSON(), nullable=True),
        sa.Column("item_price", sa.BigInteger(), nullable=True),
        sa.Column("status", ESCROW_STATUS, nullable=False),
        sa.Column("release_condition", RELEASE_CONDITION, nullable=False),
        sa.Column("payment_method", sa.String(length=50), nullable=True),
        sa.Column("payment_id", sa.String(length=255), nullable=True),
        sa.Column("payment_url", sa.Text(), nullable=True),
        sa.Column("platform_fee", sa.BigInteger(), nullable=False),
        sa.Column("service_fee", sa.BigInteger(), nullable=False),
        sa.Column("total_fee", sa.BigInteger(), nullable=False),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("funded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("source_url", sa.Text(), nullable=True),
        sa.Column("source_metadata", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("amount > 0", name="ck_escrows_amount_positive"),
        sa.CheckConstraint("buyer_id <> seller_id", name="ck_escrows_distinct_parties"),
    )
    op.create_index("ix_escrows_buyer", "escrows", ["buyer_id"])
    op.create_index("ix_escrows_seller", "escrows", ["seller_id"])
    op.create_index("ix_escrows_status", "escrows", ["status"])
    op.create_index("ix_escrows_created_at", "escrows", ["created_at"])

    op.create_table(
        "escrow_wallets",
        _uuid_pk(),
        sa.Column("escrow_id", sa.String(length=64), sa.ForeignKey("escrows.id"), nullable=False, unique=True),
        sa.Column("total_funded", sa.BigInteger(), nullable=False),
        sa.Column("total_released", sa.BigInteger(), nullable=False),
        sa.Column("total_refunded", sa.BigInteger(), nullable=False),
        sa.Column("current_balance", sa.BigInteger(), nullable=False),
        sa.Column("buyer_amount", sa.BigInteger(), nullable=False),
        sa.Column("seller_amount", sa.BigInteger(), nullable=False),
        sa.Column("platform_amount", sa.BigInteger(), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "transactions",
        _uuid_pk(),
        sa.Column("escrow_id", sa.String(length=64), sa.ForeignKey("escrows.id"), nullable=False),
        sa.Column("type", TRANSACTION_TYPE, nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("from_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("to_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("payment_gateway", sa.String(length=50), nullable=True),
        sa.Column("payment_gateway_id", sa.String(length=255), nullable=True),
        sa.Column("status", TRANSACTION_STATUS, nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("metadata_json", sa.JSON(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
    )
    op.create_index("ix_transactions_escrow", "transactions", ["escrow_id"])
    op.create_index("ix_transactions_type", "transactions", ["type"])
    op.create_index("ix_transactions_status", "transactions", ["status"])

    op.create_table(
        "disputes",
        _uuid_pk(),
        sa.Column("escrow_id", sa.String(length=64), sa.ForeignKey("escrows.id"), nullable=False, unique=True),
        sa.Column("initiated_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("initiated_against", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("mediator_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("reason", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("status", DISPUTE_STATUS, nullable=False),
        sa.Column("resolution", DISPUTE_RESOLUTION, nullable=True),
        sa.Column("resolution_details", sa.JSON(), nullable=True),
        sa.Column("resolution_notes", sa.Text(), nullable=True),
        sa.Column("buyer_evidence", sa.JSON(), nullable=True),
        sa.Column("seller_evidence", sa.JSON(), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_disputes_status", "disputes", ["status"])

    op.create_table(
        "dispute_messages",
        _uuid_pk(),
        sa.Column("dispute_id", sa.String(length=64), sa.ForeignKey("disputes.id"), nullable=False),
        sa.Column("sender_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("attachments", sa.JSON(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_dispute_messages_dispute_id", "dispute_messages", ["dispute_id"])
    op.create_index("ix_dispute_messages_sender_id", "dispute_messages", ["sender_id"])

    op.create_table(
        "reviews",
        _int_pk(),
        sa.Column("escrow_id", sa.String(length=64), sa.ForeignKey("escrows.id"), nullable=False),
        sa.Column("reviewer_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("reviewee_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=True),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("communication_rating", sa.Integer(), nullable=True),
        sa.Column("reliability_rating", sa.Integer(), nullable=True),
        sa.Column("product_quality_rating", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("rating BETWEEN 1 AND 5", name="ck_reviews_rating_range"),
        sa.UniqueConstraint("escrow_id", "reviewer_id", name="uq_reviews_escrow_reviewer"),
    )
    op.create_index("ix_reviews_escrow_id", "reviews", ["escrow_id"])
    op.create_index("ix_reviews_reviewer_id", "reviews", ["reviewer_id"])
    op.create_index("ix_reviews_reviewee_id", "reviews", ["reviewee_id"])


def downgrade() -> None:
    for table in (
        "reviews",
        "dispute_messages",
        "disputes",
        "transactions",
        "escrow_wallets",
        "escrows",
        "notifications",
        "audit_logs",
        "api_keys",
        "users",
    ):
        op.drop_table(table)
    bind = op.get_bind()
    for enum in (
        DISPUTE_RESOLUTION,
        DISPUTE_STATUS,
        TRANSACTION_STATUS,
        TRANSACTION_TYPE,
        RELEASE_CONDITION,
        ESCROW_STATUS,
        KYC_STATUS,
        USER_ROLE,
    ):
        enum.drop(bind, checkfirst=True)
