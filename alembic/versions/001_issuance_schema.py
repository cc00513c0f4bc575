"""Issuance schema: customers, quotes, policies, outbox and consumer ledger.

Revision ID: 001
Revises:
Create Date: 2025-07-02

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create issuance tables."""
    op.create_table(
        "customers",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        sa.Column("age", sa.Integer(), nullable=True),
        sa.Column("smoker", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "occupation_risk",
            sa.String(10),
            nullable=False,
            server_default="LOW",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_customers")),
        sa.CheckConstraint(
            "date_of_birth IS NOT NULL OR age IS NOT NULL",
            name=op.f("ck_customers_age_source"),
        ),
        sa.CheckConstraint(
            "occupation_risk IN ('LOW', 'MEDIUM', 'HIGH')",
            name=op.f("ck_customers_occupation_risk"),
        ),
    )

    op.create_table(
        "quotes",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("customer_id", sa.String(64), nullable=False),
        sa.Column("coverage_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("term_years", sa.Integer(), nullable=False),
        sa.Column("monthly_premium", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", sa.String(10), nullable=False, server_default="PENDING"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expired_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_quotes")),
        sa.CheckConstraint(
            "status IN ('PENDING', 'ACCEPTED', 'EXPIRED')",
            name=op.f("ck_quotes_status"),
        ),
        sa.CheckConstraint("coverage_amount > 0", name=op.f("ck_quotes_coverage_positive")),
        sa.CheckConstraint("term_years > 0", name=op.f("ck_quotes_term_positive")),
    )
    # Expiry sweep scans PENDING quotes by age
    op.create_index(
        op.f("ix_quotes_status_expires_at"),
        "quotes",
        ["status", "expires_at"],
        unique=False,
    )

    op.create_table(
        "policies",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("policy_number", sa.String(40), nullable=False),
        sa.Column("customer_id", sa.String(64), nullable=False),
        sa.Column("quote_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("coverage_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("monthly_premium", sa.Numeric(12, 2), nullable=False),
        sa.Column("term_years", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(10), nullable=False, server_default="ACTIVE"),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_policies")),
        sa.ForeignKeyConstraint(
            ["quote_id"],
            ["quotes.id"],
            name=op.f("fk_policies_quote_id_quotes"),
            ondelete="RESTRICT",
        ),
        sa.UniqueConstraint("policy_number", name="uq_policies_policy_number"),
        sa.UniqueConstraint("quote_id", name="uq_policies_quote_id"),
        sa.CheckConstraint(
            "status IN ('ACTIVE', 'LAPSED', 'CANCELLED')",
            name=op.f("ck_policies_status"),
        ),
        sa.CheckConstraint("end_date > start_date", name=op.f("ck_policies_dates")),
    )
    op.create_index(
        op.f("ix_policies_customer_id"), "policies", ["customer_id"], unique=False
    )

    op.create_table(
        "outbox_events",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("event_type", sa.String(64), nullable=False),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column(
            "publish_status", sa.String(10), nullable=False, server_default="PENDING"
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_outbox_events")),
        sa.CheckConstraint(
            "publish_status IN ('PENDING', 'PUBLISHED')",
            name=op.f("ck_outbox_events_publish_status"),
        ),
    )
    op.create_index(
        op.f("ix_outbox_events_publish_status_created_at"),
        "outbox_events",
        ["publish_status", "created_at"],
        unique=False,
    )

    op.create_table(
        "consumed_messages",
        sa.Column("key", sa.String(128), nullable=False),
        sa.Column("message_id", sa.String(64), nullable=False),
        sa.Column("event_type", sa.String(64), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("key", name=op.f("pk_consumed_messages")),
    )

    op.create_table(
        "notification_log",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("policy_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("customer_id", sa.String(64), nullable=False),
        sa.Column("channel", sa.String(20), nullable=False),
        sa.Column("subject", sa.Text(), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_notification_log")),
    )
    op.create_index(
        op.f("ix_notification_log_policy_id"),
        "notification_log",
        ["policy_id"],
        unique=False,
    )


def downgrade() -> None:
    """Drop issuance tables."""
    op.drop_index(op.f("ix_notification_log_policy_id"), table_name="notification_log")
    op.drop_table("notification_log")
    op.drop_table("consumed_messages")
    op.drop_index(
        op.f("ix_outbox_events_publish_status_created_at"), table_name="outbox_events"
    )
    op.drop_table("outbox_events")
    op.drop_index(op.f("ix_policies_customer_id"), table_name="policies")
    op.drop_table("policies")
    op.drop_index(op.f("ix_quotes_status_expires_at"), table_name="quotes")
    op.drop_table("quotes")
    op.drop_table("customers")
