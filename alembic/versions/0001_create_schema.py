from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


revision = "0001_create_schema"
down_revision = None
branch_labels = None
depends_on = None


def _has_table(bind, table_name: str) -> bool:
    return table_name in inspect(bind).get_table_names()


def upgrade() -> None:
    bind = op.get_bind()

    if not _has_table(bind, "salons"):
        op.create_table(
            "salons",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("name", sa.String(length=120), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.Column("loyalty_silver_min_visits", sa.Integer(), nullable=True),
            sa.Column("loyalty_gold_min_visits", sa.Integer(), nullable=True),
            sa.Column("loyalty_platinum_min_visits", sa.Integer(), nullable=True),
            sa.Column("loyalty_bronze_discount", sa.Integer(), nullable=True),
            sa.Column("loyalty_silver_discount", sa.Integer(), nullable=True),
            sa.Column("loyalty_gold_discount", sa.Integer(), nullable=True),
            sa.Column("loyalty_platinum_discount", sa.Integer(), nullable=True),
        )

    if not _has_table(bind, "profiles"):
        op.create_table(
            "profiles",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("salon_id", sa.Integer(), sa.ForeignKey("salons.id"), nullable=False),
            sa.Column("email", sa.String(), nullable=False),
            sa.Column("full_name", sa.String(), nullable=False),
            sa.Column("password_hash", sa.String(), nullable=False),
            sa.Column("role", sa.String(), nullable=False),
            sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.UniqueConstraint("salon_id", "email", name="uq_profiles_salon_email"),
        )
        op.create_index("ix_profiles_id", "profiles", ["id"], unique=False)
        op.create_index("ix_profiles_salon_id", "profiles", ["salon_id"], unique=False)

    if not _has_table(bind, "customers"):
        op.create_table(
            "customers",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("salon_id", sa.Integer(), sa.ForeignKey("salons.id"), nullable=False),
            sa.Column("full_name", sa.String(length=120), nullable=False),
            sa.Column("phone", sa.String(length=30), nullable=False),
            sa.Column("birth_day", sa.SmallInteger(), nullable=True),
            sa.Column("birth_month", sa.SmallInteger(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.Column("last_visit_at", sa.DateTime(timezone=True), nullable=True),
        )
        op.create_index("ix_customers_salon_id", "customers", ["salon_id"], unique=False)
        op.create_index("ix_customers_phone", "customers", ["phone"], unique=False)
        op.create_index("ix_customers_last_visit_at", "customers", ["last_visit_at"], unique=False)
        op.create_index("ix_customers_salon_birthday", "customers", ["salon_id", "birth_month", "birth_day"], unique=False)

    if not _has_table(bind, "visits"):
        op.create_table(
            "visits",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("salon_id", sa.Integer(), sa.ForeignKey("salons.id"), nullable=False),
            sa.Column("customer_id", sa.Integer(), sa.ForeignKey("customers.id"), nullable=False),
            sa.Column("created_by", sa.Integer(), sa.ForeignKey("profiles.id"), nullable=True),
            sa.Column("visited_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        )
        op.create_index("ix_visits_salon_id", "visits", ["salon_id"], unique=False)
        op.create_index("ix_visits_customer_id", "visits", ["customer_id"], unique=False)

    if not _has_table(bind, "visit_tokens"):
        op.create_table(
            "visit_tokens",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("salon_id", sa.Integer(), sa.ForeignKey("salons.id"), nullable=False),
            sa.Column("customer_id", sa.Integer(), sa.ForeignKey("customers.id"), nullable=False),
            sa.Column("created_by", sa.Integer(), sa.ForeignKey("profiles.id"), nullable=True),
            sa.Column("token", sa.String(length=64), nullable=False),
            sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        )
        op.create_index("ix_visit_tokens_salon_id", "visit_tokens", ["salon_id"], unique=False)
        op.create_index("ix_visit_tokens_token", "visit_tokens", ["token"], unique=True)

    if not _has_table(bind, "campaigns"):
        op.create_table(
            "campaigns",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("salon_id", sa.Integer(), sa.ForeignKey("salons.id"), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("message", sa.Text(), nullable=False),
            sa.Column("campaign_type", sa.String(length=30), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False),
            sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_by", sa.Integer(), sa.ForeignKey("profiles.id"), nullable=True),
        )
        op.create_index("ix_campaigns_salon_id", "campaigns", ["salon_id"], unique=False)
        op.create_index("ix_campaigns_status", "campaigns", ["status"], unique=False)

    if not _has_table(bind, "campaign_recipients"):
        op.create_table(
            "campaign_recipients",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("campaign_id", sa.Integer(), sa.ForeignKey("campaigns.id"), nullable=False),
            sa.Column("customer_id", sa.Integer(), sa.ForeignKey("customers.id"), nullable=False),
            sa.Column("phone", sa.String(length=30), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False),
            sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("opened_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("error_message", sa.String(length=255), nullable=True),
        )
        op.create_index("ix_campaign_recipients_campaign_id", "campaign_recipients", ["campaign_id"], unique=False)
        op.create_index("ix_campaign_recipients_customer_id", "campaign_recipients", ["customer_id"], unique=False)
        op.create_index("ix_campaign_recipients_status", "campaign_recipients", ["status"], unique=False)

    if not _has_table(bind, "campaign_templates"):
        op.create_table(
            "campaign_templates",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("salon_id", sa.Integer(), sa.ForeignKey("salons.id"), nullable=True),
            sa.Column("campaign_type", sa.String(length=30), nullable=False),
            sa.Column("message", sa.Text(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        )
        op.create_index("ix_campaign_templates_salon_id", "campaign_templates", ["salon_id"], unique=False)
        op.create_index("ix_campaign_templates_campaign_type", "campaign_templates", ["campaign_type"], unique=False)


def downgrade() -> None:
    bind = op.get_bind()
    for table_name in (
        "campaign_templates",
        "campaign_recipients",
        "campaigns",
        "visit_tokens",
        "visits",
        "customers",
        "profiles",
        "salons",
    ):
        if _has_table(bind, table_name):
            op.drop_table(table_name)
