"""create postback engine tables

Revision ID: a0b1c2d3e4f5
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "a0b1c2d3e4f5"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "betting_houses",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("identifier", sa.String(), nullable=False),
        sa.Column("base_url", sa.String(), nullable=True),
        sa.Column("security_token", sa.String(), nullable=False),
        sa.Column("commission_model", sa.String(length=8), nullable=False, server_default="revshare"),
        sa.Column("commission_value", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("cpa_value", sa.Numeric(12, 2), nullable=True),
        sa.Column("revshare_percent", sa.Numeric(5, 2), nullable=True),
        sa.Column("cpa_trigger", sa.String(length=12), nullable=False, server_default="registration"),
        sa.Column("min_deposit", sa.Numeric(12, 2), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("identifier", name="uq_betting_houses_identifier"),
        sa.UniqueConstraint("security_token", name="uq_betting_houses_security_token"),
    )
    op.create_index("ix_betting_houses_id", "betting_houses", ["id"])
    op.create_index("ix_betting_houses_active", "betting_houses", ["is_active"])

    op.create_table(
        "affiliates",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("username", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("username", name="uq_affiliates_username"),
    )
    op.create_index("ix_affiliates_id", "affiliates", ["id"])

    op.create_table(
        "affiliate_links",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("affiliate_id", sa.Integer(), nullable=False),
        sa.Column("house_id", sa.Integer(), nullable=False),
        sa.Column("generated_identifier", sa.String(), nullable=False),
        sa.Column("generated_url", sa.String(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["affiliate_id"], ["affiliates.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["house_id"], ["betting_houses.id"], ondelete="RESTRICT"),
    )
    op.create_index("ix_affiliate_links_id", "affiliate_links", ["id"])
    op.create_index(
        "ix_affiliate_links_house_identifier",
        "affiliate_links",
        ["house_id", "generated_identifier"],
    )
    op.create_index(
        "uq_affiliate_links_active_affiliate_house",
        "affiliate_links",
        ["affiliate_id", "house_id"],
        unique=True,
        postgresql_where=sa.text("is_active"),
        sqlite_where=sa.text("is_active = 1"),
    )

    op.create_table(
        "conversions",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("affiliate_id", sa.Integer(), nullable=False),
        sa.Column("house_id", sa.Integer(), nullable=False),
        sa.Column("link_id", sa.Integer(), nullable=False),
        sa.Column("customer_id", sa.String(), nullable=True),
        sa.Column("event_type", sa.String(length=12), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("commission", sa.Numeric(14, 2), nullable=False),
        sa.Column("cpa_commission", sa.Numeric(14, 2), nullable=False),
        sa.Column("revshare_commission", sa.Numeric(14, 2), nullable=False),
        sa.Column("commission_model", sa.String(length=8), nullable=False),
        sa.Column("transaction_ref", sa.String(), nullable=True),
        sa.Column("fingerprint", sa.String(length=64), nullable=False),
        sa.Column("status", sa.String(length=8), nullable=False, server_default="pending"),
        sa.Column("converted_at", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["affiliate_id"], ["affiliates.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["house_id"], ["betting_houses.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["link_id"], ["affiliate_links.id"], ondelete="RESTRICT"),
        sa.UniqueConstraint("fingerprint", name="uq_conversions_fingerprint"),
    )
    op.create_index("ix_conversions_id", "conversions", ["id"])
    op.create_index("ix_conversions_affiliate_converted", "conversions", ["affiliate_id", "converted_at"])
    op.create_index("ix_conversions_house_converted", "conversions", ["house_id", "converted_at"])
    op.create_index("ix_conversions_house_customer", "conversions", ["house_id", "customer_id"])
    op.create_index("ix_conversions_customer", "conversions", ["customer_id"])

    op.create_table(
        "postback_fingerprints",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("fingerprint", sa.String(length=64), nullable=False),
        sa.Column("house_id", sa.Integer(), nullable=False),
        sa.Column("event_type", sa.String(), nullable=False),
        sa.Column("conversion_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["house_id"], ["betting_houses.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["conversion_id"], ["conversions.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("fingerprint", name="uq_postback_fingerprints_fingerprint"),
    )
    op.create_index("ix_postback_fingerprints_id", "postback_fingerprints", ["id"])

    op.create_table(
        "aggregate_counters",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("scope", sa.String(length=9), nullable=False),
        sa.Column("scope_id", sa.Integer(), nullable=False),
        sa.Column("clicks", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("registrations", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("deposits", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("profits", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("commission_total", sa.Numeric(16, 2), nullable=False, server_default="0"),
        sa.Column("amount_total", sa.Numeric(16, 2), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("scope", "scope_id", name="uq_aggregate_counters_scope"),
    )
    op.create_index("ix_aggregate_counters_id", "aggregate_counters", ["id"])

    op.create_table(
        "aggregate_applications",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("conversion_id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["conversion_id"], ["conversions.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("conversion_id", name="uq_aggregate_applications_conversion"),
    )
    op.create_index("ix_aggregate_applications_id", "aggregate_applications", ["id"])

    op.create_table(
        "lead_cpa_awards",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("house_id", sa.Integer(), nullable=False),
        sa.Column("customer_id", sa.String(), nullable=False),
        sa.Column("affiliate_id", sa.Integer(), nullable=False),
        sa.Column("conversion_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["house_id"], ["betting_houses.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["affiliate_id"], ["affiliates.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["conversion_id"], ["conversions.id"], ondelete="SET NULL"),
        sa.UniqueConstraint(
            "house_id", "affiliate_id", "customer_id", name="uq_lead_cpa_awards_house_affiliate_customer"
        ),
    )
    op.create_index("ix_lead_cpa_awards_id", "lead_cpa_awards", ["id"])
    op.create_index("ix_lead_cpa_awards_affiliate", "lead_cpa_awards", ["affiliate_id"])

    op.create_table(
        "postback_logs",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("house_id", sa.Integer(), nullable=False),
        sa.Column("event_label", sa.String(), nullable=False),
        sa.Column("subid", sa.String(), nullable=True),
        sa.Column("customer_id", sa.String(), nullable=True),
        sa.Column("amount", sa.String(), nullable=True),
        sa.Column("reason", sa.String(), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("raw_query", sa.Text(), nullable=True),
        sa.Column("request_id", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["house_id"], ["betting_houses.id"], ondelete="RESTRICT"),
    )
    op.create_index("ix_postback_logs_id", "postback_logs", ["id"])
    op.create_index("ix_postback_logs_house_created", "postback_logs", ["house_id", "created_at"])
    op.create_index("ix_postback_logs_reason", "postback_logs", ["reason"])

    op.alter_column("betting_houses", "commission_model", server_default=None)
    op.alter_column("betting_houses", "commission_value", server_default=None)
    op.alter_column("betting_houses", "cpa_trigger", server_default=None)
    op.alter_column("conversions", "status", server_default=None)


def downgrade():
    op.drop_index("ix_postback_logs_reason", table_name="postback_logs")
    op.drop_index("ix_postback_logs_house_created", table_name="postback_logs")
    op.drop_index("ix_postback_logs_id", table_name="postback_logs")
    op.drop_table("postback_logs")

    op.drop_index("ix_lead_cpa_awards_affiliate", table_name="lead_cpa_awards")
    op.drop_index("ix_lead_cpa_awards_id", table_name="lead_cpa_awards")
    op.drop_table("lead_cpa_awards")

    op.drop_index("ix_aggregate_applications_id", table_name="aggregate_applications")
    op.drop_table("aggregate_applications")

    op.drop_index("ix_aggregate_counters_id", table_name="aggregate_counters")
    op.drop_table("aggregate_counters")

    op.drop_index("ix_postback_fingerprints_id", table_name="postback_fingerprints")
    op.drop_table("postback_fingerprints")

    op.drop_index("ix_conversions_customer", table_name="conversions")
    op.drop_index("ix_conversions_house_customer", table_name="conversions")
    op.drop_index("ix_conversions_house_converted", table_name="conversions")
    op.drop_index("ix_conversions_affiliate_converted", table_name="conversions")
    op.drop_index("ix_conversions_id", table_name="conversions")
    op.drop_table("conversions")

    op.drop_index("uq_affiliate_links_active_affiliate_house", table_name="affiliate_links")
    op.drop_index("ix_affiliate_links_house_identifier", table_name="affiliate_links")
    op.drop_index("ix_affiliate_links_id", table_name="affiliate_links")
    op.drop_table("affiliate_links")

    op.drop_index("ix_affiliates_id", table_name="affiliates")
    op.drop_table("affiliates")

    op.drop_index("ix_betting_houses_active", table_name="betting_houses")
    op.drop_index("ix_betting_houses_id", table_name="betting_houses")
    op.drop_table("betting_houses")
