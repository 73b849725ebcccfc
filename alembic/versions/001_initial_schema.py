"""Initial schema: customers, carriers, CSP events, tariffs, activities and pins.

Revision ID: 001_initial_schema
Revises:
Create Date: 2025-03-03
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID, JSONB

# revision identifiers
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "customers",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("segment", sa.String(100), nullable=True),
        sa.Column("owner_id", UUID(as_uuid=True), nullable=True),
        sa.Column("status", sa.String(50), nullable=False, server_default="active"),
        sa.Column("notes", sa.Text, nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_customers_name", "customers", ["name"])

    op.create_table(
        "carriers",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("scac_code", sa.String(10), nullable=True),
        sa.Column("service_type", sa.String(100), nullable=True),
        sa.Column("status", sa.String(50), nullable=False, server_default="active"),
        *_timestamps(),
    )
    op.create_index("ix_carriers_name", "carriers", ["name"])

    csp_stage = sa.Enum(
        "planning", "invites_sent", "optimization", "awarded", "implementation", "closed",
        name="csp_stage_enum",
    )
    op.create_table(
        "csp_events",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("customer_id", UUID(as_uuid=True), sa.ForeignKey("customers.id", ondelete="SET NULL"), nullable=True),
        sa.Column("stage", csp_stage, nullable=True, server_default="planning"),
        sa.Column("due_date", sa.Date, nullable=True),
        sa.Column("created_by", UUID(as_uuid=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_csp_events_customer_id", "csp_events", ["customer_id"])

    tariff_status = sa.Enum("proposed", "active", "expired", "superseded", name="tariff_status_enum")
    tariff_ownership = sa.Enum(
        "customer_direct", "rocket_csp", "customer_csp", "rocket_blanket", "priority1_blanket",
        name="tariff_ownership_enum",
    )
    op.create_table(
        "tariffs",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("tariff_family_id", UUID(as_uuid=True), nullable=True),
        sa.Column("tariff_reference_id", sa.String(100), nullable=True),
        sa.Column("version", sa.String(50), nullable=True),
        sa.Column("status", tariff_status, nullable=False, server_default="proposed"),
        sa.Column("ownership_type", tariff_ownership, nullable=False, server_default="rocket_csp"),
        sa.Column("mode", sa.String(50), nullable=True),
        sa.Column("customer_id", UUID(as_uuid=True), sa.ForeignKey("customers.id", ondelete="SET NULL"), nullable=True),
        sa.Column("customer_ids", JSONB, nullable=True, server_default="'[]'"),
        sa.Column("carrier_id", UUID(as_uuid=True), sa.ForeignKey("carriers.id", ondelete="SET NULL"), nullable=True),
        sa.Column("carrier_ids", JSONB, nullable=True, server_default="'[]'"),
        sa.Column("is_blanket_tariff", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("effective_date", sa.Date, nullable=True),
        sa.Column("expiry_date", sa.Date, nullable=True),
        sa.Column("csp_event_id", UUID(as_uuid=True), sa.ForeignKey("csp_events.id", ondelete="SET NULL"), nullable=True),
        sa.Column("renewal_csp_event_id", UUID(as_uuid=True), sa.ForeignKey("csp_events.id", ondelete="SET NULL"), nullable=True),
        sa.Column("credential_username", sa.String(255), nullable=True),
        sa.Column("credential_password", sa.String(255), nullable=True),
        sa.Column("portal_url", sa.String(500), nullable=True),
        sa.Column("shipper_number", sa.String(100), nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("created_by", UUID(as_uuid=True), nullable=True),
        sa.Column("updated_by", UUID(as_uuid=True), nullable=True),
        sa.Column("updated_reason", sa.String(500), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_tariffs_tariff_family_id", "tariffs", ["tariff_family_id"])
    op.create_index("ix_tariffs_customer_id", "tariffs", ["customer_id"])
    op.create_index("ix_tariffs_carrier_id", "tariffs", ["carrier_id"])
    op.create_index("ix_tariffs_expiry_date", "tariffs", ["expiry_date"])

    op.create_table(
        "tariff_activities",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("tariff_id", UUID(as_uuid=True), sa.ForeignKey("tariffs.id", ondelete="SET NULL"), nullable=True),
        sa.Column("tariff_family_id", UUID(as_uuid=True), nullable=True),
        sa.Column("activity_type", sa.String(50), nullable=False),
        sa.Column("description", sa.String(1000), nullable=False),
        sa.Column("metadata", JSONB, nullable=True),
        sa.Column("created_by", UUID(as_uuid=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_tariff_activities_tariff_id", "tariff_activities", ["tariff_id"])
    op.create_index("ix_tariff_activities_tariff_family_id", "tariff_activities", ["tariff_family_id"])

    pin_type = sa.Enum("customer", "tariff_family", name="pin_type_enum")
    op.create_table(
        "user_pins",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("user_id", UUID(as_uuid=True), nullable=False),
        sa.Column("pin_type", pin_type, nullable=False),
        sa.Column("ref_id", sa.String(100), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "pin_type", "ref_id", name="uq_user_pins_triple"),
    )
    op.create_index("ix_user_pins_user_id", "user_pins", ["user_id"])


def downgrade() -> None:
    op.drop_table("user_pins")
    op.drop_table("tariff_activities")
    op.drop_table("tariffs")
    op.drop_table("csp_events")
    op.drop_table("carriers")
    op.drop_table("customers")
    sa.Enum(name="pin_type_enum").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="tariff_ownership_enum").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="tariff_status_enum").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="csp_stage_enum").drop(op.get_bind(), checkfirst=True)
