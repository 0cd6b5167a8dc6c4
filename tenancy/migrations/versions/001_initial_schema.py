"""Initial schema: tenancy lifecycle and billing tables.

Revision ID: 001_initial_schema
Revises:
Create Date: 2025-06-01 09:00:00.000000

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None

# Enum labels are stored as member names
LIVE_BOOKING = sa.text("status IN ('PENDING', 'APPROVED')")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.current_timestamp(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.current_timestamp(),
        ),
    ]


def _money(name: str, nullable: bool = False) -> sa.Column:
    if nullable:
        return sa.Column(name, sa.Numeric(precision=12, scale=2), nullable=True)
    return sa.Column(name, sa.Numeric(precision=12, scale=2), nullable=False, server_default="0")


def upgrade() -> None:
    # Create users table
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("role", sa.Enum("TENANT", "LANDLORD", name="user_role"), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("idx_user_role_active", "role", "is_active"),
    )

    # Create properties table
    op.create_table(
        "properties",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("landlord_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        _money("rent_amount"),
        sa.Column(
            "status",
            sa.Enum("AVAILABLE", "OCCUPIED", name="property_status"),
            nullable=False,
        ),
        *_timestamps(),
        sa.ForeignKeyConstraint(["landlord_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_properties_landlord_id", "landlord_id"),
        sa.Index("ix_properties_status", "status"),
    )

    # Create applications table
    op.create_table(
        "applications",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("property_id", sa.Integer(), nullable=False),
        sa.Column(
            "status",
            sa.Enum("PENDING", "ACCEPTED", "REJECTED", name="application_status"),
            nullable=False,
        ),
        sa.Column("message", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["tenant_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["property_id"], ["properties.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("idx_application_tenant_status", "tenant_id", "status"),
    )

    # Create time_slots table
    op.create_table(
        "time_slots",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("landlord_id", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.DateTime(), nullable=False),
        sa.Column("end_time", sa.DateTime(), nullable=False),
        sa.Column("is_booked", sa.Boolean(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["landlord_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("idx_time_slot_landlord_start", "landlord_id", "start_time"),
        sa.Index("idx_time_slot_booked", "is_booked"),
    )

    # Create bookings table
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("landlord_id", sa.Integer(), nullable=False),
        sa.Column("property_id", sa.Integer(), nullable=False),
        sa.Column("time_slot_id", sa.Integer(), nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "PENDING",
                "APPROVED",
                "REJECTED",
                "CANCELLED",
                "COMPLETED",
                name="booking_status",
            ),
            nullable=False,
        ),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column(
            "booking_date",
            sa.DateTime(),
            nullable=False,
            comment="Appointment start (copied from the slot)",
        ),
        *_timestamps(),
        sa.ForeignKeyConstraint(["tenant_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["landlord_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["property_id"], ["properties.id"]),
        sa.ForeignKeyConstraint(["time_slot_id"], ["time_slots.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_bookings_tenant_id", "tenant_id"),
        sa.Index("ix_bookings_landlord_id", "landlord_id"),
        sa.Index("ix_bookings_property_id", "property_id"),
        sa.Index("idx_booking_property_status", "property_id", "status"),
    )
    op.create_index(
        "uq_booking_live_slot",
        "bookings",
        ["time_slot_id"],
        unique=True,
        sqlite_where=LIVE_BOOKING,
        postgresql_where=LIVE_BOOKING,
    )
    op.create_index(
        "uq_booking_live_tenant",
        "bookings",
        ["tenant_id"],
        unique=True,
        sqlite_where=LIVE_BOOKING,
        postgresql_where=LIVE_BOOKING,
    )

    # Create occupancies table
    op.create_table(
        "occupancies",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("property_id", sa.Integer(), nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("landlord_id", sa.Integer(), nullable=False),
        sa.Column(
            "status",
            sa.Enum("ACTIVE", "PENDING_END", "ENDED", name="occupancy_status"),
            nullable=False,
        ),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("contract_end_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True, comment="Actual end date once ended"),
        sa.Column(
            "end_requested_date",
            sa.Date(),
            nullable=True,
            comment="Move-out date requested by the tenant",
        ),
        sa.Column("end_reason", sa.String(length=500), nullable=True),
        _money("security_deposit"),
        _money("security_deposit_used"),
        _money("late_fee"),
        sa.Column("wifi_due_day", sa.Integer(), nullable=True),
        sa.Column("renewal_requested", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column(
            "renewal_status",
            sa.Enum("NONE", "PENDING", "APPROVED", "REJECTED", name="renewal_status"),
            nullable=False,
        ),
        sa.Column("renewal_meeting_date", sa.Date(), nullable=True),
        sa.Column("renewal_signing_date", sa.Date(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["property_id"], ["properties.id"]),
        sa.ForeignKeyConstraint(["tenant_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["landlord_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_occupancies_property_id", "property_id"),
        sa.Index("ix_occupancies_tenant_id", "tenant_id"),
        sa.Index("ix_occupancies_landlord_id", "landlord_id"),
        sa.Index("idx_occupancy_landlord_status", "landlord_id", "status"),
    )

    # Create bills table
    op.create_table(
        "bills",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("occupancy_id", sa.Integer(), nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("landlord_id", sa.Integer(), nullable=False),
        sa.Column("property_id", sa.Integer(), nullable=False),
        sa.Column(
            "kind",
            sa.Enum(
                "MOVE_IN",
                "MONTHLY",
                "RENEWAL",
                "UTILITY_REMINDER",
                "EMERGENCY",
                name="bill_kind",
            ),
            nullable=False,
        ),
        _money("rent_amount"),
        _money("water_bill"),
        _money("electrical_bill"),
        _money("wifi_bill"),
        _money("other_bills"),
        _money("security_deposit_amount"),
        _money("advance_amount"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "PENDING",
                "PENDING_CONFIRMATION",
                "PAID",
                "REJECTED",
                "CANCELLED",
                name="bill_status",
            ),
            nullable=False,
        ),
        sa.Column("proof_url", sa.String(length=1000), nullable=True),
        sa.Column("payment_method", sa.String(length=50), nullable=True),
        _money("amount_paid", nullable=True),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["occupancy_id"], ["occupancies.id"]),
        sa.ForeignKeyConstraint(["tenant_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["landlord_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["property_id"], ["properties.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_bills_occupancy_id", "occupancy_id"),
        sa.Index("ix_bills_tenant_id", "tenant_id"),
        sa.Index("ix_bills_landlord_id", "landlord_id"),
        sa.Index("idx_bill_landlord_status_due", "landlord_id", "status", "due_date"),
        sa.Index("idx_bill_occupancy_status", "occupancy_id", "status"),
    )

    # Create tenant_balances table
    op.create_table(
        "tenant_balances",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("occupancy_id", sa.Integer(), nullable=False),
        sa.Column("landlord_id", sa.Integer(), nullable=False),
        _money("amount"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["tenant_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["occupancy_id"], ["occupancies.id"]),
        sa.ForeignKeyConstraint(["landlord_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", "occupancy_id", name="uq_tenant_balance_occupancy"),
    )

    # Create notifications table
    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("recipient_id", sa.Integer(), nullable=False),
        sa.Column("event_type", sa.String(length=64), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("actor_id", sa.Integer(), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["recipient_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["actor_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.Index(
            "idx_notification_recipient_type_created", "recipient_id", "event_type", "created_at"
        ),
    )

    # Create automation_runs table
    op.create_table(
        "automation_runs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("landlord_id", sa.Integer(), nullable=False),
        sa.Column("run_date", sa.Date(), nullable=False),
        sa.Column("reminders_sent", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("penalties_applied", sa.Integer(), nullable=False, server_default="0"),
        _money("deposit_deducted"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["landlord_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("landlord_id", "run_date", name="uq_automation_run_landlord_day"),
    )

    # Create audit_logs table
    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("entity_type", sa.String(), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("actor_id", sa.Integer(), nullable=True),
        sa.Column("changes", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["actor_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("automation_runs")
    op.drop_table("notifications")
    op.drop_table("tenant_balances")
    op.drop_table("bills")
    op.drop_table("occupancies")
    op.drop_index("uq_booking_live_tenant", table_name="bookings")
    op.drop_index("uq_booking_live_slot", table_name="bookings")
    op.drop_table("bookings")
    op.drop_table("time_slots")
    op.drop_table("applications")
    op.drop_table("properties")
    op.drop_table("users")
