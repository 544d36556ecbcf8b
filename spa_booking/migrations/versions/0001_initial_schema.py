"""Initial database schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-01 10:00:00.000000

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None

BOOKING_STATUS = ("pending", "confirmed", "completed", "cancelled", "no_show", "requested", "new", "online")
PAYMENT_STATUS = ("pending", "paid", "failed", "refunded", "partial_refund")
BOOKING_CHANNEL = ("web", "whatsapp", "email", "phone")


def upgrade() -> None:
    op.create_table(
        "centers",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "lanes",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("center_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("blocked_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("allowed_group_ids", sa.JSON(), nullable=False, server_default="[]"),
        sa.ForeignKeyConstraint(["center_id"], ["centers.id"], ondelete="CASCADE"),
        sa.CheckConstraint("capacity >= 1", name="lane_capacity_positive"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_lanes_center_id", "lanes", ["center_id"])

    op.create_table(
        "lane_blocks",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("lane_id", sa.String(length=36), nullable=False),
        sa.Column("center_id", sa.String(length=36), nullable=False),
        sa.Column("start_datetime", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_datetime", sa.DateTime(timezone=True), nullable=False),
        sa.Column("reason", sa.String(length=200), nullable=True),
        sa.Column("created_by", sa.String(length=36), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["lane_id"], ["lanes.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["center_id"], ["centers.id"], ondelete="CASCADE"),
        sa.CheckConstraint("end_datetime > start_datetime", name="lane_block_range_valid"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_lane_blocks_center_id", "lane_blocks", ["center_id"])
    op.create_index("ix_lane_blocks_lane_range", "lane_blocks", ["lane_id", "start_datetime", "end_datetime"])

    op.create_table(
        "treatment_groups",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("lane_id", sa.String(length=36), nullable=True),
        sa.Column("lane_ids", sa.JSON(), nullable=False, server_default="[]"),
        sa.ForeignKeyConstraint(["lane_id"], ["lanes.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "services",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("center_id", sa.String(length=36), nullable=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False, server_default="60"),
        sa.Column("price_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("group_id", sa.String(length=36), nullable=True),
        sa.Column("lane_ids", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.ForeignKeyConstraint(["center_id"], ["centers.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["group_id"], ["treatment_groups.id"], ondelete="SET NULL"),
        sa.CheckConstraint("duration_minutes > 0", name="service_duration_positive"),
        sa.CheckConstraint("duration_minutes <= 720", name="service_duration_bounded"),
        sa.CheckConstraint("price_cents >= 0", name="service_price_non_negative"),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "employees",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("center_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.ForeignKeyConstraint(["center_id"], ["centers.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_employees_center_id", "employees", ["center_id"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("center_id", sa.String(length=36), nullable=False),
        sa.Column("lane_id", sa.String(length=36), nullable=False),
        sa.Column("employee_id", sa.String(length=36), nullable=True),
        sa.Column("service_id", sa.String(length=36), nullable=True),
        sa.Column("client_id", sa.String(length=36), nullable=True),
        sa.Column("booking_datetime", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column(
            "status",
            sa.Enum(*BOOKING_STATUS, name="booking_status"),
            nullable=False,
            server_default="pending",
        ),
        sa.Column(
            "payment_status",
            sa.Enum(*PAYMENT_STATUS, name="payment_status"),
            nullable=False,
            server_default="pending",
        ),
        sa.Column(
            "channel",
            sa.Enum(*BOOKING_CHANNEL, name="booking_channel"),
            nullable=False,
            server_default="web",
        ),
        sa.Column("total_price_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["center_id"], ["centers.id"]),
        sa.ForeignKeyConstraint(["lane_id"], ["lanes.id"]),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"]),
        sa.ForeignKeyConstraint(["service_id"], ["services.id"], ondelete="SET NULL"),
        sa.CheckConstraint("duration_minutes > 0", name="booking_duration_positive"),
        sa.CheckConstraint("duration_minutes <= 720", name="booking_duration_bounded"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_bookings_lane_datetime", "bookings", ["lane_id", "booking_datetime"])
    op.create_index("ix_bookings_center_datetime", "bookings", ["center_id", "booking_datetime"])


def downgrade() -> None:
    op.drop_index("ix_bookings_center_datetime", table_name="bookings")
    op.drop_index("ix_bookings_lane_datetime", table_name="bookings")
    op.drop_table("bookings")
    op.drop_index("ix_employees_center_id", table_name="employees")
    op.drop_table("employees")
    op.drop_table("services")
    op.drop_table("treatment_groups")
    op.drop_index("ix_lane_blocks_lane_range", table_name="lane_blocks")
    op.drop_index("ix_lane_blocks_center_id", table_name="lane_blocks")
    op.drop_table("lane_blocks")
    op.drop_index("ix_lanes_center_id", table_name="lanes")
    op.drop_table("lanes")
    op.drop_table("centers")
    for enum_name in ("booking_channel", "payment_status", "booking_status"):
        op.execute(f"DROP TYPE IF EXISTS {enum_name}")
