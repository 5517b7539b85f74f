"""Initial schema: users, host_settings, availability_rules, bookings,
booking_requests, calendar_connections, refresh_tokens.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _host_fk() -> sa.ForeignKeyConstraint:
    return sa.ForeignKeyConstraint(["host_id"], ["users.id"], ondelete="CASCADE")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("full_name", sa.String(), nullable=True),
        sa.Column("hashed_password", sa.String(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)

    op.create_table(
        "host_settings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("host_id", sa.Integer(), nullable=False),
        sa.Column("booking_horizon_days", sa.Integer(), nullable=False, server_default="30"),
        sa.Column("default_meeting_duration_minutes", sa.Integer(), nullable=False, server_default="60"),
        sa.Column("buffer_minutes", sa.Integer(), nullable=False, server_default="0"),
        _host_fk(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_host_settings_host_id"), "host_settings", ["host_id"], unique=True)

    op.create_table(
        "availability_rules",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("host_id", sa.Integer(), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("buffer_minutes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("max_bookings_per_day", sa.Integer(), nullable=True),
        _host_fk(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_availability_rules_day"),
        sa.CheckConstraint("start_time < end_time", name="ck_availability_rules_times"),
    )
    op.create_index(op.f("ix_availability_rules_host_id"), "availability_rules", ["host_id"], unique=False)
    op.create_index(op.f("ix_availability_rules_day_of_week"), "availability_rules", ["day_of_week"], unique=False)

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("host_id", sa.Integer(), nullable=False),
        sa.Column("customer_name", sa.String(length=100), nullable=False),
        sa.Column("customer_email", sa.String(length=255), nullable=False),
        sa.Column("start_time", sa.DateTime(), nullable=False),
        sa.Column("end_time", sa.DateTime(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="confirmed"),
        sa.Column("notes", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        _host_fk(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_bookings_host_id"), "bookings", ["host_id"], unique=False)
    op.create_index(op.f("ix_bookings_start_time"), "bookings", ["start_time"], unique=False)
    op.create_index(op.f("ix_bookings_end_time"), "bookings", ["end_time"], unique=False)
    op.create_index(op.f("ix_bookings_status"), "bookings", ["status"], unique=False)

    op.create_table(
        "booking_requests",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("host_id", sa.Integer(), nullable=False),
        sa.Column("customer_name", sa.String(length=100), nullable=False),
        sa.Column("customer_email", sa.String(length=255), nullable=False),
        sa.Column("start_time", sa.DateTime(), nullable=False),
        sa.Column("end_time", sa.DateTime(), nullable=False),
        sa.Column("notes", sa.String(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("confirmation_token", sa.String(length=255), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("confirmed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        _host_fk(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_booking_requests_host_id"), "booking_requests", ["host_id"], unique=False)
    op.create_index(op.f("ix_booking_requests_start_time"), "booking_requests", ["start_time"], unique=False)
    op.create_index(op.f("ix_booking_requests_end_time"), "booking_requests", ["end_time"], unique=False)
    op.create_index(op.f("ix_booking_requests_status"), "booking_requests", ["status"], unique=False)
    op.create_index(
        op.f("ix_booking_requests_confirmation_token"), "booking_requests", ["confirmation_token"], unique=True
    )
    op.create_index(op.f("ix_booking_requests_expires_at"), "booking_requests", ["expires_at"], unique=False)

    op.create_table(
        "calendar_connections",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("host_id", sa.Integer(), nullable=False),
        sa.Column("provider", sa.String(length=16), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("access_token", sa.String(), nullable=False),
        sa.Column("refresh_token", sa.String(), nullable=True),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        _host_fk(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("host_id", "provider", name="uq_calendar_connections_host_provider"),
    )
    op.create_index(op.f("ix_calendar_connections_host_id"), "calendar_connections", ["host_id"], unique=False)
    op.create_index(op.f("ix_calendar_connections_provider"), "calendar_connections", ["provider"], unique=False)

    op.create_table(
        "refresh_tokens",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("host_id", sa.Integer(), nullable=False),
        sa.Column("jti", sa.String(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("revoked", sa.Boolean(), nullable=False, server_default="false"),
        _host_fk(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_refresh_tokens_host_id"), "refresh_tokens", ["host_id"], unique=False)
    op.create_index(op.f("ix_refresh_tokens_jti"), "refresh_tokens", ["jti"], unique=True)
    op.create_index(op.f("ix_refresh_tokens_expires_at"), "refresh_tokens", ["expires_at"], unique=False)


def downgrade() -> None:
    for table in (
        "refresh_tokens",
        "calendar_connections",
        "booking_requests",
        "bookings",
        "availability_rules",
        "host_settings",
        "users",
    ):
        op.drop_table(table)
