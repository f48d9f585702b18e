"""initial schema

Revision ID: 20261019_01_initial
Revises:
Create Date: 2026-10-19

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "20261019_01_initial"
down_revision = None
branch_labels = None
depends_on = None


SHIFTS = ("Morning", "Noon", "Evening", "Night")
DAYS = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")
STATUSES = ("default", "selected", "disabled")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    # Enums
    shift_kind = postgresql.ENUM(*SHIFTS, name="shift_kind")
    day_of_week = postgresql.ENUM(*DAYS, name="day_of_week")
    cell_status = postgresql.ENUM(*STATUSES, name="cell_status")
    for enum in (shift_kind, day_of_week, cell_status):
        enum.create(op.get_bind(), checkfirst=True)

    shift_col = postgresql.ENUM(*SHIFTS, name="shift_kind", create_type=False)
    day_col = postgresql.ENUM(*DAYS, name="day_of_week", create_type=False)
    status_col = postgresql.ENUM(*STATUSES, name="cell_status", create_type=False)

    # companies
    op.create_table(
        "companies",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        *_timestamps(),
    )

    # users
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=True),
        sa.Column("admin", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id"), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_company_id", "users", ["company_id"], unique=False)

    # availability_weeks
    op.create_table(
        "availability_weeks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id"), nullable=False),
        sa.Column("week_key", sa.String(length=32), nullable=False),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("notes", sa.Text(), server_default="", nullable=False),
        *_timestamps(),
        sa.UniqueConstraint(
            "company_id", "week_key", "user_id", name="uq_availability_week_owner"
        ),
    )
    op.create_index(
        "ix_availability_weeks_company_id", "availability_weeks", ["company_id"], unique=False
    )
    op.create_index(
        "ix_availability_weeks_week_key", "availability_weeks", ["week_key"], unique=False
    )
    op.create_index(
        "ix_availability_weeks_user_id", "availability_weeks", ["user_id"], unique=False
    )

    # availability_cells
    op.create_table(
        "availability_cells",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "availability_week_id",
            sa.Integer(),
            sa.ForeignKey("availability_weeks.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("shift", shift_col, nullable=False),
        sa.Column("day", day_col, nullable=False),
        sa.Column("is_available", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("status", status_col, server_default="default", nullable=False),
        *_timestamps(),
        sa.UniqueConstraint(
            "availability_week_id", "shift", "day", name="uq_availability_cell_slot"
        ),
    )
    op.create_index(
        "ix_availability_cells_availability_week_id",
        "availability_cells",
        ["availability_week_id"],
        unique=False,
    )

    # schedule_weeks
    op.create_table(
        "schedule_weeks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id"), nullable=False),
        sa.Column("week_key", sa.String(length=32), nullable=False),
        sa.Column("published", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("edit_allowed", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("company_id", "week_key", name="uq_schedule_week_partition"),
    )
    op.create_index(
        "ix_schedule_weeks_company_id", "schedule_weeks", ["company_id"], unique=False
    )
    op.create_index("ix_schedule_weeks_week_key", "schedule_weeks", ["week_key"], unique=False)

    # staffing_targets
    op.create_table(
        "staffing_targets",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "schedule_week_id",
            sa.Integer(),
            sa.ForeignKey("schedule_weeks.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("day", day_col, nullable=False),
        sa.Column("shift", shift_col, nullable=False),
        sa.Column("required", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("schedule_week_id", "day", "shift", name="uq_staffing_target_slot"),
    )
    op.create_index(
        "ix_staffing_targets_schedule_week_id",
        "staffing_targets",
        ["schedule_week_id"],
        unique=False,
    )

    # shift_quotas
    op.create_table(
        "shift_quotas",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "schedule_week_id",
            sa.Integer(),
            sa.ForeignKey("schedule_weeks.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("max_shifts", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("schedule_week_id", "user_id", name="uq_shift_quota_user"),
    )
    op.create_index(
        "ix_shift_quotas_schedule_week_id", "shift_quotas", ["schedule_week_id"], unique=False
    )
    op.create_index("ix_shift_quotas_user_id", "shift_quotas", ["user_id"], unique=False)

    # weekly_stats
    op.create_table(
        "weekly_stats",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id"), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("week_key", sa.String(length=32), nullable=False),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("night_shifts", sa.Integer(), nullable=False),
        sa.Column("shabbat_shifts", sa.Integer(), nullable=False),
        sa.Column("regular_shifts", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint(
            "company_id", "year", "month", "week_key", "user_id", name="uq_weekly_stats_key"
        ),
    )
    op.create_index("ix_weekly_stats_company_id", "weekly_stats", ["company_id"], unique=False)
    op.create_index("ix_weekly_stats_year", "weekly_stats", ["year"], unique=False)
    op.create_index("ix_weekly_stats_user_id", "weekly_stats", ["user_id"], unique=False)

    # notifications
    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id"), nullable=False),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("link", sa.String(length=512), nullable=False),
        sa.Column("meta", sa.JSON(), nullable=True),
        sa.Column("read", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "ix_notifications_company_id", "notifications", ["company_id"], unique=False
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"], unique=False)

    # activity_logs
    op.create_table(
        "activity_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id"), nullable=False),
        sa.Column(
            "actor_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("target_type", sa.String(length=64), nullable=False),
        sa.Column("target_id", sa.Integer(), nullable=True),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("batch_id", sa.String(length=64), nullable=True),
        *_timestamps(),
    )
    for column in ("company_id", "actor_id", "action", "target_type", "target_id", "batch_id"):
        op.create_index(
            f"ix_activity_logs_{column}", "activity_logs", [column], unique=False
        )


def downgrade() -> None:
    op.drop_table("activity_logs")
    op.drop_table("notifications")
    op.drop_table("weekly_stats")
    op.drop_table("shift_quotas")
    op.drop_table("staffing_targets")
    op.drop_table("schedule_weeks")
    op.drop_table("availability_cells")
    op.drop_table("availability_weeks")
    op.drop_table("users")
    op.drop_table("companies")

    bind = op.get_bind()
    for name in ("cell_status", "day_of_week", "shift_kind"):
        postgresql.ENUM(name=name).drop(bind, checkfirst=True)
