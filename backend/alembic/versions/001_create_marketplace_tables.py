"""Create marketplace tables

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Creates users, tuitions, applied_tuitions and payments.
How:   Role/status columns are VARCHAR with CHECK constraints (matching the
       non-native Enum type in etuition/models/enums.py). The unique
       constraints are what make registration, applying and payment
       reconciliation safe under concurrent requests.

Rollback: downgrade() drops all four tables (destructive, all data lost).
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _now() -> sa.TextClause:
    return sa.text("CURRENT_TIMESTAMP")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("email", sa.String(254), nullable=False, comment="Login identity, lower-cased"),
        sa.Column("name", sa.String(120), nullable=True),
        sa.Column("photo_url", sa.String(500), nullable=True),
        sa.Column("phone", sa.String(30), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default=sa.text("'Student'")),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'Active'")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.CheckConstraint("role IN ('Student', 'Tutor', 'Admin')", name="role"),
        sa.CheckConstraint("status IN ('Active', 'Blocked')", name="userstatus"),
    )
    op.create_index("idx_users_role_created_at", "users", ["role", "created_at"])

    op.create_table(
        "tuitions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("student_email", sa.String(254), nullable=False),
        sa.Column("student_name", sa.String(120), nullable=True),
        sa.Column("subject", sa.String(120), nullable=False),
        sa.Column("class", sa.String(60), nullable=False),
        sa.Column("location", sa.String(200), nullable=False, server_default=sa.text("''")),
        sa.Column("budget", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("days_per_week", sa.Integer(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'Pending'")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.PrimaryKeyConstraint("id", name="pk_tuitions"),
        sa.CheckConstraint("status IN ('Pending', 'Approved', 'Rejected')", name="tuitionstatus"),
    )
    # Public listing filters on status and sorts by date
    op.create_index("idx_tuitions_status_created_at", "tuitions", ["status", "created_at"])
    op.create_index("idx_tuitions_student_email", "tuitions", ["student_email"])

    op.create_table(
        "applied_tuitions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tuition_id", sa.Uuid(), nullable=False),
        sa.Column("tutor_email", sa.String(254), nullable=False),
        sa.Column("tutor_name", sa.String(120), nullable=True),
        sa.Column("qualifications", sa.Text(), nullable=True),
        sa.Column("experience", sa.Text(), nullable=True),
        sa.Column("expected_salary", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'Pending'")),
        sa.Column("transaction_id", sa.String(255), nullable=True),
        sa.Column("applied_at", sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.PrimaryKeyConstraint("id", name="pk_applied_tuitions"),
        sa.ForeignKeyConstraint(
            ["tuition_id"],
            ["tuitions.id"],
            name="fk_applied_tuitions_tuition_id",
            ondelete="CASCADE",
        ),
        sa.UniqueConstraint("tuition_id", "tutor_email", name="uq_applied_tuitions_tuition_tutor"),
        sa.CheckConstraint("status IN ('Pending', 'Approved')", name="applicationstatus"),
    )
    op.create_index("idx_applied_tuitions_tutor_email", "applied_tuitions", ["tutor_email", "applied_at"])

    op.create_table(
        "payments",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("session_id", sa.String(255), nullable=False),
        sa.Column("application_id", sa.Uuid(), nullable=False),
        sa.Column("tuition_id", sa.Uuid(), nullable=False),
        sa.Column("student_email", sa.String(254), nullable=True),
        sa.Column("tutor_email", sa.String(254), nullable=False),
        sa.Column("tutor_name", sa.String(120), nullable=True),
        sa.Column("subject", sa.String(120), nullable=True),
        sa.Column("class", sa.String(60), nullable=True),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("transaction_id", sa.String(255), nullable=True),
        sa.Column("payment_status", sa.String(30), nullable=False),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.PrimaryKeyConstraint("id", name="pk_payments"),
        # One row per checkout session, however often the success page reloads
        sa.UniqueConstraint("session_id", name="uq_payments_session_id"),
    )
    op.create_index("idx_payments_student_email", "payments", ["student_email", "paid_at"])
    op.create_index("idx_payments_tutor_email", "payments", ["tutor_email"])


def downgrade() -> None:
    op.drop_index("idx_payments_tutor_email", table_name="payments")
    op.drop_index("idx_payments_student_email", table_name="payments")
    op.drop_table("payments")

    op.drop_index("idx_applied_tuitions_tutor_email", table_name="applied_tuitions")
    op.drop_table("applied_tuitions")

    op.drop_index("idx_tuitions_student_email", table_name="tuitions")
    op.drop_index("idx_tuitions_status_created_at", table_name="tuitions")
    op.drop_table("tuitions")

    op.drop_index("idx_users_role_created_at", table_name="users")
    op.drop_table("users")
