"""Initial schema — agents, cases, rules, allocations, history, audit.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import ARRAY, JSONB

from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=nullable,
        server_default=None if nullable else sa.func.now(),
    )


def upgrade() -> None:
    # Agents
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(100), unique=True, nullable=False),
        sa.Column("first_name", sa.String(100), nullable=True),
        sa.Column("last_name", sa.String(100), nullable=True),
        sa.Column("geographies", ARRAY(sa.String(100)), nullable=False, server_default="{}"),
        sa.Column("max_case_capacity", sa.Integer, nullable=True),
        sa.Column("current_case_count", sa.Integer, nullable=True, server_default="0"),
        sa.Column("allocation_percentage", sa.Float, nullable=True, server_default="0"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        _timestamp("updated_at"),
    )
    op.create_index("idx_users_geographies", "users", ["geographies"], postgresql_using="gin")

    # Cases
    op.create_table(
        "cases",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("state", sa.String(100), nullable=True),
        sa.Column("city", sa.String(100), nullable=True),
        sa.Column("location", sa.String(100), nullable=True),
        sa.Column("bucket", sa.String(50), nullable=True),
        sa.Column("geography_code", sa.String(100), nullable=True),
        sa.Column("allocated_to_user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=True),
        _timestamp("updated_at"),
    )
    op.create_index("idx_cases_unallocated", "cases", ["allocated_to_user_id", "bucket"])
    op.create_index("idx_cases_geo", "cases", ["state", "city", "location"])

    # Allocation rules
    op.create_table(
        "allocation_rules",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("criteria", JSONB, nullable=False, server_default="{}"),
        sa.Column("status", sa.String(30), nullable=False, server_default="DRAFT"),
        sa.Column("priority", sa.Integer, nullable=False, server_default="0"),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )

    # Case allocations (latest row per case is the current owner)
    op.create_table(
        "case_allocations",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("case_id", sa.Integer, sa.ForeignKey("cases.id"), nullable=False),
        sa.Column("primary_agent_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("secondary_agent_id", sa.Integer, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column(
            "allocation_rule_id",
            sa.Integer,
            sa.ForeignKey("allocation_rules.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("workload_percentage", sa.Numeric(5, 2), nullable=True),
        sa.Column("geography_code", sa.String(100), nullable=True),
        _timestamp("allocated_at"),
        _timestamp("deallocated_at", nullable=True),
        _timestamp("updated_at"),
    )
    op.create_index("idx_case_allocations_case", "case_allocations", ["case_id", "allocated_at"])
    op.create_index("idx_case_allocations_agent", "case_allocations", ["primary_agent_id", "status"])

    # Allocation history
    op.create_table(
        "allocation_history",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("case_id", sa.Integer, nullable=False),
        sa.Column("allocated_from_user_id", sa.Integer, nullable=True),
        sa.Column("allocated_to_user_id", sa.Integer, nullable=True),
        sa.Column("action", sa.String(20), nullable=False),
        sa.Column("reason", sa.Text, nullable=True),
        _timestamp("allocated_at"),
    )
    op.create_index("idx_allocation_history_case", "allocation_history", ["case_id", "allocated_at"])

    # Audit log
    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.Integer, nullable=True),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("changed_fields", JSONB, nullable=True),
        _timestamp("created_at"),
    )
    op.create_index("idx_audit_logs_entity", "audit_logs", ["entity_type", "entity_id"])


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("allocation_history")
    op.drop_table("case_allocations")
    op.drop_table("allocation_rules")
    op.drop_table("cases")
    op.drop_table("users")
