"""SQLAlchemy ORM models — maps to PostgreSQL tables."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlalchemy.orm import Mapped, mapped_column

from case_allocation.adapters.persistence.database import Base

JsonDocument = JSON().with_variant(JSONB(), "postgresql")


class AgentModel(Base):
    """Agent directory rows; only the workload columns are written by this service."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    geographies: Mapped[list[str]] = mapped_column(ARRAY(String(100)), nullable=False, default=list)
    max_case_capacity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    current_case_count: Mapped[int | None] = mapped_column(Integer, nullable=True, default=0)
    allocation_percentage: Mapped[float | None] = mapped_column(Float, nullable=True, default=0.0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )


class CaseModel(Base):
    """Case directory rows; read here, plus the owner-of-record column."""

    __tablename__ = "cases"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    state: Mapped[str | None] = mapped_column(String(100), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    location: Mapped[str | None] = mapped_column(String(100), nullable=True)
    bucket: Mapped[str | None] = mapped_column(String(50), nullable=True)
    geography_code: Mapped[str | None] = mapped_column(String(100), nullable=True)
    allocated_to_user_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_cases_unallocated", "allocated_to_user_id", "bucket"),
        Index("idx_cases_geo", "state", "city", "location"),
    )


class AllocationRuleModel(Base):
    __tablename__ = "allocation_rules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    criteria: Mapped[dict] = mapped_column(JsonDocument, nullable=False, default=dict)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="DRAFT")
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )


class CaseAllocationModel(Base):
    __tablename__ = "case_allocations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    case_id: Mapped[int] = mapped_column(Integer, ForeignKey("cases.id"), nullable=False)
    primary_agent_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    secondary_agent_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=True
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    allocation_rule_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("allocation_rules.id", ondelete="SET NULL"), nullable=True
    )
    workload_percentage: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    geography_code: Mapped[str | None] = mapped_column(String(100), nullable=True)
    allocated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    deallocated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_case_allocations_case", "case_id", "allocated_at"),
        Index("idx_case_allocations_agent", "primary_agent_id", "status"),
    )


class AllocationHistoryModel(Base):
    __tablename__ = "allocation_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    case_id: Mapped[int] = mapped_column(Integer, nullable=False)
    allocated_from_user_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    allocated_to_user_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    action: Mapped[str] = mapped_column(String(20), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    allocated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (Index("idx_allocation_history_case", "case_id", "allocated_at"),)


class AuditLogModel(Base):
    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    changed_fields: Mapped[dict | None] = mapped_column(JsonDocument, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (Index("idx_audit_logs_entity", "entity_type", "entity_id"),)
