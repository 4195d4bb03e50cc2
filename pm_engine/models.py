"""SQLAlchemy models backing the reference collaborators."""
from sqlalchemy import (
    JSON, Boolean, Column, Date, DateTime, Float, ForeignKey, Index, Integer,
    String, Text, Uuid,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from .database import Base


class MaintenancePlanRow(Base):
    """Recurring maintenance definition; deactivated, never deleted."""
    __tablename__ = "maintenance_plans"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    company_id = Column(Uuid, nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    machine_id = Column(Uuid, nullable=True, index=True)
    mobile_unit_id = Column(Uuid, nullable=True, index=True)
    component_ids = Column(JSON, nullable=False, default=list)
    subcomponent_ids = Column(JSON, nullable=False, default=list)
    frequency_days = Column(Integer, nullable=False)
    estimated_hours = Column(Float, nullable=True)
    estimated_quantity = Column(Float, nullable=True)
    estimated_unit = Column(String(30), nullable=True)
    assigned_to_id = Column(Uuid, nullable=True)
    priority = Column(String(20), nullable=False, default="MEDIUM")
    maintenance_type = Column(String(20), nullable=False, default="PREVENTIVE")
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    required_tools = relationship("PlanRequiredToolRow", back_populates="plan", order_by="PlanRequiredToolRow.position")
    instances = relationship("MaintenanceInstanceRow", back_populates="plan")


class PlanRequiredToolRow(Base):
    """Checklist line of a preventive plan."""
    __tablename__ = "plan_required_tools"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    plan_id = Column(Uuid, ForeignKey("maintenance_plans.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    name = Column(String(255), nullable=False)
    quantity = Column(Float, nullable=True)

    plan = relationship("MaintenancePlanRow", back_populates="required_tools")


class MaintenanceInstanceRow(Base):
    """Scheduled occurrence of a plan, produced by the external generator."""
    __tablename__ = "maintenance_instances"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    plan_id = Column(Uuid, ForeignKey("maintenance_plans.id"), nullable=False, index=True)
    company_id = Column(Uuid, nullable=False, index=True)
    title = Column(String(255), nullable=True)
    maintenance_type = Column(String(20), nullable=False, default="PREVENTIVE")
    scheduled_date = Column(Date, nullable=True, index=True)
    status = Column(String(30), nullable=False, default="PENDING", index=True)
    last_completed_date = Column(Date, nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    plan = relationship("MaintenancePlanRow", back_populates="instances")

    __table_args__ = (
        Index("idx_instances_company_status", "company_id", "status"),
    )


class ToolRow(Base):
    """Stock item (tool, spare part, consumable)."""
    __tablename__ = "tools"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    company_id = Column(Uuid, nullable=False, index=True)
    name = Column(String(255), nullable=False, index=True)
    item_type = Column(String(30), nullable=False, default="UNKNOWN")
    unit = Column(String(30), nullable=True)
    stock_quantity = Column(Float, nullable=False, default=0)
    is_active = Column(Boolean, default=True)


class ToolReservationRow(Base):
    """Stock reserved for a corrective work order."""
    __tablename__ = "tool_reservations"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    instance_id = Column(Uuid, ForeignKey("maintenance_instances.id"), nullable=False, index=True)
    tool_id = Column(Uuid, ForeignKey("tools.id"), nullable=True)
    quantity = Column(Float, nullable=False, default=0)
    status = Column(String(20), nullable=False, default="PENDING")

    tool = relationship("ToolRow")


class EmployeeRow(Base):
    """Operator directory entry."""
    __tablename__ = "employees"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    company_id = Column(Uuid, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True)


class ExecutionRecordRow(Base):
    """Immutable outcome of one execution attempt; the payload is the engine's record."""
    __tablename__ = "execution_records"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    instance_id = Column(Uuid, ForeignKey("maintenance_instances.id"), nullable=False, index=True)
    plan_id = Column(Uuid, ForeignKey("maintenance_plans.id"), nullable=False, index=True)
    completion_status = Column(String(30), nullable=False)
    executed_at = Column(DateTime(timezone=True), nullable=False)
    re_execution_reason = Column(Text, nullable=True)
    payload = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
