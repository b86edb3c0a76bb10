from sqlalchemy import (
    Column, Integer, String, Boolean, Date, DateTime, Numeric, Text, JSON,
    ForeignKey, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from salary_app.database import Base
import enum

class StructureStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    VALID = "VALID"
    ASSIGNED = "ASSIGNED"
    RETIRED = "RETIRED"

class SalaryStructureVersion(Base):
    """One immutable version of a salary structure."""
    __tablename__ = "salary_structures"

    id = Column(Integer, primary_key=True, index=True)
    structure_id = Column(String, index=True, nullable=False)
    version = Column(Integer, nullable=False, default=1)
    name = Column(String, nullable=False)
    code = Column(String, nullable=False)
    grade = Column(String, nullable=True)
    status = Column(String, default=StructureStatus.DRAFT.value)
    description = Column(Text, nullable=True)
    meta = Column("metadata", JSON, default=dict)
    effective_from = Column(Date, nullable=True)
    effective_to = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    components = relationship(
        "SalaryStructureComponent",
        back_populates="structure",
        cascade="all, delete-orphan",
        order_by="SalaryStructureComponent.display_order",
    )

    __table_args__ = (
        UniqueConstraint("structure_id", "version", name="uq_structure_version"),
    )

class SalaryStructureComponent(Base):
    __tablename__ = "salary_structure_components"

    id = Column(Integer, primary_key=True, index=True)
    structure_row_id = Column(Integer, ForeignKey("salary_structures.id"), nullable=False, index=True)
    component_id = Column(String, ForeignKey("pay_components.id"), nullable=False)
    fixed_value = Column(Numeric(14, 2), nullable=True)
    percentage = Column(Numeric(9, 4), nullable=True)
    base_component_ref = Column(String, nullable=True)  # CTC / GROSS / BASIC or a component id
    formula = Column(Text, nullable=True)
    min_value = Column(Numeric(14, 2), nullable=True)
    max_value = Column(Numeric(14, 2), nullable=True)
    is_variable = Column(Boolean, default=False)
    display_order = Column(Integer, default=0)

    structure = relationship("SalaryStructureVersion", back_populates="components")
