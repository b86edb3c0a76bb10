from sqlalchemy import Column, String, Boolean, DateTime, Text
from sqlalchemy.sql import func
from salary_app.database import Base

class PayComponent(Base):
    """Catalog row. Enum-like columns store the enum value as a string."""
    __tablename__ = "pay_components"

    id = Column(String, primary_key=True, index=True)
    code = Column(String, unique=True, nullable=False)  # BASIC, HRA, PF_EMP, ...
    name = Column(String, nullable=False)
    type = Column(String, nullable=False)  # EARNING / DEDUCTION
    category = Column(String, nullable=False)
    calculation_type = Column(String, nullable=False)
    is_statutory = Column(Boolean, default=False)
    is_taxable = Column(Boolean, default=True)
    is_active = Column(Boolean, default=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
