from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from salary_app.schemas.structure import (
    CalculationType,
    ComponentCategory,
    ComponentType,
    PreviewResult,
    StructureComponent,
)

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class PreviewComponentInput(CamelModel):
    component_id: str
    fixed_value: Optional[Decimal] = None
    percentage: Optional[Decimal] = None
    base_component_ref: Optional[str] = None
    formula: Optional[str] = None
    min_value: Optional[Decimal] = None
    max_value: Optional[Decimal] = None
    is_variable: bool = False
    order: Optional[int] = None

    def to_component(self, position: int) -> StructureComponent:
        data = self.model_dump()
        data["order"] = position if self.order is None else self.order
        return StructureComponent(**data)

class PreviewRequest(CamelModel):
    # CTC and factor are range-checked by the preview service so that every
    # problem comes back in the same errors list.
    components: List[PreviewComponentInput] = Field(default_factory=list)
    ctc_annual: Decimal
    attendance_factor: Optional[Decimal] = None
    name: str = "Draft"
    code: str = "DRAFT"
    grade: Optional[str] = None

class StoredPreviewRequest(CamelModel):
    ctc_annual: Decimal
    attendance_factor: Optional[Decimal] = None
    version: Optional[int] = None

class PreviewLine(CamelModel):
    component_id: str
    code: str
    name: str
    type: ComponentType
    category: ComponentCategory
    is_variable: bool
    is_statutory: bool
    is_taxable: bool
    monthly_amount: Decimal

class PreviewResponse(CamelModel):
    """Monetary values are fixed-precision decimals, serialized as strings."""
    structure_id: Optional[str] = None
    structure_version: int
    ctc_annual: Decimal
    attendance_factor: Decimal
    components: List[PreviewLine]
    total_earnings: Decimal
    total_deductions: Decimal
    net_salary: Decimal
    evaluation_order: List[str]

    @classmethod
    def from_result(cls, result: PreviewResult) -> "PreviewResponse":
        return cls(
            structure_id=result.structure_id,
            structure_version=result.structure_version,
            ctc_annual=result.ctc_annual,
            attendance_factor=result.attendance_factor,
            components=[PreviewLine(**line.model_dump()) for line in result.lines],
            total_earnings=result.total_earnings,
            total_deductions=result.total_deductions,
            net_salary=result.net_salary,
            evaluation_order=list(result.evaluation_order),
        )

class PreviewErrorResponse(BaseModel):
    success: bool = False
    errors: List[str]
    issues: List[Dict[str, Any]] = Field(default_factory=list)

class CatalogEntry(CamelModel):
    id: str
    code: str
    name: str
    type: ComponentType
    category: ComponentCategory
    calculation_type: CalculationType
    is_statutory: bool
    is_taxable: bool

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

class CatalogResponse(CamelModel):
    version: int
    loaded_at: datetime
    components: List[CatalogEntry]

class StructureVersionResponse(CamelModel):
    structure_id: str
    version: int
    name: str
    code: str
    status: str
    effective_from: Optional[date] = None
    effective_to: Optional[date] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)
