"""
Domain value types for salary structures.

Everything here is an immutable pydantic model. A structure is authored as a
loose list of ``StructureComponent`` entries (fields present or absent depending
on the calculation type); the validator turns a well-formed structure into the
tagged rule variants at the bottom of this module, which is what the resolver
and evaluator work with.
"""
import enum
from datetime import date
from decimal import Decimal
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ComponentType(str, enum.Enum):
    EARNING = "EARNING"
    DEDUCTION = "DEDUCTION"

class ComponentCategory(str, enum.Enum):
    BASIC = "BASIC"
    HRA = "HRA"
    ALLOWANCE = "ALLOWANCE"
    BONUS = "BONUS"
    OVERTIME = "OVERTIME"
    REIMBURSEMENT = "REIMBURSEMENT"
    STATUTORY = "STATUTORY"
    STATUTORY_DEDUCTION = "STATUTORY_DEDUCTION"
    OTHER_DEDUCTION = "OTHER_DEDUCTION"

class CalculationType(str, enum.Enum):
    FIXED = "FIXED"
    PERCENTAGE = "PERCENTAGE"
    FORMULA = "FORMULA"
    ATTENDANCE_BASED = "ATTENDANCE_BASED"

class BaseReference(str, enum.Enum):
    """Synthetic roots a percentage or formula may refer to."""
    CTC = "CTC"
    GROSS = "GROSS"
    BASIC = "BASIC"

REFERENCE_KEYWORDS = frozenset(ref.value for ref in BaseReference)


class PayComponentDefinition(BaseModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str
    code: str
    name: str
    type: ComponentType
    category: ComponentCategory
    calculation_type: CalculationType
    is_statutory: bool = False
    is_taxable: bool = True


class StructureComponent(BaseModel):
    """One configured line of a structure, as authored."""
    model_config = ConfigDict(frozen=True)

    component_id: str
    fixed_value: Optional[Decimal] = None
    percentage: Optional[Decimal] = None
    base_component_ref: Optional[str] = None
    formula: Optional[str] = None
    min_value: Optional[Decimal] = None
    max_value: Optional[Decimal] = None
    is_variable: bool = False
    order: int = 0  # display order only


class SalaryStructure(BaseModel):
    """
    A compensation plan identified by ``(id, version)``.

    Instances never change; ``revise`` produces the next version so that
    assignments pinned to an older version keep evaluating the same way.
    """
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    version: int = 1
    name: str = ""
    code: str = ""
    grade: Optional[str] = None
    components: Tuple[StructureComponent, ...] = ()
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def display_order(self) -> List[StructureComponent]:
        """Components sorted by declared order, ties kept in authoring order."""
        indexed = list(enumerate(self.components))
        indexed.sort(key=lambda pair: (pair[1].order, pair[0]))
        return [component for _, component in indexed]

    def revise(self, **changes: Any) -> "SalaryStructure":
        data = self.model_dump()
        data.update(changes)
        data["version"] = self.version + 1
        return SalaryStructure.model_validate(data)


class SalaryAssignment(BaseModel):
    """Binds a pinned structure version and a CTC to one employee."""
    model_config = ConfigDict(frozen=True)

    employee_id: str
    structure_id: str
    structure_version: int
    ctc_annual: Decimal
    effective_from: date
    effective_to: Optional[date] = None

    @model_validator(mode="after")
    def _check_dates(self) -> "SalaryAssignment":
        if self.effective_to is not None and self.effective_to <= self.effective_from:
            raise ValueError("effective_to must be after effective_from")
        return self


class IssueKind(str, enum.Enum):
    INPUT = "INPUT"
    STRUCTURAL = "STRUCTURAL"
    DEPENDENCY = "DEPENDENCY"
    EVALUATION = "EVALUATION"

class StructureIssue(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: IssueKind
    code: str
    message: str
    component_id: Optional[str] = None


# --- Rule variants -----------------------------------------------------------

class _Rule(BaseModel):
    model_config = ConfigDict(frozen=True)

    component_id: str
    definition: PayComponentDefinition
    is_variable: bool = False
    order: int = 0

class FixedRule(_Rule):
    kind: Literal["FIXED"] = "FIXED"
    amount: Decimal

class AttendanceRule(_Rule):
    kind: Literal["ATTENDANCE_BASED"] = "ATTENDANCE_BASED"
    amount: Decimal

class PercentageRule(_Rule):
    kind: Literal["PERCENTAGE"] = "PERCENTAGE"
    percentage: Decimal
    base_ref: str
    min_value: Optional[Decimal] = None
    max_value: Optional[Decimal] = None

class FormulaRule(_Rule):
    kind: Literal["FORMULA"] = "FORMULA"
    expression: str
    min_value: Optional[Decimal] = None
    max_value: Optional[Decimal] = None

CompensationRule = Annotated[
    Union[FixedRule, AttendanceRule, PercentageRule, FormulaRule],
    Field(discriminator="kind"),
]


# --- Results -----------------------------------------------------------------

class ComponentAmount(BaseModel):
    model_config = ConfigDict(frozen=True)

    component_id: str
    code: str
    name: str
    type: ComponentType
    category: ComponentCategory
    is_variable: bool
    is_statutory: bool
    is_taxable: bool
    monthly_amount: Decimal

class EvaluationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    lines: Tuple[ComponentAmount, ...]
    total_earnings: Decimal
    total_deductions: Decimal
    net_salary: Decimal

    @property
    def per_component(self) -> Dict[str, Decimal]:
        return {line.component_id: line.monthly_amount for line in self.lines}

class PreviewResult(EvaluationResult):
    structure_id: Optional[str] = None
    structure_version: int = 1
    ctc_annual: Decimal
    attendance_factor: Decimal
    evaluation_order: Tuple[str, ...] = ()
