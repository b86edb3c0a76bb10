"""
Structure Validator

Checks a structure for well-formedness before anything is evaluated. All
checks always run and every violation is returned, so an editor can show the
complete list at once.
"""
import logging
from collections import Counter
from decimal import Decimal
from typing import Dict, List, Optional

from salary_app.core.exceptions import StructuralError
from salary_app.schemas.structure import (
    AttendanceRule,
    CalculationType,
    ComponentCategory,
    CompensationRule,
    FixedRule,
    FormulaRule,
    IssueKind,
    PercentageRule,
    SalaryStructure,
    StructureComponent,
    StructureIssue,
)
from salary_app.services.component_catalog import ComponentCatalog
from salary_app.services import dependency_resolver
from salary_app.services.formula import FormulaError, parse_formula

logger = logging.getLogger(__name__)


def _label(component_id: str, catalog: ComponentCatalog) -> str:
    definition = catalog.get(component_id)
    return f'"{definition.name}"' if definition else f"'{component_id}'"


def _structural(code: str, message: str, component_id: Optional[str] = None) -> StructureIssue:
    return StructureIssue(kind=IssueKind.STRUCTURAL, code=code, message=message, component_id=component_id)


def _dependency(code: str, message: str, component_id: Optional[str] = None) -> StructureIssue:
    return StructureIssue(kind=IssueKind.DEPENDENCY, code=code, message=message, component_id=component_id)


def check_basic_present(structure: SalaryStructure, catalog: ComponentCatalog) -> List[StructureIssue]:
    for component in structure.components:
        definition = catalog.get(component.component_id)
        if definition is not None and definition.category == ComponentCategory.BASIC:
            return []
    return [_structural("MISSING_BASIC", "Structure must include a basic salary component")]


def check_duplicates(structure: SalaryStructure) -> List[StructureIssue]:
    counts = Counter(c.component_id for c in structure.components)
    return [
        _structural(
            "DUPLICATE_COMPONENT",
            f"Duplicate component '{component_id}' appears {count} times",
            component_id,
        )
        for component_id, count in counts.items()
        if count > 1
    ]


def check_catalog_membership(structure: SalaryStructure, catalog: ComponentCatalog) -> List[StructureIssue]:
    return [
        _structural(
            "UNKNOWN_COMPONENT",
            f"Component at position {index} ('{component.component_id}') not found in the component catalog",
            component.component_id,
        )
        for index, component in enumerate(structure.components, start=1)
        if component.component_id not in catalog
    ]


def _check_non_negative(
    component: StructureComponent,
    label: str,
    field: str,
    value: Optional[Decimal],
) -> List[StructureIssue]:
    if value is not None and value < 0:
        return [_structural(
            "NEGATIVE_VALUE",
            f"Component {label} {field} cannot be negative",
            component.component_id,
        )]
    return []


def check_required_fields(structure: SalaryStructure, catalog: ComponentCatalog) -> List[StructureIssue]:
    issues: List[StructureIssue] = []
    for component in structure.components:
        definition = catalog.get(component.component_id)
        if definition is None:
            continue
        label = _label(component.component_id, catalog)
        calculation_type = definition.calculation_type

        if calculation_type in (CalculationType.FIXED, CalculationType.ATTENDANCE_BASED):
            if component.fixed_value is None:
                kind = "Fixed" if calculation_type == CalculationType.FIXED else "Attendance-based"
                issues.append(_structural(
                    "MISSING_FIXED_VALUE",
                    f"{kind} component {label} must have a value",
                    component.component_id,
                ))
            issues.extend(_check_non_negative(component, label, "value", component.fixed_value))

        elif calculation_type == CalculationType.PERCENTAGE:
            if component.percentage is None:
                issues.append(_structural(
                    "MISSING_PERCENTAGE",
                    f"Percentage component {label} must have a percentage",
                    component.component_id,
                ))
            if not component.base_component_ref:
                issues.append(_structural(
                    "MISSING_BASE_COMPONENT",
                    f"Percentage component {label} must have a base component",
                    component.component_id,
                ))
            issues.extend(_check_non_negative(component, label, "percentage", component.percentage))

        elif calculation_type == CalculationType.FORMULA:
            if not component.formula or not component.formula.strip():
                issues.append(_structural(
                    "MISSING_FORMULA",
                    f"Formula component {label} must have a formula",
                    component.component_id,
                ))
            else:
                try:
                    parse_formula(component.formula)
                except FormulaError as e:
                    issues.append(_structural("INVALID_FORMULA", str(e), component.component_id))
    return issues


def check_bounds(structure: SalaryStructure, catalog: ComponentCatalog) -> List[StructureIssue]:
    issues = []
    for component in structure.components:
        if component.min_value is None or component.max_value is None:
            continue
        if component.min_value > component.max_value:
            issues.append(_structural(
                "INVALID_BOUNDS",
                f"Component {_label(component.component_id, catalog)} minimum value cannot be greater than maximum value",
                component.component_id,
            ))
    return issues


def check_references(structure: SalaryStructure, catalog: ComponentCatalog) -> List[StructureIssue]:
    graph = dependency_resolver.build_reference_graph(structure, catalog)
    issues = [
        _dependency(
            "UNRESOLVED_REFERENCE",
            f"Component {_label(component_id, catalog)} references unknown component '{ref}'",
            component_id,
        )
        for component_id, ref in graph.unresolved
    ]
    for cycle in dependency_resolver.find_cycles(graph):
        issues.append(_dependency(
            "CIRCULAR_REFERENCE",
            dependency_resolver.describe_cycle(cycle),
            cycle[0],
        ))
    return issues


def validate(structure: SalaryStructure, catalog: ComponentCatalog) -> List[StructureIssue]:
    """
    Run every check against a structure.

    Returns:
        All issues found, in check order. An empty list means the structure
        may be resolved and evaluated.
    """
    issues: List[StructureIssue] = []
    issues.extend(check_basic_present(structure, catalog))
    issues.extend(check_duplicates(structure))
    issues.extend(check_catalog_membership(structure, catalog))
    issues.extend(check_required_fields(structure, catalog))
    issues.extend(check_bounds(structure, catalog))
    issues.extend(check_references(structure, catalog))

    if issues:
        logger.info(
            f"Structure {structure.code or structure.id or '<draft>'} failed validation with {len(issues)} issue(s)"
        )
    return issues


def to_rules(structure: SalaryStructure, catalog: ComponentCatalog) -> Dict[str, CompensationRule]:
    """
    Convert a validated structure into rule variants, keyed by component id in
    display order.

    Raises:
        StructuralError: the structure has not passed ``validate``.
    """
    rules: Dict[str, CompensationRule] = {}
    for component in structure.display_order():
        definition = catalog.lookup(component.component_id)
        common = dict(
            component_id=component.component_id,
            definition=definition,
            is_variable=component.is_variable,
            order=component.order,
        )
        calculation_type = definition.calculation_type
        try:
            if calculation_type == CalculationType.FIXED:
                rule = FixedRule(amount=component.fixed_value, **common)
            elif calculation_type == CalculationType.ATTENDANCE_BASED:
                rule = AttendanceRule(amount=component.fixed_value, **common)
            elif calculation_type == CalculationType.PERCENTAGE:
                rule = PercentageRule(
                    percentage=component.percentage,
                    base_ref=component.base_component_ref,
                    min_value=component.min_value,
                    max_value=component.max_value,
                    **common,
                )
            else:
                rule = FormulaRule(
                    expression=component.formula,
                    min_value=component.min_value,
                    max_value=component.max_value,
                    **common,
                )
        except ValueError as e:
            raise StructuralError(
                f"Component '{component.component_id}' is not configured for {calculation_type.value}",
                details={"component_id": component.component_id},
            ) from e
        rules[component.component_id] = rule
    return rules
