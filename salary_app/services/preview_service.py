"""
Preview Service

The single entry point callers use to evaluate a salary structure:

    validate -> resolve -> evaluate

It serves both interactive previews while a structure is being authored and
the numbers computed when a structure is assigned to an employee. Any problem
surfaces as one ``StructureInvalidError`` listing every issue; no partial
breakdown is ever returned.
"""
import logging
from decimal import Decimal
from typing import List, Optional, Sequence, Union

from salary_app.core.exceptions import (
    DependencyError,
    EvaluationError,
    StructureInvalidError,
    StructureVersionMismatchError,
)
from salary_app.schemas.structure import (
    IssueKind,
    PreviewResult,
    SalaryAssignment,
    SalaryStructure,
    StructureComponent,
    StructureIssue,
)
from salary_app.services import dependency_resolver, salary_evaluator, structure_validator
from salary_app.services.component_catalog import ComponentCatalog, catalog_cache

logger = logging.getLogger(__name__)

StructureInput = Union[SalaryStructure, Sequence[StructureComponent]]


def _input_issues(ctc_annual: Decimal, attendance_factor: Optional[Decimal]) -> List[StructureIssue]:
    issues = []
    if ctc_annual is None or ctc_annual <= 0:
        issues.append(StructureIssue(
            kind=IssueKind.INPUT,
            code="INVALID_CTC",
            message="Annual CTC must be greater than zero",
        ))
    if attendance_factor is not None and not (0 <= attendance_factor <= 1):
        issues.append(StructureIssue(
            kind=IssueKind.INPUT,
            code="INVALID_ATTENDANCE_FACTOR",
            message="Attendance factor must be between 0 and 1",
        ))
    return issues


def _reject(issues: List[StructureIssue]) -> StructureInvalidError:
    return StructureInvalidError(
        errors=[issue.message for issue in issues],
        issues=[issue.model_dump(mode="json") for issue in issues],
    )


def compute_preview(
    structure: StructureInput,
    ctc_annual: Decimal,
    catalog: Optional[ComponentCatalog] = None,
    attendance_factor: Optional[Decimal] = None,
) -> PreviewResult:
    """
    Evaluate a structure (or a draft list of components) for a trial CTC.

    Args:
        structure: A ``SalaryStructure`` or the components of a draft.
        ctc_annual: Annual cost to company, must be positive.
        catalog: Component catalog; the process-wide catalog when omitted.
        attendance_factor: Optional proration factor in [0, 1].

    Returns:
        PreviewResult with per-component monthly amounts and totals.

    Raises:
        StructureInvalidError: with every input, structural, dependency or
            evaluation issue found.
    """
    if not isinstance(structure, SalaryStructure):
        structure = SalaryStructure(components=tuple(structure))
    if catalog is None:
        catalog = catalog_cache.current()
    if ctc_annual is not None:
        ctc_annual = Decimal(ctc_annual)
    if attendance_factor is not None:
        attendance_factor = Decimal(attendance_factor)

    issues = _input_issues(ctc_annual, attendance_factor)
    issues.extend(structure_validator.validate(structure, catalog))
    if issues:
        logger.warning(
            f"Preview rejected for structure {structure.code or structure.id or '<draft>'}: {len(issues)} issue(s)"
        )
        raise _reject(issues)

    try:
        rules = structure_validator.to_rules(structure, catalog)
        plan = dependency_resolver.resolve(structure, catalog)
        result = salary_evaluator.evaluate(rules, plan, ctc_annual, attendance_factor)
    except DependencyError as e:
        raise _reject([StructureIssue(kind=IssueKind.DEPENDENCY, code=e.error_code, message=e.message)]) from e
    except EvaluationError as e:
        component_id = (e.details or {}).get("component_id")
        raise _reject([
            StructureIssue(kind=IssueKind.EVALUATION, code=e.error_code, message=e.message, component_id=component_id)
        ]) from e

    return PreviewResult(
        **result.model_dump(),
        structure_id=structure.id,
        structure_version=structure.version,
        ctc_annual=ctc_annual,
        attendance_factor=Decimal(1) if attendance_factor is None else attendance_factor,
        evaluation_order=plan.order,
    )


def compute_assignment(
    assignment: SalaryAssignment,
    structure: SalaryStructure,
    catalog: Optional[ComponentCatalog] = None,
    attendance_factor: Optional[Decimal] = None,
) -> PreviewResult:
    """Evaluate an assignment against the exact structure version it is pinned to."""
    if structure.id != assignment.structure_id or structure.version != assignment.structure_version:
        raise StructureVersionMismatchError(
            expected=f"{assignment.structure_id} v{assignment.structure_version}",
            actual=f"{structure.id} v{structure.version}",
        )
    result = compute_preview(structure, assignment.ctc_annual, catalog, attendance_factor)
    logger.info(
        f"Computed salary for employee {assignment.employee_id} on structure "
        f"{structure.id} v{structure.version}: net {result.net_salary}"
    )
    return result
