"""
Evaluator

Computes monthly amounts for every component of a resolved structure.

Arithmetic runs on ``Decimal`` in a fixed local context, so the same inputs
always give the same digits regardless of the caller's decimal settings.
Line amounts are rounded once, half-up to ``settings.money_decimal_places``,
when the result is produced; totals are sums of those rounded lines, which
keeps ``total_earnings - total_deductions == net_salary`` exact.
"""
import logging
from decimal import (
    ROUND_HALF_EVEN,
    ROUND_HALF_UP,
    Context,
    Decimal,
    DecimalException,
    DivisionByZero,
    Inexact,
    InvalidOperation,
    Overflow,
    localcontext,
)
from typing import Dict, Mapping, Optional

from salary_app.core.config import settings
from salary_app.core.exceptions import EvaluationError
from salary_app.schemas.structure import (
    AttendanceRule,
    BaseReference,
    ComponentAmount,
    ComponentType,
    CompensationRule,
    EvaluationResult,
    FixedRule,
    FormulaRule,
    PercentageRule,
)
from salary_app.services.dependency_resolver import EvaluationPlan
from salary_app.services.formula import FormulaError, parse_formula

logger = logging.getLogger(__name__)

_ARITHMETIC = Context(prec=34, rounding=ROUND_HALF_EVEN)
# Totals of rounded lines must be exact
_EXACT = Context(prec=34, rounding=ROUND_HALF_EVEN, traps=[InvalidOperation, DivisionByZero, Overflow, Inexact])
HUNDRED = Decimal(100)
MONTHS = Decimal(12)


def round_money(value: Decimal, places: Optional[int] = None) -> Decimal:
    """Round half-up to the currency minor unit."""
    if places is None:
        places = settings.money_decimal_places
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def clamp(value: Decimal, min_value: Optional[Decimal], max_value: Optional[Decimal]) -> Decimal:
    """Apply whichever bounds are present."""
    if max_value is not None and value > max_value:
        value = max_value
    if min_value is not None and value < min_value:
        value = min_value
    return value


class _Scope:
    """Amounts evaluated so far plus the synthetic references."""

    def __init__(self, rules: Mapping[str, CompensationRule], plan: EvaluationPlan, monthly_ctc: Decimal):
        self.rules = rules
        self.plan = plan
        self.monthly_ctc = monthly_ctc
        self.amounts: Dict[str, Decimal] = {}
        self.gross: Optional[Decimal] = None

    def basic(self) -> Decimal:
        anchor = self.plan.basic_anchor
        if anchor is None or anchor not in self.amounts:
            raise EvaluationError("BASIC is referenced before the basic component has been evaluated")
        return self.amounts[anchor]

    def reference(self, ref: str) -> Decimal:
        if ref == BaseReference.CTC.value:
            return self.monthly_ctc
        if ref == BaseReference.BASIC.value:
            return self.basic()
        if ref == BaseReference.GROSS.value:
            if self.gross is None:
                raise EvaluationError("GROSS is referenced before gross earnings are known")
            return self.gross
        if ref not in self.amounts:
            raise EvaluationError(f"Component '{ref}' is referenced before it has been evaluated")
        return self.amounts[ref]

    def formula_values(self) -> Dict[str, Decimal]:
        values: Dict[str, Decimal] = dict(self.amounts)
        for component_id, amount in self.amounts.items():
            values[self.rules[component_id].definition.code] = amount
        values[BaseReference.CTC.value] = self.monthly_ctc
        if self.plan.basic_anchor in self.amounts:
            values[BaseReference.BASIC.value] = self.amounts[self.plan.basic_anchor]
        if self.gross is not None:
            values[BaseReference.GROSS.value] = self.gross
        return values


def _too_large(component_id: str) -> EvaluationError:
    return EvaluationError(
        f"Amount for component '{component_id}' is too large to compute",
        details={"component_id": component_id},
    )


def _component_amount(rule: CompensationRule, scope: _Scope, attendance_factor: Decimal) -> Decimal:
    try:
        return _raw_amount(rule, scope, attendance_factor)
    except DecimalException as e:
        raise _too_large(rule.component_id) from e


def _raw_amount(rule: CompensationRule, scope: _Scope, attendance_factor: Decimal) -> Decimal:
    if isinstance(rule, FixedRule):
        return rule.amount
    if isinstance(rule, AttendanceRule):
        return rule.amount * attendance_factor
    if isinstance(rule, PercentageRule):
        raw = scope.reference(rule.base_ref) * rule.percentage / HUNDRED
        return clamp(raw, rule.min_value, rule.max_value)
    if isinstance(rule, FormulaRule):
        try:
            raw = parse_formula(rule.expression).evaluate(scope.formula_values())
        except FormulaError as e:
            raise EvaluationError(str(e), details={"component_id": rule.component_id}) from e
        return clamp(raw, rule.min_value, rule.max_value)
    raise EvaluationError(f"Unsupported rule for component '{rule.component_id}'")


def evaluate(
    rules: Mapping[str, CompensationRule],
    plan: EvaluationPlan,
    ctc_annual: Decimal,
    attendance_factor: Optional[Decimal] = None,
) -> EvaluationResult:
    """
    Evaluate every rule in plan order.

    Args:
        rules: Rule variants keyed by component id, in display order.
        plan: Output of ``dependency_resolver.resolve`` for the same structure.
        ctc_annual: Annual cost to company.
        attendance_factor: Proration factor applied to ATTENDANCE_BASED
            components. Defaults to 1.

    Raises:
        EvaluationError: the combination yields a negative net salary, a
            formula cannot be computed or an amount exceeds the working precision.
    """
    factor = Decimal(1) if attendance_factor is None else Decimal(attendance_factor)

    with localcontext(_ARITHMETIC):
        scope = _Scope(rules, plan, Decimal(ctc_annual) / MONTHS)

        for component_id in plan.first_pass:
            scope.amounts[component_id] = _component_amount(rules[component_id], scope, factor)

        scope.gross = sum(
            (
                scope.amounts[component_id]
                for component_id in plan.first_pass
                if rules[component_id].definition.type == ComponentType.EARNING
            ),
            Decimal(0),
        )

        for component_id in plan.second_pass:
            scope.amounts[component_id] = _component_amount(rules[component_id], scope, factor)

        lines = []
        for component_id, rule in rules.items():
            try:
                amount = round_money(scope.amounts[component_id])
            except DecimalException as e:
                raise _too_large(component_id) from e
            definition = rule.definition
            lines.append(ComponentAmount(
                component_id=component_id,
                code=definition.code,
                name=definition.name,
                type=definition.type,
                category=definition.category,
                is_variable=rule.is_variable,
                is_statutory=definition.is_statutory,
                is_taxable=definition.is_taxable,
                monthly_amount=amount,
            ))

    try:
        with localcontext(_EXACT):
            earnings = [line.monthly_amount for line in lines if line.type == ComponentType.EARNING]
            deductions = [line.monthly_amount for line in lines if line.type != ComponentType.EARNING]
            total_earnings = sum(earnings, Decimal(0))
            total_deductions = sum(deductions, Decimal(0))
            net_salary = total_earnings - total_deductions
    except DecimalException as e:
        raise EvaluationError("Salary totals are too large to compute") from e

    if net_salary < 0:
        raise EvaluationError(
            f"Deductions ({total_deductions}) exceed earnings ({total_earnings}); net salary would be negative",
            details={
                "total_earnings": str(total_earnings),
                "total_deductions": str(total_deductions),
                "net_salary": str(net_salary),
            },
        )

    return EvaluationResult(
        lines=tuple(lines),
        total_earnings=total_earnings,
        total_deductions=total_deductions,
        net_salary=net_salary,
    )
