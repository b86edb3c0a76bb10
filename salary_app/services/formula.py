"""
Arithmetic formulas for FORMULA-type pay components.

A formula is a plain arithmetic expression over numbers and names, e.g.
``BASIC * 0.5 + 1600`` or ``max(GROSS * 0.0075, 0)``. Names are the synthetic
references (CTC, BASIC, GROSS) or the codes of other components in the same
structure. Expressions are parsed with ``ast`` and walked by hand, so nothing
except the node types listed below can ever run.
"""
import ast
import math
from decimal import Decimal, DecimalException
from typing import Callable, Dict, FrozenSet, Mapping, Optional, Tuple


class FormulaError(ValueError):
    pass


_BINARY_OPS: Dict[type, Callable[[Decimal, Decimal], Decimal]] = {
    ast.Add: lambda a, b: a + b,
    ast.Sub: lambda a, b: a - b,
    ast.Mult: lambda a, b: a * b,
    ast.Div: lambda a, b: a / b,
}

# name -> (function, minimum arguments, maximum arguments or None)
_FUNCTIONS: Dict[str, Tuple[Callable[..., Decimal], int, Optional[int]]] = {
    "min": (min, 2, None),
    "max": (max, 2, None),
    "abs": (abs, 1, 1),
}


class Formula:
    def __init__(self, expression: str):
        self.expression = expression
        try:
            tree = ast.parse(expression.strip(), mode="eval")
        except SyntaxError as e:
            raise FormulaError(f"Invalid formula '{expression}': {e.msg}") from e
        self._body = tree.body
        self.names: FrozenSet[str] = frozenset(self._collect_names(self._body))

    def _collect_names(self, node: ast.AST):
        if isinstance(node, ast.Constant):
            if isinstance(node.value, bool) or not isinstance(node.value, (int, float)):
                raise FormulaError(f"Unsupported literal {node.value!r} in formula '{self.expression}'")
            if isinstance(node.value, float) and not math.isfinite(node.value):
                raise FormulaError(f"Number out of range in formula '{self.expression}'")
            return
        if isinstance(node, ast.Name):
            yield node.id
            return
        if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPS:
            yield from self._collect_names(node.left)
            yield from self._collect_names(node.right)
            return
        if isinstance(node, ast.UnaryOp) and isinstance(node.op, (ast.UAdd, ast.USub)):
            yield from self._collect_names(node.operand)
            return
        if (
            isinstance(node, ast.Call)
            and isinstance(node.func, ast.Name)
            and node.func.id in _FUNCTIONS
            and not node.keywords
        ):
            self._check_arity(node.func.id, len(node.args))
            for arg in node.args:
                yield from self._collect_names(arg)
            return
        raise FormulaError(f"Unsupported expression in formula '{self.expression}'")

    def _check_arity(self, name: str, count: int) -> None:
        _, at_least, at_most = _FUNCTIONS[name]
        if count < at_least or (at_most is not None and count > at_most):
            if at_most == at_least:
                expected = f"exactly {at_least}"
            else:
                expected = f"at least {at_least}"
            raise FormulaError(
                f"{name}() takes {expected} argument(s), got {count} in formula '{self.expression}'"
            )

    def evaluate(self, values: Mapping[str, Decimal]) -> Decimal:
        try:
            result = self._eval(self._body, values)
        except ZeroDivisionError as e:
            raise FormulaError(f"Formula '{self.expression}' cannot be evaluated: division by zero") from e
        except (DecimalException, TypeError) as e:
            raise FormulaError(f"Formula '{self.expression}' cannot be evaluated") from e
        if not result.is_finite():
            raise FormulaError(f"Formula '{self.expression}' does not produce a finite amount")
        return result

    def _eval(self, node: ast.AST, values: Mapping[str, Decimal]) -> Decimal:
        if isinstance(node, ast.Constant):
            return Decimal(str(node.value))
        if isinstance(node, ast.Name):
            if node.id not in values:
                raise FormulaError(f"Unknown name '{node.id}' in formula '{self.expression}'")
            return values[node.id]
        if isinstance(node, ast.BinOp):
            return _BINARY_OPS[type(node.op)](self._eval(node.left, values), self._eval(node.right, values))
        if isinstance(node, ast.UnaryOp):
            operand = self._eval(node.operand, values)
            return -operand if isinstance(node.op, ast.USub) else operand
        # Only whitelisted calls survive parsing
        func = _FUNCTIONS[node.func.id][0]
        return func(*(self._eval(arg, values) for arg in node.args))


def parse_formula(expression: str) -> Formula:
    if not expression or not expression.strip():
        raise FormulaError("Formula is empty")
    return Formula(expression)
