"""
Dependency Resolver

Builds the reference graph of a structure, detects cycles and produces the
evaluation plan.

Graph
-----
One node per structure component. An edge ``A -> B`` means A needs B's amount
first:

- A is a PERCENTAGE component whose ``base_component_ref`` is B's id;
- A is a FORMULA component whose expression names B's code (or id);
- A refers to the ``BASIC`` keyword and B is the structure's BASIC anchor
  (the first BASIC-category component in display order).

``CTC`` and ``GROSS`` are synthetic roots, never nodes.

GROSS
-----
GROSS means the sum of *all* earnings that do not themselves depend on GROSS.
Components that refer to GROSS, and everything depending on them, are
evaluated in a second pass after that sum is known. Declared order plays no
part in this.
"""
import logging
from typing import Dict, Iterable, List, Optional, Set, Tuple

from pydantic import BaseModel, ConfigDict

from salary_app.core.exceptions import DependencyError
from salary_app.schemas.structure import (
    BaseReference,
    CalculationType,
    ComponentCategory,
    SalaryStructure,
    StructureComponent,
)
from salary_app.services.component_catalog import ComponentCatalog
from salary_app.services.formula import FormulaError, parse_formula

logger = logging.getLogger(__name__)

WHITE, GRAY, BLACK = 0, 1, 2


class ReferenceGraph(BaseModel):
    model_config = ConfigDict(frozen=True)

    nodes: Tuple[str, ...]
    edges: Dict[str, Tuple[str, ...]]
    gross_refs: Tuple[str, ...] = ()
    unresolved: Tuple[Tuple[str, str], ...] = ()  # (component_id, reference)
    basic_anchor: Optional[str] = None


class EvaluationPlan(BaseModel):
    model_config = ConfigDict(frozen=True)

    first_pass: Tuple[str, ...]
    second_pass: Tuple[str, ...] = ()
    basic_anchor: Optional[str] = None

    @property
    def order(self) -> Tuple[str, ...]:
        return self.first_pass + self.second_pass


def find_basic_anchor(structure: SalaryStructure, catalog: ComponentCatalog) -> Optional[str]:
    for component in structure.display_order():
        definition = catalog.get(component.component_id)
        if definition is not None and definition.category == ComponentCategory.BASIC:
            return component.component_id
    return None


def component_references(component: StructureComponent, catalog: ComponentCatalog) -> List[str]:
    """Raw reference names a component uses, keywords included."""
    definition = catalog.get(component.component_id)
    calculation_type = definition.calculation_type if definition else None

    if calculation_type == CalculationType.FORMULA or (calculation_type is None and component.formula):
        if not component.formula:
            return []
        try:
            return sorted(parse_formula(component.formula).names)
        except FormulaError:
            # Reported by the validator as a structural problem
            return []
    if calculation_type == CalculationType.PERCENTAGE or calculation_type is None:
        return [component.base_component_ref] if component.base_component_ref else []
    return []


def build_reference_graph(structure: SalaryStructure, catalog: ComponentCatalog) -> ReferenceGraph:
    components: List[StructureComponent] = []
    seen: Set[str] = set()
    for component in structure.display_order():
        # Duplicates are a validator error; the graph keeps the first occurrence
        if component.component_id not in seen:
            seen.add(component.component_id)
            components.append(component)

    by_code: Dict[str, str] = {}
    for component in components:
        definition = catalog.get(component.component_id)
        if definition is not None:
            by_code.setdefault(definition.code, component.component_id)

    anchor = find_basic_anchor(structure, catalog)
    edges: Dict[str, Tuple[str, ...]] = {}
    gross_refs: List[str] = []
    unresolved: List[Tuple[str, str]] = []

    for component in components:
        definition = catalog.get(component.component_id)
        is_formula = definition is not None and definition.calculation_type == CalculationType.FORMULA
        targets: List[str] = []
        for ref in component_references(component, catalog):
            if ref == BaseReference.CTC.value:
                continue
            if ref == BaseReference.GROSS.value:
                gross_refs.append(component.component_id)
                continue
            if ref == BaseReference.BASIC.value:
                # A missing anchor is reported by the BASIC presence check
                if anchor is not None:
                    targets.append(anchor)
                continue
            if is_formula and ref in by_code:
                targets.append(by_code[ref])
            elif ref in seen:
                targets.append(ref)
            else:
                unresolved.append((component.component_id, ref))
        edges[component.component_id] = tuple(dict.fromkeys(targets))

    return ReferenceGraph(
        nodes=tuple(c.component_id for c in components),
        edges=edges,
        gross_refs=tuple(gross_refs),
        unresolved=tuple(unresolved),
        basic_anchor=anchor,
    )


def find_cycles(graph: ReferenceGraph) -> List[List[str]]:
    """
    Three-color depth-first search. Every back edge closes exactly one reported
    cycle, returned as ``[a, b, ..., a]``. Iterative so deep chains cannot hit
    the recursion limit; each edge is followed once, so it always terminates.
    """
    color = {node: WHITE for node in graph.nodes}
    cycles: List[List[str]] = []

    for root in graph.nodes:
        if color[root] != WHITE:
            continue
        color[root] = GRAY
        path = [root]
        stack = [iter(graph.edges.get(root, ()))]
        while stack:
            for target in stack[-1]:
                if color[target] == WHITE:
                    color[target] = GRAY
                    path.append(target)
                    stack.append(iter(graph.edges.get(target, ())))
                    break
                if color[target] == GRAY:
                    cycles.append(path[path.index(target):] + [target])
            else:
                color[path.pop()] = BLACK
                stack.pop()

    return cycles


def topological_order(graph: ReferenceGraph) -> List[str]:
    """Post-order DFS in display order: dependencies always come first."""
    visited: Set[str] = set()
    order: List[str] = []

    for root in graph.nodes:
        if root in visited:
            continue
        visited.add(root)
        path = [root]
        stack = [iter(graph.edges.get(root, ()))]
        while stack:
            for target in stack[-1]:
                if target not in visited:
                    visited.add(target)
                    path.append(target)
                    stack.append(iter(graph.edges.get(target, ())))
                    break
            else:
                order.append(path.pop())
                stack.pop()

    return order


def _dependents_closure(graph: ReferenceGraph, seeds: Iterable[str]) -> Set[str]:
    reverse: Dict[str, List[str]] = {node: [] for node in graph.nodes}
    for source, targets in graph.edges.items():
        for target in targets:
            reverse[target].append(source)

    closure: Set[str] = set()
    pending = list(seeds)
    while pending:
        node = pending.pop()
        if node in closure:
            continue
        closure.add(node)
        pending.extend(reverse[node])
    return closure


def describe_cycle(cycle: List[str]) -> str:
    if len(cycle) == 2:
        return f"Component '{cycle[0]}' references itself"
    return "Circular reference: " + " -> ".join(cycle)


def resolve(structure: SalaryStructure, catalog: ComponentCatalog) -> EvaluationPlan:
    """
    Produce the evaluation plan for a structure.

    Raises:
        DependencyError: a reference does not resolve or references form a cycle.
    """
    graph = build_reference_graph(structure, catalog)
    cycles = find_cycles(graph)

    if graph.unresolved or cycles:
        problems = [
            f"Component '{component_id}' references unknown component '{ref}'"
            for component_id, ref in graph.unresolved
        ]
        problems.extend(describe_cycle(cycle) for cycle in cycles)
        raise DependencyError(
            "; ".join(problems),
            cycles=cycles,
            unresolved=[ref for _, ref in graph.unresolved],
        )

    order = topological_order(graph)
    deferred = _dependents_closure(graph, graph.gross_refs)
    plan = EvaluationPlan(
        first_pass=tuple(node for node in order if node not in deferred),
        second_pass=tuple(node for node in order if node in deferred),
        basic_anchor=graph.basic_anchor,
    )
    logger.debug(f"Resolved evaluation order for {len(order)} components ({len(plan.second_pass)} after GROSS)")
    return plan
