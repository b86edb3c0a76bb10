import pytest
from datetime import date
from decimal import Decimal

from salary_app.core.exceptions import StructureInvalidError, StructureVersionMismatchError
from salary_app.schemas.structure import SalaryAssignment, SalaryStructure, StructureComponent
from salary_app.services import preview_service
from salary_app.services.component_catalog import ComponentCatalog, catalog_cache


def test_scenario_basic_fixed_with_hra(catalog, make_structure):
    structure = make_structure(
        {"component_id": "basic-fixed", "fixed_value": 50000},
        {"component_id": "hra", "percentage": 40, "base_component_ref": "BASIC"},
    )
    for ctc in (100000, 1200000, 9999999):
        result = preview_service.compute_preview(structure, Decimal(ctc), catalog)
        assert result.per_component["hra"] == Decimal("20000")
        assert result.total_earnings == Decimal("70000")
        assert result.net_salary == Decimal("70000")

def test_scenario_basic_percentage_of_ctc(catalog, make_structure):
    structure = make_structure({"component_id": "basic-pct", "percentage": 40, "base_component_ref": "CTC"})
    result = preview_service.compute_preview(structure, Decimal(1200000), catalog)
    assert result.per_component["basic-pct"] == Decimal("40000")

def test_scenario_clamped_to_min(catalog, make_structure):
    # raw = 10000 * 30% = 3000
    structure = make_structure(
        {"component_id": "basic-fixed", "fixed_value": 10000},
        {"component_id": "special", "percentage": 30, "base_component_ref": "BASIC", "min_value": 5000, "max_value": 10000},
    )
    result = preview_service.compute_preview(structure, Decimal(500000), catalog)
    assert result.per_component["special"] == Decimal("5000")

def test_scenario_mutual_reference_rejected(catalog, make_structure):
    structure = make_structure(
        {"component_id": "basic-fixed", "fixed_value": 10000},
        {"component_id": "hra", "percentage": 10, "base_component_ref": "special"},
        {"component_id": "special", "percentage": 10, "base_component_ref": "hra"},
    )
    with pytest.raises(StructureInvalidError) as exc_info:
        preview_service.compute_preview(structure, Decimal(500000), catalog)
    error = exc_info.value
    assert len(error.errors) == 1
    assert "Circular reference" in error.errors[0]
    assert error.details["issues"][0]["kind"] == "DEPENDENCY"

def test_self_reference_rejected_without_amounts(catalog, make_structure):
    structure = make_structure(
        {"component_id": "basic-fixed", "fixed_value": 10000},
        {"component_id": "hra", "percentage": 10, "base_component_ref": "hra"},
    )
    with pytest.raises(StructureInvalidError) as exc_info:
        preview_service.compute_preview(structure, Decimal(500000), catalog)
    assert exc_info.value.errors == ["Component 'hra' references itself"]

def test_empty_component_list(catalog):
    with pytest.raises(StructureInvalidError) as exc_info:
        preview_service.compute_preview([], Decimal(500000), catalog)
    assert exc_info.value.errors == ["Structure must include a basic salary component"]

def test_duplicate_component(catalog):
    components = [
        StructureComponent(component_id="basic-fixed", fixed_value=Decimal(10000)),
        StructureComponent(component_id="basic-fixed", fixed_value=Decimal(10000), order=1),
    ]
    with pytest.raises(StructureInvalidError) as exc_info:
        preview_service.compute_preview(components, Decimal(500000), catalog)
    assert any("Duplicate component" in e for e in exc_info.value.errors)

def test_input_errors_reported_with_structure_errors(catalog):
    with pytest.raises(StructureInvalidError) as exc_info:
        preview_service.compute_preview([], Decimal(0), catalog, attendance_factor=Decimal("1.5"))
    assert exc_info.value.errors == [
        "Annual CTC must be greater than zero",
        "Attendance factor must be between 0 and 1",
        "Structure must include a basic salary component",
    ]

def test_negative_net_reported_as_error(catalog, make_structure):
    structure = make_structure(
        {"component_id": "basic-fixed", "fixed_value": 1000},
        {"component_id": "loan", "fixed_value": 5000},
    )
    with pytest.raises(StructureInvalidError) as exc_info:
        preview_service.compute_preview(structure, Decimal(12000), catalog)
    assert exc_info.value.details["issues"][0]["kind"] == "EVALUATION"
    assert "net salary would be negative" in exc_info.value.errors[0]

def test_preview_is_deterministic(catalog, make_structure):
    structure = make_structure(
        {"component_id": "basic-pct", "percentage": "41.17", "base_component_ref": "CTC"},
        {"component_id": "hra", "percentage": "37.77", "base_component_ref": "BASIC"},
        {"component_id": "special", "percentage": "13", "base_component_ref": "GROSS"},
        {"component_id": "pf", "percentage": "12", "base_component_ref": "BASIC", "max_value": 1800},
        {"component_id": "esi", "percentage": "0.75", "base_component_ref": "GROSS"},
        {"component_id": "pt", "fixed_value": 200},
    )
    results = [preview_service.compute_preview(structure, Decimal("987654.32"), catalog) for _ in range(5)]
    assert all(r == results[0] for r in results)
    first = results[0]
    assert first.total_earnings - first.total_deductions == first.net_salary
    assert first.evaluation_order[-2:] == ("special", "esi")

def test_preview_carries_structure_identity(catalog, make_structure):
    structure = make_structure(
        {"component_id": "basic-fixed", "fixed_value": 10000},
        id="STD", version=3,
    )
    result = preview_service.compute_preview(structure, Decimal(500000), catalog)
    assert result.structure_id == "STD"
    assert result.structure_version == 3
    assert result.attendance_factor == Decimal(1)

def test_default_catalog_is_process_cache(catalog, make_structure):
    previous = catalog_cache.current()
    catalog_cache.replace(catalog)
    try:
        structure = make_structure({"component_id": "basic-fixed", "fixed_value": 10000})
        assert preview_service.compute_preview(structure, Decimal(500000)).net_salary == Decimal("10000")
    finally:
        catalog_cache.replace(previous)

def test_structure_revision_creates_new_version(catalog, make_structure):
    first_version = make_structure({"component_id": "basic-fixed", "fixed_value": 10000}, id="STD")
    revised = first_version.revise(components=({"component_id": "basic-fixed", "fixed_value": 12000},))
    assert revised.version == 2
    assert first_version.version == 1
    assert preview_service.compute_preview(first_version, Decimal(1), catalog).net_salary == Decimal("10000")
    assert preview_service.compute_preview(revised, Decimal(1), catalog).net_salary == Decimal("12000")

def test_compute_assignment_uses_pinned_version(catalog, make_structure):
    structure = make_structure({"component_id": "basic-pct", "percentage": 50, "base_component_ref": "CTC"}, id="STD", version=2)
    assignment = SalaryAssignment(
        employee_id="E-1",
        structure_id="STD",
        structure_version=2,
        ctc_annual=Decimal(240000),
        effective_from=date(2025, 4, 1),
    )
    result = preview_service.compute_assignment(assignment, structure, catalog)
    assert result.net_salary == Decimal("10000")

    with pytest.raises(StructureVersionMismatchError):
        preview_service.compute_assignment(assignment, structure.revise(), catalog)

def test_assignment_effective_dates_validated():
    with pytest.raises(ValueError):
        SalaryAssignment(
            employee_id="E-1",
            structure_id="STD",
            structure_version=1,
            ctc_annual=Decimal(240000),
            effective_from=date(2025, 4, 1),
            effective_to=date(2025, 3, 1),
        )

def test_structure_is_immutable(make_structure):
    structure = make_structure({"component_id": "basic-fixed", "fixed_value": 10000})
    with pytest.raises(Exception):
        structure.version = 5

def test_unknown_catalog_component_rejected():
    empty = ComponentCatalog()
    with pytest.raises(StructureInvalidError) as exc_info:
        preview_service.compute_preview(
            SalaryStructure(components=({"component_id": "basic-fixed", "fixed_value": 1},)),
            Decimal(1),
            empty,
        )
    assert len(exc_info.value.errors) == 2

@pytest.mark.parametrize("formula", ["min(BASIC)", "abs(BASIC, 1)", "BASIC * 1e999"])
def test_unusable_formula_rejected_before_evaluation(catalog, make_structure, formula):
    structure = make_structure(
        {"component_id": "basic-fixed", "fixed_value": 10000},
        {"component_id": "lta", "formula": formula},
    )
    with pytest.raises(StructureInvalidError) as exc_info:
        preview_service.compute_preview(structure, Decimal(1200000), catalog)
    issue = exc_info.value.details["issues"][0]
    assert issue["kind"] == "STRUCTURAL"
    assert issue["code"] == "INVALID_FORMULA"
    assert issue["component_id"] == "lta"

def test_amount_beyond_precision_reported_as_error(catalog, make_structure):
    structure = make_structure({"component_id": "basic-fixed", "fixed_value": Decimal("1e40")})
    with pytest.raises(StructureInvalidError) as exc_info:
        preview_service.compute_preview(structure, Decimal(1200000), catalog)
    issue = exc_info.value.details["issues"][0]
    assert issue["kind"] == "EVALUATION"
    assert issue["component_id"] == "basic-fixed"
    assert exc_info.value.errors == ["Amount for component 'basic-fixed' is too large to compute"]

def test_formula_result_beyond_precision_reported_as_error(catalog, make_structure):
    structure = make_structure(
        {"component_id": "basic-fixed", "fixed_value": 10000},
        {"component_id": "lta", "formula": "BASIC * 1" + "0" * 40},
    )
    with pytest.raises(StructureInvalidError) as exc_info:
        preview_service.compute_preview(structure, Decimal(1200000), catalog)
    issue = exc_info.value.details["issues"][0]
    assert issue["kind"] == "EVALUATION"
    assert issue["component_id"] == "lta"

def test_totals_beyond_precision_reported_as_error(catalog, make_structure):
    structure = make_structure(
        {"component_id": "basic-fixed", "fixed_value": Decimal("50000000000000000000000000000000.01")},
        {"component_id": "conveyance", "fixed_value": Decimal("50000000000000000000000000000000.01")},
    )
    with pytest.raises(StructureInvalidError) as exc_info:
        preview_service.compute_preview(structure, Decimal(1200000), catalog)
    assert exc_info.value.details["issues"][0]["kind"] == "EVALUATION"
    assert exc_info.value.errors == ["Salary totals are too large to compute"]
