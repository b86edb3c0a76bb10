import pytest

from salary_app.core.exceptions import ComponentNotFoundError
from salary_app.models.pay_component import PayComponent
from salary_app.schemas.structure import CalculationType, ComponentCategory, ComponentType
from salary_app.services.component_catalog import CatalogCache, ComponentCatalog, load_catalog


def test_lookup_and_not_found(catalog):
    definition = catalog.lookup("hra")
    assert definition.code == "HRA"
    assert definition.calculation_type == CalculationType.PERCENTAGE
    assert catalog.get("missing") is None
    assert "hra" in catalog
    with pytest.raises(ComponentNotFoundError) as exc_info:
        catalog.lookup("missing")
    assert exc_info.value.status_code == 404

def test_catalog_cannot_be_mutated(catalog):
    with pytest.raises(TypeError):
        catalog._definitions["new"] = catalog.lookup("hra")

def test_load_catalog_from_rows(db_session, seeded_components):
    db_session.add(PayComponent(
        id="retired", code="RETIRED", name="Retired Allowance", type="EARNING",
        category="ALLOWANCE", calculation_type="FIXED", is_active=False,
    ))
    db_session.flush()

    catalog = load_catalog(db_session, version=7)
    assert len(catalog) == len(seeded_components)
    assert catalog.version == 7
    assert "retired" not in catalog
    pf = catalog.lookup("pf")
    assert pf.type == ComponentType.DEDUCTION
    assert pf.category == ComponentCategory.STATUTORY_DEDUCTION
    assert pf.is_statutory is True

def test_cache_reload_swaps_catalog(db_session, seeded_components):
    cache = CatalogCache()
    before = cache.current()
    assert len(before) == 0

    reloaded = cache.reload(db_session)
    assert cache.current() is reloaded
    assert reloaded.version == before.version + 1
    assert len(before) == 0  # old catalog untouched

def test_replace(catalog):
    cache = CatalogCache()
    cache.replace(catalog)
    assert cache.current() is catalog
    assert isinstance(cache.current(), ComponentCatalog)
