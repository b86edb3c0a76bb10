import pytest
import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set env before importing app components
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["LOAD_CATALOG_ON_STARTUP"] = "false"

from salary_app.database import Base, get_db
from salary_app.main import app
from salary_app.models.pay_component import PayComponent
from salary_app.schemas.structure import (
    CalculationType,
    ComponentCategory,
    ComponentType,
    PayComponentDefinition,
    SalaryStructure,
    StructureComponent,
)
from salary_app.services.component_catalog import ComponentCatalog, get_catalog
from fastapi.testclient import TestClient

# SQLite in-memory database configuration
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def _definition(id, code, name, type, category, calculation_type, is_statutory=False, is_taxable=True):
    return PayComponentDefinition(
        id=id,
        code=code,
        name=name,
        type=type,
        category=category,
        calculation_type=calculation_type,
        is_statutory=is_statutory,
        is_taxable=is_taxable,
    )


DEFINITIONS = [
    _definition("basic-fixed", "BASIC_FIXED", "Basic Salary (Fixed)", ComponentType.EARNING, ComponentCategory.BASIC, CalculationType.FIXED),
    _definition("basic-pct", "BASIC", "Basic Salary", ComponentType.EARNING, ComponentCategory.BASIC, CalculationType.PERCENTAGE),
    _definition("hra", "HRA", "House Rent Allowance", ComponentType.EARNING, ComponentCategory.HRA, CalculationType.PERCENTAGE),
    _definition("special", "SPECIAL", "Special Allowance", ComponentType.EARNING, ComponentCategory.ALLOWANCE, CalculationType.PERCENTAGE),
    _definition("conveyance", "CONVEYANCE", "Conveyance Allowance", ComponentType.EARNING, ComponentCategory.ALLOWANCE, CalculationType.FIXED),
    _definition("shift", "SHIFT", "Shift Allowance", ComponentType.EARNING, ComponentCategory.ALLOWANCE, CalculationType.ATTENDANCE_BASED),
    _definition("lta", "LTA", "Leave Travel Allowance", ComponentType.EARNING, ComponentCategory.ALLOWANCE, CalculationType.FORMULA),
    _definition("pf", "PF", "Provident Fund", ComponentType.DEDUCTION, ComponentCategory.STATUTORY_DEDUCTION, CalculationType.PERCENTAGE, is_statutory=True, is_taxable=False),
    _definition("esi", "ESI", "Employee State Insurance", ComponentType.DEDUCTION, ComponentCategory.STATUTORY_DEDUCTION, CalculationType.PERCENTAGE, is_statutory=True, is_taxable=False),
    _definition("pt", "PT", "Professional Tax", ComponentType.DEDUCTION, ComponentCategory.STATUTORY_DEDUCTION, CalculationType.FIXED, is_statutory=True, is_taxable=False),
    _definition("loan", "LOAN", "Loan Recovery", ComponentType.DEDUCTION, ComponentCategory.OTHER_DEDUCTION, CalculationType.FIXED),
]


@pytest.fixture(scope="session", autouse=True)
def setup_database():
    """Create tables once for the whole test session."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)

@pytest.fixture(scope="function")
def db_session():
    """Get a clean database session for each test function with rollback safety."""
    connection = engine.connect()
    transaction = connection.begin()
    session = TestingSessionLocal(bind=connection)

    yield session

    session.close()
    transaction.rollback()
    connection.close()

@pytest.fixture(scope="function")
def catalog():
    """In-memory component catalog shared by the engine tests."""
    return ComponentCatalog(DEFINITIONS, version=1)

@pytest.fixture(scope="function")
def seeded_components(db_session):
    """Persist the catalog definitions as pay_components rows."""
    rows = [
        PayComponent(
            id=d.id,
            code=d.code,
            name=d.name,
            type=d.type.value,
            category=d.category.value,
            calculation_type=d.calculation_type.value,
            is_statutory=d.is_statutory,
            is_taxable=d.is_taxable,
            is_active=True,
        )
        for d in DEFINITIONS
    ]
    db_session.add_all(rows)
    db_session.flush()
    return rows

@pytest.fixture(scope="function")
def make_structure():
    """Helper fixture to build structures from plain dicts."""
    def _make_structure(*components, **fields):
        return SalaryStructure(
            components=tuple(
                StructureComponent(order=index, **component)
                for index, component in enumerate(components)
            ),
            **fields,
        )
    return _make_structure

@pytest.fixture(scope="function")
def client(db_session, catalog):
    """Get a TestClient that uses the test database session and catalog via dependency override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_catalog] = lambda: catalog
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
