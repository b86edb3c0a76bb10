# Models package
# Importing modules here ensures they are registered with SQLAlchemy Base
from . import pay_component, salary_structure

# Explicit class exports for cleaner imports
from .pay_component import PayComponent
from .salary_structure import SalaryStructureVersion, SalaryStructureComponent, StructureStatus

__all__ = [
    "PayComponent",
    "SalaryStructureVersion",
    "SalaryStructureComponent",
    "StructureStatus",
]
