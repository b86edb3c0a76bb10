"""
Read access to stored salary structures.

Translates persisted rows into immutable ``SalaryStructure`` values. Writing
structures belongs to the authoring workflow and is not done here.
"""
from typing import List, Optional

from sqlalchemy.orm import Session

from salary_app.core.exceptions import StructureNotFoundError
from salary_app.models.salary_structure import SalaryStructureVersion
from salary_app.schemas.structure import SalaryStructure, StructureComponent


def structure_from_row(row: SalaryStructureVersion) -> SalaryStructure:
    return SalaryStructure(
        id=row.structure_id,
        version=row.version,
        name=row.name,
        code=row.code,
        grade=row.grade,
        metadata=dict(row.meta or {}),
        components=tuple(
            StructureComponent(
                component_id=c.component_id,
                fixed_value=c.fixed_value,
                percentage=c.percentage,
                base_component_ref=c.base_component_ref,
                formula=c.formula,
                min_value=c.min_value,
                max_value=c.max_value,
                is_variable=bool(c.is_variable),
                order=c.display_order or 0,
            )
            for c in row.components
        ),
    )


def get_structure(db: Session, structure_id: str, version: Optional[int] = None) -> SalaryStructure:
    """
    Load a stored structure.

    Args:
        db: Database session
        structure_id: Stable structure identifier
        version: Pinned version; the latest version when omitted

    Raises:
        StructureNotFoundError: no matching row exists
    """
    query = db.query(SalaryStructureVersion).filter(
        SalaryStructureVersion.structure_id == structure_id
    )
    if version is not None:
        query = query.filter(SalaryStructureVersion.version == version)

    row = query.order_by(SalaryStructureVersion.version.desc()).first()
    if not row:
        raise StructureNotFoundError(structure_id, version)
    return structure_from_row(row)


def list_versions(db: Session, structure_id: str) -> List[SalaryStructureVersion]:
    rows = db.query(SalaryStructureVersion).filter(
        SalaryStructureVersion.structure_id == structure_id
    ).order_by(SalaryStructureVersion.version.desc()).all()
    if not rows:
        raise StructureNotFoundError(structure_id)
    return rows
