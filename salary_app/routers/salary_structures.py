"""
Salary Structure Router

HTTP endpoints for salary structure previews.
All evaluation logic is delegated to the preview service.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from salary_app.database import get_db
from salary_app.schemas.preview import (
    CatalogEntry,
    CatalogResponse,
    PreviewErrorResponse,
    PreviewRequest,
    PreviewResponse,
    StoredPreviewRequest,
    StructureVersionResponse,
)
from salary_app.schemas.structure import SalaryStructure
from salary_app.services import preview_service, structure_store
from salary_app.services.component_catalog import ComponentCatalog, catalog_cache, get_catalog


router = APIRouter(
    prefix="/salary-structures",
    tags=["salary-structures"],
)

_error_responses = {422: {"model": PreviewErrorResponse}}


@router.post("/preview", response_model=PreviewResponse, responses=_error_responses)
def preview_draft_structure(
    request: PreviewRequest,
    catalog: ComponentCatalog = Depends(get_catalog)
):
    """
    Preview the monthly breakdown of a draft structure for a trial CTC.
    """
    structure = SalaryStructure(
        name=request.name,
        code=request.code,
        grade=request.grade,
        components=tuple(
            item.to_component(position) for position, item in enumerate(request.components)
        ),
    )
    result = preview_service.compute_preview(
        structure,
        request.ctc_annual,
        catalog=catalog,
        attendance_factor=request.attendance_factor,
    )
    return PreviewResponse.from_result(result)


@router.get("/catalog", response_model=CatalogResponse)
def get_component_catalog(catalog: ComponentCatalog = Depends(get_catalog)):
    """
    List the pay component definitions currently loaded.
    """
    return CatalogResponse(
        version=catalog.version,
        loaded_at=catalog.loaded_at,
        components=[CatalogEntry.model_validate(d, from_attributes=True) for d in catalog],
    )


@router.post("/catalog/reload", response_model=CatalogResponse)
def reload_component_catalog(db: Session = Depends(get_db)):
    """
    Reload the component catalog after definitions changed.
    """
    catalog = catalog_cache.reload(db)
    return get_component_catalog(catalog)


@router.get("/{structure_id}/versions", response_model=List[StructureVersionResponse])
def list_structure_versions(structure_id: str, db: Session = Depends(get_db)):
    """
    List stored versions of a structure, newest first.
    """
    return structure_store.list_versions(db, structure_id)


@router.post("/{structure_id}/preview", response_model=PreviewResponse, responses=_error_responses)
def preview_stored_structure(
    structure_id: str,
    request: StoredPreviewRequest,
    db: Session = Depends(get_db),
    catalog: ComponentCatalog = Depends(get_catalog)
):
    """
    Preview a stored structure (latest version unless one is pinned).
    """
    structure = structure_store.get_structure(db, structure_id, request.version)
    result = preview_service.compute_preview(
        structure,
        request.ctc_annual,
        catalog=catalog,
        attendance_factor=request.attendance_factor,
    )
    return PreviewResponse.from_result(result)
