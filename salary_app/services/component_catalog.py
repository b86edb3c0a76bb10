"""
Component Catalog

Read-only registry of pay component definitions. The catalog is built once
from externally supplied data (the pay_components table) and never mutated;
a reload builds a new catalog and swaps the process-wide reference.
"""
import logging
import threading
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Iterable, Iterator, Optional

from sqlalchemy.orm import Session

from salary_app.core.exceptions import ComponentNotFoundError
from salary_app.models.pay_component import PayComponent
from salary_app.schemas.structure import PayComponentDefinition

logger = logging.getLogger(__name__)


class ComponentCatalog:
    def __init__(self, definitions: Iterable[PayComponentDefinition] = (), version: int = 0):
        self._definitions = MappingProxyType({d.id: d for d in definitions})
        self.version = version
        self.loaded_at = datetime.now(timezone.utc)

    def lookup(self, component_id: str) -> PayComponentDefinition:
        definition = self._definitions.get(component_id)
        if definition is None:
            raise ComponentNotFoundError(component_id)
        return definition

    def get(self, component_id: str) -> Optional[PayComponentDefinition]:
        return self._definitions.get(component_id)

    def __contains__(self, component_id: object) -> bool:
        return component_id in self._definitions

    def __iter__(self) -> Iterator[PayComponentDefinition]:
        return iter(self._definitions.values())

    def __len__(self) -> int:
        return len(self._definitions)


def load_catalog(db: Session, version: int = 0) -> ComponentCatalog:
    """Build a catalog from the active rows of the pay_components table."""
    rows = db.query(PayComponent).filter(
        PayComponent.is_active.is_(True)
    ).order_by(PayComponent.code).all()
    return ComponentCatalog(
        (PayComponentDefinition.model_validate(row) for row in rows),
        version=version,
    )


class CatalogCache:
    """Process-wide holder of the current catalog. Reloads only when asked to."""

    def __init__(self):
        self._catalog = ComponentCatalog()
        self._lock = threading.Lock()

    def current(self) -> ComponentCatalog:
        return self._catalog

    def reload(self, db: Session) -> ComponentCatalog:
        with self._lock:
            catalog = load_catalog(db, version=self._catalog.version + 1)
            self._catalog = catalog
        logger.info(f"Component catalog reloaded: {len(catalog)} components (version {catalog.version})")
        return catalog

    def replace(self, catalog: ComponentCatalog) -> None:
        with self._lock:
            self._catalog = catalog


catalog_cache = CatalogCache()


def get_catalog() -> ComponentCatalog:
    """FastAPI dependency returning the current catalog."""
    return catalog_cache.current()
