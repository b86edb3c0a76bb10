from typing import Any, Dict, List, Optional

class AppException(Exception):
    def __init__(
        self,
        message: str,
        status_code: int = 400,
        error_code: str = "BUSINESS_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        super().__init__(self.message)

class ComponentNotFoundError(AppException):
    def __init__(self, component_id: str):
        self.component_id = component_id
        super().__init__(
            message=f"Pay component '{component_id}' not found in the component catalog",
            status_code=404,
            error_code="COMPONENT_NOT_FOUND",
            details={"component_id": component_id}
        )

class StructureNotFoundError(AppException):
    def __init__(self, structure_id: str, version: Optional[int] = None):
        label = structure_id if version is None else f"{structure_id} v{version}"
        super().__init__(
            message=f"Salary structure {label} not found",
            status_code=404,
            error_code="STRUCTURE_NOT_FOUND",
            details={"structure_id": structure_id, "version": version}
        )

class StructuralError(AppException):
    """A structure that is not well formed (missing anchor, duplicates, missing fields, bad bounds)."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=422,
            error_code="STRUCTURAL_ERROR",
            details=details
        )

class DependencyError(AppException):
    """Unresolvable component reference or a reference cycle."""
    def __init__(
        self,
        message: str,
        cycles: Optional[List[List[str]]] = None,
        unresolved: Optional[List[str]] = None
    ):
        self.cycles = cycles or []
        self.unresolved = unresolved or []
        super().__init__(
            message=message,
            status_code=422,
            error_code="DEPENDENCY_ERROR",
            details={"cycles": self.cycles, "unresolved": self.unresolved}
        )

class EvaluationError(AppException):
    """Raised when a valid structure cannot be evaluated for the given CTC."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=422,
            error_code="EVALUATION_ERROR",
            details=details
        )

class StructureInvalidError(AppException):
    """Carries every issue found for a structure/CTC combination in one report."""
    def __init__(self, errors: List[str], issues: Optional[List[Dict[str, Any]]] = None):
        self.errors = errors
        super().__init__(
            message=f"Salary structure cannot be evaluated: {len(errors)} error(s) found",
            status_code=422,
            error_code="INVALID_SALARY_STRUCTURE",
            details={"issues": issues or []}
        )

class StructureVersionMismatchError(AppException):
    def __init__(self, expected: str, actual: str):
        super().__init__(
            message=f"Assignment is pinned to structure {expected} but {actual} was supplied",
            status_code=409,
            error_code="STRUCTURE_VERSION_MISMATCH",
            details={"expected": expected, "actual": actual}
        )
