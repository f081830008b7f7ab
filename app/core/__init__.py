"""
Shared infrastructure for the payments backend.

Holds nothing payment-specific: the service result type, the application
error tree, an abstract timestamped model and the health endpoint.

Models live in core.models and core.model_mixins and are not re-exported
here, so importing ``core`` never touches the app registry.
"""

from .exceptions import (
    BaseApplicationError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from .services import BaseService, ServiceResult

__all__ = [
    "BaseService",
    "ServiceResult",
    "BaseApplicationError",
    "ValidationError",
    "NotFoundError",
    "PermissionDeniedError",
    "ConflictError",
]
