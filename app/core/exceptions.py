"""
Application error types shared by every app.

An error is a message for humans, an error code for clients and an
optional details dict. Views render all of them through to_dict() so the
JSON error body has one shape across the API.

Hierarchy:
    BaseApplicationError
    ├── ValidationError        request accepted by DRF, rejected by a business rule
    ├── NotFoundError          lookup by id found nothing
    ├── PermissionDeniedError  authenticated caller may not touch the resource
    └── ConflictError          current state of the resource forbids the change

Domain apps subclass these (see payments.exceptions) and set their own
default_error_code.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Root of the application error tree.

    Attributes:
        message: Human-readable description
        error_code: Stable code clients branch on
        details: Extra context such as offending ids or amounts
    """

    default_error_code: str = "APPLICATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Render as an API error body.

        {"error": "...", "error_code": "...", "details": {...}}; details is
        omitted when empty.
        """
        body: dict[str, Any] = {"error": self.message, "error_code": self.error_code}
        if self.details:
            body["details"] = self.details
        return body

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, error_code={self.error_code!r}, details={self.details!r})"


class ValidationError(BaseApplicationError):
    """Business-rule rejection of already-parsed input. Maps to 400."""

    default_error_code: str = "VALIDATION_ERROR"


class NotFoundError(BaseApplicationError):
    default_error_code: str = "NOT_FOUND"


class PermissionDeniedError(BaseApplicationError):
    """
    The caller is known but not allowed. Maps to 403.

    Missing or bad credentials stay with DRF's NotAuthenticated (401).
    """

    default_error_code: str = "PERMISSION_DENIED"


class ConflictError(BaseApplicationError):
    """The resource exists but its state or version rules out the change. Maps to 409."""

    default_error_code: str = "CONFLICT"
