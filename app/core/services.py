"""
Service layer building blocks.

Services own the business rules; views only translate HTTP to service calls
and back. Two outcomes are distinguished:

- expected, non-exceptional results (an ignored webhook, a missing field)
  come back as a ServiceResult
- state conflicts and infrastructure failures are raised as
  core.exceptions errors

Example:
    class ReceiptService(BaseService):
        def describe(self, order_id: str) -> ServiceResult[dict]:
            missing = self.validate_required(order_id=order_id)
            if missing is not None:
                return missing
            self.get_logger().info("Describing order", extra={"order_id": order_id})
            return ServiceResult.success({"order_id": order_id})
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Outcome of a service call that is allowed to fail quietly.

    Truthiness follows ``success``, so ``if result:`` reads naturally. Compare
    against None when the question is whether a result was returned at all.

    Attributes:
        success: Whether the call did what was asked
        data: Payload on success
        error: Human-readable reason on failure
        error_code: Stable code for the failure (e.g. ORDER_NOT_FOUND)
        errors: Per-field messages for validation failures
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = None

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
    ) -> ServiceResult[T]:
        return cls(success=False, error=error, error_code=error_code, errors=errors)

    def __bool__(self) -> bool:
        return self.success


class BaseService:
    """
    Common base for service classes.

    Subclasses receive their collaborators (gateway adapter, record store)
    through __init__ and keep no per-request state.
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Logger named ``<module>.<ClassName>`` so output can be filtered per service."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    def validate_required(cls, **fields) -> ServiceResult | None:
        """
        Check that every keyword argument has a value.

        None and whitespace-only strings count as missing.

        Returns:
            A VALIDATION_ERROR failure listing the missing fields, or None
        """
        errors = {
            name: ["This field is required."]
            for name, value in fields.items()
            if value is None or (isinstance(value, str) and not value.strip())
        }
        if not errors:
            return None
        return ServiceResult.failure(
            "Required fields missing",
            error_code="VALIDATION_ERROR",
            errors=errors,
        )
