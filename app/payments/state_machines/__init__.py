"""
State machine enums for payment models.

This module defines the state enums used by payment models with django-fsm.
"""

from payments.state_machines.states import (
    OPEN_STATUSES,
    TERMINAL_STATUSES,
    ItemType,
    PaymentGateway,
    PaymentMethod,
    PaymentStatus,
    WebhookEventStatus,
)

__all__ = [
    "ItemType",
    "OPEN_STATUSES",
    "PaymentGateway",
    "PaymentMethod",
    "PaymentStatus",
    "TERMINAL_STATUSES",
    "WebhookEventStatus",
]
