"""
Data types shared by the payment adapter, services and models.

Types:
    GatewayPaymentDetails: Gateway-reported facts about how a payment was made

Helpers:
    to_subunits / from_subunits: Convert between major units (rupees) and
    the gateway's smallest currency unit (paise)

Usage:
    from payments.types import GatewayPaymentDetails, to_subunits

    to_subunits(Decimal("999.00"))  # 99900

    details = GatewayPaymentDetails.from_dict(record.gateway_details)
    merged = details.merge(GatewayPaymentDetails(method="upi", vpa="a@okhdfc"))
    record.gateway_details = merged.to_dict()
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields, replace
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

SUBUNITS_PER_UNIT = 100
TWO_PLACES = Decimal("0.01")


def to_subunits(amount: Decimal) -> int:
    """Convert a major-unit amount to the gateway's integer subunits."""
    return int((Decimal(amount) * SUBUNITS_PER_UNIT).quantize(Decimal("1"), ROUND_HALF_UP))


def from_subunits(subunits: int) -> Decimal:
    """Convert gateway subunits back to a two-decimal major-unit amount."""
    return (Decimal(subunits) / SUBUNITS_PER_UNIT).quantize(TWO_PLACES)


@dataclass(frozen=True)
class GatewayPaymentDetails:
    """
    Typed view of the gateway metadata stored on a PaymentRecord.

    Every field is optional because each payment method reports a different
    subset (cards have no vpa, UPI has no bank, and so on).

    Attributes:
        method: Gateway method label (card, upi, netbanking, wallet, ...)
        bank: Issuing bank code for netbanking
        wallet: Wallet provider for wallet payments
        vpa: UPI virtual payment address
        contact: Payer phone number as reported by the gateway
        email: Payer email as reported by the gateway
    """

    method: str | None = None
    bank: str | None = None
    wallet: str | None = None
    vpa: str | None = None
    contact: str | None = None
    email: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> GatewayPaymentDetails:
        """Build from stored JSON, ignoring keys this type does not know."""
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def merge(self, incoming: GatewayPaymentDetails) -> GatewayPaymentDetails:
        """
        Overlay non-empty incoming values onto these details.

        Values the incoming report leaves empty keep their existing value,
        so a later sparse report never erases an earlier detailed one.
        """
        updates = {
            f.name: getattr(incoming, f.name)
            for f in fields(self)
            if getattr(incoming, f.name) not in (None, "")
        }
        return replace(self, **updates)

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v not in (None, "")}
