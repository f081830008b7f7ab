"""
Persistence for PaymentRecord with uniqueness and optimistic locking.

The store is the only place that writes PaymentRecord rows. Services read a
record, mutate it in memory through its FSM transitions, and hand it back to
save(), which refuses the write if anyone else saved the row in between.

Usage:
    from payments.store import PaymentRecordStore

    store = PaymentRecordStore()
    record = store.find_by_order_id("order_N5xYz")
    record.complete(transaction_id="pay_29QQ")
    store.save(record)  # ConcurrentModificationError on a lost race
"""

from __future__ import annotations

import logging
from typing import Any

from django.db import IntegrityError, transaction

from payments.exceptions import (
    DuplicateOrderIdError,
    DuplicateTransactionIdError,
    PaymentNotFoundError,
)
from payments.locks import check_version
from payments.models import PaymentRecord

logger = logging.getLogger(__name__)


class PaymentRecordStore:
    """Read and write PaymentRecord rows."""

    def create(self, record: PaymentRecord) -> PaymentRecord:
        """
        Insert a new record.

        Raises:
            DuplicateOrderIdError: order_id already stored
        """
        try:
            with transaction.atomic():
                record.save(force_insert=True)
        except IntegrityError as e:
            if PaymentRecord.objects.filter(order_id=record.order_id).exists():
                logger.critical(
                    "Gateway order id already stored",
                    extra={"order_id": record.order_id},
                )
                raise DuplicateOrderIdError(
                    f"Payment for order {record.order_id} already exists",
                    details={"order_id": record.order_id},
                ) from e
            raise
        return record

    def find_by_id(self, pk: Any) -> PaymentRecord:
        return self._get(pk=pk)

    def find_by_order_id(self, order_id: str) -> PaymentRecord:
        return self._get(order_id=order_id)

    def find_by_transaction_id(self, transaction_id: str) -> PaymentRecord:
        return self._get(transaction_id=transaction_id)

    def save(self, record: PaymentRecord) -> PaymentRecord:
        """
        Write a modified record if it is still at the version it was read at.

        Raises:
            ConcurrentModificationError: Row was saved by someone else since
            DuplicateTransactionIdError: transaction_id belongs to another record
        """
        try:
            with transaction.atomic():
                check_version(PaymentRecord, record.pk, expected_version=record.version)
                record.save()
        except IntegrityError as e:
            if (
                record.transaction_id
                and PaymentRecord.objects.filter(transaction_id=record.transaction_id)
                .exclude(pk=record.pk)
                .exists()
            ):
                raise DuplicateTransactionIdError(
                    f"Transaction {record.transaction_id} belongs to another payment",
                    details={
                        "order_id": record.order_id,
                        "transaction_id": record.transaction_id,
                    },
                ) from e
            raise
        return record

    def _get(self, **lookup: Any) -> PaymentRecord:
        try:
            return PaymentRecord.objects.get(**lookup)
        except PaymentRecord.DoesNotExist:
            raise PaymentNotFoundError(
                "Payment not found",
                details={k: str(v) for k, v in lookup.items()},
            ) from None
