"""
Tests for PaymentRecordStore.

Covers inserts with duplicate order ids, lookups, and version-checked
saves including transaction id collisions.
"""

from decimal import Decimal

import pytest

from payments.exceptions import (
    ConcurrentModificationError,
    DuplicateOrderIdError,
    DuplicateTransactionIdError,
    PaymentNotFoundError,
)
from payments.models import PaymentRecord
from payments.store import PaymentRecordStore
from payments.tests.factories import PaymentRecordFactory


@pytest.fixture
def store():
    return PaymentRecordStore()


class TestCreate:
    """Tests for PaymentRecordStore.create."""

    def test_inserts_pending_record(self, db, store, user):
        record = store.create(
            PaymentRecord(user=user, order_id="order_New", amount=Decimal("999.00"))
        )

        stored = PaymentRecord.objects.get(order_id="order_New")
        assert stored.pk == record.pk
        assert stored.version == 1

    def test_duplicate_order_id_raises(self, db, store, pending_record):
        duplicate = PaymentRecord(
            user=pending_record.user,
            order_id=pending_record.order_id,
            amount=Decimal("10.00"),
        )

        with pytest.raises(DuplicateOrderIdError) as exc_info:
            store.create(duplicate)

        assert exc_info.value.details["order_id"] == pending_record.order_id
        assert PaymentRecord.objects.filter(order_id=pending_record.order_id).count() == 1


class TestLookups:
    """Tests for the find_* methods."""

    def test_find_by_id(self, db, store, pending_record):
        assert store.find_by_id(pending_record.pk).order_id == pending_record.order_id

    def test_find_by_order_id(self, db, store, pending_record):
        assert store.find_by_order_id(pending_record.order_id).pk == pending_record.pk

    def test_find_by_transaction_id(self, db, store, completed_record):
        found = store.find_by_transaction_id("pay_TEST000000001")

        assert found.pk == completed_record.pk

    def test_missing_order_raises_not_found(self, db, store):
        with pytest.raises(PaymentNotFoundError) as exc_info:
            store.find_by_order_id("order_Missing")

        assert exc_info.value.details == {"order_id": "order_Missing"}


class TestSave:
    """Tests for PaymentRecordStore.save."""

    def test_save_increments_version(self, db, store, pending_record):
        record = store.find_by_id(pending_record.pk)
        record.complete(transaction_id="pay_A")

        saved = store.save(record)

        assert saved.version == 2
        stored = PaymentRecord.objects.get(pk=pending_record.pk)
        assert stored.status == "completed"
        assert stored.version == 2

    def test_stale_save_raises_and_keeps_winner(self, db, store, pending_record):
        """Two writers read version 1; only the first write lands."""
        first = store.find_by_id(pending_record.pk)
        second = store.find_by_id(pending_record.pk)

        first.complete(transaction_id="pay_A")
        store.save(first)

        second.fail(reason="Card declined", transaction_id="pay_A")
        with pytest.raises(ConcurrentModificationError) as exc_info:
            store.save(second)

        assert exc_info.value.details["expected_version"] == 1
        assert exc_info.value.details["current_version"] == 2
        stored = PaymentRecord.objects.get(pk=pending_record.pk)
        assert stored.status == "completed"
        assert stored.notes == ""

    def test_transaction_id_owned_by_other_record(self, db, store, user, completed_record):
        other = PaymentRecordFactory(user=user)
        record = store.find_by_id(other.pk)
        record.complete(transaction_id=completed_record.transaction_id)

        with pytest.raises(DuplicateTransactionIdError):
            store.save(record)

        assert PaymentRecord.objects.get(pk=other.pk).status == "pending"
