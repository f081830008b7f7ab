"""
Tests for optimistic locking via check_version.

check_version combines a version filter with select_for_update so two
writers that read the same version cannot both pass.
"""

import pytest
from django.db import transaction

from payments.exceptions import ConcurrentModificationError, PaymentNotFoundError
from payments.locks import check_version
from payments.models import PaymentRecord


class TestCheckVersion:
    """Tests for check_version function."""

    def test_returns_instance_when_version_matches(self, db, pending_record):
        with transaction.atomic():
            instance = check_version(PaymentRecord, pending_record.pk, expected_version=1)

        assert instance.pk == pending_record.pk
        assert instance.version == 1

    def test_raises_when_version_mismatch(self, db, pending_record):
        pending_record.notes = "touched"
        pending_record.save()

        with pytest.raises(ConcurrentModificationError) as exc_info:
            with transaction.atomic():
                check_version(PaymentRecord, pending_record.pk, expected_version=1)

        assert exc_info.value.details["current_version"] == 2
        assert exc_info.value.error_code == "CONCURRENT_MODIFICATION"

    def test_raises_not_found_when_record_missing(self, db, pending_record):
        pk = pending_record.pk
        PaymentRecord.objects.filter(pk=pk).delete()

        with pytest.raises(PaymentNotFoundError):
            with transaction.atomic():
                check_version(PaymentRecord, pk, expected_version=1)

    def test_locked_instance_can_be_saved(self, db, pending_record):
        """The row returned under lock is writable inside the same transaction."""
        with transaction.atomic():
            locked = check_version(PaymentRecord, pending_record.pk, expected_version=1)
            locked.metadata = {"cohort": "2026-spring"}
            locked.save()

        stored = PaymentRecord.objects.get(pk=pending_record.pk)
        assert stored.metadata == {"cohort": "2026-spring"}
        assert stored.version == 2


class TestConcurrentModification:
    """Stale in-memory copies are refused at write time."""

    def test_concurrent_modification_detected(self, db, pending_record):
        copy_a = PaymentRecord.objects.get(pk=pending_record.pk)
        copy_b = PaymentRecord.objects.get(pk=pending_record.pk)

        with transaction.atomic():
            check_version(PaymentRecord, copy_a.pk, expected_version=copy_a.version)
            copy_a.complete(transaction_id="pay_A")
            copy_a.save()

        with pytest.raises(ConcurrentModificationError):
            with transaction.atomic():
                check_version(PaymentRecord, copy_b.pk, expected_version=copy_b.version)
                copy_b.cancel()
                copy_b.save()

        assert PaymentRecord.objects.get(pk=pending_record.pk).status == "completed"
