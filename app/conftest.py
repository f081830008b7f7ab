"""
Project-wide pytest configuration.

Settings tweaks for the test run and automatic unit/integration/e2e
markers. Payment fixtures are in payments/conftest.py and the per-package
conftests below it.
"""

import pytest

E2E_FILES = ("test_integration.py",)

UNIT_FILES = (
    "test_models.py",
    "test_razorpay_adapter.py",
    "test_signatures.py",
    "test_state_transitions.py",
    "test_locks.py",
    "test_exceptions.py",
    "test_services.py",
    "test_types.py",
)


def pytest_configure():
    from django.conf import settings

    # Rate limits would trip on the larger view suites
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_CLASSES"] = []
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"] = {}

    settings.PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]


def pytest_collection_modifyitems(items):
    """
    Mark each test by the file it lives in.

    A marker set explicitly on the test or its class is left alone. Files
    not listed default to integration.
    """
    for item in items:
        if {m.name for m in item.iter_markers()} & {"unit", "integration", "e2e"}:
            continue

        filename = item.path.name
        if filename in E2E_FILES:
            item.add_marker(pytest.mark.e2e)
        elif filename in UNIT_FILES:
            item.add_marker(pytest.mark.unit)
        else:
            item.add_marker(pytest.mark.integration)


@pytest.fixture(autouse=True)
def _local_test_settings(settings):
    """Process-local cache and no HTTPS redirect; Redis is mocked where locks need it."""
    settings.CACHES = {"default": {"BACKEND": "django.core.cache.backends.locmem.LocMemCache"}}
    settings.SECURE_SSL_REDIRECT = False
