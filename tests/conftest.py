"""Shared pytest fixtures for all tests.

FIXTURE PHILOSOPHY:
- Put INFRASTRUCTURE here (in-memory store, settings overrides, test setup)
- Keep TEST DATA in test files (course_data, class_data, etc.)

This keeps tests self-documenting and easy to read.
"""

from pathlib import Path
import sys

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from classhub.core.config import settings  # noqa: E402
from tests.mocks.firestore import InMemoryFirestore  # noqa: E402


# Configure anyio to only use asyncio (not trio)
@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def no_retry_delay(monkeypatch):
    """Retries keep their attempt count but do not sleep."""
    monkeypatch.setattr(settings, "STORE_RETRY_BASE_DELAY", 0)
    monkeypatch.setattr(settings, "STORE_RETRY_MAX_DELAY", 0)


@pytest.fixture
def firestore():
    """Fresh in-memory Firestore for each test."""
    return InMemoryFirestore()


# Add infrastructure fixtures here (mocks, clients, etc.)
# Do NOT add test data fixtures (keep those in individual test files)
