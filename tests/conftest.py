"""
Shared test fixtures
"""
from datetime import datetime, timezone

import pytest

from imagehost.core.context import StoreContext
from imagehost.core.exceptions import StoreUnavailableError
from imagehost.services.storage.memory import MemoryBlobStore


FROZEN_NOW = datetime(2026, 10, 18, 9, 41, 7, 512000, tzinfo=timezone.utc)
FROZEN_ISO = "2026-10-18T09:41:07.512Z"
FROZEN_SUFFIX = "2026-10-18T094107512Z"


@pytest.fixture
def clock():
    """Clock frozen at FROZEN_NOW so trash suffixes are predictable."""
    return lambda: FROZEN_NOW


@pytest.fixture
def store():
    return MemoryBlobStore()


@pytest.fixture
def ctx(store, clock):
    """Store context over an empty in-memory bucket."""
    return StoreContext(store=store, clock=clock)


@pytest.fixture
def put_image(store):
    """Upload a small fake image and return its key."""
    def _put(key, body=b"\x89PNG-data", content_type="image/png", custom_metadata=None):
        store.put(key, body, content_type=content_type, custom_metadata=custom_metadata)
        return key
    return _put


@pytest.fixture
def now_iso():
    return FROZEN_ISO


@pytest.fixture
def now_suffix():
    return FROZEN_SUFFIX


class FlakyStore(MemoryBlobStore):
    """Memory store that fails reads of some keys and writes of others."""

    def __init__(self):
        super().__init__()
        self.failing_reads = set()
        self.failing_writes = set()

    def get(self, key):
        if key in self.failing_reads:
            raise StoreUnavailableError(f"Timed out reading {key}")
        return super().get(key)

    def head(self, key):
        if key in self.failing_reads:
            raise StoreUnavailableError(f"Timed out reading {key}")
        return super().head(key)

    def put(self, key, body, content_type=None, custom_metadata=None):
        if key in self.failing_writes:
            raise StoreUnavailableError(f"Timed out writing {key}")
        return super().put(key, body, content_type=content_type, custom_metadata=custom_metadata)


@pytest.fixture
def flaky_store():
    return FlakyStore()


@pytest.fixture
def flaky_ctx(flaky_store, clock):
    """Store context whose blob store fails on demand."""
    return StoreContext(store=flaky_store, clock=clock)
