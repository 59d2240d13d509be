from __future__ import annotations

from pathlib import Path

import pytest

from ecclesia.cache import CacheManager
from ecclesia.storage import MemoryRecordStore
from ecclesia.storage.config import LocalConfig
from ecclesia.tests.fakes import FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> MemoryRecordStore:
    return MemoryRecordStore()


@pytest.fixture
def cache(store: MemoryRecordStore, clock: FakeClock) -> CacheManager:
    return CacheManager(store, ttl_seconds=300, clock=clock)


@pytest.fixture
def local_config(tmp_path: Path) -> LocalConfig:
    return LocalConfig(data_dir=tmp_path, simulated_latency_ms=0)
