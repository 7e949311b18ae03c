"""Pytest fixtures shared across the test modules."""

import pytest

from siyuan_mcp.cache import CacheConfig, CacheManager
from siyuan_mcp.config import Settings

from tests.fakes import FakeClock, FakeContext, FakeSessionFactory, FakeSiYuanClient


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def ctx() -> FakeContext:
    return FakeContext()


@pytest.fixture
def fake_client() -> FakeSiYuanClient:
    return FakeSiYuanClient()


@pytest.fixture
def cache(clock) -> CacheManager:
    return CacheManager(CacheConfig(max_entries=100, default_ttl=300.0), clock=clock)


@pytest.fixture
def session_factory() -> FakeSessionFactory:
    return FakeSessionFactory()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        api_url="http://siyuan.test:6806",
        api_token="test-token",
        cache_cleanup_interval=3600.0,
        session_sweep_interval=3600.0,
        sse_ping_interval=3600.0,
    )
