"""
Shared pytest fixtures for SlotPool tests.

This module provides common fixtures including:
- Redis mocks for call-shape tests
- fakeredis clients for behavioral tests
- Wired module instances over fakeredis
"""

import os
import sys
from unittest.mock import AsyncMock, MagicMock

import fakeredis
import fakeredis.aioredis
import pytest
import pytest_asyncio

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from slotpool.modules.admission import AdmissionEngine
from slotpool.modules.audit import AuditLog
from slotpool.modules.lifecycle import LifecycleManager
from slotpool.modules.monitoring import MonitoringModule
from slotpool.modules.registry import BackendRegistry
from slotpool.modules.session import SessionStore


# =============================================================================
# Redis Mocking Infrastructure
# =============================================================================


@pytest.fixture
def mock_redis():
    """Create a mock Redis client for async operations."""
    redis = AsyncMock()

    # Basic operations
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock()
    redis.delete = AsyncMock(return_value=1)
    redis.exists = AsyncMock(return_value=0)
    redis.incr = AsyncMock(return_value=1)
    redis.decr = AsyncMock(return_value=0)
    redis.incrby = AsyncMock()
    redis.eval = AsyncMock(return_value=1)

    # Set operations
    redis.sadd = AsyncMock()
    redis.srem = AsyncMock()
    redis.smembers = AsyncMock(return_value=set())

    # List operations
    redis.lpush = AsyncMock()
    redis.lrange = AsyncMock(return_value=[])
    redis.ltrim = AsyncMock()

    # Hash operations
    redis.hset = AsyncMock()
    redis.hsetnx = AsyncMock(return_value=1)
    redis.hget = AsyncMock(return_value=None)
    redis.hgetall = AsyncMock(return_value={})
    redis.hexists = AsyncMock(return_value=False)
    redis.hdel = AsyncMock()

    # Pipeline support: commands are buffered synchronously, execute() is awaited
    pipeline = MagicMock()
    pipeline.execute = AsyncMock(return_value=[])
    redis.pipeline = MagicMock(return_value=pipeline)

    return redis


@pytest_asyncio.fixture
async def fake_redis():
    """Isolated fakeredis client with decoded responses."""
    redis = fakeredis.aioredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)
    yield redis
    await redis.aclose()


# =============================================================================
# Wired modules over fakeredis
# =============================================================================


@pytest.fixture
def audit_log(fake_redis):
    return AuditLog(fake_redis, max_entries=50)


@pytest.fixture
def registry(fake_redis, audit_log):
    return BackendRegistry(fake_redis, audit=audit_log)


@pytest.fixture
def sessions(fake_redis):
    return SessionStore(fake_redis, default_ttl=900)


@pytest.fixture
def admission(registry, sessions, audit_log):
    return AdmissionEngine(registry, sessions, audit=audit_log)


@pytest.fixture
def lifecycle(registry, sessions, audit_log):
    return LifecycleManager(registry, sessions, audit=audit_log)


@pytest.fixture
def monitoring(registry, sessions):
    return MonitoringModule(registry, sessions)
