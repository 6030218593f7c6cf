"""
Fixtures for core module tests.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest


@pytest.fixture
def mock_redis():
    """Create a mock Redis client."""
    redis = AsyncMock()
    redis.expire = AsyncMock()
    redis.pipeline = MagicMock()
    pipe = MagicMock()
    pipe.incr = MagicMock()
    pipe.ttl = MagicMock()
    pipe.execute = AsyncMock()
    redis.pipeline.return_value = pipe
    return redis
