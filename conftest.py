"""Root-level pytest fixtures: testcontainer-backed Redis for the counter store."""

from __future__ import annotations

import uuid

import pytest


@pytest.fixture(scope="session")
def redis_container():
    """Single Redis container for the test session."""
    from testcontainers.redis import RedisContainer

    with RedisContainer("redis:7") as container:
        yield container


@pytest.fixture
def redis_state(redis_container):
    """Connected RedisStateStore with a per-test key prefix."""
    from scoreboard.services.secrets.env_secrets import EnvSecrets
    from scoreboard.services.state.redis_state import RedisStateStore

    host = redis_container.get_container_host_ip()
    port = redis_container.get_exposed_port(6379)
    secrets = EnvSecrets(overrides={
        "STATE_REDIS_URL": f"redis://{host}:{port}/0",
        "STATE_REDIS_PREFIX": f"test-{uuid.uuid4().hex[:8]}:",
    })
    store = RedisStateStore(secrets=secrets)
    store.connect()
    yield store
    store.disconnect()
