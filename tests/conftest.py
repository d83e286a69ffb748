"""Shared test fixtures and utilities for all tests.

This conftest.py provides reusable fixtures that can be used across
unit, contract, and integration tests. Every app fixture gets its own
in-memory SQLite database and deterministic simulator outcomes.
"""

import sys
import os
from pathlib import Path

# CRITICAL: Ensure the correct project root is first in sys.path
# This prevents importing from other projects with similar module names
project_root = str(Path(__file__).parent.parent.absolute())
if project_root not in sys.path:
    sys.path.insert(0, project_root)
elif sys.path[0] != project_root:
    sys.path.remove(project_root)
    sys.path.insert(0, project_root)

# Must be set before server.app is imported (it builds a module-level app)
os.environ.setdefault('DATABASE_URL', 'sqlite://')
os.environ.setdefault('MONITORING_INTERVAL_SECONDS', '0')
os.environ.setdefault('RATE_LIMIT_MAX_REQUESTS', '10000')

import random

import pytest
from fastapi.testclient import TestClient

from server.app import create_app
from server.lib.database import create_db_engine, create_session_factory, init_schema
from server.lib.rate_limit import RateLimiter
from server.services.monitoring_service import MonitoringAggregator
from server.services.outcomes import FixedOutcomes


class FakeClock:
    """Manually advanced clock returning epoch seconds."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ============================================================================
# FastAPI Application Fixtures
# ============================================================================

@pytest.fixture
def outcomes():
    """Outcome source where every simulated draw succeeds."""
    return FixedOutcomes()


@pytest.fixture
def app(outcomes):
    """Fresh application on in-memory SQLite."""
    return create_app(
        'sqlite://',
        outcomes=outcomes,
        rng=random.Random(42),
        rate_limiter=RateLimiter(max_requests=10000, window_seconds=900),
        monitoring_interval=0,
    )


@pytest.fixture
def client(app):
    """Test client with the application lifespan running."""
    with TestClient(app) as test_client:
        yield test_client


# ============================================================================
# Data Fixtures
# ============================================================================

@pytest.fixture
def config_payload():
    """A configuration body that passes every validation rule."""
    return {
        'integration_name': 'Test Restaurant UAE',
        'integration_code': 'test-restaurant-ae',
        'base_url': 'https://pos.test-restaurant.example',
        'plugin_username': 'pos-user',
        'plugin_password': 'secret-password',
        'environment': 'staging',
        'country': 'AE',
        'vendor_code': 'VENDOR_001',
        'remote_id': 'REMOTE_001',
        'callback_url': 'https://pos.test-restaurant.example/callback',
    }


@pytest.fixture
def created_config(client, config_payload):
    """Configuration stored through the API."""
    response = client.post('/api/config', json=config_payload)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def logged_in(client, config_payload):
    """Platform client authenticated as the configured plugin user."""
    response = client.post(
        '/api/auth/login',
        json={'username': config_payload['plugin_username'], 'password': config_payload['plugin_password']},
    )
    assert response.status_code == 200, response.text
    return response.json()


# ============================================================================
# Service Fixtures
# ============================================================================

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def monitoring(clock):
    """Aggregator with small caps and a controllable clock."""
    return MonitoringAggregator(max_log_entries=1000, max_metric_points=50, outcomes=FixedOutcomes(), clock=clock)


@pytest.fixture
def db_session():
    """Session on a fresh in-memory database with all tables created."""
    engine = create_db_engine('sqlite://')
    init_schema(engine)
    session = create_session_factory(engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def correlation_id():
    """Generate a unique correlation ID for testing."""
    from uuid import uuid4
    return str(uuid4())
