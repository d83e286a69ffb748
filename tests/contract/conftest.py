"""Shared test fixtures and utilities for contract tests.

Note: Common fixtures are defined in tests/conftest.py and are
automatically available to all contract tests.
"""

# Contract tests can use fixtures from tests/conftest.py:
# - app, client, outcomes
# - config_payload, created_config, logged_in
# - clock, monitoring, db_session
# - correlation_id

import pytest


@pytest.fixture
def bearer_headers(logged_in):
    """Authorization header carrying a token issued by /api/auth/login."""
    return {"Authorization": f"Bearer {logged_in['access_token']}"}
