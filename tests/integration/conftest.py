"""Integration test fixtures.

Integration tests drive the whole application through TestClient: API
routers, simulators, the in-process mock platform, the monitoring aggregator
and the report pipeline share one app instance per test.
"""

import pytest


@pytest.fixture
def configured(client, config_payload):
  """Stored configuration plus a logged-in platform client."""
  config = client.post('/api/config', json=config_payload).json()
  tokens = client.post(
    '/api/auth/login',
    json={
      'username': config_payload['plugin_username'],
      'password': config_payload['plugin_password'],
      'configuration_id': config['id'],
    },
  ).json()
  return {'config': config, 'tokens': tokens}
