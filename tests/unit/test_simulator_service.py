"""Unit tests for the integration test simulators."""

import pytest

from server.models.test_result import TestResult
from server.services.configuration_service import ConfigurationNotFoundError, ConfigurationService
from server.services.mock_platform import MockPlatform
from server.services.outcomes import FixedOutcomes
from server.services.platform_client import PlatformClient
from server.services.simulator_service import (
    SimulatorService,
    generate_sample_catalog,
    validate_catalog_structure,
)


@pytest.fixture
async def platform_client(monitoring, clock):
    client = PlatformClient(monitoring=monitoring, transport=MockPlatform(clock=clock).transport(), clock=clock)
    yield client
    await client.aclose()


@pytest.fixture
def outcomes():
    return FixedOutcomes()


@pytest.fixture
def simulator(db_session, platform_client, monitoring, outcomes):
    return SimulatorService(db_session, platform_client, monitoring, outcomes)


@pytest.fixture
def config(db_session, config_payload):
    return ConfigurationService(db_session).create_configuration(config_payload)


class TestCatalogHelpers:

    def test_sample_catalog_is_valid(self, config):
        catalog = generate_sample_catalog(config)

        assert catalog['vendor_code'] == 'VENDOR_001'
        assert catalog['currency'] == 'AED'
        assert validate_catalog_structure(catalog) == {
            'valid': True,
            'errors': [],
            'warnings': [],
            'stats': {'categories': 2, 'items': 3},
        }

    def test_structural_errors(self):
        catalog = {
            'vendor_code': 'V1',
            'menu': {
                'availability': {'days': ['monday', 'funday']},
                'categories': [{'id': 'C1', 'name': 'Mains', 'items': [{'id': 'I1', 'name': 'Soup', 'price': 0}]}],
            },
        }

        result = validate_catalog_structure(catalog)

        assert result['valid'] is False
        assert 'Missing required field: remote_id' in result['errors']
        assert 'Item Soup in category Mains must have a positive numeric price' in result['errors']
        assert 'Invalid availability days: funday' in result['errors']

    def test_empty_category_is_a_warning(self):
        catalog = generate_sample_catalog()
        catalog['menu']['categories'].append({'id': 'C9', 'name': 'Desserts', 'items': []})

        result = validate_catalog_structure(catalog)

        assert result['valid'] is True
        assert result['warnings'] == ['Category Desserts has no items']


class TestAuthenticationSimulator:

    @pytest.mark.asyncio
    async def test_passes_with_stored_credentials(self, simulator, config, platform_client):
        result = await simulator.test_authentication(config.id, password='secret-password')

        assert result['passed'] is True
        assert result['results']['token_format_valid'] is True
        assert platform_client.is_authenticated is True

    @pytest.mark.asyncio
    async def test_wrong_password_fails_without_platform_call(self, simulator, config, monitoring):
        result = await simulator.test_authentication(config.id, password='wrong')

        assert result['passed'] is False
        assert result['error'] == 'Credentials do not match the stored configuration'
        assert monitoring.api_calls == 0

    @pytest.mark.asyncio
    async def test_without_password_reuses_existing_login(self, simulator, config, platform_client):
        failed = await simulator.test_authentication(config.id)
        await platform_client.authenticate('pos-user', 'secret-password')
        passed = await simulator.test_authentication(config.id)

        assert failed['error'] == 'Plugin Password is required'
        assert passed['passed'] is True

    @pytest.mark.asyncio
    async def test_simulated_rejection(self, db_session, platform_client, monitoring, config):
        simulator = SimulatorService(db_session, platform_client, monitoring, FixedOutcomes(succeed=False))

        result = await simulator.test_authentication(config.id, password='secret-password')

        assert result['error'] == 'Authentication rejected by platform'

    @pytest.mark.asyncio
    async def test_result_is_persisted(self, simulator, config, db_session):
        result = await simulator.test_authentication(config.id, password='secret-password')

        row = db_session.get(TestResult, result['test_result_id'])
        assert row.test_type == 'authentication'
        assert row.status == 'passed'
        assert row.configuration_id == config.id


class TestOrderSimulator:

    @pytest.mark.asyncio
    async def test_default_scenarios(self, simulator, config, platform_client, outcomes):
        await platform_client.authenticate('pos-user', 'secret-password')

        result = await simulator.test_orders(config.id)

        scenarios = result['results']['results']
        assert list(scenarios) == ['order_reception', 'order_acceptance']
        assert result['passed'] is True
        assert scenarios['order_acceptance']['details']['status'] == 'accepted'
        assert scenarios['order_reception']['response_time_ms'] == 100
        assert outcomes.delays[:2] == [0.1, 0.1]

    @pytest.mark.asyncio
    async def test_rejection_scenario(self, simulator, config, platform_client):
        await platform_client.authenticate('pos-user', 'secret-password')

        result = await simulator.test_orders(config.id, ['order_rejection'])

        assert result['results']['results']['order_rejection']['details']['reason'] == 'Out of Stock'

    @pytest.mark.asyncio
    async def test_unauthenticated_orders_fail(self, simulator, config):
        result = await simulator.test_orders(config.id)

        assert result['passed'] is False
        assert result['error'] == 'Failed scenarios: order_reception, order_acceptance'

    @pytest.mark.asyncio
    async def test_simulated_scenario_failure(self, db_session, platform_client, monitoring, config):
        await platform_client.authenticate('pos-user', 'secret-password')
        simulator = SimulatorService(db_session, platform_client, monitoring, FixedOutcomes(results=[True, False]))

        result = await simulator.test_orders(config.id)

        assert result['results']['results']['order_reception']['status'] == 'passed'
        assert result['results']['results']['order_acceptance']['status'] == 'failed'

    @pytest.mark.asyncio
    async def test_unknown_scenario(self, simulator):
        with pytest.raises(ValueError, match='Unknown order scenarios: order_teleport'):
            await simulator.test_orders(None, ['order_teleport'])


class TestOtherSimulators:

    @pytest.mark.asyncio
    async def test_catalog_push(self, simulator, config, platform_client):
        await platform_client.authenticate('pos-user', 'secret-password')

        result = await simulator.test_catalog(config.id)

        assert result['passed'] is True
        assert result['results']['import']['items'] == 3

    @pytest.mark.asyncio
    async def test_invalid_catalog_is_not_pushed(self, simulator, monitoring):
        result = await simulator.test_catalog(catalog={'vendor_code': 'V1'})

        assert result['passed'] is False
        assert monitoring.api_calls == 0

    @pytest.mark.asyncio
    async def test_store_status(self, simulator, platform_client):
        await platform_client.authenticate('pos-user', 'secret-password')

        assert (await simulator.test_store(status='busy'))['passed'] is True
        assert (await simulator.test_store(status='party'))['error'] == 'HTTP 400: Invalid store status: party'

    @pytest.mark.asyncio
    async def test_webhooks_require_https(self, simulator):
        assert (await simulator.test_webhooks('https://pos.example.com/hook'))['passed'] is True
        assert (await simulator.test_webhooks('http://pos.example.com/hook'))['error'] == 'Webhook URL must use HTTPS'
        with pytest.raises(ValueError):
            await simulator.test_webhooks('')

    @pytest.mark.asyncio
    async def test_ssl(self, simulator):
        result = await simulator.test_ssl('https://pos.example.com')

        assert result['results']['issuer'] == 'Mock CA'
        assert (await simulator.test_ssl('http://pos.example.com'))['passed'] is False

    @pytest.mark.asyncio
    async def test_ip_connectivity_uses_region_whitelist(self, simulator, config):
        result = await simulator.test_ip_connectivity(configuration_id=config.id)

        assert result['results']['region'] == 'me'
        assert [p['ip'] for p in result['results']['results']] == ['63.32.225.161', '18.202.96.85', '52.208.41.152']

    @pytest.mark.asyncio
    async def test_ip_connectivity_validation(self, simulator):
        with pytest.raises(ValueError, match='Invalid IP address: 999.1.1.1'):
            await simulator.test_ip_connectivity(['999.1.1.1'])
        with pytest.raises(ValueError, match='Unknown region: mars'):
            await simulator.test_ip_connectivity(region='mars')
        with pytest.raises(ValueError, match='ip_addresses or region is required'):
            await simulator.test_ip_connectivity()

    @pytest.mark.asyncio
    async def test_reports_endpoint(self, simulator, platform_client):
        await platform_client.authenticate('pos-user', 'secret-password')

        result = await simulator.test_reports()

        assert result['results'] == {'reports_endpoint_accessible': True, 'reports_available': 0}


class TestFullSuite:

    @pytest.mark.asyncio
    async def test_full_suite_passes_with_password(self, simulator, config):
        summary = await simulator.run_full_suite(config.id, password='secret-password')

        assert summary['overall_status'] == 'passed'
        assert summary['tests_run'] == 7
        assert summary['tests_passed'] == 7
        assert list(summary['results']) == [
            'authentication', 'order_management', 'catalog_management', 'store_management',
            'webhooks', 'ssl', 'reporting',
        ]

    @pytest.mark.asyncio
    async def test_full_suite_without_login_fails_platform_steps(self, simulator, config):
        summary = await simulator.run_full_suite(config.id)

        assert summary['overall_status'] == 'failed'
        assert summary['results']['authentication']['status'] == 'failed'
        assert summary['results']['ssl']['status'] == 'passed'
        assert summary['tests_failed'] == summary['tests_run'] - summary['tests_passed']

    @pytest.mark.asyncio
    async def test_full_suite_requires_configuration(self, simulator):
        with pytest.raises(ConfigurationNotFoundError):
            await simulator.run_full_suite()


class TestResults:

    @pytest.mark.asyncio
    async def test_badges_follow_latest_result(self, simulator, config, platform_client):
        assert simulator.get_badges() == {
            'auth': False, 'order': False, 'catalog': False, 'store': False, 'webhook': False, 'report': False,
        }

        await simulator.test_authentication(config.id, password='secret-password')
        await simulator.test_webhooks('https://pos.example.com/hook')
        assert simulator.get_badges()['auth'] is True
        assert simulator.get_badges()['webhook'] is True

        await simulator.test_webhooks('http://pos.example.com/hook')
        assert simulator.get_badges()['webhook'] is False

    @pytest.mark.asyncio
    async def test_reset_results(self, simulator):
        await simulator.test_ssl('https://pos.example.com')

        assert simulator.reset_results() == 1
        assert simulator.get_recent_results() == []
