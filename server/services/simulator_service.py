"""Integration test simulators.

Each simulator awaits an artificial delay drawn from the OutcomeSource,
exercises the platform client where the scenario has a platform side, and
returns a result dictionary. Outcomes are persisted as TestResult rows and
reported to the monitoring aggregator. Platform failures become failed
results; only bad input raises.
"""

import ipaddress
import time
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from server.lib.auth import decode_mock_token
from server.lib.metrics import record_simulator_run
from server.lib.structured_logger import StructuredLogger
from server.models.configuration import Configuration
from server.models.platform import PLATFORM_PATHS, currency_for, whitelist_for
from server.models.test_result import BADGE_FOR_TEST_TYPE, TestResult
from server.services.configuration_service import ConfigurationNotFoundError, ConfigurationService
from server.services.monitoring_service import MonitoringAggregator
from server.services.outcomes import OutcomeSource
from server.services.platform_client import PlatformAPIError, PlatformClient

logger = StructuredLogger(__name__)

AUTH_SUCCESS_PROBABILITY = 0.9
ORDER_SCENARIO_SUCCESS_PROBABILITY = 0.85

ORDER_SCENARIOS = ('order_reception', 'order_acceptance', 'order_rejection')
DEFAULT_ORDER_SCENARIOS = ('order_reception', 'order_acceptance')

WEEK_DAYS = ('monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday')

TEST_NAMES = {
    'authentication': 'Authentication Test',
    'orders': 'Order Management Test',
    'catalog': 'Catalog Management Test',
    'store': 'Store Management Test',
    'webhooks': 'Webhook Test',
    'reports': 'Reporting Test',
    'ssl': 'SSL Certificate Test',
    'ip_connectivity': 'IP Connectivity Test',
    'full_suite': 'Full Test Suite',
}


def generate_sample_catalog(config: Optional[Configuration] = None) -> Dict[str, Any]:
    """Minimal valid catalog for the configured vendor."""
    currency = currency_for(config.country if config else None)
    return {
        'vendor_code': (config.vendor_code if config else None) or 'TEST_VENDOR',
        'remote_id': (config.remote_id if config else None) or 'TEST_REMOTE',
        'currency': currency,
        'menu': {
            'name': 'Main Menu',
            'availability': {
                'days': list(WEEK_DAYS),
                'hours': {'open': '10:00', 'close': '23:00'},
            },
            'categories': [
                {
                    'id': 'CAT_001',
                    'name': 'Main Dishes',
                    'items': [
                        {'id': 'ITEM_001', 'name': 'Chicken Shawarma', 'price': 25.0, 'available': True},
                        {'id': 'ITEM_002', 'name': 'Falafel Wrap', 'price': 18.0, 'available': True},
                    ],
                },
                {
                    'id': 'CAT_002',
                    'name': 'Beverages',
                    'items': [
                        {'id': 'ITEM_003', 'name': 'Fresh Orange Juice', 'price': 12.0, 'available': True},
                    ],
                },
            ],
        },
    }


def validate_catalog_structure(catalog: Dict[str, Any]) -> Dict[str, Any]:
    """Structural checks run before a catalog is pushed to the platform.

    Returns:
        {valid, errors, warnings, stats: {categories, items}}
    """
    errors: List[str] = []
    warnings: List[str] = []
    item_count = 0

    for required in ('vendor_code', 'remote_id', 'menu'):
        if not catalog.get(required):
            errors.append(f'Missing required field: {required}')

    menu = catalog.get('menu') or {}
    categories = menu.get('categories') if isinstance(menu, dict) else None
    if menu and not categories:
        errors.append('Menu must contain at least one category')

    for c_index, category in enumerate(categories or [], start=1):
        label = category.get('name') or f'#{c_index}'
        if not category.get('id') or not category.get('name'):
            errors.append(f'Category {label} must have an id and a name')
        items = category.get('items') or []
        if not items:
            warnings.append(f'Category {label} has no items')
        for i_index, item in enumerate(items, start=1):
            item_count += 1
            item_label = item.get('name') or f'#{i_index}'
            if not item.get('id') or not item.get('name'):
                errors.append(f'Item {item_label} in category {label} must have an id and a name')
            price = item.get('price')
            if isinstance(price, bool) or not isinstance(price, (int, float)) or price <= 0:
                errors.append(f'Item {item_label} in category {label} must have a positive numeric price')

    availability = menu.get('availability') if isinstance(menu, dict) else None
    if availability:
        invalid_days = [d for d in availability.get('days', []) if str(d).lower() not in WEEK_DAYS]
        if invalid_days:
            errors.append(f"Invalid availability days: {', '.join(map(str, invalid_days))}")
    elif menu:
        warnings.append('Menu has no availability schedule')

    return {
        'valid': not errors,
        'errors': errors,
        'warnings': warnings,
        'stats': {'categories': len(categories or []), 'items': item_count},
    }


class SimulatorService:
    """Runs simulated integration tests against the platform client.

    Args:
        db: SQLAlchemy database session
        client: Shared platform client (holds the token cache)
        monitoring: Dashboard aggregator
        outcomes: Source of delays and pass/fail draws
    """

    def __init__(
        self,
        db: Session,
        client: PlatformClient,
        monitoring: MonitoringAggregator,
        outcomes: OutcomeSource,
    ):
        self.db = db
        self.client = client
        self.monitoring = monitoring
        self.outcomes = outcomes
        self.configurations = ConfigurationService(db)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def resolve_configuration(self, configuration_id: Optional[int]) -> Optional[Configuration]:
        if configuration_id is not None:
            return self.configurations.get_configuration(configuration_id)
        return self.configurations.get_active_configuration()

    def _record(
        self,
        test_type: str,
        config: Optional[Configuration],
        passed: bool,
        results: Dict[str, Any],
        started: float,
        error: Optional[str] = None,
    ) -> Dict[str, Any]:
        execution_time_ms = int((time.perf_counter() - started) * 1000)
        row = TestResult(
            configuration_id=config.id if config else None,
            test_type=test_type,
            test_name=TEST_NAMES[test_type],
            status='passed' if passed else 'failed',
            results=results,
            error_message=error,
            execution_time_ms=execution_time_ms,
        )
        self.db.add(row)
        self.db.flush()

        record_simulator_run(test_type, passed)
        if passed:
            self.monitoring.add_log('success', f'{TEST_NAMES[test_type]} passed', 'testing')
        else:
            self.monitoring.add_log(
                'error', f"{TEST_NAMES[test_type]} failed: {error or 'see results'}", 'testing', {'test_type': test_type}
            )
        logger.info('Simulator run recorded', test_type=test_type, passed=passed, test_result_id=row.id)

        return {
            'test_type': test_type,
            'test_name': TEST_NAMES[test_type],
            'status': row.status,
            'passed': passed,
            'results': results,
            'error': error,
            'execution_time_ms': execution_time_ms,
            'test_result_id': row.id,
        }

    def _use_config_environment(self, config: Optional[Configuration]) -> None:
        if config is not None:
            self.client.use_environment(config.environment)

    # ------------------------------------------------------------------
    # Simulators
    # ------------------------------------------------------------------

    async def test_authentication(
        self,
        configuration_id: Optional[int] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Log in against the platform with the configured credentials.

        Without a password the test passes only if the client already holds a
        valid token for the same user (e.g. after /api/auth/login).
        """
        started = time.perf_counter()
        config = self.resolve_configuration(configuration_id)
        self._use_config_environment(config)
        username = username or (config.plugin_username if config else None)

        await self.outcomes.delay(self.outcomes.uniform(0.5, 1.5))

        results: Dict[str, Any] = {
            'endpoint_accessible': True,
            'credentials_valid': False,
            'token_generated': False,
            'token_format_valid': False,
            'response_time_ms': 0,
        }
        error = None

        if not username:
            error = 'Plugin Username is required'
        elif not password:
            if self.client.is_authenticated and self.client.username == username:
                token = self.client.get_token()
                results.update(credentials_valid=True, token_generated=True)
                results['token_format_valid'] = decode_mock_token(token) is not None
            else:
                error = 'Plugin Password is required'
        elif config is not None and not self.configurations.verify_credentials(config, username, password):
            error = 'Credentials do not match the stored configuration'
        elif not self.outcomes.chance(AUTH_SUCCESS_PROBABILITY):
            error = 'Authentication rejected by platform'
        else:
            call_started = time.perf_counter()
            try:
                payload = await self.client.authenticate(username, password)
                results.update(credentials_valid=True, token_generated=bool(payload.get('access_token')))
                results['token_format_valid'] = decode_mock_token(payload.get('access_token', '')) is not None
            except PlatformAPIError as e:
                error = str(e)
            results['response_time_ms'] = int((time.perf_counter() - call_started) * 1000)

        passed = results['credentials_valid'] and results['token_generated'] and results['token_format_valid']
        return self._record('authentication', config, passed, results, started, error)

    async def test_orders(
        self,
        configuration_id: Optional[int] = None,
        scenarios: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """Run order scenarios sequentially.

        Raises:
            ValueError: If a scenario name is unknown
        """
        scenarios = list(scenarios or DEFAULT_ORDER_SCENARIOS)
        unknown = [s for s in scenarios if s not in ORDER_SCENARIOS]
        if unknown:
            raise ValueError(f"Unknown order scenarios: {', '.join(unknown)}")

        started = time.perf_counter()
        config = self.resolve_configuration(configuration_id)
        self._use_config_environment(config)

        scenario_results: Dict[str, Dict[str, Any]] = {}
        current_order: Optional[Dict[str, Any]] = None

        for scenario in scenarios:
            response_time_ms = self.outcomes.randint(100, 1099)
            await self.outcomes.delay(response_time_ms / 1000)
            try:
                if current_order is None:
                    current_order = await self._fetch_order(config)
                details = await self._run_order_scenario(scenario, current_order)
                passed = self.outcomes.chance(ORDER_SCENARIO_SUCCESS_PROBABILITY)
                if not passed:
                    details = {'message': f"Simulated {scenario.replace('_', ' ')} failure"}
            except PlatformAPIError as e:
                passed = False
                details = {'message': str(e)}
            scenario_results[scenario] = {
                'status': 'passed' if passed else 'failed',
                'response_time_ms': response_time_ms,
                'details': details,
            }

        all_passed = all(r['status'] == 'passed' for r in scenario_results.values())
        failed = [name for name, r in scenario_results.items() if r['status'] != 'passed']
        error = f"Failed scenarios: {', '.join(failed)}" if failed else None
        results = {'scenarios_tested': len(scenarios), 'results': scenario_results}
        return self._record('orders', config, all_passed, results, started, error)

    async def _fetch_order(self, config: Optional[Configuration]) -> Dict[str, Any]:
        params = {
            'vendor_code': (config.vendor_code if config else None) or 'TEST_VENDOR',
            'remote_id': (config.remote_id if config else None) or 'TEST_REMOTE',
            'currency': currency_for(config.country if config else None),
        }
        payload = await self.client.request('GET', PLATFORM_PATHS['orders'], params=params)
        return payload['orders'][0]

    async def _run_order_scenario(self, scenario: str, order: Dict[str, Any]) -> Dict[str, Any]:
        order_id = order['order_id']
        if scenario == 'order_reception':
            return {'message': 'Order received successfully', 'order_id': order_id, 'items': len(order['items'])}
        if scenario == 'order_acceptance':
            payload = await self.client.request(
                'POST', f"{PLATFORM_PATHS['orders']}/{order_id}/accept", json={'preparation_minutes': 20}
            )
            return {'message': 'Order accepted successfully', **payload}
        payload = await self.client.request(
            'POST', f"{PLATFORM_PATHS['orders']}/{order_id}/reject", json={'reason': 'Out of Stock'}
        )
        return {'message': 'Order rejected successfully', **payload}

    async def test_catalog(
        self,
        configuration_id: Optional[int] = None,
        catalog: Optional[Dict[str, Any]] = None,
        callback_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Validate a catalog and push it to the platform."""
        started = time.perf_counter()
        config = self.resolve_configuration(configuration_id)
        self._use_config_environment(config)
        catalog = catalog or generate_sample_catalog(config)

        validation = validate_catalog_structure(catalog)
        results: Dict[str, Any] = {'validation': validation, 'import': None, 'callback_url': callback_url}
        error = None

        if not validation['valid']:
            error = '; '.join(validation['errors'])
        else:
            await self.outcomes.delay(self.outcomes.uniform(0.5, 2.0))
            try:
                body = dict(catalog)
                if callback_url:
                    body['callback_url'] = callback_url
                results['import'] = await self.client.request('PUT', PLATFORM_PATHS['catalog'], json=body)
            except PlatformAPIError as e:
                error = str(e)

        return self._record('catalog', config, error is None, results, started, error)

    async def test_store(self, configuration_id: Optional[int] = None, status: str = 'open') -> Dict[str, Any]:
        started = time.perf_counter()
        config = self.resolve_configuration(configuration_id)
        self._use_config_environment(config)

        await self.outcomes.delay(self.outcomes.uniform(0.2, 1.0))
        results: Dict[str, Any] = {'requested_status': status, 'platform_response': None}
        error = None
        try:
            results['platform_response'] = await self.client.request(
                'PUT', f"{PLATFORM_PATHS['store']}/status", json={'status': status}
            )
        except PlatformAPIError as e:
            error = str(e)
        return self._record('store', config, error is None, results, started, error)

    async def test_reports(self, configuration_id: Optional[int] = None) -> Dict[str, Any]:
        started = time.perf_counter()
        config = self.resolve_configuration(configuration_id)
        self._use_config_environment(config)

        await self.outcomes.delay(self.outcomes.uniform(0.2, 1.0))
        results: Dict[str, Any] = {'reports_endpoint_accessible': False}
        error = None
        try:
            payload = await self.client.request('GET', PLATFORM_PATHS['reports'])
            results.update(reports_endpoint_accessible=True, reports_available=payload.get('total', 0))
        except PlatformAPIError as e:
            error = str(e)
        return self._record('reports', config, error is None, results, started, error)

    async def test_webhooks(self, webhook_url: str, configuration_id: Optional[int] = None) -> Dict[str, Any]:
        """Simulate delivering a webhook to the POS callback URL.

        Raises:
            ValueError: If webhook_url is empty
        """
        if not webhook_url:
            raise ValueError('Webhook URL is required')

        started = time.perf_counter()
        config = self.resolve_configuration(configuration_id) if configuration_id is not None else None
        response_time_ms = self.outcomes.randint(100, 599)
        await self.outcomes.delay(response_time_ms / 1000)

        ssl_valid = webhook_url.lower().startswith('https://')
        results = {
            'webhook_url': webhook_url,
            'endpoint_accessible': True,
            'ssl_valid': ssl_valid,
            'response_time_ms': response_time_ms,
            'status_code': 200,
            'content_type': 'application/json',
        }
        error = None if ssl_valid else 'Webhook URL must use HTTPS'
        return self._record('webhooks', config, ssl_valid, results, started, error)

    async def test_ssl(self, url: str) -> Dict[str, Any]:
        """Canned certificate check.

        Raises:
            ValueError: If url is empty
        """
        if not url:
            raise ValueError('URL is required')

        started = time.perf_counter()
        await self.outcomes.delay(self.outcomes.uniform(0.2, 0.8))
        ssl_valid = url.lower().startswith('https://')
        results = {
            'url': url,
            'ssl_valid': ssl_valid,
            'certificate_valid': ssl_valid,
            'expires_in_days': 365 if ssl_valid else None,
            'issuer': 'Mock CA' if ssl_valid else None,
        }
        error = None if ssl_valid else 'URL does not use HTTPS'
        return self._record('ssl', None, ssl_valid, results, started, error)

    async def test_ip_connectivity(
        self,
        ip_addresses: Optional[List[str]] = None,
        region: Optional[str] = None,
        configuration_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Probe platform IPs, either explicit or the whitelist of a region.

        Raises:
            ValueError: No addresses resolvable, an unknown region or a malformed IP
        """
        config = None
        if not ip_addresses:
            if region is None:
                config = self.resolve_configuration(configuration_id)
                region = config.region if config else None
            if region is None:
                raise ValueError('ip_addresses or region is required')
            try:
                ip_addresses = list(whitelist_for(region))
            except ValueError:
                raise ValueError(f'Unknown region: {region}') from None

        for ip in ip_addresses:
            try:
                ipaddress.ip_address(ip)
            except ValueError:
                raise ValueError(f'Invalid IP address: {ip}') from None

        started = time.perf_counter()
        probes = []
        for ip in ip_addresses:
            response_time_ms = self.outcomes.randint(20, 119)
            await self.outcomes.delay(response_time_ms / 1000)
            probes.append({
                'ip': ip,
                'accessible': self.outcomes.chance(0.95),
                'response_time_ms': response_time_ms,
            })

        unreachable = [p['ip'] for p in probes if not p['accessible']]
        results = {'region': region, 'ips_tested': len(probes), 'results': probes}
        error = f"Unreachable: {', '.join(unreachable)}" if unreachable else None
        return self._record('ip_connectivity', config, not unreachable, results, started, error)

    async def run_full_suite(
        self,
        configuration_id: Optional[int] = None,
        password: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Run every simulator in sequence against one configuration.

        Raises:
            ConfigurationNotFoundError: If no configuration is available
        """
        config = self.resolve_configuration(configuration_id)
        if config is None:
            raise ConfigurationNotFoundError('No active configuration to test')

        started = time.perf_counter()
        self.monitoring.add_log('info', 'Full test suite started', 'testing', {'configuration_id': config.id})

        steps = [
            ('authentication', lambda: self.test_authentication(config.id, password=password)),
            ('order_management', lambda: self.test_orders(config.id)),
            ('catalog_management', lambda: self.test_catalog(config.id, callback_url=config.callback_url)),
            ('store_management', lambda: self.test_store(config.id)),
            ('webhooks', lambda: self.test_webhooks(config.callback_url or config.base_url, config.id)),
            ('ssl', lambda: self.test_ssl(config.base_url)),
            ('reporting', lambda: self.test_reports(config.id)),
        ]

        results: Dict[str, Dict[str, Any]] = {}
        for name, run in steps:
            outcome = await run()
            results[name] = {'status': outcome['status'], 'details': outcome['results'], 'error': outcome['error']}

        tests_passed = sum(1 for r in results.values() if r['status'] == 'passed')
        summary = {
            'overall_status': 'passed' if tests_passed == len(results) else 'failed',
            'tests_run': len(results),
            'tests_passed': tests_passed,
            'tests_failed': len(results) - tests_passed,
            'execution_time_ms': int((time.perf_counter() - started) * 1000),
            'results': results,
        }
        error = None if summary['overall_status'] == 'passed' else f"{summary['tests_failed']} test(s) failed"
        recorded = self._record('full_suite', config, summary['overall_status'] == 'passed', summary, started, error)
        summary['test_result_id'] = recorded['test_result_id']
        return summary

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def get_badges(self) -> Dict[str, bool]:
        """Flat badge map from the newest result per test type."""
        badges = {}
        for test_type, badge in BADGE_FOR_TEST_TYPE.items():
            latest = (
                self.db.query(TestResult)
                .filter_by(test_type=test_type)
                .order_by(TestResult.created_at.desc(), TestResult.id.desc())
                .first()
            )
            badges[badge] = bool(latest and latest.passed)
        return badges

    def get_recent_results(self, limit: int = 20, test_type: Optional[str] = None) -> List[TestResult]:
        query = self.db.query(TestResult)
        if test_type:
            query = query.filter_by(test_type=test_type)
        return query.order_by(TestResult.created_at.desc(), TestResult.id.desc()).limit(limit).all()

    def reset_results(self) -> int:
        deleted = self.db.query(TestResult).delete()
        self.db.flush()
        self.monitoring.add_log('info', 'Test results reset', 'testing', {'deleted': deleted})
        return deleted

    def latest_orders_passed(self) -> bool:
        return self.get_badges()['order']
