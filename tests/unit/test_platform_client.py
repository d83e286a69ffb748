"""Unit tests for the platform client and the simulated platform behind it."""

import httpx
import pytest

from server.lib.auth import decode_mock_token
from server.services.mock_platform import MockPlatform, issue_token, token_response
from server.services.platform_client import PlatformAPIError, PlatformClient


@pytest.fixture
def platform(clock):
    return MockPlatform(clock=clock, record_requests=True)


@pytest.fixture
async def platform_client(monitoring, platform, clock):
    client = PlatformClient(monitoring=monitoring, transport=platform.transport(), clock=clock)
    yield client
    await client.aclose()


class TestMockTokens:

    def test_issued_token_decodes_to_claims(self):
        claims = decode_mock_token(issue_token('pos-user', now=1_700_000_000))

        assert claims['username'] == 'pos-user'
        assert claims['timestamp'] == 1_700_000_000_000
        assert len(claims['random']) == 12

    def test_token_response_shape(self):
        payload = token_response('pos-user')

        assert payload['token_type'] == 'Bearer'
        assert payload['expires_in'] == 3600
        assert payload['scope'] == 'pos_integration'
        assert decode_mock_token(payload['refresh_token'])['username'] == 'pos-user:refresh'

    @pytest.mark.parametrize('token', ['not-base64!', 'aGVsbG8=', ''])
    def test_foreign_tokens_do_not_decode(self, token):
        assert decode_mock_token(token) is None


class TestAuthentication:

    @pytest.mark.asyncio
    async def test_authenticate_caches_token(self, platform_client):
        payload = await platform_client.authenticate('pos-user', 'secret')

        assert platform_client.is_authenticated is True
        assert platform_client.get_token() == payload['access_token']
        assert platform_client.token_info()['username'] == 'pos-user'
        assert platform_client.token_info()['expires_in'] == 3600

    @pytest.mark.asyncio
    async def test_empty_credentials_are_rejected(self, platform_client):
        with pytest.raises(PlatformAPIError) as exc_info:
            await platform_client.authenticate('pos-user', '')

        assert exc_info.value.status_code == 400
        assert str(exc_info.value) == 'HTTP 400: Username and password are required'
        assert platform_client.is_authenticated is False

    @pytest.mark.asyncio
    async def test_token_expires(self, platform_client, clock):
        await platform_client.authenticate('pos-user', 'secret')

        clock.advance(3600)

        assert platform_client.get_token() is None
        assert platform_client.token_info()['expires_in'] == 0

    @pytest.mark.asyncio
    async def test_refresh_uses_cached_refresh_token(self, platform_client, clock):
        first = await platform_client.authenticate('pos-user', 'secret')
        clock.advance(10)

        second = await platform_client.refresh_access_token()

        assert second['access_token'] != first['access_token']
        assert platform_client.get_token() == second['access_token']

    @pytest.mark.asyncio
    async def test_refresh_without_token(self, platform_client):
        with pytest.raises(PlatformAPIError) as exc_info:
            await platform_client.refresh_access_token()

        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_logout_clears_tokens(self, platform_client):
        await platform_client.authenticate('pos-user', 'secret')

        platform_client.logout()

        assert platform_client.is_authenticated is False
        assert platform_client.username is None

    @pytest.mark.asyncio
    async def test_switching_environment_drops_tokens(self, platform_client):
        await platform_client.authenticate('pos-user', 'secret')

        platform_client.use_environment('production')

        assert platform_client.base_url == 'https://api.talabat.com/pos'
        assert platform_client.is_authenticated is False


class TestRequests:

    @pytest.mark.asyncio
    async def test_unauthenticated_request_fails_without_calling_platform(self, platform_client, platform):
        with pytest.raises(PlatformAPIError) as exc_info:
            await platform_client.request('GET', '/v1/orders')

        assert exc_info.value.status_code == 401
        assert platform.requests == []

    @pytest.mark.asyncio
    async def test_bearer_token_is_injected(self, platform_client, platform):
        tokens = await platform_client.authenticate('pos-user', 'secret')

        payload = await platform_client.request('GET', '/v1/orders', params={'vendor_code': 'V1', 'currency': 'KWD'})

        sent = platform.requests[-1]
        assert sent.headers['Authorization'] == f"Bearer {tokens['access_token']}"
        assert sent.url.path == '/pos/v1/orders'
        order = payload['orders'][0]
        assert order['vendor_code'] == 'V1'
        assert order['payment']['currency'] == 'KWD'

    @pytest.mark.asyncio
    async def test_order_accept_and_reject(self, platform_client):
        await platform_client.authenticate('pos-user', 'secret')

        accepted = await platform_client.request('POST', '/v1/orders/ORD_1/accept', json={})
        rejected = await platform_client.request('POST', '/v1/orders/ORD_1/reject', json={'reason': 'Out of Stock'})

        assert accepted['status'] == 'accepted'
        assert rejected == {'order_id': 'ORD_1', 'status': 'rejected', 'reason': 'Out of Stock'}

    @pytest.mark.asyncio
    async def test_platform_errors_raise_with_message(self, platform_client):
        await platform_client.authenticate('pos-user', 'secret')

        with pytest.raises(PlatformAPIError, match='HTTP 422: vendor_code is required'):
            await platform_client.request('PUT', '/v1/catalog', json={'menu': {}})
        with pytest.raises(PlatformAPIError, match='HTTP 400: Invalid store status: party'):
            await platform_client.request('PUT', '/v1/store/status', json={'status': 'party'})
        with pytest.raises(PlatformAPIError) as exc_info:
            await platform_client.request('GET', '/v1/unknown')
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_calls_are_tracked_by_monitoring(self, platform_client, monitoring):
        await platform_client.authenticate('pos-user', 'secret')
        with pytest.raises(PlatformAPIError):
            await platform_client.request('PUT', '/v1/store/status', json={'status': 'party'})

        assert monitoring.api_calls == 2
        assert monitoring.successful_calls == 1
        assert monitoring.failed_calls == 1
        assert monitoring.error_logs()[-1]['message'] == 'API Call Failed: PUT /v1/store/status'

    @pytest.mark.asyncio
    async def test_custom_transport(self, monitoring):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text='maintenance')

        client = PlatformClient(monitoring=monitoring, transport=httpx.MockTransport(handler))
        try:
            with pytest.raises(PlatformAPIError) as exc_info:
                await client.authenticate('pos-user', 'secret')
        finally:
            await client.aclose()

        assert exc_info.value.status_code == 503
        assert str(exc_info.value) == 'HTTP 503: maintenance'


class TestMockPlatform:

    @pytest.mark.asyncio
    async def test_requests_are_not_kept_by_default(self, monitoring, clock):
        platform = MockPlatform(clock=clock)
        client = PlatformClient(monitoring=monitoring, transport=platform.transport(), clock=clock)
        try:
            await client.authenticate('pos-user', 'secret')
            for _ in range(25):
                await client.request('GET', '/v1/orders')
        finally:
            await client.aclose()

        assert monitoring.api_calls == 26
        assert platform.requests == []

    @pytest.mark.asyncio
    async def test_webhook_delivery_is_not_a_platform_endpoint(self, platform_client):
        await platform_client.authenticate('pos-user', 'secret')

        with pytest.raises(PlatformAPIError, match='HTTP 404: Unknown endpoint: POST /v1/webhooks/test'):
            await platform_client.request('POST', '/v1/webhooks/test', json={'url': 'https://pos.example.com/hook'})
