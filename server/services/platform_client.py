"""API client shim for the delivery platform.

Wraps an httpx.AsyncClient with bearer-token injection and token caching.
By default it talks to the in-process MockPlatform; every call is tracked by
the monitoring aggregator and counted in Prometheus.
"""

import re
import time
from typing import Any, Callable, Dict, Optional

import httpx

from server.lib.metrics import record_platform_call
from server.lib.structured_logger import StructuredLogger
from server.models.platform import PLATFORM_PATHS, base_url_for
from server.services.mock_platform import MockPlatform
from server.services.monitoring_service import MonitoringAggregator

logger = StructuredLogger(__name__)

_ORDER_ID = re.compile(r'/orders/[^/]+/')


class PlatformAPIError(Exception):
    """Non-2xx response or missing authentication.

    Attributes:
        status_code: HTTP status returned by the platform (401 when no token)
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PlatformClient:
    """Async client for the (simulated) platform API.

    Args:
        environment: 'staging' or 'production'; selects the base URL
        monitoring: Aggregator that records every call
        transport: httpx transport (defaults to a MockPlatform transport)
        clock: Time source for token expiry
    """

    def __init__(
        self,
        environment: str = 'staging',
        monitoring: Optional[MonitoringAggregator] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.environment = environment
        self.monitoring = monitoring
        self.clock = clock
        self._client = httpx.AsyncClient(
            base_url=base_url_for(environment),
            transport=transport or MockPlatform(clock=clock).transport(),
            timeout=10.0,
        )
        self.username: Optional[str] = None
        self._access_token: Optional[str] = None
        self._refresh_token: Optional[str] = None
        self._expires_at: Optional[float] = None

    @property
    def base_url(self) -> str:
        return str(self._client.base_url).rstrip('/')

    def use_environment(self, environment: str) -> None:
        """Point the client at another environment; cached tokens are dropped."""
        if environment == self.environment:
            return
        self._client.base_url = base_url_for(environment)
        self.environment = environment
        self.clear_tokens()

    # ------------------------------------------------------------------
    # Token cache
    # ------------------------------------------------------------------

    def get_token(self) -> Optional[str]:
        """Cached access token, or None if absent or expired."""
        if self._access_token and self._expires_at and self.clock() >= self._expires_at:
            logger.info('Cached access token expired', username=self.username)
            self._access_token = None
            self._expires_at = None
        return self._access_token

    @property
    def is_authenticated(self) -> bool:
        return self.get_token() is not None

    def token_info(self) -> Dict[str, Any]:
        remaining = max(int(self._expires_at - self.clock()), 0) if self._expires_at else 0
        return {
            'authenticated': self.is_authenticated,
            'username': self.username,
            'environment': self.environment,
            'expires_in': remaining if self.is_authenticated else 0,
        }

    def clear_tokens(self) -> None:
        self._access_token = None
        self._refresh_token = None
        self._expires_at = None

    def _store_tokens(self, payload: Dict[str, Any]) -> None:
        self._access_token = payload['access_token']
        self._refresh_token = payload.get('refresh_token', self._refresh_token)
        self._expires_at = self.clock() + int(payload.get('expires_in', 3600))

    # ------------------------------------------------------------------
    # Auth flow
    # ------------------------------------------------------------------

    async def authenticate(self, username: str, password: str) -> Dict[str, Any]:
        """Log in and cache the issued tokens.

        Raises:
            PlatformAPIError: If the platform rejects the credentials
        """
        payload = await self.request(
            'POST', PLATFORM_PATHS['login'], json={'username': username, 'password': password}, authenticated=False
        )
        self.username = username
        self._store_tokens(payload)
        logger.log_event('auth.login', context={'username': username, 'environment': self.environment})
        return payload

    async def refresh_access_token(self, refresh_token: Optional[str] = None) -> Dict[str, Any]:
        token = refresh_token or self._refresh_token
        if not token:
            raise PlatformAPIError('No refresh token available', status_code=400)
        payload = await self.request('POST', PLATFORM_PATHS['refresh'], json={'refresh_token': token}, authenticated=False)
        self._store_tokens(payload)
        logger.log_event('auth.refresh', context={'username': self.username})
        return payload

    def logout(self) -> None:
        logger.log_event('auth.logout', context={'username': self.username})
        self.clear_tokens()
        self.username = None

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        authenticated: bool = True,
    ) -> Dict[str, Any]:
        """Send one request and return the decoded JSON body.

        Raises:
            PlatformAPIError: Missing token, or a non-2xx response
        """
        headers = {'Accept': 'application/json'}
        if authenticated:
            token = self.get_token()
            if not token:
                raise PlatformAPIError('Not authenticated with the platform', status_code=401)
            headers['Authorization'] = f'Bearer {token}'

        operation = _ORDER_ID.sub('/orders/{id}/', path).strip('/').replace('/', '.')
        started = time.perf_counter()
        status = 'failure'
        try:
            if self.monitoring is not None:
                async with self.monitoring.track(path, method) as call:
                    response = await self._client.request(method, path, json=json, params=params, headers=headers)
                    call.status = response.status_code
                    self._raise_for_status(response)
            else:
                response = await self._client.request(method, path, json=json, params=params, headers=headers)
                self._raise_for_status(response)
            status = 'success'
        finally:
            record_platform_call(operation, status, time.perf_counter() - started)

        return response.json() if response.content else {}

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.is_success:
            return
        try:
            message = response.json().get('message', response.reason_phrase)
        except ValueError:
            message = response.text or response.reason_phrase
        raise PlatformAPIError(f'HTTP {response.status_code}: {message}', status_code=response.status_code)

    async def aclose(self) -> None:
        await self._client.aclose()
