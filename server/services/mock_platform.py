"""Simulated delivery platform API.

Canned responses served through httpx.MockTransport so PlatformClient goes
through a real HTTP request/response cycle without leaving the process.
Everything except login and refresh requires a sandbox bearer token.
"""

import base64
import json
import re
import time
from typing import Any, Callable, Dict, Optional
from uuid import uuid4

import httpx

from server.lib.auth import decode_mock_token, extract_bearer_token
from server.models.platform import TOKEN_LIFETIME_SECONDS, TOKEN_SCOPE

STORE_STATUSES = ('open', 'closed', 'busy')

_ORDER_ACTION = re.compile(r'^/v1/orders/(?P<order_id>[^/]+)/(?P<action>accept|reject)$')


def issue_token(username: str, now: Optional[float] = None) -> str:
    """Base64-encoded JSON {username, timestamp, random}; not a signed JWT."""
    claims = {
        'username': username,
        'timestamp': int((now if now is not None else time.time()) * 1000),
        'random': uuid4().hex[:12],
    }
    return base64.b64encode(json.dumps(claims).encode('utf-8')).decode('ascii')


def token_response(username: str, now: Optional[float] = None) -> Dict[str, Any]:
    return {
        'access_token': issue_token(username, now),
        'refresh_token': issue_token(f'{username}:refresh', now),
        'token_type': 'Bearer',
        'expires_in': TOKEN_LIFETIME_SECONDS,
        'scope': TOKEN_SCOPE,
    }


def sample_order(vendor_code: str = 'TEST_VENDOR', remote_id: str = 'TEST_REMOTE', currency: str = 'AED') -> Dict[str, Any]:
    """Order payload as pushed by the platform to a POS plugin."""
    order_id = f'ORD_{uuid4().hex[:8].upper()}'
    return {
        'order_id': order_id,
        'vendor_code': vendor_code,
        'remote_id': remote_id,
        'status': 'new',
        'created_at': time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime()),
        'customer': {'name': 'Test Customer', 'phone': '+971501234567', 'area': 'Downtown'},
        'items': [
            {'id': 'ITEM_001', 'name': 'Chicken Shawarma', 'quantity': 2, 'price': 25.0},
            {'id': 'ITEM_002', 'name': 'Fresh Orange Juice', 'quantity': 1, 'price': 12.0},
        ],
        'payment': {'method': 'card', 'total': 62.0, 'currency': currency},
        'delivery': {'type': 'platform', 'estimated_minutes': 35},
    }


def _error(status_code: int, message: str) -> httpx.Response:
    return httpx.Response(status_code, json={'message': message})


def _body(request: httpx.Request) -> Dict[str, Any]:
    if not request.content:
        return {}
    try:
        data = json.loads(request.content)
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


class MockPlatform:
    """Request handler for httpx.MockTransport.

    Args:
        clock: Time source used for token timestamps
        record_requests: Keep every handled request in `requests`
    """

    def __init__(self, clock: Callable[[], float] = time.time, record_requests: bool = False):
        self.clock = clock
        self.record_requests = record_requests
        self.requests: list[httpx.Request] = []

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def handle(self, request: httpx.Request) -> httpx.Response:
        if self.record_requests:
            self.requests.append(request)
        path = request.url.path
        # Strip the environment prefix (/pos) so routing is environment-agnostic
        if '/v1/' in path:
            path = path[path.index('/v1/'):]
        method = request.method

        if path == '/v1/login' and method == 'POST':
            return self._login(request)
        if path == '/v1/refresh' and method == 'POST':
            return self._refresh(request)

        token = extract_bearer_token(request.headers.get('Authorization'))
        if not token or decode_mock_token(token) is None:
            return _error(401, 'Unauthorized')

        if path == '/v1/orders' and method == 'GET':
            params = request.url.params
            return httpx.Response(200, json={'orders': [sample_order(
                vendor_code=params.get('vendor_code', 'TEST_VENDOR'),
                remote_id=params.get('remote_id', 'TEST_REMOTE'),
                currency=params.get('currency', 'AED'),
            )]})

        match = _ORDER_ACTION.match(path)
        if match and method == 'POST':
            return self._order_action(match.group('order_id'), match.group('action'), _body(request))

        if path == '/v1/catalog' and method == 'PUT':
            return self._catalog(_body(request))
        if path == '/v1/store/status' and method == 'PUT':
            status = _body(request).get('status')
            if status not in STORE_STATUSES:
                return _error(400, f'Invalid store status: {status}')
            return httpx.Response(200, json={'status': status, 'updated_at': int(self.clock() * 1000)})
        if path == '/v1/reports' and method == 'GET':
            return httpx.Response(200, json={'reports': [], 'total': 0})

        return _error(404, f'Unknown endpoint: {method} {path}')

    def _login(self, request: httpx.Request) -> httpx.Response:
        body = _body(request)
        username = (body.get('username') or '').strip()
        password = body.get('password') or ''
        if not username or not password:
            return _error(400, 'Username and password are required')
        return httpx.Response(200, json=token_response(username, self.clock()))

    def _refresh(self, request: httpx.Request) -> httpx.Response:
        refresh_token = _body(request).get('refresh_token')
        claims = decode_mock_token(refresh_token) if refresh_token else None
        if claims is None:
            return _error(400, 'Refresh token is required')
        username = claims['username'].split(':', 1)[0]
        return httpx.Response(200, json=token_response(username, self.clock()))

    def _order_action(self, order_id: str, action: str, body: Dict[str, Any]) -> httpx.Response:
        if action == 'reject':
            reason = body.get('reason')
            if not reason:
                return _error(400, 'Rejection reason is required')
            return httpx.Response(200, json={'order_id': order_id, 'status': 'rejected', 'reason': reason})
        return httpx.Response(200, json={
            'order_id': order_id,
            'status': 'accepted',
            'estimated_preparation_minutes': body.get('preparation_minutes', 20),
        })

    def _catalog(self, catalog: Dict[str, Any]) -> httpx.Response:
        if not catalog.get('vendor_code'):
            return _error(422, 'vendor_code is required')
        categories = (catalog.get('menu') or {}).get('categories') or []
        item_count = sum(len(c.get('items') or []) for c in categories)
        return httpx.Response(202, json={
            'status': 'accepted',
            'import_id': f'IMP_{uuid4().hex[:8].upper()}',
            'categories': len(categories),
            'items': item_count,
        })
