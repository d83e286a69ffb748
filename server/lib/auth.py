"""Authentication helpers for sandbox endpoints.

The sandbox issues mock bearer tokens through /api/auth/login; these helpers
extract and decode them. Tokens are base64-encoded JSON and are never
cryptographically verified.
"""

import base64
import binascii
import json
from typing import Any, Optional

from fastapi import HTTPException, Request

from server.lib.structured_logger import StructuredLogger

logger = StructuredLogger(__name__)


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
  """Return the token part of an 'Authorization: Bearer <token>' header."""
  if not authorization:
    return None
  scheme, _, token = authorization.partition(' ')
  if scheme.lower() != 'bearer' or not token.strip():
    return None
  return token.strip()


async def get_bearer_token(request: Request) -> str:
  """Extract the required bearer token from the request.

  Args:
      request: FastAPI request object

  Returns:
      Bearer token string

  Raises:
      HTTPException: 401 if the Authorization header is missing or malformed
  """
  token = extract_bearer_token(request.headers.get('Authorization'))

  if not token:
    logger.log_event('auth.token_missing', level='WARNING', context={'endpoint': request.url.path})
    raise HTTPException(
      status_code=401,
      detail={
        'error_code': 'AUTH_MISSING',
        'message': 'Authentication required. Provide a bearer token from /api/auth/login.',
      },
    )

  return token


def decode_mock_token(token: str) -> Optional[dict[str, Any]]:
  """Decode a sandbox token into its {username, timestamp, random} claims.

  Returns:
      Claims dictionary, or None if the token was not issued by the sandbox
  """
  try:
    padded = token + '=' * (-len(token) % 4)
    claims = json.loads(base64.b64decode(padded).decode('utf-8'))
  except (binascii.Error, UnicodeDecodeError, ValueError):
    return None
  if not isinstance(claims, dict) or 'username' not in claims:
    return None
  return claims
