"""Mock authentication API Router.

Logs the shared platform client in against the simulated platform. Any
non-empty credentials are accepted.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from server.lib.dependencies import get_configuration_service, get_monitoring, get_platform_client
from server.lib.structured_logger import StructuredLogger
from server.services.configuration_service import ConfigurationNotFoundError, ConfigurationService
from server.services.monitoring_service import MonitoringAggregator
from server.services.platform_client import PlatformAPIError, PlatformClient

router = APIRouter()
logger = StructuredLogger(__name__)


class LoginRequest(BaseModel):
  username: str = ''
  password: str = ''
  configuration_id: Optional[int] = Field(None, description='Use this configuration\'s environment')


class RefreshRequest(BaseModel):
  refresh_token: Optional[str] = None


class TokenResponse(BaseModel):
  access_token: str
  refresh_token: str
  token_type: str
  expires_in: int
  scope: Optional[str] = None


@router.post('/login', response_model=TokenResponse)
async def login(
  request: LoginRequest,
  client: PlatformClient = Depends(get_platform_client),
  configurations: ConfigurationService = Depends(get_configuration_service),
  monitoring: MonitoringAggregator = Depends(get_monitoring),
):
  """Authenticate against the simulated platform and cache the token.

  Raises:
      400: Username or password missing
      401: Platform rejected the credentials
      404: configuration_id does not exist
  """
  if not request.username.strip() or not request.password:
    raise HTTPException(
      status_code=400,
      detail={'error_code': 'INVALID_REQUEST', 'message': 'Username and password are required'},
    )

  if request.configuration_id is not None:
    try:
      config = configurations.get_configuration(request.configuration_id)
    except ConfigurationNotFoundError as e:
      raise HTTPException(status_code=404, detail={'error_code': 'NOT_FOUND', 'message': str(e)})
    client.use_environment(config.environment)

  try:
    tokens = await client.authenticate(request.username.strip(), request.password)
  except PlatformAPIError as e:
    monitoring.add_log('error', f'Authentication failed: {e}', 'auth')
    raise HTTPException(status_code=401, detail={'error_code': 'AUTH_FAILED', 'message': str(e)})

  monitoring.add_log('success', 'Authentication successful', 'auth', {'username': request.username.strip()})
  return tokens


@router.post('/refresh', response_model=TokenResponse)
async def refresh(
  request: RefreshRequest,
  client: PlatformClient = Depends(get_platform_client),
  monitoring: MonitoringAggregator = Depends(get_monitoring),
):
  """Exchange a refresh token (or the cached one) for a new access token."""
  try:
    tokens = await client.refresh_access_token(request.refresh_token)
  except PlatformAPIError as e:
    if e.status_code == 400:
      raise HTTPException(
        status_code=400,
        detail={'error_code': 'INVALID_REQUEST', 'message': 'Refresh token is required'},
      )
    raise HTTPException(status_code=401, detail={'error_code': 'AUTH_FAILED', 'message': str(e)})

  monitoring.add_log('info', 'Access token refreshed', 'auth')
  return tokens


@router.post('/logout')
async def logout(
  client: PlatformClient = Depends(get_platform_client),
  monitoring: MonitoringAggregator = Depends(get_monitoring),
):
  client.logout()
  monitoring.add_log('info', 'Logged out', 'auth')
  return {'message': 'Logged out successfully'}


@router.get('/status')
async def auth_status(client: PlatformClient = Depends(get_platform_client)):
  """Whether the platform client currently holds a valid token."""
  return client.token_info()
