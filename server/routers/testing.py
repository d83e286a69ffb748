"""Integration test simulator API Router.

Each endpoint runs one simulator and returns its result. Platform-side
failures come back as failed results with status 200; only invalid input
or an unknown configuration produce an error response.
"""

from typing import Any, Awaitable, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from server.lib.dependencies import get_simulator_service
from server.lib.structured_logger import StructuredLogger
from server.services.configuration_service import ConfigurationNotFoundError
from server.services.simulator_service import (
  SimulatorService,
  generate_sample_catalog,
  validate_catalog_structure,
)

router = APIRouter()
logger = StructuredLogger(__name__)


class AuthenticationTestRequest(BaseModel):
  configuration_id: Optional[int] = None
  username: Optional[str] = None
  password: Optional[str] = None


class OrderTestRequest(BaseModel):
  configuration_id: Optional[int] = None
  scenarios: Optional[list[str]] = Field(None, examples=[['order_reception', 'order_acceptance']])


class CatalogTestRequest(BaseModel):
  configuration_id: Optional[int] = None
  catalog: Optional[dict[str, Any]] = None
  callback_url: Optional[str] = None


class StoreTestRequest(BaseModel):
  configuration_id: Optional[int] = None
  status: str = 'open'


class WebhookTestRequest(BaseModel):
  webhook_url: Optional[str] = None
  configuration_id: Optional[int] = None


class SSLTestRequest(BaseModel):
  url: Optional[str] = None


class IPConnectivityRequest(BaseModel):
  ip_addresses: Optional[list[str]] = None
  region: Optional[str] = None
  configuration_id: Optional[int] = None


class ConfigurationScopedRequest(BaseModel):
  configuration_id: Optional[int] = None


class FullSuiteRequest(BaseModel):
  configuration_id: Optional[int] = None
  password: Optional[str] = Field(None, description='Plugin password; omit to reuse the current login')


async def _run(operation: Awaitable[dict]) -> dict:
  try:
    return await operation
  except ConfigurationNotFoundError as e:
    raise HTTPException(status_code=404, detail={'error_code': 'NOT_FOUND', 'message': str(e)})
  except ValueError as e:
    raise HTTPException(status_code=400, detail={'error_code': 'INVALID_REQUEST', 'message': str(e)})


@router.post('/authentication')
async def run_authentication(
  request: AuthenticationTestRequest,
  service: SimulatorService = Depends(get_simulator_service),
):
  """Authentication test: endpoint reachability, credentials, token format."""
  return await _run(service.test_authentication(request.configuration_id, request.username, request.password))


@router.post('/orders')
async def run_orders(request: OrderTestRequest, service: SimulatorService = Depends(get_simulator_service)):
  """Order scenarios (default: reception and acceptance)."""
  return await _run(service.test_orders(request.configuration_id, request.scenarios))


@router.post('/catalog')
async def run_catalog(request: CatalogTestRequest, service: SimulatorService = Depends(get_simulator_service)):
  """Validate a catalog (or the generated sample) and push it to the platform."""
  return await _run(service.test_catalog(request.configuration_id, request.catalog, request.callback_url))


@router.post('/catalog/validate')
async def validate_catalog(catalog: dict[str, Any] = Body(...)):
  """Structural catalog validation without contacting the platform."""
  return validate_catalog_structure(catalog)


@router.get('/sample-catalog')
async def sample_catalog(
  configuration_id: Optional[int] = Query(None),
  service: SimulatorService = Depends(get_simulator_service),
):
  try:
    config = service.resolve_configuration(configuration_id)
  except ConfigurationNotFoundError as e:
    raise HTTPException(status_code=404, detail={'error_code': 'NOT_FOUND', 'message': str(e)})
  return generate_sample_catalog(config)


@router.post('/store')
async def run_store(request: StoreTestRequest, service: SimulatorService = Depends(get_simulator_service)):
  return await _run(service.test_store(request.configuration_id, request.status))


@router.post('/webhooks')
async def run_webhooks(request: WebhookTestRequest, service: SimulatorService = Depends(get_simulator_service)):
  """Simulated webhook delivery to the POS callback URL."""
  return await _run(service.test_webhooks(request.webhook_url or '', request.configuration_id))


@router.post('/ssl')
async def run_ssl(request: SSLTestRequest, service: SimulatorService = Depends(get_simulator_service)):
  return await _run(service.test_ssl(request.url or ''))


@router.post('/ip-connectivity')
async def run_ip_connectivity(
  request: IPConnectivityRequest,
  service: SimulatorService = Depends(get_simulator_service),
):
  """Probe explicit IPs or the whitelist of a region (defaults to the configuration's region)."""
  return await _run(service.test_ip_connectivity(request.ip_addresses, request.region, request.configuration_id))


@router.post('/reporting')
async def run_reporting(
  request: ConfigurationScopedRequest,
  service: SimulatorService = Depends(get_simulator_service),
):
  return await _run(service.test_reports(request.configuration_id))


@router.post('/full-suite')
async def run_full_suite(request: FullSuiteRequest, service: SimulatorService = Depends(get_simulator_service)):
  """Run every simulator in sequence against one configuration.

  Raises:
      404: No configuration available
  """
  logger.info('Full test suite requested', configuration_id=request.configuration_id)
  return await _run(service.run_full_suite(request.configuration_id, request.password))


@router.get('/results')
async def get_results(
  limit: int = Query(20, ge=1, le=200),
  test_type: Optional[str] = Query(None),
  service: SimulatorService = Depends(get_simulator_service),
):
  """Dashboard badges plus the most recent stored results."""
  return {
    'badges': service.get_badges(),
    'results': [r.to_dict() for r in service.get_recent_results(limit=limit, test_type=test_type)],
  }


@router.delete('/results')
async def reset_results(service: SimulatorService = Depends(get_simulator_service)):
  deleted = service.reset_results()
  return {'deleted': deleted, 'badges': service.get_badges()}
