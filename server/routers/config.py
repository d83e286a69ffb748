"""Configuration API Router.

CRUD for integration configurations plus validation, export and import.
"""

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import BaseModel, Field

from server.lib.dependencies import get_configuration_service, get_monitoring
from server.lib.structured_logger import StructuredLogger
from server.models.platform import catalog_summary
from server.services.config_validator import validate_configuration
from server.services.configuration_service import (
  ConfigurationNotFoundError,
  ConfigurationService,
  ConfigurationValidationError,
  DuplicateConfigurationError,
)
from server.services.monitoring_service import MonitoringAggregator

router = APIRouter()
logger = StructuredLogger(__name__)


# Request/Response models
class ConfigurationRequest(BaseModel):
  """Request body for creating a configuration.

  Required fields default to empty strings so that missing values are
  reported by the validator with readable messages instead of a 422.
  """
  integration_name: str = Field('', description='Company Name Country', examples=['Test Restaurant UAE'])
  integration_code: str = Field('', description='company-name-countrycode', examples=['test-restaurant-ae'])
  base_url: str = Field('', description='HTTPS base URL of the POS plugin')
  plugin_username: str = ''
  plugin_password: str = ''
  environment: str = 'staging'
  country: str = 'AE'
  region: Optional[str] = None
  vendor_code: Optional[str] = None
  remote_id: Optional[str] = None
  callback_url: Optional[str] = None


class ConfigurationUpdateRequest(BaseModel):
  """Partial update; omitted fields keep their stored values."""
  integration_name: Optional[str] = None
  integration_code: Optional[str] = None
  base_url: Optional[str] = None
  plugin_username: Optional[str] = None
  plugin_password: Optional[str] = None
  environment: Optional[str] = None
  country: Optional[str] = None
  region: Optional[str] = None
  vendor_code: Optional[str] = None
  remote_id: Optional[str] = None
  callback_url: Optional[str] = None


class ConfigurationResponse(BaseModel):
  id: int
  integration_name: str
  integration_code: str
  base_url: str
  plugin_username: str
  environment: str
  country: str
  region: str
  vendor_code: Optional[str] = None
  remote_id: Optional[str] = None
  callback_url: Optional[str] = None
  created_at: Optional[str] = None
  updated_at: Optional[str] = None
  is_active: bool


class ImportRequest(BaseModel):
  configuration: dict[str, Any]
  plugin_password: Optional[str] = None
  exported_at: Optional[str] = None
  version: Optional[str] = None


def _validation_failed(e: ConfigurationValidationError) -> HTTPException:
  return HTTPException(
    status_code=400,
    detail={
      'error_code': 'VALIDATION_FAILED',
      'message': 'Configuration validation failed',
      'errors': e.errors,
    },
  )


def _not_found(e: ConfigurationNotFoundError) -> HTTPException:
  return HTTPException(status_code=404, detail={'error_code': 'NOT_FOUND', 'message': str(e)})


def _duplicate(e: DuplicateConfigurationError) -> HTTPException:
  return HTTPException(status_code=409, detail={'error_code': 'DUPLICATE_CONFIGURATION', 'message': str(e)})


def _create(
  request: ConfigurationRequest,
  service: ConfigurationService,
  monitoring: MonitoringAggregator,
) -> dict:
  try:
    config = service.create_configuration(request.model_dump())
  except ConfigurationValidationError as e:
    logger.warning('Configuration rejected', errors=e.errors)
    raise _validation_failed(e)
  except DuplicateConfigurationError as e:
    raise _duplicate(e)

  monitoring.add_log('success', f'Configuration saved: {config.integration_name}', 'config', {'id': config.id})
  return config.to_dict()


@router.post('/config', response_model=ConfigurationResponse, status_code=201)
async def create_configuration(
  request: ConfigurationRequest,
  service: ConfigurationService = Depends(get_configuration_service),
  monitoring: MonitoringAggregator = Depends(get_monitoring),
):
  """Create an integration configuration.

  Raises:
      400: Validation failed (errors lists every failed rule)
      409: Integration code already exists
  """
  return _create(request, service, monitoring)


@router.get('/configs', response_model=list[ConfigurationResponse])
async def list_configurations(service: ConfigurationService = Depends(get_configuration_service)):
  """List active configurations, newest first."""
  return [c.to_dict() for c in service.list_configurations()]


@router.get('/configurations', response_model=list[ConfigurationResponse])
async def list_configurations_alias(service: ConfigurationService = Depends(get_configuration_service)):
  return [c.to_dict() for c in service.list_configurations()]


@router.post('/configurations', response_model=ConfigurationResponse, status_code=201)
async def create_configuration_alias(
  request: ConfigurationRequest,
  service: ConfigurationService = Depends(get_configuration_service),
  monitoring: MonitoringAggregator = Depends(get_monitoring),
):
  return _create(request, service, monitoring)


@router.get('/config/active', response_model=ConfigurationResponse)
async def get_active_configuration(service: ConfigurationService = Depends(get_configuration_service)):
  """Most recently updated active configuration."""
  config = service.get_active_configuration()
  if config is None:
    raise HTTPException(
      status_code=404,
      detail={'error_code': 'NOT_FOUND', 'message': 'No active configuration. Create one with POST /api/config.'},
    )
  return config.to_dict()


@router.get('/config/regions')
async def get_platform_regions():
  """Countries, region IP whitelists and environment endpoints."""
  return catalog_summary()


@router.post('/config/validate')
async def validate_configuration_payload(record: dict[str, Any] = Body(...)):
  """Validate a configuration without saving it.

  Accepts snake_case or camelCase keys.
  """
  return validate_configuration(record).to_dict()


@router.post('/config/import', response_model=ConfigurationResponse, status_code=201)
async def import_configuration(
  request: ImportRequest,
  service: ConfigurationService = Depends(get_configuration_service),
  monitoring: MonitoringAggregator = Depends(get_monitoring),
):
  """Create a configuration from an export document.

  Exports never contain the password, so plugin_password must be supplied
  alongside the exported configuration.
  """
  try:
    config = service.import_configuration(request.model_dump(), plugin_password=request.plugin_password)
  except ConfigurationValidationError as e:
    raise _validation_failed(e)
  except DuplicateConfigurationError as e:
    raise _duplicate(e)

  monitoring.add_log('success', f'Configuration imported: {config.integration_name}', 'config', {'id': config.id})
  return config.to_dict()


@router.get('/config/{config_id}', response_model=ConfigurationResponse)
async def get_configuration(config_id: int, service: ConfigurationService = Depends(get_configuration_service)):
  try:
    return service.get_configuration(config_id).to_dict()
  except ConfigurationNotFoundError as e:
    raise _not_found(e)


@router.put('/config/{config_id}', response_model=ConfigurationResponse)
async def update_configuration(
  config_id: int,
  request: ConfigurationUpdateRequest,
  service: ConfigurationService = Depends(get_configuration_service),
  monitoring: MonitoringAggregator = Depends(get_monitoring),
):
  """Partially update a configuration; the merged record is re-validated."""
  try:
    config = service.update_configuration(config_id, request.model_dump(exclude_unset=True))
  except ConfigurationNotFoundError as e:
    raise _not_found(e)
  except ConfigurationValidationError as e:
    raise _validation_failed(e)
  except DuplicateConfigurationError as e:
    raise _duplicate(e)

  monitoring.add_log('info', f'Configuration updated: {config.integration_name}', 'config', {'id': config.id})
  return config.to_dict()


@router.delete('/config/{config_id}')
async def delete_configuration(
  config_id: int,
  service: ConfigurationService = Depends(get_configuration_service),
  monitoring: MonitoringAggregator = Depends(get_monitoring),
):
  """Soft delete (deactivate) a configuration."""
  try:
    service.delete_configuration(config_id)
  except ConfigurationNotFoundError as e:
    raise _not_found(e)

  monitoring.add_log('warning', f'Configuration {config_id} deleted', 'config')
  return {'message': 'Configuration deleted successfully', 'id': config_id}


@router.get('/config/{config_id}/export')
async def export_configuration(config_id: int, service: ConfigurationService = Depends(get_configuration_service)):
  """Export a configuration as JSON (credentials excluded)."""
  try:
    return service.export_configuration(config_id)
  except ConfigurationNotFoundError as e:
    raise _not_found(e)
