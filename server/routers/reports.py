"""Reports API Router.

Report generation, download, history, templates and schedules.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response
from pydantic import AliasChoices, BaseModel, Field

from server.lib.dependencies import get_configuration_service, get_report_service
from server.lib.structured_logger import StructuredLogger
from server.models.configuration import Configuration
from server.services.configuration_service import ConfigurationNotFoundError, ConfigurationService
from server.services.report_service import (
  REPORT_TEMPLATES,
  ReportNotFoundError,
  ReportService,
  ReportValidationError,
)

router = APIRouter()
logger = StructuredLogger(__name__)


class GenerateReportRequest(BaseModel):
  """Request body for report generation.

  Accepts the dashboard's camelCase names (type, fromDate, toDate) too.
  """
  report_type: Optional[str] = Field(None, validation_alias=AliasChoices('report_type', 'type'))
  from_date: Optional[str] = Field(None, validation_alias=AliasChoices('from_date', 'fromDate'))
  to_date: Optional[str] = Field(None, validation_alias=AliasChoices('to_date', 'toDate'))
  format: str = Field('json', examples=['json', 'csv', 'pdf'])
  configuration_id: Optional[int] = None


class ScheduleReportRequest(BaseModel):
  report_type: str = Field(..., validation_alias=AliasChoices('report_type', 'type'))
  format: str = 'json'
  frequency: str = Field(..., examples=['daily', 'weekly', 'monthly'])
  email_recipients: list[str] = Field(default_factory=list)
  configuration_id: Optional[int] = None


def _configuration(configurations: ConfigurationService, configuration_id: Optional[int]) -> Optional[Configuration]:
  if configuration_id is None:
    return configurations.get_active_configuration()
  try:
    return configurations.get_configuration(configuration_id)
  except ConfigurationNotFoundError as e:
    raise HTTPException(status_code=404, detail={'error_code': 'NOT_FOUND', 'message': str(e)})


@router.post('/generate')
async def generate_report(
  request: GenerateReportRequest,
  service: ReportService = Depends(get_report_service),
  configurations: ConfigurationService = Depends(get_configuration_service),
):
  """Generate a report and return its metadata plus a download URL.

  Raises:
      400: Missing or invalid dates, range over 365 days, unknown type or format
  """
  config = _configuration(configurations, request.configuration_id)
  try:
    report, _, document = service.generate_report(
      request.report_type, request.from_date, request.to_date, request.format, config
    )
  except ReportValidationError as e:
    logger.warning('Report request rejected', reason=str(e))
    raise HTTPException(status_code=400, detail={'error_code': 'VALIDATION_FAILED', 'message': str(e)})

  return {
    'report': report.to_dict(),
    'report_info': document['report_info'],
    'summary': document['summary'],
    'download_url': f'/api/reports/download/{report.id}',
  }


@router.get('/download/{report_id}')
async def download_report(report_id: int, service: ReportService = Depends(get_report_service)):
  try:
    report_file = service.get_download(report_id)
  except ReportNotFoundError as e:
    raise HTTPException(status_code=404, detail={'error_code': 'NOT_FOUND', 'message': str(e)})
  return Response(
    content=report_file.content,
    media_type=report_file.media_type,
    headers={'Content-Disposition': f'attachment; filename="{report_file.filename}"'},
  )


@router.get('/history')
async def report_history(
  limit: int = Query(50, ge=1, le=100),
  service: ReportService = Depends(get_report_service),
):
  """Generated reports, newest first."""
  reports = service.get_history(limit=limit)
  return {'reports': [r.to_dict() for r in reports], 'total': len(reports)}


@router.get('/templates')
async def report_templates():
  return {'templates': [{'type': key, **template} for key, template in REPORT_TEMPLATES.items()]}


@router.post('/schedule', status_code=201)
async def schedule_report(
  request: ScheduleReportRequest,
  service: ReportService = Depends(get_report_service),
  configurations: ConfigurationService = Depends(get_configuration_service),
):
  """Store a recurring report. Schedules are recorded, not executed."""
  config = _configuration(configurations, request.configuration_id)
  try:
    schedule = service.schedule_report(
      request.report_type, request.format, request.frequency, request.email_recipients, config
    )
  except ReportValidationError as e:
    raise HTTPException(status_code=400, detail={'error_code': 'VALIDATION_FAILED', 'message': str(e)})
  return schedule.to_dict()


@router.get('/scheduled')
async def list_scheduled_reports(service: ReportService = Depends(get_report_service)):
  return {'scheduled_reports': [s.to_dict() for s in service.list_scheduled()]}


@router.delete('/scheduled/{schedule_id}')
async def cancel_scheduled_report(schedule_id: int, service: ReportService = Depends(get_report_service)):
  try:
    service.cancel_scheduled(schedule_id)
  except ReportNotFoundError as e:
    raise HTTPException(status_code=404, detail={'error_code': 'NOT_FOUND', 'message': str(e)})
  return {'message': 'Scheduled report cancelled', 'id': schedule_id}
