"""Monitoring API Router.

Dashboard log buffer and rolling API call metrics.
"""

from typing import Any, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response
from pydantic import BaseModel, Field

from server.lib.dependencies import get_monitoring, get_platform_client
from server.services.monitoring_service import LOG_LEVELS, MonitoringAggregator
from server.services.platform_client import PlatformClient

router = APIRouter()


class LogEntryRequest(BaseModel):
  """Request body for appending a dashboard log entry."""
  level: str = Field('info', description=f"One of: {', '.join(LOG_LEVELS)}")
  message: str = Field(..., min_length=1)
  module: Optional[str] = None
  details: Optional[dict[str, Any]] = None


@router.get('/metrics')
async def get_metrics(
  monitoring: MonitoringAggregator = Depends(get_monitoring),
  client: PlatformClient = Depends(get_platform_client),
):
  """Summary, lifetime counters and the windowed metric series."""
  return {
    'summary': monitoring.get_summary(),
    'performance': monitoring.get_performance(),
    'metrics': monitoring.get_metrics(),
    'is_monitoring': monitoring.is_monitoring,
    'authenticated': client.is_authenticated,
  }


@router.get('/logs')
async def get_logs(
  level: Optional[str] = Query(None),
  module: Optional[str] = Query(None),
  limit: int = Query(100, ge=1, le=1000),
  offset: int = Query(0, ge=0),
  monitoring: MonitoringAggregator = Depends(get_monitoring),
):
  """Log entries, newest first."""
  if level is not None and level not in LOG_LEVELS:
    raise HTTPException(
      status_code=400,
      detail={'error_code': 'INVALID_REQUEST', 'message': f'Invalid log level: {level}'},
    )
  logs, total = monitoring.get_logs(level=level, module=module, limit=limit, offset=offset)
  return {'logs': logs, 'total': total, 'limit': limit, 'offset': offset}


@router.post('/log', status_code=201)
async def add_log(request: LogEntryRequest, monitoring: MonitoringAggregator = Depends(get_monitoring)):
  try:
    return monitoring.add_log(request.level, request.message, request.module, request.details)
  except ValueError as e:
    raise HTTPException(status_code=400, detail={'error_code': 'INVALID_REQUEST', 'message': str(e)})


@router.delete('/logs')
async def clear_logs(monitoring: MonitoringAggregator = Depends(get_monitoring)):
  monitoring.clear_logs()
  return {'message': 'Logs cleared successfully'}


@router.get('/logs/export')
async def export_logs(
  format: Literal['json', 'csv'] = Query('json'),
  monitoring: MonitoringAggregator = Depends(get_monitoring),
):
  """Download the log buffer as JSON (with metrics) or CSV."""
  export = monitoring.export_logs(format)
  return Response(
    content=export.content,
    media_type=export.media_type,
    headers={'Content-Disposition': f'attachment; filename="{export.filename}"'},
  )


@router.post('/start')
async def start_monitoring(
  monitoring: MonitoringAggregator = Depends(get_monitoring),
  client: PlatformClient = Depends(get_platform_client),
):
  """Enable real-time monitoring and collect once immediately."""
  monitoring.start_monitoring()
  return monitoring.collect_metrics(authenticated=client.is_authenticated)


@router.post('/stop')
async def stop_monitoring(monitoring: MonitoringAggregator = Depends(get_monitoring)):
  monitoring.stop_monitoring()
  return monitoring.get_summary()
