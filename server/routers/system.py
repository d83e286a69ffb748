"""System information API Router."""

import os
import platform
from datetime import datetime

from fastapi import APIRouter, Depends, Request

from server.lib.database import check_connection
from server.lib.dependencies import get_monitoring, get_platform_client
from server.models.platform import COUNTRIES, PLATFORM_BASE_URLS
from server.services.monitoring_service import MonitoringAggregator
from server.services.platform_client import PlatformClient

router = APIRouter()


@router.get('/info')
async def system_info(
  request: Request,
  monitoring: MonitoringAggregator = Depends(get_monitoring),
  client: PlatformClient = Depends(get_platform_client),
):
  """Runtime, platform connection and monitoring state for the dashboard."""
  state = request.app.state
  uptime_seconds = (datetime.utcnow() - state.started_at).total_seconds()
  return {
    'application': {
      'name': request.app.title,
      'version': request.app.version,
      'started_at': state.started_at.isoformat() + 'Z',
      'uptime_seconds': round(uptime_seconds, 1),
    },
    'runtime': {
      'python_version': platform.python_version(),
      'platform': platform.platform(),
      'pid': os.getpid(),
    },
    'database': {
      'dialect': state.engine.dialect.name,
      'connected': check_connection(state.engine),
    },
    'platform': {
      'environment': client.environment,
      'base_url': client.base_url,
      'authenticated': client.is_authenticated,
      'environments': [env.value for env in PLATFORM_BASE_URLS],
      'supported_countries': sorted(COUNTRIES),
    },
    'monitoring': {
      'is_monitoring': monitoring.is_monitoring,
      'total_logs': len(monitoring.logs),
      'max_log_entries': monitoring.max_log_entries,
      'max_metric_points': monitoring.max_metric_points,
    },
    'rate_limit': {
      'max_requests': state.rate_limiter.max_requests,
      'window_seconds': state.rate_limiter.window_seconds,
    },
  }
