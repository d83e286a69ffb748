"""FastAPI dependencies exposing the application-scoped services.

Long-lived objects (monitoring aggregator, platform client, report
generator, outcome source) are created once in create_app() and stored on
app.state. Database-backed services are built per request around the
request's session.
"""

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from server.lib.database import get_db_session
from server.services.configuration_service import ConfigurationService
from server.services.monitoring_service import MonitoringAggregator
from server.services.platform_client import PlatformClient
from server.services.report_service import ReportService
from server.services.simulator_service import SimulatorService


def get_monitoring(request: Request) -> MonitoringAggregator:
  return request.app.state.monitoring


def get_platform_client(request: Request) -> PlatformClient:
  return request.app.state.platform_client


def get_configuration_service(db: Session = Depends(get_db_session)) -> ConfigurationService:
  return ConfigurationService(db)


def get_simulator_service(request: Request, db: Session = Depends(get_db_session)) -> SimulatorService:
  state = request.app.state
  return SimulatorService(db, state.platform_client, state.monitoring, state.outcomes)


def get_report_service(request: Request, db: Session = Depends(get_db_session)) -> ReportService:
  state = request.app.state
  return ReportService(db, state.report_generator, state.report_archive)
