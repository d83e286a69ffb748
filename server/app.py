"""FastAPI application for the POS Integration Sandbox."""

import os
import random
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

import httpx
from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from server.lib.auth import get_bearer_token
from server.lib.database import check_connection, create_db_engine, create_session_factory, init_schema
from server.lib.metrics_middleware import correlation_and_metrics_middleware
from server.lib.rate_limit import RateLimiter, rate_limit_middleware
from server.lib.structured_logger import StructuredLogger
from server.routers import router
from server.services.monitoring_service import MonitoringAggregator, MonitoringLoop
from server.services.outcomes import OutcomeSource, RandomOutcomes
from server.services.platform_client import PlatformClient
from server.services.report_service import ReportArchive, ReportGenerator
from server.services.simulator_service import SimulatorService

# Load .env files; .env.local wins over .env
load_dotenv('.env')
load_dotenv('.env.local', override=True)

logger = StructuredLogger(__name__)

DEFAULT_CORS_ORIGINS = (
  'http://localhost:5173',
  'http://127.0.0.1:5173',
  'http://localhost:3000',
  'http://127.0.0.1:3000',
)


def _cors_origins() -> list[str]:
  configured = os.getenv('CORS_ALLOWED_ORIGINS', '')
  origins = [origin.strip() for origin in configured.split(',') if origin.strip()]
  return origins or list(DEFAULT_CORS_ORIGINS)


def _auto_create_tables() -> bool:
  return os.getenv('AUTO_CREATE_TABLES', 'true').lower() in ('1', 'true', 'yes')


def create_app(
  database_url: Optional[str] = None,
  outcomes: Optional[OutcomeSource] = None,
  rng: Optional[random.Random] = None,
  platform_transport: Optional[httpx.AsyncBaseTransport] = None,
  rate_limiter: Optional[RateLimiter] = None,
  monitoring_interval: Optional[float] = None,
) -> FastAPI:
  """Build the application and its shared services.

  Args:
      database_url: SQLAlchemy URL (defaults to DATABASE_URL)
      outcomes: Randomness for the simulators (RandomOutcomes by default)
      rng: Random generator for synthetic report data
      platform_transport: httpx transport for the platform client (in-process mock by default)
      rate_limiter: Limiter for /api/ routes (built from RATE_LIMIT_* by default)
      monitoring_interval: Seconds between metric collection ticks (MONITORING_INTERVAL_SECONDS)
  """
  engine = create_db_engine(database_url)
  if _auto_create_tables():
    init_schema(engine)
  session_factory = create_session_factory(engine)

  outcomes = outcomes or RandomOutcomes()
  monitoring = MonitoringAggregator(outcomes=outcomes)
  platform_client = PlatformClient(monitoring=monitoring, transport=platform_transport)

  def collect_metrics():
    if not monitoring.is_monitoring:
      return None
    with session_factory() as db:
      orders_passed = SimulatorService(db, platform_client, monitoring, outcomes).latest_orders_passed()
    return monitoring.collect_metrics(authenticated=platform_client.is_authenticated, orders_passed=orders_passed)

  monitoring_loop = MonitoringLoop(collect_metrics, monitoring_interval)

  @asynccontextmanager
  async def lifespan(app: FastAPI):
    """Manage application lifespan."""
    monitoring_loop.start()
    monitoring.add_log('info', 'POS integration sandbox started', 'system')
    logger.info('Application started', database=engine.dialect.name, monitoring_interval=monitoring_loop.interval_seconds)
    yield
    await monitoring_loop.stop()
    await platform_client.aclose()
    engine.dispose()
    logger.info('Application stopped')

  app = FastAPI(
    title='POS Integration Sandbox API',
    description='Sandbox for developing and testing POS integrations against a simulated delivery platform',
    version=os.getenv('APP_VERSION', '1.0.0'),
    lifespan=lifespan,
  )

  app.state.engine = engine
  app.state.session_factory = session_factory
  app.state.outcomes = outcomes
  app.state.monitoring = monitoring
  app.state.platform_client = platform_client
  app.state.report_generator = ReportGenerator(monitoring, rng=rng)
  app.state.report_archive = ReportArchive()
  app.state.rate_limiter = rate_limiter or RateLimiter()
  app.state.monitoring_loop = monitoring_loop
  app.state.started_at = datetime.utcnow()

  app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
  )
  app.middleware('http')(rate_limit_middleware)
  # Registered last so it wraps everything else, including 429 responses
  app.middleware('http')(correlation_and_metrics_middleware)

  _register_probes(app)
  _register_exception_handlers(app)

  # Include API routers
  app.include_router(router, prefix='/api', tags=['api'])

  @app.api_route('/api/{path:path}', methods=['GET', 'POST', 'PUT', 'DELETE', 'PATCH'], include_in_schema=False)
  async def api_not_found(path: str):
    raise HTTPException(
      status_code=404,
      detail={'error_code': 'NOT_FOUND', 'message': f'API endpoint not found: /api/{path}'},
    )

  return app


def _register_probes(app: FastAPI) -> None:
  async def health(request: Request):
    """Health check with database connectivity."""
    database_ok = check_connection(request.app.state.engine)
    body = {
      'status': 'healthy' if database_ok else 'unhealthy',
      'timestamp': datetime.utcnow().isoformat() + 'Z',
      'version': request.app.version,
      'database': 'connected' if database_ok else 'disconnected',
    }
    return JSONResponse(status_code=200 if database_ok else 503, content=body)

  async def metrics(request: Request):
    """Prometheus metrics.

    Raises:
        401: Authentication required (missing bearer token)
    """
    await get_bearer_token(request)
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

  # Root-level paths for load balancers and scrapers, /api paths for consistency
  app.add_api_route('/health', health, methods=['GET'])
  app.add_api_route('/api/health', health, methods=['GET'])
  app.add_api_route('/metrics', metrics, methods=['GET'])
  app.add_api_route('/api/metrics', metrics, methods=['GET'])


def _register_exception_handlers(app: FastAPI) -> None:
  @app.exception_handler(Exception)
  async def unhandled_exception_handler(request: Request, exc: Exception):
    """Log unexpected errors and return a generic 500 body."""
    logger.error(
      'Unhandled exception',
      exc_info=exc,
      endpoint=request.url.path,
      method=request.method,
    )
    return JSONResponse(
      status_code=500,
      content={'detail': {'error_code': 'INTERNAL_ERROR', 'message': 'Internal server error'}},
    )


app = create_app()
