"""Monitoring aggregator for the sandbox dashboard.

Holds a bounded activity log and three bounded metric series (response
time, success rate, error rate) fed by tracked platform calls. Counters are
lifetime totals; the series are windowed to the last N points.

Note the asymmetry: success_rate and error_rate are computed from lifetime
counters even though the charted series only keep recent points. This is
kept as-is rather than switching one side to a sliding window.
"""

import asyncio
import json
import os
import time
from collections import deque
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, AsyncIterator, Callable, Deque, Dict, List, Optional, Tuple
from uuid import uuid4

from server.lib.distributed_tracing import get_correlation_id
from server.lib.metrics import update_log_buffer_size
from server.lib.structured_logger import StructuredLogger
from server.services.outcomes import OutcomeSource, RandomOutcomes
from server.services.report_formatter import MEDIA_TYPES, ReportFile, file_timestamp

logger = StructuredLogger(__name__)

LOG_LEVELS = ('info', 'success', 'warning', 'error', 'debug')
METRIC_SERIES = ('response_time', 'success_rate', 'error_rate')

DEFAULT_MAX_LOG_ENTRIES = 1000
DEFAULT_MAX_METRIC_POINTS = 50


@dataclass
class TrackedCall:
    """Handle yielded by MonitoringAggregator.track()."""

    call_id: str
    endpoint: str
    method: str
    success: bool = True
    status: Optional[int] = None
    error: Optional[str] = None
    response_time_ms: Optional[float] = None
    details: Dict[str, Any] = field(default_factory=dict)


def _iso(ts: float) -> str:
    return datetime.utcfromtimestamp(ts).isoformat(timespec='milliseconds') + 'Z'


class MonitoringAggregator:
    """Bounded log buffer plus rolling API call metrics.

    Args:
        max_log_entries: Log cap (MONITORING_MAX_LOG_ENTRIES, default 1000)
        max_metric_points: Per-series cap (MONITORING_MAX_METRIC_POINTS, default 50)
        outcomes: Randomness for simulated dashboard values
        clock: Wall-clock source in seconds, injectable for tests
    """

    def __init__(
        self,
        max_log_entries: Optional[int] = None,
        max_metric_points: Optional[int] = None,
        outcomes: Optional[OutcomeSource] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.max_log_entries = max_log_entries or int(
            os.getenv('MONITORING_MAX_LOG_ENTRIES', str(DEFAULT_MAX_LOG_ENTRIES))
        )
        self.max_metric_points = max_metric_points or int(
            os.getenv('MONITORING_MAX_METRIC_POINTS', str(DEFAULT_MAX_METRIC_POINTS))
        )
        self.outcomes = outcomes or RandomOutcomes()
        self.clock = clock

        self.logs: Deque[Dict[str, Any]] = deque(maxlen=self.max_log_entries)
        self.metrics: Dict[str, Deque[Dict[str, float]]] = {
            name: deque(maxlen=self.max_metric_points) for name in METRIC_SERIES
        }
        self._pending: Dict[str, Tuple[float, str, str]] = {}
        self._next_log_id = 1

        self.api_calls = 0
        self.successful_calls = 0
        self.failed_calls = 0
        self.total_response_time = 0.0
        self.average_response_time = 0.0

        self.is_monitoring = False
        self.started_at: Optional[float] = None
        self.system_status = 'unknown'
        self.active_orders = 0
        self.last_collected_at: Optional[float] = None

    # ------------------------------------------------------------------
    # Logs
    # ------------------------------------------------------------------

    def add_log(
        self,
        level: str,
        message: str,
        module: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Append an entry, evicting the oldest once the buffer is full.

        Raises:
            ValueError: If level is not one of LOG_LEVELS
        """
        level = (level or 'info').lower()
        if level not in LOG_LEVELS:
            raise ValueError(f'Invalid log level: {level}')

        entry = {
            'id': self._next_log_id,
            'timestamp': _iso(self.clock()),
            'level': level,
            'message': message,
            'module': module or 'system',
            'details': details,
            'correlation_id': get_correlation_id(),
        }
        self._next_log_id += 1
        self.logs.append(entry)
        update_log_buffer_size(len(self.logs))

        if level == 'error':
            logger.error(message, source_module=entry['module'])
        else:
            logger.debug(message, source_module=entry['module'], dashboard_level=level)
        return entry

    def get_logs(
        self,
        level: Optional[str] = None,
        module: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> Tuple[List[Dict[str, Any]], int]:
        """Entries newest first, with the total count after filtering."""
        entries = [
            e for e in reversed(self.logs)
            if (level is None or e['level'] == level) and (module is None or e['module'] == module)
        ]
        return entries[offset:offset + limit], len(entries)

    def error_logs(self) -> List[Dict[str, Any]]:
        return [e for e in self.logs if e['level'] == 'error']

    def clear_logs(self) -> None:
        self.logs.clear()
        self.add_log('info', 'All logs cleared', 'monitoring')

    # ------------------------------------------------------------------
    # API call tracking
    # ------------------------------------------------------------------

    @property
    def success_rate(self) -> float:
        """Lifetime successful / completed calls, as a percentage."""
        completed = self.successful_calls + self.failed_calls
        if completed == 0:
            return 100.0
        return self.successful_calls / completed * 100

    @property
    def error_rate(self) -> float:
        if self.api_calls == 0:
            return 0.0
        return self.failed_calls / self.api_calls * 100

    def track_call_start(self, endpoint: str, method: str = 'GET') -> str:
        call_id = str(uuid4())
        self._pending[call_id] = (self.clock(), endpoint, method.upper())
        self.api_calls += 1
        self.add_log('info', f'API Call Started: {method.upper()} {endpoint}', 'api', {'call_id': call_id})
        return call_id

    def track_call_end(
        self,
        call_id: str,
        success: bool,
        status: Optional[int] = None,
        error: Optional[str] = None,
    ) -> float:
        """Close a tracked call and update counters and series.

        Returns:
            Elapsed time in milliseconds

        Raises:
            KeyError: If call_id was never started or already ended
        """
        started, endpoint, method = self._pending.pop(call_id)
        now = self.clock()
        elapsed_ms = max((now - started) * 1000, 0.0)

        self.total_response_time += elapsed_ms
        self.average_response_time = self.total_response_time / self.api_calls
        if success:
            self.successful_calls += 1
        else:
            self.failed_calls += 1

        timestamp_ms = int(now * 1000)
        self.metrics['response_time'].append({'timestamp': timestamp_ms, 'value': round(elapsed_ms, 2)})
        self.metrics['success_rate'].append({'timestamp': timestamp_ms, 'value': round(self.success_rate, 2)})
        self.metrics['error_rate'].append({'timestamp': timestamp_ms, 'value': round(self.error_rate, 2)})

        details = {'call_id': call_id, 'status': status, 'response_time_ms': round(elapsed_ms, 2)}
        if success:
            self.add_log('success', f'API Call Completed: {method} {endpoint}', 'api', details)
        else:
            details['error'] = error
            self.add_log('error', f'API Call Failed: {method} {endpoint}', 'api', details)
        return elapsed_ms

    @asynccontextmanager
    async def track(self, endpoint: str, method: str = 'GET') -> AsyncIterator[TrackedCall]:
        """Track the enclosed block as one API call.

        The call counts as failed if the block raises or sets
        ``call.success = False``; exceptions are re-raised.

        Usage:
            async with monitoring.track('/v1/orders', 'POST') as call:
                response = await client.post(...)
                call.status = response.status_code
        """
        call = TrackedCall(call_id=self.track_call_start(endpoint, method), endpoint=endpoint, method=method)
        try:
            yield call
        except Exception as e:
            call.response_time_ms = self.track_call_end(call.call_id, False, call.status, str(e))
            raise
        call.response_time_ms = self.track_call_end(call.call_id, call.success, call.status, call.error)

    # ------------------------------------------------------------------
    # Dashboard state
    # ------------------------------------------------------------------

    def start_monitoring(self) -> None:
        if self.is_monitoring:
            return
        self.is_monitoring = True
        self.started_at = self.clock()
        self.add_log('info', 'Real-time monitoring started', 'monitoring')

    def stop_monitoring(self) -> None:
        if not self.is_monitoring:
            return
        self.is_monitoring = False
        self.add_log('info', 'Real-time monitoring stopped', 'monitoring')

    def collect_metrics(self, authenticated: bool, orders_passed: bool = False) -> Dict[str, Any]:
        """Refresh the simulated system indicators.

        Args:
            authenticated: Whether the platform client holds a valid token
            orders_passed: Whether the latest order test passed
        """
        self.system_status = 'operational' if authenticated else 'authentication_required'
        self.active_orders = self.outcomes.randint(0, 9) + (5 if orders_passed else 0)
        self.last_collected_at = self.clock()
        return self.get_summary()

    def get_performance(self) -> Dict[str, Any]:
        return {
            'api_calls': self.api_calls,
            'successful_calls': self.successful_calls,
            'failed_calls': self.failed_calls,
            'total_response_time': round(self.total_response_time, 2),
            'average_response_time': round(self.average_response_time, 2),
            'success_rate': round(self.success_rate, 2),
            'error_rate': round(self.error_rate, 2),
        }

    def get_metrics(self) -> Dict[str, List[Dict[str, float]]]:
        return {name: list(points) for name, points in self.metrics.items()}

    def get_summary(self) -> Dict[str, Any]:
        return {
            'total_logs': len(self.logs),
            'error_logs': sum(1 for e in self.logs if e['level'] == 'error'),
            'warning_logs': sum(1 for e in self.logs if e['level'] == 'warning'),
            'success_rate': round(self.success_rate, 1),
            'average_response_time': round(self.average_response_time),
            'system_status': self.system_status,
            'active_orders': self.active_orders,
            'uptime': 'Active' if self.is_monitoring else 'Inactive',
        }

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export_logs(self, export_format: str = 'json') -> ReportFile:
        """Export the log buffer.

        Raises:
            ValueError: If export_format is not json or csv
        """
        export_format = (export_format or 'json').lower()
        filename = f'pos-integration-logs-{file_timestamp()}.{export_format}'

        if export_format == 'json':
            payload = {
                'export_date': datetime.utcnow().isoformat() + 'Z',
                'total_logs': len(self.logs),
                'logs': list(self.logs),
                'metrics': self.get_metrics(),
                'performance': self.get_performance(),
            }
            return ReportFile(json.dumps(payload, indent=2, default=str), MEDIA_TYPES['json'], filename)

        if export_format == 'csv':
            lines = ['Timestamp,Level,Module,Message']
            for entry in self.logs:
                message = str(entry['message']).replace('"', '""')
                lines.append(f'{entry["timestamp"]},{entry["level"]},{entry["module"]},"{message}"')
            return ReportFile('\n'.join(lines) + '\n', MEDIA_TYPES['csv'], filename)

        raise ValueError(f'Unsupported export format: {export_format}')


class MonitoringLoop:
    """Periodic metric collection as a single asyncio task.

    Each tick runs to completion before the next sleep starts, so ticks never
    overlap. Stopping cancels the task.

    Args:
        collect: Callable run every tick
        interval_seconds: Tick interval (MONITORING_INTERVAL_SECONDS, default 5; 0 disables)
    """

    def __init__(self, collect: Callable[[], Any], interval_seconds: Optional[float] = None):
        self.collect = collect
        self.interval_seconds = (
            interval_seconds
            if interval_seconds is not None
            else float(os.getenv('MONITORING_INTERVAL_SECONDS', '5'))
        )
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.interval_seconds <= 0 or self.running:
            return
        self._task = asyncio.create_task(self._run(), name='monitoring-loop')

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                self.collect()
            except Exception:
                # One bad tick must not end periodic collection
                logger.error('Metric collection tick failed', exc_info=True)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
