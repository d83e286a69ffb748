"""Report generation, history and scheduling.

ReportGenerator synthesizes order datasets sized by the requested date
range and derives performance and error reports from the monitoring
aggregator. ReportService persists report metadata, keeps recent payloads
in memory for download and stores report schedules.
"""

import calendar
import random
from collections import Counter, OrderedDict
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from server.lib.metrics import record_report_generated
from server.lib.structured_logger import StructuredLogger
from server.models.configuration import Configuration
from server.models.platform import currency_for
from server.models.report import Report, ScheduledReport
from server.services.monitoring_service import MonitoringAggregator
from server.services.report_formatter import REPORT_FORMATS, ReportFile, canonical_format, to_report_file

logger = StructuredLogger(__name__)

MAX_RANGE_DAYS = 365
HISTORY_LIMIT = 100
ARCHIVE_LIMIT = 20

REPORT_TEMPLATES: Dict[str, Dict[str, Any]] = {
    'completed': {
        'name': 'Completed Orders Report',
        'description': 'All successfully completed orders with revenue, delivery time and rating',
        'fields': [
            'order_id', 'vendor_code', 'remote_id', 'order_date', 'completion_time', 'total_amount',
            'currency', 'customer_info', 'delivery_time_minutes', 'rating',
        ],
    },
    'cancelled': {
        'name': 'Cancelled Orders Report',
        'description': 'Cancelled orders with cancellation reasons and refund status',
        'fields': [
            'order_id', 'vendor_code', 'order_date', 'cancelled_at', 'total_amount', 'currency',
            'cancellation_reason', 'cancelled_by', 'refund_amount', 'refund_status',
        ],
    },
    'performance': {
        'name': 'Performance Analysis Report',
        'description': 'API response times, success rate and system health indicators',
        'fields': ['metric', 'value', 'unit', 'status', 'period'],
    },
    'errors': {
        'name': 'Error Analysis Report',
        'description': 'Integration errors grouped by category with trend analysis',
        'fields': ['error_id', 'timestamp', 'module', 'message', 'error_type', 'details'],
    },
    'all': {
        'name': 'Comprehensive Order Report',
        'description': 'Completed and cancelled orders combined with overall statistics',
        'fields': ['order_id', 'vendor_code', 'order_date', 'status', 'total_amount', 'currency'],
    },
}

CANCELLATION_REASONS = (
    'Customer Requested',
    'Restaurant Unavailable',
    'Out of Stock',
    'Delivery Issues',
    'Payment Failed',
    'Technical Error',
)

DELIVERY_AREAS = ('Downtown', 'Marina', 'Business Bay', 'Jumeirah', 'Deira', 'Al Barsha')

SCHEDULE_FREQUENCIES = ('daily', 'weekly', 'monthly')


class ReportValidationError(ValueError):
    """Report request rejected before any output was produced."""


class ReportNotFoundError(LookupError):
    """Report payload or schedule does not exist (or was evicted)."""


# ----------------------------------------------------------------------
# Validation
# ----------------------------------------------------------------------


def _parse_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise ReportValidationError(f'Invalid date: {value}') from None


def validate_report_request(
    report_type: Optional[str],
    from_date: Any,
    to_date: Any,
    report_format: Optional[str],
) -> Tuple[str, date, date, str]:
    """Check a report request and normalize its values.

    Returns:
        (report_type, from_date, to_date, canonical format)

    Raises:
        ReportValidationError: With a message describing the first failed rule
    """
    if not from_date or not to_date:
        raise ReportValidationError('Please select date range')

    start, end = _parse_date(from_date), _parse_date(to_date)
    if start > end:
        raise ReportValidationError('From date cannot be later than to date')
    if (end - start).days > MAX_RANGE_DAYS:
        raise ReportValidationError(f'Date range cannot exceed {MAX_RANGE_DAYS} days')

    if report_type not in REPORT_TEMPLATES:
        raise ReportValidationError('Invalid report type')

    fmt = canonical_format(report_format)
    if fmt not in REPORT_FORMATS:
        raise ReportValidationError('Invalid report format')

    return report_type, start, end, fmt


def day_count(start: date, end: date) -> int:
    """Number of calendar days in the range, both ends included."""
    return (end - start).days + 1


def categorize_error(message: str) -> str:
    """Infer an error category from the message text."""
    text = (message or '').lower()
    if 'authentication' in text or 'login' in text or 'unauthorized' in text or 'http 401' in text:
        return 'Authentication'
    if 'network' in text or 'fetch' in text or 'connection' in text:
        return 'Network'
    if 'json' in text or 'parse' in text:
        return 'Data Format'
    if 'timeout' in text or 'timed out' in text:
        return 'Timeout'
    if 'permission' in text or 'access' in text or 'forbidden' in text:
        return 'Permission'
    return 'General'


def add_months(moment: datetime, months: int) -> datetime:
    """Shift by calendar months, clamping to the last day of the target month."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return moment.replace(year=year, month=month, day=min(moment.day, last_day))


def compute_next_run(frequency: str, now: datetime) -> datetime:
    if frequency == 'daily':
        return now + timedelta(days=1)
    if frequency == 'weekly':
        return now + timedelta(days=7)
    if frequency == 'monthly':
        return add_months(now, 1)
    raise ReportValidationError('Invalid frequency')


def vendor_context(config: Optional[Configuration]) -> Dict[str, str]:
    if config is None:
        return {'code': 'N/A', 'name': 'N/A', 'environment': 'staging', 'currency': currency_for(None)}
    return {
        'code': config.vendor_code or 'N/A',
        'name': config.integration_name or 'N/A',
        'environment': config.environment or 'staging',
        'currency': currency_for(config.country),
    }


# ----------------------------------------------------------------------
# Generation
# ----------------------------------------------------------------------


def _grade(value: float, excellent: float, good: float, higher_is_better: bool = True) -> str:
    if higher_is_better:
        if value >= excellent:
            return 'Excellent'
        return 'Good' if value >= good else 'Needs Improvement'
    if value <= excellent:
        return 'Excellent'
    return 'Good' if value <= good else 'Needs Improvement'


class ReportGenerator:
    """Builds report documents.

    Args:
        monitoring: Source for performance and error reports
        rng: Random generator for synthetic orders (seed it for repeatable output)
        clock: Returns the current UTC datetime
    """

    def __init__(
        self,
        monitoring: MonitoringAggregator,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.monitoring = monitoring
        self.rng = rng or random.Random()
        self.clock = clock

    def generate(
        self,
        report_type: str,
        from_date: Any,
        to_date: Any,
        report_format: str = 'json',
        config: Optional[Configuration] = None,
    ) -> Dict[str, Any]:
        """Validate the request and build the report document.

        Returns:
            {report_info, summary, records}

        Raises:
            ReportValidationError: If the request is invalid
        """
        report_type, start, end, _ = validate_report_request(report_type, from_date, to_date, report_format)
        vendor = vendor_context(config)

        builders = {
            'completed': self._completed_report,
            'cancelled': self._cancelled_report,
            'performance': self._performance_report,
            'errors': self._errors_report,
            'all': self._all_report,
        }
        records, summary = builders[report_type](start, end, vendor)

        template = REPORT_TEMPLATES[report_type]
        return {
            'report_info': {
                'type': report_type,
                'title': template['name'],
                'description': template['description'],
                'generated_at': self.clock().isoformat() + 'Z',
                'date_range': {'from': start.isoformat(), 'to': end.isoformat()},
                'vendor': {k: vendor[k] for k in ('code', 'name', 'environment')},
            },
            'summary': summary,
            'records': records,
        }

    # -- synthetic orders ------------------------------------------------

    def _random_moment(self, start: date, end: date) -> datetime:
        offset = self.rng.randrange(day_count(start, end) * 86400)
        return datetime.combine(start, datetime.min.time()) + timedelta(seconds=offset)

    def _completed_orders(self, start: date, end: date, vendor: Dict[str, str]) -> List[Dict[str, Any]]:
        per_day = self.rng.randint(10, 29)
        records = []
        for index in range(day_count(start, end) * per_day):
            ordered_at = self._random_moment(start, end)
            records.append({
                'order_id': f'ORD_{ordered_at:%Y%m%d}_{index + 1:05d}',
                'vendor_code': vendor['code'],
                'remote_id': f"{vendor['code']}_REMOTE",
                'order_date': ordered_at.isoformat(),
                'completion_time': (ordered_at + timedelta(minutes=self.rng.randint(0, 60))).isoformat(),
                'total_amount': round(self.rng.uniform(20, 120), 2),
                'currency': vendor['currency'],
                'customer_info': {
                    'masked_phone': f'+971 5X XXX XX{self.rng.randint(10, 99)}',
                    'area': self.rng.choice(DELIVERY_AREAS),
                },
                'delivery_time_minutes': self.rng.randint(20, 49),
                'rating': self.rng.randint(4, 5),
            })
        records.sort(key=lambda r: r['order_date'])
        return records

    def _cancelled_orders(self, start: date, end: date, vendor: Dict[str, str]) -> List[Dict[str, Any]]:
        per_day = self.rng.randint(1, 5)
        records = []
        for index in range(day_count(start, end) * per_day):
            ordered_at = self._random_moment(start, end)
            amount = round(self.rng.uniform(20, 120), 2)
            records.append({
                'order_id': f'CAN_{ordered_at:%Y%m%d}_{index + 1:05d}',
                'vendor_code': vendor['code'],
                'order_date': ordered_at.isoformat(),
                'cancelled_at': (ordered_at + timedelta(minutes=self.rng.randint(1, 30))).isoformat(),
                'total_amount': amount,
                'currency': vendor['currency'],
                'cancellation_reason': self.rng.choice(CANCELLATION_REASONS),
                'cancelled_by': self.rng.choice(('customer', 'restaurant')),
                'refund_amount': amount,
                'refund_status': 'processed' if self.rng.random() < 0.8 else 'pending',
            })
        records.sort(key=lambda r: r['order_date'])
        return records

    def _completed_report(self, start, end, vendor):
        records = self._completed_orders(start, end, vendor)
        total = len(records)
        revenue = sum(r['total_amount'] for r in records)
        summary = {
            'total_orders': total,
            'total_revenue': round(revenue, 2),
            'average_order_value': round(revenue / total, 2) if total else 0,
            'average_delivery_time': round(sum(r['delivery_time_minutes'] for r in records) / total, 1) if total else 0,
            'average_rating': round(sum(r['rating'] for r in records) / total, 1) if total else 0,
        }
        return records, summary

    def _cancelled_report(self, start, end, vendor):
        records = self._cancelled_orders(start, end, vendor)
        summary = {
            'total_cancelled': len(records),
            'total_refunded': round(sum(r['refund_amount'] for r in records), 2),
            'cancellation_reasons': dict(Counter(r['cancellation_reason'] for r in records)),
            'customer_cancelled': sum(1 for r in records if r['cancelled_by'] == 'customer'),
            'restaurant_cancelled': sum(1 for r in records if r['cancelled_by'] == 'restaurant'),
            'refunds_processed': sum(1 for r in records if r['refund_status'] == 'processed'),
            'refunds_pending': sum(1 for r in records if r['refund_status'] == 'pending'),
        }
        return records, summary

    def _all_report(self, start, end, vendor):
        completed = [{**r, 'status': 'completed'} for r in self._completed_orders(start, end, vendor)]
        cancelled = [{**r, 'status': 'cancelled'} for r in self._cancelled_orders(start, end, vendor)]
        records = sorted(completed + cancelled, key=lambda r: r['order_date'], reverse=True)
        total = len(records)
        summary = {
            'total_orders': total,
            'completed_orders': len(completed),
            'cancelled_orders': len(cancelled),
            'completion_rate': f'{(len(completed) / total * 100) if total else 0:.1f}%',
            'total_revenue': round(sum(r['total_amount'] for r in completed), 2),
            'total_refunded': round(sum(r['refund_amount'] for r in cancelled), 2),
        }
        return records, summary

    # -- monitoring-derived ------------------------------------------------

    def _performance_report(self, start, end, vendor):
        monitoring_summary = self.monitoring.get_summary()
        performance = self.monitoring.get_performance()
        period = f'{start.isoformat()} to {end.isoformat()}'

        response_time = performance['average_response_time']
        success_rate = performance['success_rate']
        error_rate = performance['error_rate']
        api_calls = performance['api_calls']
        uptime = monitoring_summary['uptime']

        records = [
            {'metric': 'API Response Time', 'value': response_time, 'unit': 'ms',
             'status': _grade(response_time, 500, 1000, higher_is_better=False), 'period': period},
            {'metric': 'Success Rate', 'value': success_rate, 'unit': '%',
             'status': _grade(success_rate, 95, 85), 'period': period},
            {'metric': 'Total API Calls', 'value': api_calls, 'unit': 'calls',
             'status': 'Active' if api_calls else 'No Activity', 'period': period},
            {'metric': 'Error Rate', 'value': error_rate, 'unit': '%',
             'status': _grade(error_rate, 1, 5, higher_is_better=False), 'period': period},
            {'metric': 'System Uptime', 'value': uptime, 'unit': 'status',
             'status': 'Excellent' if uptime == 'Active' else 'Needs Improvement', 'period': period},
        ]

        if success_rate >= 95 and response_time < 500:
            overall = 'Excellent'
        elif success_rate >= 85 and response_time < 1000:
            overall = 'Good'
        else:
            overall = 'Needs Improvement'

        recommendations = []
        if api_calls == 0:
            recommendations.append('Run the integration test suite to collect performance data')
        if response_time >= 1000:
            recommendations.append('Optimize API response times; average exceeds 1 second')
        if success_rate < 95:
            recommendations.append('Investigate failed API calls to improve the success rate')
        if error_rate > 5:
            recommendations.append('Review error logs; error rate is above 5%')
        if uptime != 'Active':
            recommendations.append('Enable real-time monitoring to track system uptime')
        if not recommendations:
            recommendations.append('System performance is within expected thresholds')

        summary = {
            'overall_performance': overall,
            'average_response_time': response_time,
            'success_rate': success_rate,
            'error_rate': error_rate,
            'total_api_calls': api_calls,
            'recommendations': recommendations,
        }
        return records, summary

    def _errors_report(self, start, end, vendor):
        # Every buffered error log is reported; entries are stamped when logged, not by order date
        records = []
        by_type: Dict[str, List[Dict[str, Any]]] = {}
        for entry in self.monitoring.error_logs():
            error_type = categorize_error(entry['message'])
            by_type.setdefault(error_type, []).append(entry)
            records.append({
                'error_id': f"ERR_{entry['id']:06d}",
                'timestamp': entry['timestamp'],
                'module': entry['module'],
                'message': entry['message'],
                'error_type': error_type,
                'details': entry['details'],
            })

        types_summary = [
            {
                'error_type': error_type,
                'count': len(entries),
                'first_occurrence': entries[0]['timestamp'],
                'last_occurrence': entries[-1]['timestamp'],
                'sample_message': entries[0]['message'],
            }
            for error_type, entries in by_type.items()
        ]

        hour_ago = (self.clock() - timedelta(hours=1)).isoformat()
        recent = sum(1 for r in records if r['timestamp'] >= hour_ago)
        older = len(records) - recent
        if recent > older:
            trend = 'increasing'
        elif recent < older:
            trend = 'decreasing'
        else:
            trend = 'stable'

        summary = {
            'total_errors': len(records),
            'unique_error_types': len(types_summary),
            'error_types_summary': types_summary,
            'error_trend': trend,
            'most_common_error': max(types_summary, key=lambda t: t['count']) if types_summary else None,
        }
        return records, summary


class ReportArchive:
    """Most recent report payloads, keyed by report id."""

    def __init__(self, limit: int = ARCHIVE_LIMIT):
        self.limit = limit
        self._files: 'OrderedDict[int, ReportFile]' = OrderedDict()

    def put(self, report_id: int, report_file: ReportFile) -> None:
        self._files[report_id] = report_file
        self._files.move_to_end(report_id)
        while len(self._files) > self.limit:
            self._files.popitem(last=False)

    def get(self, report_id: int) -> ReportFile:
        try:
            return self._files[report_id]
        except KeyError:
            raise ReportNotFoundError(f'Report {report_id} is no longer available for download') from None

    def __len__(self) -> int:
        return len(self._files)


# ----------------------------------------------------------------------
# Persistence
# ----------------------------------------------------------------------


class ReportService:
    """Service for report generation history and schedules.

    Args:
        db: SQLAlchemy database session
        generator: Shared ReportGenerator
        archive: Shared in-memory payload archive
    """

    def __init__(self, db: Session, generator: ReportGenerator, archive: ReportArchive):
        self.db = db
        self.generator = generator
        self.archive = archive

    def generate_report(
        self,
        report_type: str,
        from_date: Any,
        to_date: Any,
        report_format: str = 'json',
        config: Optional[Configuration] = None,
    ) -> Tuple[Report, ReportFile, Dict[str, Any]]:
        """Generate, format, archive and record a report.

        Raises:
            ReportValidationError: If the request is invalid
        """
        document = self.generator.generate(report_type, from_date, to_date, report_format, config)
        fmt = canonical_format(report_format)
        report_file = to_report_file(document, report_type, fmt)

        info = document['report_info']
        report = Report(
            configuration_id=config.id if config else None,
            report_type=report_type,
            report_format=fmt,
            date_range_from=date.fromisoformat(info['date_range']['from']),
            date_range_to=date.fromisoformat(info['date_range']['to']),
            record_count=len(document['records']),
            file_name=report_file.filename,
            file_size=report_file.size,
        )
        self.db.add(report)
        self.db.flush()
        self.archive.put(report.id, report_file)
        self._prune_history()

        record_report_generated(report_type, fmt)
        self.generator.monitoring.add_log(
            'success',
            f"{info['title']} generated ({report.record_count} records)",
            'reports',
            {'report_id': report.id, 'format': fmt},
        )
        logger.info('Report generated', report_id=report.id, report_type=report_type, report_format=fmt)
        return report, report_file, document

    def _prune_history(self) -> None:
        stale = (
            self.db.query(Report.id)
            .order_by(Report.generated_at.desc(), Report.id.desc())
            .offset(HISTORY_LIMIT)
            .all()
        )
        if stale:
            self.db.query(Report).filter(Report.id.in_([row.id for row in stale])).delete(synchronize_session=False)

    def get_history(self, limit: int = 50) -> List[Report]:
        return self.db.query(Report).order_by(Report.generated_at.desc(), Report.id.desc()).limit(limit).all()

    def get_download(self, report_id: int) -> ReportFile:
        return self.archive.get(report_id)

    def schedule_report(
        self,
        report_type: str,
        report_format: str,
        frequency: str,
        email_recipients: Optional[List[str]] = None,
        config: Optional[Configuration] = None,
    ) -> ScheduledReport:
        """Store a recurring report request.

        Raises:
            ReportValidationError: Unknown type, format or frequency
        """
        if report_type not in REPORT_TEMPLATES:
            raise ReportValidationError('Invalid report type')
        fmt = canonical_format(report_format)
        if fmt not in REPORT_FORMATS:
            raise ReportValidationError('Invalid report format')
        if frequency not in SCHEDULE_FREQUENCIES:
            raise ReportValidationError('Invalid frequency')

        schedule = ScheduledReport(
            configuration_id=config.id if config else None,
            report_type=report_type,
            report_format=fmt,
            frequency=frequency,
            next_run=compute_next_run(frequency, self.generator.clock()),
            email_recipients=','.join(email_recipients or []),
        )
        self.db.add(schedule)
        self.db.flush()
        logger.info('Report scheduled', schedule_id=schedule.id, frequency=frequency)
        self.generator.monitoring.add_log(
            'info', f"{REPORT_TEMPLATES[report_type]['name']} scheduled {frequency}", 'reports', {'schedule_id': schedule.id}
        )
        return schedule

    def list_scheduled(self) -> List[ScheduledReport]:
        return (
            self.db.query(ScheduledReport)
            .filter_by(is_active=True)
            .order_by(ScheduledReport.next_run.asc(), ScheduledReport.id.asc())
            .all()
        )

    def cancel_scheduled(self, schedule_id: int) -> None:
        schedule = self.db.get(ScheduledReport, schedule_id)
        if schedule is None or not schedule.is_active:
            raise ReportNotFoundError(f'Scheduled report not found: {schedule_id}')
        schedule.is_active = False
        self.db.flush()
        logger.info('Report schedule cancelled', schedule_id=schedule_id)
