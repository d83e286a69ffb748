"""Models package for database entities and platform reference data."""

from server.models.configuration import Configuration
from server.models.report import Report, ScheduledReport
from server.models.test_result import TestResult

__all__ = [
    'Configuration',
    'Report',
    'ScheduledReport',
    'TestResult',
]
