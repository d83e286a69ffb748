"""Serialization of report documents to JSON, CSV and plain-text "PDF".

The PDF path is a plain-text approximation; no PDF encoding is attempted.
"""

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

FILENAME_PREFIX = 'pos-integration'

REPORT_FORMATS = ('json', 'csv', 'pdf')

# Accepted spellings -> canonical format
FORMAT_ALIASES = {
    'json': 'json',
    'csv': 'csv',
    'pdf': 'pdf',
    'pdf-text': 'pdf',
    'txt': 'pdf',
}

MEDIA_TYPES = {
    'json': 'application/json',
    'csv': 'text/csv',
    'pdf': 'text/plain',
}

# Plain-text output gets a .txt extension so it opens as text
EXTENSIONS = {
    'json': 'json',
    'csv': 'csv',
    'pdf': 'txt',
}

NO_DATA = 'No data available'


@dataclass
class ReportFile:
    """Formatted content ready to be saved or downloaded."""

    content: str
    media_type: str
    filename: str

    @property
    def size(self) -> int:
        return len(self.content.encode('utf-8'))


def canonical_format(report_format: Optional[str]) -> Optional[str]:
    """Map a requested format onto json/csv/pdf, or None if unknown."""
    if not report_format:
        return None
    return FORMAT_ALIASES.get(report_format.lower())


def file_timestamp(now: Optional[datetime] = None) -> str:
    """Filesystem-safe ISO timestamp, e.g. 2024-01-31T10-15-00."""
    return (now or datetime.utcnow()).strftime('%Y-%m-%dT%H-%M-%S')


def build_filename(report_type: str, report_format: str, now: Optional[datetime] = None) -> str:
    extension = EXTENSIONS[canonical_format(report_format) or report_format]
    return f'{FILENAME_PREFIX}-{report_type}-report-{file_timestamp(now)}.{extension}'


def is_scalar(value: Any) -> bool:
    return value is None or isinstance(value, (str, int, float, bool))


def csv_columns(records: Iterable[Dict[str, Any]]) -> List[str]:
    """Sorted union of field names holding scalar values in any record."""
    columns = set()
    for record in records:
        columns.update(key for key, value in record.items() if is_scalar(value))
    return sorted(columns)


def _csv_cell(value: Any) -> str:
    if value is None:
        text = ''
    elif isinstance(value, bool):
        text = 'true' if value else 'false'
    else:
        text = str(value)
    return '"' + text.replace('"', '""') + '"'


def format_csv(records: List[Dict[str, Any]]) -> str:
    """Render records as CSV.

    The header row is the sorted scalar columns joined by commas; every data
    value is double-quoted with embedded quotes doubled. Nested values (dicts,
    lists) are left out. A record missing a column gets an empty cell.
    """
    if not records:
        return NO_DATA

    columns = csv_columns(records)
    lines = [','.join(columns)]
    for record in records:
        lines.append(','.join(_csv_cell(record.get(column)) for column in columns))
    return '\n'.join(lines)


def format_json(document: Dict[str, Any]) -> str:
    return json.dumps(document, indent=2, default=str)


def _text_value(value: Any) -> str:
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return str(value)


def format_pdf_text(document: Dict[str, Any]) -> str:
    """Plain-text report layout with SUMMARY and DETAILS sections."""
    info = document.get('report_info', {})
    date_range = info.get('date_range', {})
    rule = '=' * 60

    lines = [
        info.get('title', 'Report'),
        rule,
        f"Generated: {info.get('generated_at', '')}",
        f"Date Range: {date_range.get('from', '')} to {date_range.get('to', '')}",
    ]
    vendor = info.get('vendor')
    if vendor:
        lines.append(f"Vendor: {vendor.get('name', 'N/A')} ({vendor.get('code', 'N/A')})")

    lines.extend(['', 'SUMMARY', '-' * 60])
    for key, value in document.get('summary', {}).items():
        lines.append(f'{key}: {_text_value(value)}')

    lines.extend(['', 'DETAILS', '-' * 60])
    records = document.get('records', [])
    if not records:
        lines.append(NO_DATA)
    for index, record in enumerate(records, start=1):
        lines.append(f'Record {index}:')
        for key, value in record.items():
            lines.append(f'  {key}: {_text_value(value)}')
        lines.append('')

    return '\n'.join(lines).rstrip() + '\n'


def format_report(document: Dict[str, Any], report_format: str) -> str:
    """Serialize a report document.

    Raises:
        ValueError: If the format is not json, csv or pdf
    """
    fmt = canonical_format(report_format)
    if fmt == 'json':
        return format_json(document)
    if fmt == 'csv':
        return format_csv(document.get('records', []))
    if fmt == 'pdf':
        return format_pdf_text(document)
    raise ValueError('Invalid report format')


def to_report_file(document: Dict[str, Any], report_type: str, report_format: str) -> ReportFile:
    fmt = canonical_format(report_format)
    if fmt is None:
        raise ValueError('Invalid report format')
    return ReportFile(
        content=format_report(document, fmt),
        media_type=MEDIA_TYPES[fmt],
        filename=build_filename(report_type, fmt),
    )
