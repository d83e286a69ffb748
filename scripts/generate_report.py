"""Generate a POS integration report from the command line.

Builds a report document with the same generator the API uses and writes it
to disk. Order reports are synthetic; performance and error reports reflect
an empty monitoring buffer since no API calls happen in this process.

Usage:
    python scripts/generate_report.py completed --from 2024-01-01 --to 2024-01-31 --format csv
    python scripts/generate_report.py all --from 2024-01-01 --to 2024-01-07 --config-id 3 --seed 42

Exit codes:
    0: Report written
    1: Invalid request (dates, type, format or unknown configuration)
    2: Unexpected failure
"""

import argparse
import random
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from server.lib.database import create_db_engine, create_session_factory, init_schema
from server.services.configuration_service import ConfigurationNotFoundError, ConfigurationService
from server.services.monitoring_service import MonitoringAggregator
from server.services.report_formatter import canonical_format, to_report_file
from server.services.report_service import REPORT_TEMPLATES, ReportGenerator, ReportValidationError

EXIT_OK = 0
EXIT_INVALID = 1
EXIT_FAILURE = 2

console = Console(stderr=True)


def build_parser() -> argparse.ArgumentParser:
  parser = argparse.ArgumentParser(description='Generate a POS integration report file')
  parser.add_argument('report_type', choices=sorted(REPORT_TEMPLATES), help='Report type')
  parser.add_argument('--from', dest='from_date', required=True, help='Start date (YYYY-MM-DD)')
  parser.add_argument('--to', dest='to_date', required=True, help='End date (YYYY-MM-DD), inclusive')
  parser.add_argument('--format', dest='report_format', default='json', help='json, csv or pdf (default: json)')
  parser.add_argument('--output', '-o', default='.', help='Output directory or file path (default: .)')
  parser.add_argument('--config-id', type=int, default=None, help='Configuration providing vendor context')
  parser.add_argument('--seed', type=int, default=None, help='Seed for repeatable synthetic data')
  return parser


def _load_configuration(config_id: Optional[int]):
  """Read a configuration from DATABASE_URL, detached from its session."""
  engine = create_db_engine()
  try:
    init_schema(engine)
    with create_session_factory(engine)() as db:
      config = ConfigurationService(db).get_configuration(config_id)
      db.expunge(config)
      return config
  finally:
    engine.dispose()


def _output_path(output: str, filename: str) -> Path:
  path = Path(output)
  if path.is_dir() or output.endswith(('/', '\\')):
    return path / filename
  return path


def run(argv: Optional[list[str]] = None) -> int:
  """Parse arguments, generate the report and write it.

  Returns:
      Process exit code
  """
  args = build_parser().parse_args(argv)

  try:
    config = _load_configuration(args.config_id) if args.config_id is not None else None
    generator = ReportGenerator(MonitoringAggregator(), rng=random.Random(args.seed))
    document = generator.generate(args.report_type, args.from_date, args.to_date, args.report_format, config)
    report_file = to_report_file(document, args.report_type, canonical_format(args.report_format))

    path = _output_path(args.output, report_file.filename)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(report_file.content, encoding='utf-8')
  except (ReportValidationError, ConfigurationNotFoundError) as e:
    console.print(f'[red]Error: {e}[/red]')
    return EXIT_INVALID
  except Exception as e:
    console.print(f'[red]Report generation failed: {e}[/red]')
    return EXIT_FAILURE

  table = Table(title=document['report_info']['title'])
  table.add_column('Field')
  table.add_column('Value')
  table.add_row('Date range', f"{args.from_date} to {args.to_date}")
  table.add_row('Records', str(len(document['records'])))
  table.add_row('Size', f'{report_file.size} bytes')
  table.add_row('File', str(path))
  console.print(table)
  console.print('[green]✓ Report written[/green]')
  return EXIT_OK


def main():
  """Console script entry point."""
  load_dotenv('.env')
  load_dotenv('.env.local', override=True)
  sys.exit(run())


if __name__ == '__main__':
  main()
