"""Report history and schedule SQLAlchemy Models

Only report metadata is persisted. Generated payloads are held in the
report service's in-memory archive until downloaded or evicted.
"""

from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Index, Integer, String, Text

from server.lib.database import Base


class Report(Base):
  """Metadata for a generated report.

  Table: reports
  """

  __tablename__ = 'reports'

  id = Column(Integer, primary_key=True, autoincrement=True)
  configuration_id = Column(Integer, ForeignKey('configurations.id'), nullable=True)
  report_type = Column(String(50), nullable=False)
  report_format = Column(String(10), nullable=False)
  date_range_from = Column(Date, nullable=False)
  date_range_to = Column(Date, nullable=False)
  record_count = Column(Integer, nullable=False, default=0)
  file_name = Column(String(255), nullable=False)
  file_size = Column(Integer, nullable=False, default=0)
  generated_at = Column(DateTime, default=datetime.utcnow, nullable=False)

  __table_args__ = (
    Index('ix_reports_generated_at', 'generated_at'),
  )

  def to_dict(self) -> dict:
    return {
      'id': self.id,
      'configuration_id': self.configuration_id,
      'report_type': self.report_type,
      'report_format': self.report_format,
      'date_range_from': self.date_range_from.isoformat() if self.date_range_from else None,
      'date_range_to': self.date_range_to.isoformat() if self.date_range_to else None,
      'record_count': self.record_count,
      'file_name': self.file_name,
      'file_size': self.file_size,
      'generated_at': self.generated_at.isoformat() if self.generated_at else None,
    }


class ScheduledReport(Base):
  """Recurring report request.

  Table: scheduled_reports

  The sandbox stores schedules and computes next_run but does not execute
  them.
  """

  __tablename__ = 'scheduled_reports'

  id = Column(Integer, primary_key=True, autoincrement=True)
  configuration_id = Column(Integer, ForeignKey('configurations.id'), nullable=True)
  report_type = Column(String(50), nullable=False)
  report_format = Column(String(10), nullable=False)
  frequency = Column(String(20), nullable=False)
  next_run = Column(DateTime, nullable=False)
  email_recipients = Column(Text, nullable=True)
  is_active = Column(Boolean, default=True, nullable=False)
  created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

  __table_args__ = (
    Index('ix_scheduled_reports_next_run', 'next_run'),
  )

  def to_dict(self) -> dict:
    recipients = [r for r in (self.email_recipients or '').split(',') if r]
    return {
      'id': self.id,
      'configuration_id': self.configuration_id,
      'report_type': self.report_type,
      'report_format': self.report_format,
      'frequency': self.frequency,
      'next_run': self.next_run.isoformat() if self.next_run else None,
      'email_recipients': recipients,
      'is_active': self.is_active,
      'created_at': self.created_at.isoformat() if self.created_at else None,
    }
