from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, Integer, String, Text

from server.lib.database import Base

# Badge name shown on the dashboard for each simulator test type
BADGE_FOR_TEST_TYPE = {
  'authentication': 'auth',
  'orders': 'order',
  'catalog': 'catalog',
  'store': 'store',
  'webhooks': 'webhook',
  'reports': 'report',
}


class TestResult(Base):
  """Outcome of one simulator run.

  The dashboard badge map is derived from the newest row per test_type.
  """

  __tablename__ = 'test_results'
  __test__ = False  # not a pytest test class

  id = Column(Integer, primary_key=True, autoincrement=True)
  configuration_id = Column(Integer, ForeignKey('configurations.id'), nullable=True)
  test_type = Column(String(50), nullable=False)
  test_name = Column(String(255), nullable=False)
  status = Column(String(20), nullable=False)
  results = Column(JSON, nullable=True)
  error_message = Column(Text, nullable=True)
  execution_time_ms = Column(Integer, nullable=True)
  created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

  __table_args__ = (
    Index('ix_test_results_configuration_id', 'configuration_id'),
    Index('ix_test_results_test_type', 'test_type'),
  )

  @property
  def passed(self) -> bool:
    return self.status == 'passed'

  def to_dict(self) -> dict:
    return {
      'id': self.id,
      'configuration_id': self.configuration_id,
      'test_type': self.test_type,
      'test_name': self.test_name,
      'status': self.status,
      'results': self.results,
      'error_message': self.error_message,
      'execution_time_ms': self.execution_time_ms,
      'created_at': self.created_at.isoformat() if self.created_at else None,
    }
