"""Integration Configuration SQLAlchemy Model

One POS integration profile: platform credentials, target environment and
the vendor identifiers the simulated platform correlates orders with.
"""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String

from server.lib.database import Base


class Configuration(Base):
  """Integration profile.

  Table: configurations

  Constraints:
      - UNIQUE(integration_code)
      - Soft deleted via is_active; inactive rows are kept for history
  """

  __tablename__ = 'configurations'

  id = Column(Integer, primary_key=True, autoincrement=True)
  integration_name = Column(String(255), nullable=False)
  integration_code = Column(String(100), nullable=False, unique=True)
  base_url = Column(String(500), nullable=False)
  plugin_username = Column(String(255), nullable=False)
  plugin_password_hash = Column(String(64), nullable=False)
  environment = Column(String(20), nullable=False, default='staging')
  country = Column(String(2), nullable=False, default='AE')
  region = Column(String(20), nullable=False, default='me')
  vendor_code = Column(String(100), nullable=True)
  remote_id = Column(String(100), nullable=True)
  callback_url = Column(String(500), nullable=True)
  created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
  updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
  is_active = Column(Boolean, default=True, nullable=False)

  __table_args__ = (
    Index('ix_configurations_is_active', 'is_active'),
  )

  def __repr__(self) -> str:
    return f"<Configuration(id={self.id}, integration_code='{self.integration_code}')>"

  def to_dict(self) -> dict:
    """Convert model to dictionary. The password hash is never included."""
    return {
      'id': self.id,
      'integration_name': self.integration_name,
      'integration_code': self.integration_code,
      'base_url': self.base_url,
      'plugin_username': self.plugin_username,
      'environment': self.environment,
      'country': self.country,
      'region': self.region,
      'vendor_code': self.vendor_code,
      'remote_id': self.remote_id,
      'callback_url': self.callback_url,
      'created_at': self.created_at.isoformat() if self.created_at else None,
      'updated_at': self.updated_at.isoformat() if self.updated_at else None,
      'is_active': self.is_active,
    }
