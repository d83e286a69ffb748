"""Configuration service for integration profile CRUD.

Passwords are stored as SHA-256 hashes and never returned. Deletion is soft:
inactive rows stay in the table so test results and reports keep their
foreign keys.
"""

import hashlib
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from server.lib.structured_logger import StructuredLogger
from server.models.configuration import Configuration
from server.models.platform import COUNTRIES, DEFAULT_COUNTRY, Environment, Region
from server.services.config_validator import normalize_record, validate_configuration

logger = StructuredLogger(__name__)

EXPORT_VERSION = '1.0'

OPTIONAL_FIELDS = ('environment', 'country', 'region', 'vendor_code', 'remote_id', 'callback_url')

# Optional fields an update may clear with an explicit null
NULLABLE_FIELDS = ('vendor_code', 'remote_id', 'callback_url')


class ConfigurationValidationError(ValueError):
    """Raised when a configuration fails validation."""

    def __init__(self, errors: List[str]):
        super().__init__('; '.join(errors))
        self.errors = errors


class ConfigurationNotFoundError(LookupError):
    """Raised when a configuration id does not exist or was deleted."""


class DuplicateConfigurationError(Exception):
    """Raised when the integration code is already taken."""


def hash_password(password: str) -> str:
    return hashlib.sha256(password.encode('utf-8')).hexdigest()


def _check_choices(data: Dict[str, Any]) -> List[str]:
    errors = []
    if data.get('environment') and data['environment'] not in {e.value for e in Environment}:
        errors.append('Environment must be staging or production')
    if data.get('country') and data['country'].upper() not in COUNTRIES:
        errors.append(f"Unsupported country: {data['country']}")
    if data.get('region') and data['region'] not in {r.value for r in Region}:
        errors.append(f"Unsupported region: {data['region']}")
    return errors


class ConfigurationService:
    """Service for integration configuration storage."""

    def __init__(self, db: Session):
        """Initialize configuration service.

        Args:
            db: SQLAlchemy database session
        """
        self.db = db

    def create_configuration(self, data: Dict[str, Any]) -> Configuration:
        """Validate and persist a new configuration.

        Args:
            data: Configuration fields including plugin_password in clear text

        Returns:
            The stored Configuration

        Raises:
            ConfigurationValidationError: If any rule fails
            DuplicateConfigurationError: If integration_code already exists
        """
        result = validate_configuration(data)
        errors = result.errors + _check_choices(data)
        if errors:
            raise ConfigurationValidationError(errors)

        code = data['integration_code'].strip()
        if self.db.query(Configuration).filter_by(integration_code=code).first():
            raise DuplicateConfigurationError(f'Integration code already exists: {code}')

        country = (data.get('country') or DEFAULT_COUNTRY).upper()
        config = Configuration(
            integration_name=data['integration_name'].strip(),
            integration_code=code,
            base_url=data['base_url'].strip(),
            plugin_username=data['plugin_username'].strip(),
            plugin_password_hash=hash_password(data['plugin_password']),
            environment=data.get('environment') or Environment.STAGING.value,
            country=country,
            region=data.get('region') or COUNTRIES[country].region.value,
            vendor_code=data.get('vendor_code'),
            remote_id=data.get('remote_id'),
            callback_url=data.get('callback_url'),
        )
        self.db.add(config)
        try:
            self.db.flush()
        except IntegrityError as e:
            self.db.rollback()
            raise DuplicateConfigurationError(f'Integration code already exists: {code}') from e

        logger.info('Configuration created', configuration_id=config.id, integration_code=code)
        return config

    def get_configuration(self, config_id: int) -> Configuration:
        config = self.db.get(Configuration, config_id)
        if config is None or not config.is_active:
            raise ConfigurationNotFoundError(f'Configuration not found: {config_id}')
        return config

    def update_configuration(self, config_id: int, changes: Dict[str, Any]) -> Configuration:
        """Apply a partial update and re-validate the merged record.

        Omitting plugin_password keeps the stored hash. A None value clears
        vendor_code, remote_id or callback_url and is ignored for other fields.

        Raises:
            ConfigurationNotFoundError: Unknown or deleted id
            ConfigurationValidationError: Merged record is invalid
            DuplicateConfigurationError: New integration_code collides
        """
        config = self.get_configuration(config_id)
        merged = config.to_dict()
        merged.update({k: v for k, v in changes.items() if v is not None or k in NULLABLE_FIELDS})

        new_password = changes.get('plugin_password')
        result = validate_configuration(merged, password_on_file=not new_password)
        errors = result.errors + _check_choices(merged)
        if errors:
            raise ConfigurationValidationError(errors)

        new_code = merged['integration_code'].strip()
        if new_code != config.integration_code:
            clash = self.db.query(Configuration).filter(
                Configuration.integration_code == new_code, Configuration.id != config.id
            ).first()
            if clash:
                raise DuplicateConfigurationError(f'Integration code already exists: {new_code}')

        for key in ('integration_name', 'integration_code', 'base_url', 'plugin_username'):
            setattr(config, key, str(merged[key]).strip())
        for key in OPTIONAL_FIELDS:
            setattr(config, key, merged.get(key))
        config.country = (config.country or DEFAULT_COUNTRY).upper()
        if new_password:
            config.plugin_password_hash = hash_password(new_password)
        config.updated_at = datetime.utcnow()
        self.db.flush()

        logger.info('Configuration updated', configuration_id=config.id)
        return config

    def delete_configuration(self, config_id: int) -> None:
        config = self.get_configuration(config_id)
        config.is_active = False
        config.updated_at = datetime.utcnow()
        self.db.flush()
        logger.info('Configuration deactivated', configuration_id=config_id)

    def list_configurations(self) -> List[Configuration]:
        return (
            self.db.query(Configuration)
            .filter_by(is_active=True)
            .order_by(Configuration.created_at.desc(), Configuration.id.desc())
            .all()
        )

    def get_active_configuration(self) -> Optional[Configuration]:
        """Most recently updated active configuration, or None."""
        return (
            self.db.query(Configuration)
            .filter_by(is_active=True)
            .order_by(Configuration.updated_at.desc(), Configuration.id.desc())
            .first()
        )

    def verify_credentials(self, config: Configuration, username: str, password: str) -> bool:
        return config.plugin_username == username and config.plugin_password_hash == hash_password(password)

    def export_configuration(self, config_id: int) -> Dict[str, Any]:
        """Portable JSON view of a configuration, without credentials."""
        data = self.get_configuration(config_id).to_dict()
        for key in ('id', 'created_at', 'updated_at', 'is_active'):
            data.pop(key, None)
        return {
            'configuration': data,
            'exported_at': datetime.utcnow().isoformat() + 'Z',
            'version': EXPORT_VERSION,
        }

    def import_configuration(self, payload: Dict[str, Any], plugin_password: Optional[str] = None) -> Configuration:
        """Create a configuration from an export document.

        Exports omit the password, so it can be supplied separately. Both the
        wrapped export format and a bare configuration object are accepted,
        with snake_case or camelCase keys.
        """
        data = payload.get('configuration', payload)
        if not isinstance(data, dict):
            raise ConfigurationValidationError(['Import payload must contain a configuration object'])

        record = {**data, **normalize_record(data)}
        if plugin_password:
            record['plugin_password'] = plugin_password
        record.setdefault('vendor_code', data.get('vendorCode'))
        record.setdefault('remote_id', data.get('remoteId'))
        record.setdefault('callback_url', data.get('callbackUrl'))
        return self.create_configuration(record)
