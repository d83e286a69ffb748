"""Syntactic validation of integration configurations.

Pure functions, no I/O. Accepts both the snake_case keys used by the API and
the camelCase keys of configurations exported from the browser dashboard.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Mapping
from urllib.parse import urlparse

NAME_PATTERN = re.compile(r'^[a-zA-Z\s]+[a-zA-Z]+$')
CODE_PATTERN = re.compile(r'^[a-z-]+$')

# Canonical field -> accepted aliases
FIELD_ALIASES = {
    'integration_name': ('integration_name', 'integrationName'),
    'integration_code': ('integration_code', 'integrationCode'),
    'base_url': ('base_url', 'baseUrl'),
    'plugin_username': ('plugin_username', 'pluginUsername', 'username'),
    'plugin_password': ('plugin_password', 'pluginPassword', 'password'),
}


@dataclass
class ValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {'valid': self.valid, 'errors': list(self.errors)}


def _lookup(record: Mapping[str, Any], canonical: str) -> str:
    for key in FIELD_ALIASES[canonical]:
        value = record.get(key)
        if value is not None:
            return str(value).strip()
    return ''


def normalize_record(record: Mapping[str, Any]) -> dict[str, str]:
    """Map aliased keys onto their canonical snake_case names."""
    return {canonical: _lookup(record, canonical) for canonical in FIELD_ALIASES}


def validate_base_url(url: str) -> list[str]:
    if not url:
        return ['Base URL is required']
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        return ['Base URL is not valid']
    if parsed.scheme != 'https':
        return ['Base URL must use HTTPS']
    return []


def validate_configuration(record: Mapping[str, Any], password_on_file: bool = False) -> ValidationResult:
    """Validate an integration configuration.

    Rules:
        - integration name is letters and spaces ("Company Name Country")
        - integration code is lowercase letters and hyphens ("company-name-countrycode")
        - base URL parses and uses HTTPS
        - plugin username and password are non-empty

    Args:
        record: Configuration fields
        password_on_file: Treat a missing password as satisfied because a
            hash is already stored (partial updates)

    Returns:
        ValidationResult listing every rule that failed
    """
    values = normalize_record(record)
    errors: list[str] = []

    name = values['integration_name']
    if not name:
        errors.append('Integration Name is required')
    elif not NAME_PATTERN.match(name):
        errors.append('Integration Name should follow format: "Company Name Country"')

    code = values['integration_code']
    if not code:
        errors.append('Integration Code is required')
    elif not CODE_PATTERN.match(code):
        errors.append('Integration Code should follow format: "company-name-countrycode"')

    errors.extend(validate_base_url(values['base_url']))

    if not values['plugin_username']:
        errors.append('Plugin Username is required')
    if not values['plugin_password'] and not password_on_file:
        errors.append('Plugin Password is required')

    return ValidationResult(valid=not errors, errors=errors)
