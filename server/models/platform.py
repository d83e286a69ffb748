"""Delivery platform reference data.

Countries served by the platform, the region each belongs to, the IP
whitelist published per region and the API base URL per environment. All of
it is canned; the sandbox never resolves or contacts these hosts.
"""

from dataclasses import dataclass
from enum import Enum


class Environment(str, Enum):
  """Platform environment a configuration targets."""
  STAGING = 'staging'
  PRODUCTION = 'production'


class Region(str, Enum):
  """Coarse region used to pick an IP whitelist."""
  MIDDLE_EAST = 'me'
  EUROPE = 'eu'
  ASIA_PACIFIC = 'apac'
  LATIN_AMERICA = 'latam'
  STAGING = 'staging'


@dataclass(frozen=True)
class Country:
  code: str
  name: str
  currency: str
  region: Region


COUNTRIES: dict[str, Country] = {
  'AE': Country('AE', 'United Arab Emirates', 'AED', Region.MIDDLE_EAST),
  'SA': Country('SA', 'Saudi Arabia', 'SAR', Region.MIDDLE_EAST),
  'KW': Country('KW', 'Kuwait', 'KWD', Region.MIDDLE_EAST),
  'BH': Country('BH', 'Bahrain', 'BHD', Region.MIDDLE_EAST),
  'OM': Country('OM', 'Oman', 'OMR', Region.MIDDLE_EAST),
  'QA': Country('QA', 'Qatar', 'QAR', Region.MIDDLE_EAST),
  'JO': Country('JO', 'Jordan', 'JOD', Region.MIDDLE_EAST),
  'EG': Country('EG', 'Egypt', 'EGP', Region.MIDDLE_EAST),
}

DEFAULT_COUNTRY = 'AE'

REGION_IP_WHITELIST: dict[Region, tuple[str, ...]] = {
  Region.MIDDLE_EAST: ('63.32.225.161', '18.202.96.85', '52.208.41.152'),
  Region.EUROPE: ('63.32.162.210', '34.255.237.245', '63.32.145.112'),
  Region.ASIA_PACIFIC: ('3.0.217.166', '3.1.134.42', '3.1.56.76'),
  Region.LATIN_AMERICA: ('54.161.200.26', '54.174.130.155', '18.204.190.239'),
  Region.STAGING: ('34.246.34.27', '18.202.142.208', '54.72.10.41'),
}

PLATFORM_BASE_URLS: dict[Environment, str] = {
  Environment.STAGING: 'https://staging-api.talabat.com/pos',
  Environment.PRODUCTION: 'https://api.talabat.com/pos',
}

# Relative to the environment base URL
PLATFORM_PATHS = {
  'login': '/v1/login',
  'refresh': '/v1/refresh',
  'orders': '/v1/orders',
  'catalog': '/v1/catalog',
  'store': '/v1/store',
  'reports': '/v1/reports',
}

TOKEN_LIFETIME_SECONDS = 3600
TOKEN_SCOPE = 'pos_integration'


def currency_for(country_code: str | None) -> str:
  """Currency of a country, falling back to the default country's."""
  country = COUNTRIES.get((country_code or DEFAULT_COUNTRY).upper()) or COUNTRIES[DEFAULT_COUNTRY]
  return country.currency


def whitelist_for(region: str) -> tuple[str, ...]:
  """IP whitelist for a region code.

  Raises:
      ValueError: If the region is unknown
  """
  return REGION_IP_WHITELIST[Region(region)]


def base_url_for(environment: str | None) -> str:
  return PLATFORM_BASE_URLS[Environment(environment or Environment.STAGING.value)]


def catalog_summary() -> dict:
  """Serializable view of the reference data for the config screen."""
  return {
    'countries': [
      {'code': c.code, 'name': c.name, 'currency': c.currency, 'region': c.region.value}
      for c in COUNTRIES.values()
    ],
    'regions': {region.value: list(ips) for region, ips in REGION_IP_WHITELIST.items()},
    'environments': {env.value: url for env, url in PLATFORM_BASE_URLS.items()},
  }
