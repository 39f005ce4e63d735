# Cloudflare Gateway Adblock Updater
# Author: SeriousHoax
# GitHub: https://github.com/SeriousHoax
# License: MIT

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from adblock_sync.errors import ConfigError

API_BASE_URL = "https://api.cloudflare.com/client/v4"
SOURCE_URL_TEMPLATE = "https://280blocker.net/files/280blocker_domain_{year}{month:02d}.txt"
LIST_PREFIX = "AutoCreated_AdBlockList_"
RULE_NAME = "AdBlock"
PLACEHOLDER_TRAFFIC = 'dns.fqdn == "example.com"'
CHUNK_SIZE = 1000
MAX_LISTS_WARNING = 900
REQUEST_TIMEOUT = 30
MAX_CONCURRENT_REQUESTS = 12

# Settings every sync run needs before the first network call
REQUIRED_SETTINGS = {
    "api_token": "API_TOKEN",
    "account_id": "ACCOUNT_ID",
    "rule_id": "RULE_ID",
    "year": "YEAR",
    "month": "MONTH",
}


def _get_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")
    if value < 1:
        raise ConfigError(f"{name} must be positive, got {value}")
    return value


def _get_str(environ: Mapping[str, str], name: str) -> Optional[str]:
    value = environ.get(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _get_bool(environ: Mapping[str, str], name: str) -> bool:
    return environ.get(name, 'false').strip().lower() in ('1', 'true', 'yes')


@dataclass(frozen=True)
class Settings:
    """Run configuration, read once from the environment."""

    api_token: Optional[str] = None
    account_id: Optional[str] = None
    rule_id: Optional[str] = None
    year: Optional[str] = None
    month: Optional[str] = None

    chunk_size: int = CHUNK_SIZE
    list_prefix: str = LIST_PREFIX
    rule_name: str = RULE_NAME
    placeholder_traffic: str = PLACEHOLDER_TRAFFIC
    request_timeout: int = REQUEST_TIMEOUT
    max_concurrent_requests: int = MAX_CONCURRENT_REQUESTS
    max_lists_warning: int = MAX_LISTS_WARNING
    source_url_template: str = SOURCE_URL_TEMPLATE
    api_base_url: str = API_BASE_URL
    allow_empty_source: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        if environ is None:
            environ = os.environ
        return cls(
            api_token=_get_str(environ, 'API_TOKEN'),
            account_id=_get_str(environ, 'ACCOUNT_ID'),
            rule_id=_get_str(environ, 'RULE_ID'),
            year=_get_str(environ, 'YEAR'),
            month=_get_str(environ, 'MONTH'),
            chunk_size=_get_int(environ, 'CHUNK_SIZE', CHUNK_SIZE),
            list_prefix=_get_str(environ, 'LIST_PREFIX') or LIST_PREFIX,
            rule_name=_get_str(environ, 'RULE_NAME') or RULE_NAME,
            placeholder_traffic=_get_str(environ, 'PLACEHOLDER_TRAFFIC') or PLACEHOLDER_TRAFFIC,
            request_timeout=_get_int(environ, 'REQUEST_TIMEOUT', REQUEST_TIMEOUT),
            max_concurrent_requests=_get_int(environ, 'MAX_CONCURRENT_REQUESTS', MAX_CONCURRENT_REQUESTS),
            max_lists_warning=_get_int(environ, 'MAX_LISTS_WARNING', MAX_LISTS_WARNING),
            source_url_template=_get_str(environ, 'SOURCE_URL_TEMPLATE') or SOURCE_URL_TEMPLATE,
            api_base_url=(_get_str(environ, 'API_BASE_URL') or API_BASE_URL).rstrip('/'),
            allow_empty_source=_get_bool(environ, 'ALLOW_EMPTY_SOURCE'),
            log_level=(_get_str(environ, 'LOG_LEVEL') or "INFO").upper(),
        )

    def missing(self, *fields: str) -> list:
        """Return the environment names of required fields that are unset."""
        names = fields or tuple(REQUIRED_SETTINGS)
        return [REQUIRED_SETTINGS[name] for name in names if not getattr(self, name)]

    def require(self, *fields: str) -> None:
        missing = self.missing(*fields)
        if missing:
            raise ConfigError(f"Missing required environment variables: {', '.join(missing)}")
