# Cloudflare Gateway Adblock Updater
# Author: SeriousHoax
# GitHub: https://github.com/SeriousHoax
# License: MIT

import logging
import re
from typing import Iterable, Iterator, List, Optional, Union

import requests

from adblock_sync.config import REQUEST_TIMEOUT, SOURCE_URL_TEMPLATE
from adblock_sync.errors import ConfigError, ParseError, RemoteFetchError

logger = logging.getLogger(__name__)

IPV4_PATTERN = re.compile(r'[0-9]{1,3}(\.[0-9]{1,3}){3}')


def is_ip_address(line: str) -> bool:
    return IPV4_PATTERN.fullmatch(line) is not None


def parse_domains(content: str) -> List[str]:
    """Turn a plaintext blocklist into domain entries, keeping source order."""
    domains = []
    for line in content.split('\n'):
        line = line.strip()
        if not line or line.startswith('#'):
            continue
        if is_ip_address(line):
            logger.info(f"  ⏭️ Excluded IP address: {line}")
            continue
        domains.append(line)
    return domains


def chunker(seq: List[str], size: int) -> Iterator[List[str]]:
    """Split a sequence into chunks of specified size."""
    for i in range(0, len(seq), size):
        yield seq[i:i + size]


def partition(entries: Iterable[str], max_size: int) -> List[List[str]]:
    """Contiguous chunks of at most ``max_size`` entries; no chunks for no entries."""
    if max_size < 1:
        raise ValueError(f"max_size must be at least 1, got {max_size}")
    return list(chunker(list(entries), max_size))


def build_source_url(year: Union[str, int, None], month: Union[str, int, None],
                     template: str = SOURCE_URL_TEMPLATE) -> str:
    if not year:
        raise ConfigError("YEAR is not set")
    if not month:
        raise ConfigError("MONTH is not set")
    try:
        year_num = int(year)
        month_num = int(month)
    except (TypeError, ValueError):
        raise ConfigError(f"YEAR and MONTH must be numeric, got {year!r}/{month!r}")
    if not 1 <= month_num <= 12:
        raise ConfigError(f"MONTH must be between 1 and 12, got {month_num}")
    return template.format(year=year_num, month=month_num)


class BlocklistSource:
    """Downloads the monthly 280blocker domain list."""

    def __init__(self, url_template: str = SOURCE_URL_TEMPLATE,
                 timeout: int = REQUEST_TIMEOUT,
                 session: Optional[requests.Session] = None,
                 allow_empty: bool = False):
        self.url_template = url_template
        self.timeout = timeout
        self.session = session
        self.allow_empty = allow_empty

    def fetch(self, year, month) -> List[str]:
        url = build_source_url(year, month, self.url_template)
        get = self.session.get if self.session is not None else requests.get
        response = get(url, timeout=self.timeout)

        if not response.ok:
            logger.error(f"🚫 Error fetching {url}: {response.status_code} {response.reason}")
            raise RemoteFetchError(f"fetching {url}", response.status_code,
                                   response.reason or '', response.text[:500])
        logger.info(f"🔗 Successfully fetched from {url}")

        domains = parse_domains(response.text)
        logger.info(f"🎯 Parsed {len(domains):,} domains")

        if not domains and not self.allow_empty:
            raise ParseError(f"No domains found in {url}; refusing to empty the gateway lists")
        return domains
