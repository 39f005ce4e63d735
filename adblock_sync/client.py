# Cloudflare Gateway Adblock Updater
# Author: SeriousHoax
# GitHub: https://github.com/SeriousHoax
# License: MIT

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Type

import aiohttp

from adblock_sync.config import API_BASE_URL, REQUEST_TIMEOUT
from adblock_sync.errors import AuthError, RemoteError

logger = logging.getLogger(__name__)

MAX_LOGGED_BODY = 500


@dataclass(frozen=True)
class ApiResponse:
    status: int
    reason: str
    data: Optional[Dict[str, Any]]
    text: str = ""

    @property
    def ok(self) -> bool:
        """2xx and, when the body is a Cloudflare envelope, success=true."""
        if not 200 <= self.status < 300:
            return False
        if isinstance(self.data, dict) and self.data.get('success') is False:
            return False
        return True

    @property
    def result(self) -> Any:
        if isinstance(self.data, dict):
            return self.data.get('result')
        return None


def check_response(response: ApiResponse, action: str,
                   error_cls: Type[RemoteError]) -> ApiResponse:
    """Validate an API response; log and raise ``error_cls`` on failure."""
    if response.ok:
        return response
    body = response.text
    if response.data is not None:
        body = json.dumps(response.data.get('errors') or response.data)
    body = body[:MAX_LOGGED_BODY]
    logger.error(f"🚫 Error {action}: {response.status} {response.reason} - {body}")
    raise error_cls(action, response.status, response.reason, body)


class GatewayClient:
    """Bearer-token JSON client for the Cloudflare v4 API.

    Paths are relative to ``base_url``. Use as an async context manager so a
    single ``aiohttp.ClientSession`` is shared by every call of a run.
    """

    def __init__(self, api_token: Optional[str], account_id: Optional[str],
                 base_url: str = API_BASE_URL, timeout: int = REQUEST_TIMEOUT):
        self.api_token = api_token
        self.account_id = account_id
        self.base_url = base_url.rstrip('/')
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "GatewayClient":
        headers = {"Content-Type": "application/json"}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        self._session = aiohttp.ClientSession(headers=headers, timeout=self.timeout)
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    def account_path(self, suffix: str) -> str:
        """Path below the account's gateway endpoint."""
        if not self.account_id:
            raise AuthError("ACCOUNT_ID is not set")
        return f"accounts/{self.account_id}/gateway/{suffix}"

    def safe_path(self, path: str) -> str:
        if self.account_id:
            return path.replace(self.account_id, '[HIDDEN]')
        return path

    async def request(self, method: str, path: str, data: Optional[Dict] = None,
                      params: Optional[Dict] = None) -> ApiResponse:
        """Send one request; never raises on HTTP status, only on transport errors."""
        if not self.api_token:
            raise AuthError("API_TOKEN is not set")
        if self._session is None:
            raise RuntimeError("GatewayClient must be used as an async context manager")

        url = f"{self.base_url}/{path.lstrip('/')}"
        kwargs = {}
        if data is not None:
            kwargs["json"] = data
        if params:
            kwargs["params"] = params

        logger.debug(f"{method} {self.safe_path(path)}")
        async with self._session.request(method, url, **kwargs) as response:
            text = await response.text()
            try:
                payload = json.loads(text) if text else None
            except ValueError:
                payload = None
            return ApiResponse(
                status=response.status,
                reason=response.reason or '',
                data=payload if isinstance(payload, dict) else None,
                text=text,
            )

    async def verify_token(self) -> Dict[str, Any]:
        """Check the token against /user/tokens/verify; AuthError unless active."""
        response = await self.request('GET', "user/tokens/verify")
        if not response.ok:
            logger.error(f"🚫 Token verification failed: {response.status} {response.reason}")
            raise AuthError(f"API token rejected: {response.status} {response.reason}".rstrip())
        result = response.result or {}
        status = result.get('status', 'active')
        if status != 'active':
            raise AuthError(f"API token is {status}")
        logger.info("🔑 Token verified")
        return result
