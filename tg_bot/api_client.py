"""
Trading backend REST client.

Every request is signed with HMAC-SHA256 over ``timestamp + body`` using the
shared bot secret, and carries the calling Telegram user's id. Calls never
raise: transport and HTTP failures come back as ``ApiResponse(success=False)``.
"""

import asyncio
import hashlib
import hmac
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import aiohttp

from tg_bot.logging_utils import log_api_call

logger = logging.getLogger(__name__)


@dataclass
class BackendCredentials:
    """Credentials shared with the backend's bot auth middleware."""

    bot_token: str = ""
    api_secret: str = ""

    def sign_request(self, body: str, timestamp: str) -> str:
        """Hex HMAC-SHA256 of timestamp followed by the raw body."""
        message = f"{timestamp}{body}"
        return hmac.new(
            self.api_secret.encode(),
            message.encode(),
            hashlib.sha256,
        ).hexdigest()


@dataclass
class ApiResponse:
    """Standardized backend response."""

    success: bool
    data: Any = None
    error: Optional[str] = None
    status_code: int = 200


def normalize_list(payload: Any, key: str) -> List[Dict[str, Any]]:
    """
    Coerce a list payload into a list.

    The backend returns either a bare array or an object wrapping the array
    under ``key``. Anything else is treated as no data.
    """
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and isinstance(payload.get(key), list):
        return payload[key]
    return []


class BackendClient:
    """
    Async client for the trading backend's bot API.

    Usage:
        async with BackendClient("http://localhost:8080", credentials) as client:
            resp = await client.get_ai_models(user_id)
    """

    def __init__(
        self,
        base_url: str,
        credentials: BackendCredentials,
        timeout_seconds: Optional[float] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.credentials = credentials
        self.timeout_seconds = timeout_seconds
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def connect(self):
        """Open the underlying HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            logger.info(f"Backend client connected to {self.base_url}")

    async def close(self):
        """Close the underlying HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
        logger.info("Backend client closed")

    # =========================================================================
    # HTTP
    # =========================================================================

    def build_headers(self, body: str, telegram_user_id: Optional[int] = None) -> Dict[str, str]:
        """Auth headers for a request with the given raw body."""
        timestamp = str(int(time.time()))
        headers = {
            "Content-Type": "application/json",
            "X-Bot-Token": self.credentials.bot_token,
            "X-Bot-Timestamp": timestamp,
            "X-Bot-Signature": self.credentials.sign_request(body, timestamp),
        }
        if telegram_user_id:
            headers["X-Telegram-User-ID"] = str(telegram_user_id)
        return headers

    async def _request(
        self,
        method: str,
        endpoint: str,
        data: Optional[Dict[str, Any]] = None,
        telegram_user_id: Optional[int] = None,
    ) -> ApiResponse:
        """Make a signed request and wrap the outcome."""
        await self.connect()

        url = f"{self.base_url}{endpoint}"
        # Signature covers the exact bytes sent, so serialize once here.
        body = json.dumps(data) if data is not None else ""
        headers = self.build_headers(body, telegram_user_id)
        kwargs: Dict[str, Any] = {"data": body or None, "headers": headers}
        # Without a configured timeout the session default applies
        if self.timeout_seconds:
            kwargs["timeout"] = aiohttp.ClientTimeout(total=self.timeout_seconds)
        started = time.monotonic()

        try:
            async with self._session.request(method, url, **kwargs) as response:
                if response.status >= 400:
                    error = f"API request failed: {response.status} {response.reason}"
                    log_api_call(logger, "backend", f"{method} {endpoint}",
                                 time.monotonic() - started, False, error)
                    return ApiResponse(success=False, error=error, status_code=response.status)

                try:
                    result = await response.json(content_type=None)
                except (json.JSONDecodeError, aiohttp.ContentTypeError):
                    result = await response.text()

                log_api_call(logger, "backend", f"{method} {endpoint}",
                             time.monotonic() - started, True)
                return ApiResponse(success=True, data=result, status_code=response.status)

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            error = str(e) or type(e).__name__
            log_api_call(logger, "backend", f"{method} {endpoint}",
                         time.monotonic() - started, False, error)
            return ApiResponse(success=False, error=error, status_code=0)

    # =========================================================================
    # TRADERS
    # =========================================================================

    async def get_traders(self, telegram_user_id: int) -> ApiResponse:
        return await self._request("GET", "/api/bot/traders", telegram_user_id=telegram_user_id)

    async def create_trader(self, telegram_user_id: int, trader: Dict[str, Any]) -> ApiResponse:
        """Create a trader owned by the Telegram user."""
        body = {**trader, "telegram_user_id": telegram_user_id}
        return await self._request("POST", "/api/bot/traders", data=body,
                                   telegram_user_id=telegram_user_id)

    async def start_trader(self, trader_id: str, telegram_user_id: int) -> ApiResponse:
        return await self._request("POST", f"/api/bot/traders/{trader_id}/start",
                                   telegram_user_id=telegram_user_id)

    async def stop_trader(self, trader_id: str, telegram_user_id: int) -> ApiResponse:
        return await self._request("POST", f"/api/bot/traders/{trader_id}/stop",
                                   telegram_user_id=telegram_user_id)

    async def get_trader_status(self, trader_id: str, telegram_user_id: int) -> ApiResponse:
        return await self._request("GET", f"/api/bot/traders/{trader_id}/status",
                                   telegram_user_id=telegram_user_id)

    # =========================================================================
    # AI MODELS / EXCHANGES
    # =========================================================================

    async def get_ai_models(self, telegram_user_id: int) -> ApiResponse:
        return await self._request("GET", "/api/bot/ai-models", telegram_user_id=telegram_user_id)

    async def create_ai_model(self, telegram_user_id: int, model: Dict[str, Any]) -> ApiResponse:
        """Create an AI model owned by the Telegram user."""
        body = {**model, "telegram_user_id": telegram_user_id}
        return await self._request("POST", "/api/bot/ai-models", data=body,
                                   telegram_user_id=telegram_user_id)

    async def get_exchanges(self, telegram_user_id: int) -> ApiResponse:
        return await self._request("GET", "/api/bot/exchanges", telegram_user_id=telegram_user_id)

    async def health_check(self) -> ApiResponse:
        return await self._request("GET", "/api/bot/health")


__all__ = [
    "BackendCredentials",
    "ApiResponse",
    "BackendClient",
    "normalize_list",
]
