"""Async client for the AutoTrader stock API.

The client authenticates with an API key/secret pair and reads the
advertiser's stock one page at a time. It never retries: the sync engine
decides what a failed call means for the run.

Usage:
    client = AutoTraderClient(base_url=SANDBOX_BASE_URL)
    async with client:
        token = await client.authenticate(key, secret)
        page = await client.fetch_page(token, "10012345", 1, 100)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx

from stocksync.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

SANDBOX_BASE_URL = "https://api-sandbox.autotrader.co.uk"
PRODUCTION_BASE_URL = "https://api.autotrader.co.uk"
DEFAULT_PAGE_SIZE = 100


class AuthError(Exception):
    """Raised when the provider rejects the credentials or returns no token."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProviderError(Exception):
    """Raised when a stock page request fails or returns an unusable body."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    def __str__(self) -> str:
        message = super().__str__()
        if self.status_code is None:
            return message
        return f"{message} (HTTP {self.status_code})"


@dataclass
class StockPage:
    """One page of provider listings plus whatever totals the provider sent."""

    items: list[dict[str, Any]] = field(default_factory=list)
    total_pages: int | None = None
    total_results: int | None = None


def _as_int(value: Any) -> int | None:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


class AutoTraderClient:
    """Async client for the AutoTrader authenticate and stock endpoints.

    Attributes:
        base_url: Sandbox or production API root.
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        base_url: str = SANDBOX_BASE_URL,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "AutoTraderClient":
        await self._get_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def authenticate(self, key: str, secret: str) -> str:
        """Exchange the API key and secret for a bearer token.

        Raises:
            AuthError: on missing credentials, transport failure, a non-2xx
                status or a response without ``access_token``.
        """
        if not key or not secret:
            raise AuthError("AutoTrader key and secret are required")
        client = await self._get_client()
        try:
            response = await client.post(
                f"{self.base_url}/authenticate",
                data={"key": key, "secret": secret},
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "AutoTrader authentication failed: status=%d",
                exc.response.status_code,
            )
            raise AuthError(
                f"Authentication rejected: {exc.response.status_code}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("AutoTrader not reachable at %s: %s", self.base_url, exc)
            raise AuthError(f"Authentication request failed: {exc}") from exc
        except ValueError as exc:
            raise AuthError("Authentication response was not JSON") from exc

        token = payload.get("access_token") if isinstance(payload, dict) else None
        if not token:
            raise AuthError(
                "Authentication response did not contain an access token",
                status_code=response.status_code,
            )
        return str(token)

    async def fetch_page(
        self,
        access_token: str,
        account_id: str,
        page_number: int,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> StockPage:
        """Fetch one page of the advertiser's stock.

        Raises:
            ProviderError: on transport failure, a non-2xx status or a body
                without a ``results`` list.
        """
        client = await self._get_client()
        try:
            response = await client.get(
                f"{self.base_url}/stock",
                params={
                    "advertiserId": account_id,
                    "page": page_number,
                    "pageSize": page_size,
                    "features": "true",
                },
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Accept": "application/json",
                },
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "AutoTrader stock page %d failed: status=%d",
                page_number,
                exc.response.status_code,
            )
            raise ProviderError(
                f"Stock page {page_number} request failed: {exc.response.text[:200]}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise ProviderError(f"Stock page {page_number} request failed: {exc}") from exc
        except ValueError as exc:
            raise ProviderError(f"Stock page {page_number} response was not JSON") from exc

        return self._parse_page(payload, page_number)

    def _parse_page(self, payload: Any, page_number: int) -> StockPage:
        if not isinstance(payload, dict) or not isinstance(payload.get("results"), list):
            raise ProviderError(f"Stock page {page_number} response had no results list")
        page_info = payload.get("page") if isinstance(payload.get("page"), dict) else {}
        total_results = _as_int(payload.get("totalResults"))
        if total_results is None:
            total_results = _as_int(page_info.get("totalResults"))
        return StockPage(
            items=[item for item in payload["results"] if isinstance(item, dict)],
            total_pages=_as_int(page_info.get("totalPages")),
            total_results=total_results,
        )
