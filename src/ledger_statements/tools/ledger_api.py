"""Ledger backend API client with JWT authentication and automatic token refresh."""

import asyncio
from datetime import UTC, date, datetime, timedelta
from typing import Any, cast

import httpx
import structlog

from ledger_statements.config import get_settings

logger = structlog.get_logger(__name__)


class LedgerAPIError(Exception):
    """Base exception for ledger API errors."""

    def __init__(self, message: str, status_code: int | None = None, details: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class AuthenticationError(LedgerAPIError):
    """Authentication failed."""

    pass


class RateLimitError(LedgerAPIError):
    """Rate limit exceeded."""

    pass


class LedgerAPIClient:
    """Async read-only client for the ledger backend.

    Every query takes the company id explicitly; the client keeps no
    company context of its own.
    """

    def __init__(
        self,
        base_url: str | None = None,
        username: str | None = None,
        password: str | None = None,
        access_token: str | None = None,
        page_size: int | None = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.ledger_api_url).rstrip("/")
        self._username = username or settings.ledger_username
        self._password = password or settings.ledger_password.get_secret_value()
        self._timeout = settings.ledger_timeout
        self._max_retries = settings.ledger_max_retries
        self._page_size = self._clamp_limit(page_size or settings.ledger_page_size)

        self._access_token: str | None = access_token
        self._refresh_token: str | None = None
        self._token_expires_at: datetime | None = None
        if access_token:
            # Assume a supplied token is fresh
            self._token_expires_at = datetime.now(UTC) + timedelta(minutes=55)

        self._client: httpx.AsyncClient | None = None
        self._lock = asyncio.Lock()

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self._timeout),
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "LedgerAPIClient":
        await self.login()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # === Authentication ===

    async def _post_auth(self, path: str, payload: dict[str, Any]) -> httpx.Response:
        """POST to an auth endpoint, converting transport errors."""
        client = await self._get_client()
        try:
            return await client.post(path, json=payload)
        except httpx.RequestError as e:
            raise LedgerAPIError(f"Authentication request failed: {e}") from e

    @staticmethod
    def _auth_payload(response: httpx.Response, action: str) -> dict[str, Any]:
        """Decode an auth response body, raising LedgerAPIError on any failure."""
        if response.status_code >= 400:
            raise AuthenticationError(
                f"{action} failed: {response.status_code}",
                status_code=response.status_code,
            )
        try:
            data_raw = response.json()
        except ValueError as e:
            raise LedgerAPIError(f"Invalid {action.lower()} response format") from e
        if not isinstance(data_raw, dict):
            raise LedgerAPIError(f"Invalid {action.lower()} response format")
        return cast(dict[str, Any], data_raw)

    async def login(self) -> dict[str, Any]:
        """Authenticate and get JWT tokens."""
        response = await self._post_auth(
            "/api/v1/auth/login",
            {"email": self._username, "password": self._password},
        )

        if response.status_code == 401:
            raise AuthenticationError("Invalid credentials", status_code=401)

        data = self._auth_payload(response, "Login")
        try:
            self._access_token = data["tokens"]["access_token"]
            self._refresh_token = data["tokens"].get("refresh_token")
        except (KeyError, TypeError, AttributeError) as e:
            raise LedgerAPIError("Invalid login response format") from e
        self._token_expires_at = datetime.now(UTC) + timedelta(minutes=55)

        logger.info("logged_in", user=data.get("user", {}).get("email", self._username))
        return data

    async def refresh_tokens(self) -> None:
        """Refresh the access token, falling back to a full login."""
        if not self._refresh_token:
            await self.login()
            return

        response = await self._post_auth(
            "/api/v1/auth/refresh",
            {"refresh_token": self._refresh_token},
        )

        if response.status_code == 401:
            # Refresh token expired, need full re-login
            await self.login()
            return

        data = self._auth_payload(response, "Refresh")
        if "access_token" not in data:
            raise LedgerAPIError("Invalid refresh response format")
        self._access_token = data["access_token"]
        self._refresh_token = data.get("refresh_token", self._refresh_token)
        self._token_expires_at = datetime.now(UTC) + timedelta(minutes=55)
        logger.debug("tokens_refreshed")

    async def _ensure_authenticated(self) -> None:
        """Ensure we have a valid access token."""
        async with self._lock:
            if not self._access_token:
                await self.login()
            elif self._token_expires_at and datetime.now(UTC) >= self._token_expires_at:
                await self.refresh_tokens()

    def _get_headers(self) -> dict[str, str]:
        """Get request headers with auth token."""
        headers = {"Accept": "application/json"}
        if self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        retry_count: int = 0,
    ) -> dict[str, Any] | list[dict[str, Any]]:
        """Make an authenticated API request with retry logic."""
        await self._ensure_authenticated()
        client = await self._get_client()

        try:
            response = await client.request(
                method=method,
                url=path,
                params=params,
                headers=self._get_headers(),
            )

            if response.status_code == 401 and retry_count < 1:
                # Token expired during request, refresh and retry
                await self.refresh_tokens()
                return await self._request(method, path, params, retry_count + 1)

            if response.status_code == 429:
                retry_after = int(response.headers.get("Retry-After", "60"))
                raise RateLimitError(
                    f"Rate limited, retry after {retry_after}s",
                    status_code=429,
                    details={"retry_after": retry_after},
                )

            if response.status_code >= 400:
                try:
                    error_detail = response.json() if response.content else {}
                except ValueError:
                    error_detail = {
                        "raw": response.text[:500] if response.text else "empty response"
                    }
                raise LedgerAPIError(
                    f"API error: {response.status_code}",
                    status_code=response.status_code,
                    details=error_detail,
                )

            return response.json() if response.content else {}

        except httpx.RequestError as e:
            if retry_count < self._max_retries:
                await asyncio.sleep(2**retry_count)  # Exponential backoff
                return await self._request(method, path, params, retry_count + 1)
            raise LedgerAPIError(f"Request failed: {e}") from e

    async def get(
        self, path: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any] | list[dict[str, Any]]:
        """Make GET request."""
        return await self._request("GET", path, params=params)

    @staticmethod
    def _clamp_limit(limit: int) -> int:
        return min(max(limit, 1), 500)

    @staticmethod
    def _extract_items(result: Any) -> list[dict[str, Any]]:
        """Return list of items from a list or paged response."""
        if isinstance(result, list):
            return result
        if isinstance(result, dict):
            items = result.get("items")
            if isinstance(items, list):
                return items
        return []

    @staticmethod
    def _company_path(company_id: str, resource: str) -> str:
        return f"/api/v1/companies/{company_id}/{resource}"

    @staticmethod
    def _date_params(start: date | None, end: date | None) -> dict[str, Any]:
        params: dict[str, Any] = {}
        if start is not None:
            params["start_date"] = start.isoformat()
        if end is not None:
            params["end_date"] = end.isoformat()
        return params

    async def _fetch_all(
        self, path: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """Follow offset/limit paging until a short page is returned."""
        items: list[dict[str, Any]] = []
        offset = 0
        limit = self._page_size
        while True:
            page_params = {**(params or {}), "offset": offset, "limit": limit}
            batch = self._extract_items(await self.get(path, params=page_params))
            if not batch:
                break
            items.extend(batch)
            if len(batch) < limit:
                break
            offset += limit
        return items

    # === Chart of accounts and ledger lines ===

    async def list_accounts(self, company_id: str) -> list[dict[str, Any]]:
        """List the company's chart of accounts."""
        return await self._fetch_all(self._company_path(company_id, "accounts"))

    async def list_ledger_entries(
        self, company_id: str, end: date, start: date | None = None
    ) -> list[dict[str, Any]]:
        """List direct ledger entries dated up to ``end``."""
        return await self._fetch_all(
            self._company_path(company_id, "ledger-entries"),
            params=self._date_params(start, end),
        )

    async def list_transaction_entries(
        self, company_id: str, end: date, start: date | None = None
    ) -> list[dict[str, Any]]:
        """List entries derived from transactions dated up to ``end``."""
        return await self._fetch_all(
            self._company_path(company_id, "transaction-entries"),
            params=self._date_params(start, end),
        )

    # === Optional collaborators ===

    async def get_cash_flow_aggregate(
        self, company_id: str, period_start: date, period_end: date
    ) -> dict[str, Any]:
        """Get the backend's pre-computed cash flow figures."""
        result = await self.get(
            self._company_path(company_id, "reports/cash-flow"),
            params={
                "period_start": period_start.isoformat(),
                "period_end": period_end.isoformat(),
            },
        )
        return result if isinstance(result, dict) else {}

    async def list_fixed_assets(self, company_id: str) -> list[dict[str, Any]]:
        """List the fixed-asset register."""
        return await self._fetch_all(self._company_path(company_id, "fixed-assets"))

    async def list_catalog_items(self, company_id: str) -> list[dict[str, Any]]:
        """List product items with their cost prices."""
        return await self._fetch_all(
            self._company_path(company_id, "items"), params={"item_type": "product"}
        )

    async def list_invoices(
        self, company_id: str, end: date, start: date | None = None
    ) -> list[dict[str, Any]]:
        """List invoices (with lines) by invoice date.

        Period membership by sent date is decided by the caller, so callers
        usually pass only ``end``.
        """
        return await self._fetch_all(
            self._company_path(company_id, "invoices"),
            params={**self._date_params(start, end), "include": "lines"},
        )
