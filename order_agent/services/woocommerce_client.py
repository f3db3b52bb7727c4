"""
WooCommerce / Dokan REST API client.
Every request authenticates with HTTP Basic credentials (username:password, base64) and carries
a bounded timeout. Transient failures are retried with backoff; whatever still fails surfaces
as WooCommerceAPIError.
"""

import base64
from typing import Any, Dict, List, Optional

import httpx
import structlog

from order_agent.config import settings
from order_agent.models.agent import AgentConfig
from order_agent.models.woocommerce import WordPressUser
from order_agent.utils.retry import PermanentError, TransientError, retry_with_backoff

logger = structlog.get_logger()

ORDERS_PATH = "/wp-json/wc/v3/orders"
DOKAN_ORDERS_PATH = "/wp-json/dokan/v1/orders"
DOKAN_STORES_PATH = "/wp-json/dokan/v1/stores"
CURRENT_USER_PATH = "/wp-json/wp/v2/users/me"


class WooCommerceAPIError(Exception):
    """Raised when the store API returns an error or cannot be reached (status_code 0)."""

    def __init__(self, status_code: int, message: str, body: Optional[str] = None):
        self.status_code = status_code
        self.message = message
        self.body = body
        super().__init__(f"WooCommerce API error {status_code}: {message}")


class WooCommerceAPIClient:
    """Async client for the WooCommerce orders API and the Dokan multi-vendor extensions."""

    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        timeout: Optional[float] = None,
        verify: Optional[bool] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the WooCommerce API client.

        Args:
            base_url: Store root URL (the /wp-json/... paths are appended).
            username: WordPress user or application username.
            password: Password or application password.
            timeout: Per-request timeout in seconds. Defaults to settings.request_timeout_seconds.
            verify: TLS verification. Defaults to settings.verify_ssl.
            transport: Optional httpx transport (used by tests to fake the store).
        """
        self.base_url = base_url.rstrip("/")
        self.username = username
        self.password = password
        self.timeout = timeout if timeout is not None else settings.request_timeout_seconds
        self.verify = verify if verify is not None else settings.verify_ssl
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_config(cls, config: AgentConfig, **kwargs: Any) -> "WooCommerceAPIClient":
        """Build a client from the agent config. Raises ConfigurationError if credentials are missing."""
        config.require_credentials()
        return cls(
            base_url=config.api_url,
            username=config.username,
            password=config.password,
            **kwargs,
        )

    def _headers(self) -> Dict[str, str]:
        token = base64.b64encode(f"{self.username}:{self.password}".encode("utf-8")).decode("ascii")
        return {
            "Authorization": f"Basic {token}",
            "Accept": "application/json",
        }

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                verify=self.verify,
                transport=self._transport,
                follow_redirects=True,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    @retry_with_backoff(
        max_attempts=settings.max_retry_attempts,
        initial_delay=settings.retry_initial_delay_seconds,
        multiplier=settings.retry_backoff_multiplier,
    )
    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        client = await self._get_client()
        response = await client.get(path, params=params, headers=self._headers())
        response.raise_for_status()
        return response.json()

    async def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        try:
            return await self._get(path, params)
        except (TransientError, PermanentError) as e:
            cause = e.__cause__ or e
            status_code = 0
            body = None
            if isinstance(cause, httpx.HTTPStatusError):
                status_code = cause.response.status_code
                body = cause.response.text[:500]
                message = f"GET {path} failed: {status_code}"
            else:
                message = f"GET {path} failed: {type(cause).__name__}: {cause}"

            logger.error(
                "WooCommerce API request failed",
                path=path,
                params=params,
                status_code=status_code,
                body=body,
                error=str(cause),
            )
            raise WooCommerceAPIError(status_code, message, body=body) from e

    async def _get_list(self, path: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        data = await self._get_json(path, params)
        if not isinstance(data, list):
            logger.error(
                "WooCommerce API returned unexpected response shape",
                path=path,
                response_type=type(data).__name__,
            )
            raise WooCommerceAPIError(200, f"GET {path} did not return a list")
        return data

    async def list_orders(self, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """
        List orders from the general WooCommerce endpoint.

        GET /wp-json/wc/v3/orders

        Args:
            params: Query parameters (status, per_page, vendor_id, meta_query, orderby, order).

        Returns:
            List of order dicts (raw API shape). Only one page is requested.
        """
        return await self._get_list(ORDERS_PATH, params)

    async def list_vendor_orders(self, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """
        List orders from the Dokan vendor-scoped endpoint.

        GET /wp-json/dokan/v1/orders
        """
        return await self._get_list(DOKAN_ORDERS_PATH, params)

    async def get_order(self, order_id: int | str) -> Dict[str, Any]:
        """
        Fetch a single order by ID.

        GET /wp-json/wc/v3/orders/{id}

        Raises:
            WooCommerceAPIError: On request failure or when the response has no order id.
        """
        data = await self._get_json(f"{ORDERS_PATH}/{order_id}")
        if not isinstance(data, dict) or not data.get("id"):
            raise WooCommerceAPIError(200, f"No valid order returned for #{order_id}")
        return data

    async def list_stores(self, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """
        List Dokan vendor stores.

        GET /wp-json/dokan/v1/stores
        """
        return await self._get_list(DOKAN_STORES_PATH, params)

    async def get_current_user(self) -> WordPressUser:
        """
        Fetch the user the credentials authenticate as.

        GET /wp-json/wp/v2/users/me
        """
        data = await self._get_json(CURRENT_USER_PATH)
        if not isinstance(data, dict) or not data.get("id"):
            raise WooCommerceAPIError(200, "Current user response has no id")
        return WordPressUser.model_validate(data)
