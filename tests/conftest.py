"""
Shared fixtures: a fake WooCommerce/Dokan store behind httpx.MockTransport, agent config and
file-backed state under tmp_path.
"""

import asyncio
import os

# Before any order_agent import: no backoff waits between retried requests
os.environ.setdefault("APP_ENVIRONMENT", "test")
os.environ.setdefault("RETRY_INITIAL_DELAY_SECONDS", "0")
os.environ.setdefault("RETRY_BACKOFF_MULTIPLIER", "0")

from typing import Any, Callable, Dict, Iterable, List, Optional, Union  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402

from order_agent.models.agent import AgentConfig  # noqa: E402
from order_agent.services.notification_service import NotificationService  # noqa: E402
from order_agent.services.order_history import OrderHistory  # noqa: E402
from order_agent.services.processed_orders import ProcessedOrderLedger  # noqa: E402
from order_agent.services.woocommerce_client import WooCommerceAPIClient  # noqa: E402

BASE_URL = "https://shop.example.com"
ORDERS = "/wp-json/wc/v3/orders"
DOKAN_ORDERS = "/wp-json/dokan/v1/orders"
DOKAN_STORES = "/wp-json/dokan/v1/stores"
USERS_ME = "/wp-json/wp/v2/users/me"

Body = Union[List[Any], Dict[str, Any], Callable[[httpx.Request], httpx.Response]]


def make_order(order_id: Any, vendor_id: Any = None, status: str = "processing", **extra: Any) -> Dict[str, Any]:
    """Order in the raw API shape, attributed to vendor_id through _dokan_vendor_id meta."""
    order: Dict[str, Any] = {
        "id": order_id,
        "number": str(order_id),
        "status": status,
        "currency": "USD",
        "date_created": "2024-05-01T10:30:00",
        "total": "25.50",
        "payment_method_title": "Cash on delivery",
        "billing": {"first_name": "Ana", "last_name": "Silva", "phone": "555-0100"},
        "line_items": [{"id": 1, "name": "Coffee beans", "quantity": 2, "price": 10.0, "subtotal": "20.00"}],
        "meta_data": [],
    }
    if vendor_id is not None:
        order["meta_data"] = [{"id": 1, "key": "_dokan_vendor_id", "value": vendor_id}]
    order.update(extra)
    return order


class FakeStore:
    """
    Routes requests to canned responses. A route matches on path, exact query values and the
    presence of query keys; the first matching route answers. Unmatched requests get a 404.
    """

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self._routes: List[tuple] = []

    def on(self, path: str, body: Body = None, status: int = 200, has: Iterable[str] = (), **query: Any) -> "FakeStore":
        self._routes.append((path, body, status, tuple(has), {k: str(v) for k, v in query.items()}))
        return self

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        params = request.url.params
        for path, body, status, has, query in self._routes:
            if request.url.path != path:
                continue
            if any(params.get(key) != value for key, value in query.items()):
                continue
            if any(key not in params for key in has):
                continue
            if callable(body):
                return body(request)
            return httpx.Response(status, json=body)
        return httpx.Response(404, json={"code": "rest_no_route", "message": "No route"})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)

    def client(self, username: str = "vendor@example.com", password: str = "secret") -> WooCommerceAPIClient:
        return WooCommerceAPIClient(BASE_URL, username, password, transport=self.transport())

    def client_factory(self) -> Callable[[AgentConfig], WooCommerceAPIClient]:
        return lambda config: WooCommerceAPIClient.from_config(config, transport=self.transport())

    def requests_to(self, path: str, **query: Any) -> List[httpx.Request]:
        return [
            request
            for request in self.requests
            if request.url.path == path
            and all(request.url.params.get(k) == str(v) for k, v in query.items())
        ]


class TickSleep:
    """Injected in place of asyncio.sleep: each tick() releases one pending sleep."""

    def __init__(self):
        self.calls: List[float] = []
        self._ticks: asyncio.Queue = asyncio.Queue()

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        await self._ticks.get()

    def tick(self) -> None:
        self._ticks.put_nowait(None)


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.01)


def vendor_strategy_routes(
    store: FakeStore,
    vendor_parameter: Body = None,
    meta_filter: Body = None,
    vendor_endpoint: Body = None,
    fetch_all: Body = None,
) -> FakeStore:
    """Register a response for each retrieval strategy (None means an empty list)."""
    store.on(ORDERS, vendor_parameter if vendor_parameter is not None else [], per_page=20, has=("vendor_id",))
    store.on(ORDERS, meta_filter if meta_filter is not None else [], per_page=20, has=("meta_query",))
    store.on(DOKAN_ORDERS, vendor_endpoint if vendor_endpoint is not None else [])
    store.on(ORDERS, fetch_all if fetch_all is not None else [], per_page=50)
    return store


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def agent_config() -> AgentConfig:
    return AgentConfig(
        api_url=BASE_URL,
        username="vendor@example.com",
        password="secret",
        vendor_id="7",
        check_interval=60,
        printer_id="Receipt",
    )


@pytest.fixture
def ledger(tmp_path) -> ProcessedOrderLedger:
    return ProcessedOrderLedger(tmp_path / "processed_orders.json", max_size=1000, retain_size=500)


@pytest.fixture
def history(tmp_path) -> OrderHistory:
    return OrderHistory(tmp_path / "orders", timezone="UTC")


@pytest.fixture
def notifier() -> NotificationService:
    return NotificationService(webhook_url="", enabled=False)


@pytest.fixture
def tick_sleep() -> TickSleep:
    return TickSleep()
