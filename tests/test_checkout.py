"""
Tests for the checkout proxy error mapping.

Each scenario drives the proxy through an httpx.MockTransport standing in
for the Checkout API.
"""

import asyncio
import json
from decimal import Decimal

import httpx
from pydantic import TypeAdapter

from conftest import _run
from retail_assistant.checkout import CHECKOUT_PATH, CheckoutOutcome, CheckoutProxy
from retail_assistant.errors import (
    Timeout,
    TransportError,
    UpstreamError,
    UpstreamUnavailable,
    ValidationFailed,
)
from retail_assistant.models import CheckoutResult

BASE_URL = "http://checkout.test"


def _proxy(handler) -> CheckoutProxy:
    client = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    return CheckoutProxy(client=client)


def _checkout(handler, timeout=None):
    return _run(_proxy(handler).checkout("cust-7", "tok_123", timeout=timeout))


# =============================================================================
# Success
# =============================================================================

class TestCheckoutSuccess:

    def test_maps_order_fields_and_keeps_caller_customer(self):
        def handler(request):
            return httpx.Response(200, json={
                "orderId": 42, "status": "Paid", "total": 99.99, "customerId": "someone-else"
            })

        result = _checkout(handler)

        assert isinstance(result, CheckoutResult)
        assert result.order_id == 42
        assert result.status == "Paid"
        assert result.total == Decimal("99.99")
        assert result.customer_id == "cust-7"

    def test_request_payload(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"orderId": 1, "status": "Paid", "total": 1})

        _checkout(handler)

        assert seen["path"] == CHECKOUT_PATH
        assert seen["body"] == {"customerId": "cust-7", "paymentToken": "tok_123"}

    def test_created_timestamp_is_used(self):
        def handler(request):
            return httpx.Response(200, json={
                "orderId": 5, "status": "Paid", "total": "10.00", "createdUtc": "2024-05-01T12:00:00Z"
            })

        result = _checkout(handler)
        assert result.created_at.year == 2024


# =============================================================================
# Error mapping
# =============================================================================

class TestCheckoutErrors:

    def test_400_is_validation_failed(self):
        result = _checkout(lambda request: httpx.Response(400, text="Cart is empty"))

        assert isinstance(result, ValidationFailed)
        assert result.details == "Cart is empty"
        assert not result.retryable

    def test_503_is_upstream_unavailable(self):
        result = _checkout(lambda request: httpx.Response(503, text="maintenance"))

        assert isinstance(result, UpstreamUnavailable)
        assert result.retryable

    def test_other_status_is_upstream_error(self):
        result = _checkout(lambda request: httpx.Response(500, text="kaboom"))

        assert isinstance(result, UpstreamError)
        assert result.status == 500
        assert result.body == "kaboom"

    def test_empty_success_body_is_upstream_error(self):
        result = _checkout(lambda request: httpx.Response(200, text=""))
        assert isinstance(result, UpstreamError)
        assert result.status == 200

    def test_unparseable_success_body_is_upstream_error(self):
        result = _checkout(lambda request: httpx.Response(200, text="<html>ok</html>"))
        assert isinstance(result, UpstreamError)

    def test_success_body_missing_fields_is_upstream_error(self):
        result = _checkout(lambda request: httpx.Response(200, json={"status": "Paid"}))
        assert isinstance(result, UpstreamError)

    def test_connection_failure_is_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        result = _checkout(handler)

        assert isinstance(result, TransportError)
        assert result.retryable

    def test_transport_timeout_is_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("read timed out", request=request)

        assert isinstance(_checkout(handler), Timeout)

    def test_deadline_exceeded_in_flight_is_timeout(self):
        async def handler(request):
            await asyncio.sleep(5)
            return httpx.Response(200, json={"orderId": 1, "status": "Paid", "total": 1})

        result = _checkout(handler, timeout=0.05)
        assert isinstance(result, Timeout)


# =============================================================================
# Cancellation
# =============================================================================

class TestCheckoutCancellation:

    def test_cancel_signal_mid_flight_is_timeout(self):
        started = asyncio.Event()

        async def handler(request):
            started.set()
            await asyncio.sleep(5)
            return httpx.Response(200, json={"orderId": 1, "status": "Paid", "total": 1})

        async def scenario():
            cancel = asyncio.Event()
            call = asyncio.ensure_future(_proxy(handler).checkout("cust-7", "tok_123", cancel=cancel))
            await started.wait()
            cancel.set()
            return await asyncio.wait_for(call, timeout=2)

        result = _run(scenario())

        assert isinstance(result, Timeout)
        assert result.message == "Checkout API request cancelled"

    def test_cancelled_task_resolves_to_timeout(self):
        started = asyncio.Event()

        async def handler(request):
            started.set()
            await asyncio.sleep(5)
            return httpx.Response(200, json={"orderId": 1, "status": "Paid", "total": 1})

        async def scenario():
            task = asyncio.ensure_future(_proxy(handler).checkout("cust-7", "tok_123"))
            await started.wait()
            task.cancel()
            return await task

        result = _run(scenario())

        assert isinstance(result, Timeout)

    def test_already_cancelled_sends_nothing(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={"orderId": 1, "status": "Paid", "total": 1})

        async def scenario():
            cancel = asyncio.Event()
            cancel.set()
            return await _proxy(handler).checkout("cust-7", "tok_123", cancel=cancel)

        result = _run(scenario())

        assert isinstance(result, Timeout)
        assert calls == []

    def test_signal_not_fired_returns_result(self):
        def handler(request):
            return httpx.Response(200, json={"orderId": 9, "status": "Paid", "total": "5.00"})

        async def scenario():
            return await _proxy(handler).checkout("cust-7", "tok_123", cancel=asyncio.Event())

        result = _run(scenario())

        assert isinstance(result, CheckoutResult)
        assert result.order_id == 9


class TestCheckoutOutcome:

    def test_outcomes_are_a_tagged_union(self):
        adapter = TypeAdapter(CheckoutOutcome)

        outcome = adapter.validate_python({"kind": "upstream_error", "status": 502, "body": "bad gateway"})

        assert isinstance(outcome, UpstreamError)
        assert adapter.dump_python(Timeout(), mode="json")["kind"] == "timeout"

    def test_proxy_owned_client_is_closed(self, test_settings):
        proxy = CheckoutProxy(settings=test_settings)
        assert str(proxy.client.base_url).startswith(BASE_URL)
        _run(proxy.aclose())
        assert proxy.client.is_closed
