"""
Tests for the FastAPI endpoints.
"""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from fastapi.testclient import TestClient

from conftest import completion, make_item
from retail_assistant.api import create_app
from retail_assistant.chatbot import FALLBACK_MESSAGE, ChatService
from retail_assistant.checkout import CheckoutProxy
from retail_assistant.history import SessionHistoryStore
from retail_assistant.model_invoker import ModelInvoker
from retail_assistant.retrieval import CatalogRetriever, SemanticSearcher


def checkout_handler(request: httpx.Request) -> httpx.Response:
    """Checkout API stand-in keyed on the payment token."""
    token = request.content.decode()
    if "tok_declined" in token:
        return httpx.Response(400, text="Payment declined")
    if "tok_busy" in token:
        return httpx.Response(503)
    if "tok_broken" in token:
        return httpx.Response(500, text="oops")
    if "tok_offline" in token:
        raise httpx.ConnectError("connection refused", request=request)
    if "tok_slow" in token:
        raise httpx.ReadTimeout("timed out", request=request)
    return httpx.Response(200, json={"orderId": 42, "status": "Paid", "total": 99.99})


@pytest.fixture
def chat_client():
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=completion("Try the [SKU-ELE-002] speaker."))
    return client


@pytest.fixture
def search_strategy():
    strategy = MagicMock()
    strategy.name = "fake"
    strategy.search = AsyncMock(return_value=[make_item("ELE-002", "Bluetooth Speaker", "39.99", item_id=4)])
    return strategy


@pytest.fixture
def history():
    return SessionHistoryStore()


@pytest.fixture
def client(catalog_database, history, chat_client, search_strategy):
    service = ChatService(
        retriever=CatalogRetriever(catalog_database),
        invoker=ModelInvoker(history, client=chat_client),
        history=history
    )
    checkout = CheckoutProxy(client=httpx.AsyncClient(
        base_url="http://checkout.test",
        transport=httpx.MockTransport(checkout_handler)
    ))
    app = create_app(
        history=history,
        chat_service=service,
        searcher=SemanticSearcher(strategies=[search_strategy]),
        checkout=checkout
    )
    with TestClient(app) as test_client:
        yield test_client


# =============================================================================
# Chat
# =============================================================================

class TestChatEndpoints:

    def test_chat(self, client):
        response = client.post("/api/chat", json={"message": "speaker under £50", "session_id": "abc"})

        assert response.status_code == 200
        body = response.json()
        assert body["session_id"] == "abc"
        assert body["recommendations"][0]["sku"] == "ELE-002"
        assert body["recommendations"][0]["price"] in ("39.99", 39.99)

    def test_blank_message_is_422(self, client, chat_client):
        response = client.post("/api/chat", json={"message": "   "})

        assert response.status_code == 422
        chat_client.chat.completions.create.assert_not_awaited()

    def test_oversized_message_is_422(self, client):
        assert client.post("/api/chat", json={"message": "x" * 501}).status_code == 422

    def test_internal_failure_returns_fallback(self, client, chat_client):
        chat_client.chat.completions.create.side_effect = RuntimeError("boom")

        response = client.post("/api/chat", json={"message": "speaker", "session_id": "abc"})

        assert response.status_code == 200
        assert response.json()["message"] == FALLBACK_MESSAGE
        assert response.json()["recommendations"] is None

    def test_history_and_clear(self, client):
        client.post("/api/chat", json={"message": "speaker", "session_id": "abc"})

        turns = client.get("/api/chat/history/abc").json()
        assert [t["role"] for t in turns] == ["user", "assistant"]

        cleared = client.post("/api/chat/clear", json={"session_id": "abc"}).json()
        assert cleared["success"] is True
        assert cleared["session_id"] != "abc"
        assert client.get("/api/chat/history/abc").json() == []

    def test_clear_without_session(self, client):
        response = client.post("/api/chat/clear")
        assert response.status_code == 200
        assert response.json()["session_id"]

    def test_health_reports_sessions(self, client):
        client.post("/api/chat", json={"message": "speaker", "session_id": "abc"})

        body = client.get("/health").json()

        assert body["status"] == "healthy"
        assert body["active_sessions"] == 1


# =============================================================================
# Search
# =============================================================================

class TestSearchEndpoint:

    def test_search(self, client, search_strategy):
        response = client.get("/api/search", params={"q": "speaker"})

        assert response.status_code == 200
        assert [item["sku"] for item in response.json()] == ["ELE-002"]
        search_strategy.search.assert_awaited_once_with("speaker", 10)

    def test_search_requires_query(self, client):
        assert client.get("/api/search").status_code == 422


# =============================================================================
# Checkout
# =============================================================================

class TestCheckoutEndpoint:

    @pytest.mark.parametrize("token, status, kind", [
        ("tok_ok", 200, "success"),
        ("tok_declined", 400, "validation_failed"),
        ("tok_busy", 503, "upstream_unavailable"),
        ("tok_broken", 502, "upstream_error"),
        ("tok_offline", 502, "transport_error"),
        ("tok_slow", 504, "timeout"),
    ])
    def test_outcome_status_codes(self, client, token, status, kind):
        response = client.post("/api/checkout", json={"customer_id": "cust-1", "payment_token": token})

        assert response.status_code == status
        assert response.json()["kind"] == kind

    def test_success_body(self, client):
        body = client.post("/api/checkout", json={"customer_id": "cust-1", "payment_token": "tok_ok"}).json()

        assert body["order_id"] == 42
        assert body["customer_id"] == "cust-1"
        assert body["status"] == "Paid"
