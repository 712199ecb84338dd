"""
Retail Assistant

A conversational shopping assistant that recommends catalog products using
RAG (Retrieval-Augmented Generation), plus a proxy that forwards checkouts to
the external Checkout API.
"""

__version__ = "1.0.0"

from retail_assistant.models import (
    CatalogItem,
    ChatRequest,
    ChatResponse,
    ChatTurn,
    CheckoutRequest,
    CheckoutResult,
    Recommendation,
    RetrievalFilters,
    Role
)
from retail_assistant.errors import (
    ModelInvocationFailed,
    Timeout,
    TransportError,
    UpstreamError,
    UpstreamUnavailable,
    ValidationFailed
)
from retail_assistant.query_interpreter import interpret, build_search_filter
from retail_assistant.database import CatalogDatabase, get_database
from retail_assistant.retrieval import CatalogRetriever, SemanticSearcher
from retail_assistant.prompts import build_system_prompt
from retail_assistant.model_invoker import ModelInvoker
from retail_assistant.recommendations import RecommendationExtractor
from retail_assistant.history import SessionHistoryStore
from retail_assistant.checkout import CheckoutProxy
from retail_assistant.chatbot import ChatService

__all__ = [
    "CatalogItem",
    "ChatRequest",
    "ChatResponse",
    "ChatTurn",
    "CheckoutRequest",
    "CheckoutResult",
    "Recommendation",
    "RetrievalFilters",
    "Role",
    "ModelInvocationFailed",
    "Timeout",
    "TransportError",
    "UpstreamError",
    "UpstreamUnavailable",
    "ValidationFailed",
    "interpret",
    "build_search_filter",
    "CatalogDatabase",
    "get_database",
    "CatalogRetriever",
    "SemanticSearcher",
    "build_system_prompt",
    "ModelInvoker",
    "RecommendationExtractor",
    "SessionHistoryStore",
    "CheckoutProxy",
    "ChatService",
]
