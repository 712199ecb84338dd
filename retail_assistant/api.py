"""
FastAPI server for the Retail Assistant.

Exposes the chat turn, session management, standalone product search and the
checkout proxy over HTTP.

Usage:
    python -m retail_assistant.api
    # or
    uvicorn retail_assistant.api:app --reload --port 8000
"""

from contextlib import asynccontextmanager
from typing import Dict, List, Optional

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from retail_assistant import __version__
from retail_assistant.chatbot import ChatService, build_chat_service
from retail_assistant.checkout import CheckoutProxy
from retail_assistant.config import get_settings
from retail_assistant.history import SessionHistoryStore
from retail_assistant.logger import get_logger
from retail_assistant.models import CatalogItem, ChatRequest, ChatResponse, ChatTurn, CheckoutRequest
from retail_assistant.retrieval import SemanticSearcher
from retail_assistant.search_index import EmbeddingClient, ProductSearchIndex

logger = get_logger("api")

SERVICE_NAME = "Retail Assistant API"

# HTTP status returned for each checkout outcome
CHECKOUT_STATUS_CODES: Dict[str, int] = {
    "success": 200,
    "validation_failed": 400,
    "upstream_unavailable": 503,
    "upstream_error": 502,
    "transport_error": 502,
    "timeout": 504,
}


# =============================================================================
# API Models
# =============================================================================

class ClearSessionRequest(BaseModel):
    session_id: Optional[str] = Field(None, description="Session to clear")


class ClearSessionResponse(BaseModel):
    success: bool = True
    message: str
    session_id: str = Field(..., description="Fresh session id for continuing the conversation")


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    active_sessions: int


# =============================================================================
# Dependencies
# =============================================================================

def get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service


def get_history_store(request: Request) -> SessionHistoryStore:
    return request.app.state.history


def get_searcher(request: Request) -> SemanticSearcher:
    searcher = request.app.state.searcher
    if searcher is None:
        raise HTTPException(status_code=503, detail="Product search is not available")
    return searcher


def get_checkout_proxy(request: Request) -> CheckoutProxy:
    return request.app.state.checkout


def _build_searcher() -> Optional[SemanticSearcher]:
    try:
        return SemanticSearcher(EmbeddingClient(), ProductSearchIndex())
    except Exception as e:
        logger.warning("Semantic search disabled: %s", e)
        return None


# =============================================================================
# Application
# =============================================================================

def create_app(
    history: Optional[SessionHistoryStore] = None,
    chat_service: Optional[ChatService] = None,
    searcher: Optional[SemanticSearcher] = None,
    checkout: Optional[CheckoutProxy] = None
) -> FastAPI:
    """
    Create the API application.

    Collaborators that are not supplied are built from configuration when
    the application starts. The session history store lives exactly as long
    as the application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        settings = get_settings()
        store = history or SessionHistoryStore()
        app.state.history = store
        app.state.chat_service = chat_service or build_chat_service(store, settings)
        app.state.searcher = searcher or _build_searcher()
        app.state.checkout = checkout or CheckoutProxy(settings=settings)
        logger.info("%s started", SERVICE_NAME)
        try:
            yield
        finally:
            if checkout is None:
                await app.state.checkout.aclose()
            store.close()
            logger.info("%s stopped", SERVICE_NAME)

    app = FastAPI(
        title=SERVICE_NAME,
        description="Conversational product recommendations and checkout proxy",
        version=__version__,
        lifespan=lifespan
    )

    @app.get("/health", response_model=HealthResponse)
    async def health(store: SessionHistoryStore = Depends(get_history_store)):
        """Health check endpoint."""
        return HealthResponse(
            status="healthy",
            service=SERVICE_NAME,
            version=__version__,
            active_sessions=store.session_count()
        )

    @app.post("/api/chat", response_model=ChatResponse)
    async def chat(request: ChatRequest, service: ChatService = Depends(get_chat_service)):
        """
        Main conversation endpoint.

        Blank or oversized messages are rejected by validation (422); every
        other failure is answered with the fallback reply.
        """
        return await service.get_response(request)

    @app.post("/api/chat/clear", response_model=ClearSessionResponse)
    async def clear_chat(
        request: Optional[ClearSessionRequest] = None,
        service: ChatService = Depends(get_chat_service)
    ):
        """Clear a session's history and return a fresh session id."""
        session_id = request.session_id if request else None
        new_session_id = service.clear_session(session_id)
        return ClearSessionResponse(message="Chat history cleared", session_id=new_session_id)

    @app.get("/api/chat/history/{session_id}", response_model=List[ChatTurn])
    async def chat_history(session_id: str, service: ChatService = Depends(get_chat_service)):
        """Get the conversation history of a session (empty if unknown)."""
        return list(service.get_history(session_id))

    @app.get("/api/search", response_model=List[CatalogItem])
    async def search(
        q: str = Query(..., min_length=1, max_length=500),
        searcher: SemanticSearcher = Depends(get_searcher)
    ):
        """Semantic product search with lexical fallback."""
        return await searcher.search(q)

    @app.post("/api/checkout")
    async def checkout_order(request: CheckoutRequest, proxy: CheckoutProxy = Depends(get_checkout_proxy)):
        """Forward a checkout to the Checkout API and relay its typed outcome."""
        outcome = await proxy.checkout(request.customer_id, request.payment_token)
        return JSONResponse(
            status_code=CHECKOUT_STATUS_CODES[outcome.kind],
            content=outcome.model_dump(mode="json")
        )

    return app


app = create_app()


def main():
    uvicorn.run("retail_assistant.api:app", host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
