"""
Retail Assistant - Chat Service

Runs one conversational turn end to end:

    user text -> filters -> catalog products -> system prompt
              -> chat completion -> recommendations -> session history

The chat path never lets an internal failure reach the caller; any error is
logged and answered with a fixed fallback reply.
"""

import asyncio
import uuid
from typing import List, Optional, Tuple

from retail_assistant.config import Settings, get_settings
from retail_assistant.database import CatalogDatabase
from retail_assistant.history import SessionHistoryStore
from retail_assistant.logger import get_logger
from retail_assistant.model_invoker import ModelInvoker
from retail_assistant.models import ChatRequest, ChatResponse, ChatTurn, Role
from retail_assistant.prompts import build_system_prompt
from retail_assistant.query_interpreter import interpret
from retail_assistant.recommendations import RecommendationExtractor
from retail_assistant.retrieval import CatalogRetriever

logger = get_logger("chatbot")

FALLBACK_MESSAGE = "I'm sorry, I'm having trouble right now. Please try again later."


def new_session_id() -> str:
    """Generate an opaque session identifier."""
    return str(uuid.uuid4())


# =============================================================================
# Chat Service
# =============================================================================

class ChatService:
    """
    Orchestrates a chat turn over the retrieval-augmented pipeline.

    The history store is shared and injected; every other collaborator is
    stateless per turn, so one service instance can serve concurrent
    requests.
    """

    def __init__(
        self,
        retriever: CatalogRetriever,
        invoker: ModelInvoker,
        history: SessionHistoryStore,
        extractor: Optional[RecommendationExtractor] = None
    ):
        """
        Initialize the service with its collaborators.

        Args:
            retriever: Catalog retriever for the current turn's products
            invoker: Chat-completion invoker
            history: Process-wide session history store
            extractor: Recommendation extractor (default window if omitted)
        """
        self.retriever = retriever
        self.invoker = invoker
        self.history = history
        self.extractor = extractor or RecommendationExtractor()

    async def get_response(self, request: ChatRequest, timeout: Optional[float] = None) -> ChatResponse:
        """
        Answer one user message.

        Args:
            request: Inbound chat turn
            timeout: Optional deadline in seconds for the whole turn

        Returns:
            The assistant reply with any recommendations, or the fallback
            reply when anything in the pipeline fails

        Raises:
            ValueError: If the message is blank (nothing else is raised)
        """
        if not request.message or not request.message.strip():
            raise ValueError("Message cannot be empty")

        session_id = request.session_id or new_session_id()

        try:
            turn = self._run_turn(request.message, session_id)
            if timeout is not None:
                return await asyncio.wait_for(turn, timeout=timeout)
            return await turn
        except Exception:
            logger.exception("Error processing chat message for session %s", session_id)
            return ChatResponse(message=FALLBACK_MESSAGE, recommendations=None, session_id=session_id)

    async def _run_turn(self, message: str, session_id: str) -> ChatResponse:
        filters = interpret(message)
        products = await self.retriever.retrieve(filters)

        system_prompt = build_system_prompt(products, message)
        reply = await self.invoker.invoke(system_prompt, message, session_id)

        recommendations = self.extractor.extract(reply, products)

        self.history.append(
            session_id,
            ChatTurn(session_id=session_id, role=Role.USER, content=message),
            ChatTurn(session_id=session_id, role=Role.ASSISTANT, content=reply)
        )

        return ChatResponse(message=reply, recommendations=recommendations, session_id=session_id)

    def get_history(self, session_id: str) -> Tuple[ChatTurn, ...]:
        """Get the conversation history of a session."""
        return self.history.read(session_id)

    def clear_session(self, session_id: Optional[str] = None) -> str:
        """
        Forget a session's history and hand out a fresh session id.

        Clearing an unknown (or no) session is not an error.
        """
        if session_id:
            self.history.clear(session_id)
        return new_session_id()


def build_chat_service(
    history: SessionHistoryStore,
    settings: Optional[Settings] = None,
    database: Optional[CatalogDatabase] = None
) -> ChatService:
    """Wire a ChatService from configuration."""
    settings = settings or get_settings()
    database = database or CatalogDatabase(settings.catalog_db_path)
    return ChatService(
        retriever=CatalogRetriever(database),
        invoker=ModelInvoker(history, settings=settings),
        history=history
    )


# =============================================================================
# CLI Interface
# =============================================================================

def _print_recommendations(recommendations: List) -> None:
    print("\n--- Recommended Products ---")
    for rec in recommendations:
        print(f"  [{rec.sku}] {rec.name} - {rec.price:.2f} {rec.currency}")


async def _cli_loop(service: ChatService) -> None:
    session_id = new_session_id()

    while True:
        try:
            user_input = (await asyncio.to_thread(input, "\nYou: ")).strip()
        except (EOFError, KeyboardInterrupt):
            print("\n\nThank you for shopping with us! Goodbye!")
            break

        if not user_input:
            continue

        command = user_input.lower()

        if command in ['quit', 'exit']:
            print("\nThank you for shopping with us! Goodbye!")
            break

        if command == 'reset':
            session_id = service.clear_session(session_id)
            print("\nConversation reset. How can I help you?")
            continue

        if command == 'history':
            turns = service.get_history(session_id)
            if not turns:
                print("\nNo conversation history yet.")
            else:
                print("\n--- Conversation History ---")
                for turn in turns:
                    print(f"  [{turn.created_at.strftime('%H:%M:%S')}] {turn.role.value}: {turn.content}")
            continue

        try:
            request = ChatRequest(message=user_input, session_id=session_id)
        except ValueError as e:
            print(f"\nError: {e}")
            continue

        response = await service.get_response(request)
        print(f"\nAssistant: {response.message}")
        if response.recommendations:
            _print_recommendations(response.recommendations)


def run_cli():
    """Run the assistant in command-line interface mode."""
    print("=" * 60)
    print("Welcome to the Retail Assistant!")
    print("=" * 60)
    print("\nI can help you find products from our catalog.")
    print("Type 'quit' or 'exit' to end the conversation.")
    print("Type 'reset' to start a new conversation.")
    print("Type 'history' to view this conversation.")
    print("-" * 60)

    history = SessionHistoryStore()
    try:
        service = build_chat_service(history)
    except Exception as e:
        print(f"\nError initializing assistant: {e}")
        print("Make sure you have set up your environment variables correctly.")
        print("See .env.example for required configuration.")
        return

    try:
        asyncio.run(_cli_loop(service))
    finally:
        history.close()


if __name__ == "__main__":
    run_cli()
