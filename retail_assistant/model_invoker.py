"""
Chat-completion invocation.

Sends the system prompt, a short window of recent history and the current
user message to an OpenAI-compatible chat-completion endpoint.
"""

from typing import Any, Dict, List, Optional, Sequence

import openai

from retail_assistant.config import Settings, get_settings
from retail_assistant.errors import ModelInvocationFailed
from retail_assistant.history import SessionHistoryStore
from retail_assistant.logger import get_logger
from retail_assistant.models import ChatTurn, Role

logger = get_logger("model_invoker")

HISTORY_WINDOW = 5


def build_messages(
    system_prompt: str,
    history: Sequence[ChatTurn],
    user_message: str
) -> List[Dict[str, str]]:
    """Assemble [system] + history + [user] in chat-completion format."""
    messages = [{"role": Role.SYSTEM.value, "content": system_prompt}]
    messages.extend({"role": turn.role.value, "content": turn.content} for turn in history)
    messages.append({"role": Role.USER.value, "content": user_message})
    return messages


class ModelInvoker:
    """
    Calls the chat-completion model for one turn.

    Does not retry: any retry policy belongs to the client passed in (the
    default client is built with `max_retries` from settings). Task
    cancellation is never intercepted.
    """

    def __init__(
        self,
        history: SessionHistoryStore,
        client: Optional[Any] = None,
        chat_model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        history_window: int = HISTORY_WINDOW,
        settings: Optional[Settings] = None
    ):
        """
        Initialize the invoker with API configuration.

        Args:
            history: Store holding previous turns for each session
            client: openai.AsyncOpenAI-compatible client
            chat_model: Model to use for chat completion
            max_tokens: Maximum output tokens per reply
            temperature: Sampling temperature
            history_window: Number of most recent turns to include
        """
        settings = settings or get_settings()
        self.history = history
        self.chat_model = chat_model or settings.chat_model
        self.max_tokens = max_tokens or settings.chat_max_tokens
        self.temperature = settings.chat_temperature if temperature is None else temperature
        self.history_window = history_window

        if client is None:
            if not settings.openai_api_key:
                raise ValueError("OPENAI_API_KEY environment variable is required")
            client = openai.AsyncOpenAI(
                api_key=settings.openai_api_key,
                base_url=settings.openai_base_url,
                timeout=settings.chat_timeout,
                max_retries=settings.chat_max_retries
            )
        self.client = client

    async def invoke(self, system_prompt: str, user_message: str, session_id: str) -> str:
        """
        Get the assistant reply for the current turn.

        Args:
            system_prompt: Instruction built for this turn
            user_message: Current user text
            session_id: Session whose recent history is included

        Returns:
            Assistant reply text

        Raises:
            ModelInvocationFailed: On any upstream failure or an empty reply
        """
        recent = self.history.recent(session_id, self.history_window)
        messages = build_messages(system_prompt, recent, user_message)

        logger.info("Calling chat model %s with %d messages", self.chat_model, len(messages))

        try:
            response = await self.client.chat.completions.create(
                model=self.chat_model,
                messages=messages,
                max_tokens=self.max_tokens,
                temperature=self.temperature
            )
        except openai.OpenAIError as e:
            logger.error("Chat completion request failed: %s", e)
            raise ModelInvocationFailed("Failed to get AI response. Please try again.", cause=e) from e

        if not response.choices or not response.choices[0].message.content:
            raise ModelInvocationFailed("Chat completion returned no content")

        usage = getattr(response, "usage", None)
        if usage is not None:
            logger.info("Received chat response (%s tokens)", usage.total_tokens)

        return response.choices[0].message.content
