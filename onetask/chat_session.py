"""
Conversation state for the assistant screen.

Each submitted message runs the chat pipeline in its own asyncio.Task.
A newer submission supersedes the previous one: the older request is
allowed to finish, but its answer is dropped (last write wins).
"""
import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from onetask.app_store import AppStore
from onetask.chat_pipeline import ChatPipeline, ChatTrace
from onetask.exceptions import OneTaskError
from onetask.logger import get_logger
from onetask.models import new_id
from onetask.schemas import ChatResponse

logger = get_logger("chat_session")

WELCOME_MESSAGE = (
    "Hi! I'm your AI assistant. I can help you with:\n\n"
    "• Creating and managing tasks\n"
    "• Setting up habits and goals\n"
    "• Organizing projects\n"
    "• Answering questions about your productivity\n\n"
    "What would you like to know?"
)


@dataclass
class ChatMessage:
    content: str
    is_from_user: bool
    id: str = field(default_factory=new_id)
    timestamp: datetime = field(default_factory=lambda: datetime.now().astimezone())


class ChatSession:
    """
    Message list plus the in-flight request.

    With ``use_store_context`` the prompt context comes from the store's
    current collections; otherwise the pipeline fetches fresh data.
    """

    def __init__(
        self,
        pipeline: ChatPipeline,
        store: Optional[AppStore] = None,
        use_store_context: bool = False,
    ):
        self.pipeline = pipeline
        self.store = store
        self.use_store_context = use_store_context and store is not None
        self.messages: List[ChatMessage] = [ChatMessage(WELCOME_MESSAGE, is_from_user=False)]
        self.is_loading = False
        self.error_message: Optional[str] = None
        self.trace: Optional[ChatTrace] = None
        self._current: Optional[asyncio.Task] = None
        self._generation = 0

    def submit(self, message: str) -> Optional[asyncio.Task]:
        """
        Append the user's message and start the request.

        Must be called from a running event loop. Blank messages are
        ignored and return None.
        """
        if not message.strip():
            return None

        self.messages.append(ChatMessage(message, is_from_user=True))
        self._generation += 1
        self.is_loading = True
        self.error_message = None

        context = self.store.build_context() if self.use_store_context else None
        # each request keeps its own trace; self.trace follows the newest
        self.trace = ChatTrace()
        loop = asyncio.get_running_loop()
        self._current = loop.create_task(self._run(message, self._generation, context, self.trace))
        return self._current

    async def _run(self, message: str, generation: int, context, trace: ChatTrace) -> Optional[ChatResponse]:
        try:
            response = await self.pipeline.send(message, context, trace)
        except OneTaskError as e:
            if generation == self._generation:
                self.is_loading = False
                self.error_message = f"Failed to get response: {e.message}"
            logger.warning(f"Chat request failed: {e}")
            return None

        if generation != self._generation:
            logger.info("Dropping answer to a superseded chat request")
            return None

        self.messages.append(ChatMessage(response.response, is_from_user=False))
        self.is_loading = False
        return response

    def cancel(self) -> bool:
        """Cancel the in-flight request, if any."""
        if self._current is None or self._current.done():
            return False
        self._current.cancel()
        self._generation += 1
        self.is_loading = False
        return True

    @property
    def conversation(self) -> List[ChatMessage]:
        """Messages after the welcome message."""
        return self.messages[1:]
