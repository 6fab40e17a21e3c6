"""
Chat Pipeline.

Combines a user message with the RAG summary into one prompt, posts it
to the chat service and interprets the answer. The chat service is not
reliable about its response format: JSON, plain text and HTML gateway
pages are all seen in practice. The body is classified first
(``classify_chat_body``) and only an empty body is treated as a failure.

Request lifecycle:
    COMPOSING -> CONTEXT_FETCH -> SENDING -> AWAITING_RESPONSE
        -> SUCCEEDED | FAILED_NETWORK | FAILED_DECODE
"""
import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional

import httpx
from pydantic import ValidationError

from onetask.api_client import OneTaskAPIClient, validate_base_url
from onetask.config_manager import AppConfig, config as default_config
from onetask.exceptions import APIError, ChatDecodeError, ChatNetworkError
from onetask.logger import get_logger
from onetask.rag_context import RAGContext, build_rag_context, empty_context
from onetask.schemas import ChatRequest, ChatResponse

logger = get_logger("chat_pipeline")

CHAT_ENDPOINT = "chat"

PROMPT_PREAMBLE = (
    "You are a productivity assistant with access to the user's current productivity data. "
    "Use this data to provide specific, helpful answers about their tasks, habits, goals, "
    "and projects. Never say that you cannot access the user's data: it is provided below."
)

PROMPT_CLOSING = (
    "Please provide a helpful response using the specific data above. Reference actual task "
    "names, project titles, goal details, and habit information from the provided context."
)

HTML_FALLBACK_RESPONSE = (
    "I'm having trouble connecting to the chat service right now. "
    "This is a demo response. Your message was: '{message}'"
)

RAG_HEADERS = {
    "X-Use-RAG-Context": "true",
    "X-Context-Required": "MANDATORY",
    "X-Chat-Mode": "RAG-ENABLED",
    "X-Client-Source": "mobile-app",
}

# substring match, so "overdue" and "todays" count too
TEMPORAL_KEYWORDS = ("today", "this week", "due")


class ChatState(str, Enum):
    COMPOSING = "composing"
    CONTEXT_FETCH = "context_fetch"
    SENDING = "sending"
    AWAITING_RESPONSE = "awaiting_response"
    SUCCEEDED = "succeeded"
    FAILED_NETWORK = "failed_network"
    FAILED_DECODE = "failed_decode"


TERMINAL_STATES = frozenset({
    ChatState.SUCCEEDED,
    ChatState.FAILED_NETWORK,
    ChatState.FAILED_DECODE,
})


@dataclass
class ChatTrace:
    """State history of a single send() call."""
    history: List[ChatState] = field(default_factory=list)

    @property
    def state(self) -> ChatState:
        return self.history[-1] if self.history else ChatState.COMPOSING

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_STATES


class BodyKind(str, Enum):
    EMPTY = "empty"
    HTML = "html"
    TEXT = "text"
    JSON = "json"


@dataclass(frozen=True)
class ClassifiedBody:
    """Tagged result of chat body classification."""
    kind: BodyKind
    text: str = ""
    response: Optional[ChatResponse] = None


def classify_chat_body(body: Optional[str]) -> ClassifiedBody:
    """
    Classify a raw chat response body.

    Priority order:
    1. empty or whitespace           -> EMPTY
    2. starts with "<"               -> HTML (gateway/error page)
    3. does not start with "{" / "[" -> TEXT (trimmed)
    4. JSON decode into ChatResponse -> JSON; on failure TEXT
    A decoded answer with a blank ``response`` field is EMPTY.
    """
    stripped = (body or "").strip()
    if not stripped:
        return ClassifiedBody(BodyKind.EMPTY)

    # also covers "<!DOCTYPE"
    if stripped.startswith("<"):
        return ClassifiedBody(BodyKind.HTML, text=stripped)

    if not stripped.startswith(("{", "[")):
        return ClassifiedBody(BodyKind.TEXT, text=stripped)

    try:
        decoded = ChatResponse.model_validate_json(stripped)
    except ValidationError:
        return ClassifiedBody(BodyKind.TEXT, text=stripped)

    if not decoded.response.strip():
        return ClassifiedBody(BodyKind.EMPTY)
    return ClassifiedBody(BodyKind.JSON, text=decoded.response, response=decoded)


def find_context_tags(message: str, context: RAGContext, now: datetime) -> List[str]:
    """
    Extra hints appended to the prompt.

    - the first project, goal or habit title found in the message
      (case-insensitive, scanned in that collection order over the full
      uncapped collections)
    - the current date when the message mentions today, this week or due
    """
    tags = []
    lowered = message.lower()

    candidates = [
        (kind, title)
        for kind in ("project", "goal", "habit")
        for title in context.titles.get(kind, [])
    ]
    for kind, title in candidates:
        if title and title.lower() in lowered:
            tags.append(f"Mentioned {kind}: {title}")
            break

    if any(keyword in lowered for keyword in TEMPORAL_KEYWORDS):
        tags.append(f"Current date: {now.strftime('%A, %Y-%m-%d')}")

    return tags


def build_prompt(message: str, context: RAGContext, now: Optional[datetime] = None) -> str:
    """Enhanced prompt: preamble, user data, question, closing, tags."""
    now = now or datetime.now().astimezone()
    parts = [
        PROMPT_PREAMBLE,
        f"CURRENT USER DATA:\n{context.summary}",
        f"USER QUESTION: {message}",
        PROMPT_CLOSING,
    ]
    tags = find_context_tags(message, context, now)
    if tags:
        parts.append("CONTEXT TAGS:\n" + "\n".join(f"- {tag}" for tag in tags))
    return "\n\n".join(parts)


class ChatPipeline:
    """
    Sends chat messages through the RAG pipeline.

    Each send() records its state transitions on its own ChatTrace, so
    overlapping requests never write to each other's state. ``state`` and
    ``history`` report the most recently started request.
    """

    def __init__(
        self,
        api_client: OneTaskAPIClient,
        chat_base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        listener: Optional[Callable[[ChatState], None]] = None,
        app_config: Optional[AppConfig] = None,
    ):
        cfg = app_config or default_config
        self.config = cfg
        self.api = api_client
        self.chat_base_url = (chat_base_url or cfg.CHAT_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else cfg.CHAT_TIMEOUT_SECONDS
        self.max_retries = max_retries if max_retries is not None else cfg.CHAT_MAX_RETRIES
        self.retry_delay = retry_delay if retry_delay is not None else cfg.CHAT_RETRY_DELAY_SECONDS
        self.listener = listener
        self.last_trace = ChatTrace()
        self._client = httpx.AsyncClient(transport=transport, timeout=self.timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ChatPipeline":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    @property
    def state(self) -> ChatState:
        return self.last_trace.state

    @property
    def history(self) -> List[ChatState]:
        return list(self.last_trace.history)

    def _transition(self, trace: ChatTrace, state: ChatState) -> None:
        trace.history.append(state)
        logger.debug(f"chat state -> {state.value}")
        if self.listener:
            self.listener(state)

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", **RAG_HEADERS}
        if self.api.auth_token:
            headers["Authorization"] = f"Bearer {self.api.auth_token}"
        return headers

    async def fetch_context(self) -> RAGContext:
        """
        Fetch tasks, habits, yearly goals and projects concurrently.

        Any failure fails the whole join and yields the empty context, so
        the chat request still goes out.
        """
        try:
            tasks, habits, goals, projects = await asyncio.gather(
                self.api.get_tasks(),
                self.api.get_habits(),
                self.api.get_yearly_goals(),
                self.api.get_projects(),
            )
        except APIError as e:
            logger.warning(f"Context fetch failed, continuing without user data: {e}")
            return empty_context(app_config=self.config)
        return build_rag_context(tasks, habits, goals, projects, app_config=self.config)

    async def _post(self, payload: Dict[str, str], trace: ChatTrace) -> httpx.Response:
        url = f"{self.chat_base_url}/{CHAT_ENDPOINT}"
        attempts = 1 + self.max_retries
        last_error: Optional[Exception] = None

        for attempt in range(1, attempts + 1):
            self._transition(trace, ChatState.SENDING)
            request = self._client.build_request("POST", url, json=payload, headers=self._headers())
            self._transition(trace, ChatState.AWAITING_RESPONSE)
            try:
                # httpx timeouts are per phase; bound the whole exchange as well
                return await asyncio.wait_for(self._client.send(request), self.timeout)
            except (httpx.TimeoutException, asyncio.TimeoutError) as e:
                logger.warning(f"Chat request timed out after {self.timeout}s (attempt {attempt}/{attempts})")
                last_error = e
            except httpx.TransportError as e:
                logger.warning(f"Chat request failed: {e} (attempt {attempt}/{attempts})")
                last_error = e

            if attempt < attempts and self.retry_delay > 0:
                await asyncio.sleep(self.retry_delay)

        self._transition(trace, ChatState.FAILED_NETWORK)
        raise ChatNetworkError(last_error)

    def _interpret(self, classified: ClassifiedBody, message: str, trace: ChatTrace) -> ChatResponse:
        user_id = self.api.user_id

        if classified.kind == BodyKind.EMPTY:
            self._transition(trace, ChatState.FAILED_DECODE)
            raise ChatDecodeError()

        if classified.kind == BodyKind.HTML:
            logger.warning("Chat service returned an HTML page; answering with fallback text")
            result = ChatResponse.wrap_text(HTML_FALLBACK_RESPONSE.format(message=message), user_id)
        elif classified.kind == BodyKind.TEXT:
            result = ChatResponse.wrap_text(classified.text, user_id)
        else:
            result = classified.response

        self._transition(trace, ChatState.SUCCEEDED)
        return result

    async def send(
        self,
        message: str,
        context: Optional[RAGContext] = None,
        trace: Optional[ChatTrace] = None,
    ) -> ChatResponse:
        """
        Send a message and return the interpreted answer.

        Args:
            message: The user's question
            context: Prebuilt RAG context; fetched fresh when omitted
            trace: Receives this request's state transitions; a new one
                is created when omitted

        Returns:
            ChatResponse (HTML and plain-text bodies are wrapped)

        Raises:
            ChatNetworkError: Transport failure or timeout after the retry
            ChatDecodeError: The body held nothing usable
            InvalidRequestError: The chat URL is malformed
        """
        trace = trace if trace is not None else ChatTrace()
        self.last_trace = trace
        self._transition(trace, ChatState.COMPOSING)
        validate_base_url(self.chat_base_url)

        if context is None:
            self._transition(trace, ChatState.CONTEXT_FETCH)
            context = await self.fetch_context()

        payload = ChatRequest(prompt=build_prompt(message, context), user_id=self.api.user_id).to_body()
        logger.info(
            f"Sending chat message ({len(payload['prompt'])} chars prompt, "
            f"{context.metadata.total_tasks} tasks in context)"
        )

        response = await self._post(payload, trace)
        logger.info(f"Chat service answered with HTTP {response.status_code}")
        return self._interpret(classify_chat_body(response.text), message, trace)
