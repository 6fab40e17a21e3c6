"""
OneTask exception definitions.

Hierarchy of all custom errors raised by the client:
- OneTaskError: base class for every known error
- ConfigError: configuration file errors
- DateParseError: backend date string in an unknown format
- GoalTypeError: goal constructed without its type-specific field
- APIError: REST API failures (invalid request, transport, status, decode)
- ChatError: chat pipeline failures surfaced to the caller
- AuthError: identity provider failures, tagged with a typed code
"""
from enum import Enum
from typing import Optional


class OneTaskError(Exception):
    """Base exception for the OneTask client.

    Every expected failure inherits from this class, so catching it
    handles all anticipated error cases.
    """

    def __init__(self, message: str, hint: Optional[str] = None):
        """
        Args:
            message: Error description
            hint: Suggested action for the user
        """
        super().__init__(message)
        self.message = message
        self.hint = hint

    def get_user_message(self) -> str:
        """Return a user-facing error message."""
        if self.hint:
            return f"{self.message}\nHint: {self.hint}"
        return self.message


class ConfigError(OneTaskError):
    """Configuration file is missing, malformed or invalid."""

    def __init__(self, message: str, config_path: Optional[str] = None):
        hint = f"Check the config file: {config_path}" if config_path else "Check the config file format"
        super().__init__(message, hint)
        self.config_path = config_path


class DateParseError(OneTaskError, ValueError):
    """A backend date string matched none of the supported formats."""

    def __init__(self, value: str):
        super().__init__(f"Cannot decode date string {value!r}")
        self.value = value


class GoalTypeError(OneTaskError, ValueError):
    """A goal is missing the date field required by its goal type."""

    def __init__(self, goal_type: str, missing_field: str):
        super().__init__(f"{goal_type} goal requires {missing_field}")
        self.goal_type = goal_type
        self.missing_field = missing_field


class APIError(OneTaskError):
    """Base class for REST API failures."""

    def __init__(self, message: str, endpoint: Optional[str] = None):
        self.endpoint = endpoint
        if endpoint:
            message = f"[{endpoint}] {message}"
        super().__init__(message)


class InvalidRequestError(APIError):
    """The request could not be built (bad URL or unencodable body)."""

    def __init__(self, detail: str, endpoint: Optional[str] = None):
        super().__init__(f"Invalid request: {detail}", endpoint)


class NoResponseBodyError(APIError):
    """The server answered without a body where one was expected."""

    def __init__(self, endpoint: Optional[str] = None):
        super().__init__("No data received", endpoint)


class DecodeFailureError(APIError):
    """The response body did not have the expected shape."""

    def __init__(self, detail: str, endpoint: Optional[str] = None):
        super().__init__(f"Failed to decode response: {detail}", endpoint)


class TransportError(APIError):
    """Connectivity failure or timeout; retryable by user action."""

    def __init__(
        self,
        cause: Exception,
        endpoint: Optional[str] = None,
        timeout_seconds: Optional[float] = None
    ):
        if timeout_seconds:
            message = f"Request timed out after {timeout_seconds}s"
        else:
            message = f"Network error: {cause}"
        super().__init__(message, endpoint)
        self.cause = cause
        self.timeout_seconds = timeout_seconds
        self.hint = "Check your connection and try again"

    @property
    def is_timeout(self) -> bool:
        return self.timeout_seconds is not None


class HttpStatusError(APIError):
    """The server answered with an unexpected HTTP status."""

    def __init__(self, status_code: int, endpoint: Optional[str] = None):
        super().__init__(f"HTTP error: {status_code}", endpoint)
        self.status_code = status_code


class ChatError(OneTaskError):
    """Base class for chat pipeline failures."""


class ChatNetworkError(ChatError):
    """The chat request never produced a response body."""

    def __init__(self, cause: Exception):
        super().__init__(f"Chat service unreachable: {cause}", hint="Try sending the message again")
        self.cause = cause


class ChatDecodeError(ChatError):
    """The chat response held nothing usable."""

    def __init__(self, detail: str = "empty response body"):
        super().__init__(f"Chat response could not be used: {detail}")


class AuthErrorCode(Enum):
    """Typed identity provider failure codes."""
    KEYCHAIN_ACCESS_DENIED = "keychain_access_denied"
    KEYCHAIN_ITEM_UNAVAILABLE = "keychain_item_unavailable"
    SIGN_OUT_FAILED = "sign_out_failed"
    NO_CACHED_ACCOUNT = "no_cached_account"
    TOKEN_UNAVAILABLE = "token_unavailable"
    INTERACTION_REQUIRED = "interaction_required"
    USER_CANCELLED = "user_cancelled"
    NETWORK_TIMEOUT = "network_timeout"
    INVALID_SERVER_RESPONSE = "invalid_server_response"
    NOT_CONFIGURED = "not_configured"
    UNKNOWN = "unknown"


# Platform quirks that are logged but never shown to the user.
NON_ACTIONABLE_AUTH_ERRORS = frozenset({
    AuthErrorCode.KEYCHAIN_ACCESS_DENIED,
    AuthErrorCode.KEYCHAIN_ITEM_UNAVAILABLE,
    AuthErrorCode.SIGN_OUT_FAILED,
})


class AuthError(OneTaskError):
    """Identity provider failure."""

    def __init__(self, code: AuthErrorCode, detail: str = ""):
        message = f"Authentication error ({code.value})"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.code = code
        self.detail = detail

    @property
    def is_actionable(self) -> bool:
        return self.code not in NON_ACTIONABLE_AUTH_ERRORS
