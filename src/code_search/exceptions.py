"""Exception classes for code search operations.

Runtime failures (timeouts, output limits, backend errors) are normally
reported inside a SearchResult rather than raised. These classes give each
failure mode a stable error code and are raised only by the explicit
helpers (``ValidationResult.raise_if_invalid``,
``ProcessResult.raise_for_status``) for callers that prefer exceptions.
"""

from typing import Optional


class CodeSearchError(Exception):
    """Base exception for code search errors."""

    error_code = "SEARCH_ERROR"

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self):
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class CommandValidationError(CodeSearchError):
    """Raised when a command or one of its arguments is rejected."""

    error_code = "COMMAND_VALIDATION_FAILED"


class QueryValidationError(CodeSearchError):
    """Raised when a search query contains conflicting options."""

    error_code = "QUERY_VALIDATION_FAILED"


class SpawnError(CodeSearchError):
    """Raised when the backend binary cannot be started."""

    error_code = "SPAWN_FAILED"


class SearchTimeoutError(CodeSearchError):
    """Raised when a backend exceeds its time budget."""

    error_code = "COMMAND_TIMEOUT"


class OutputLimitExceededError(CodeSearchError):
    """Raised when a backend produces more output than allowed."""

    error_code = "OUTPUT_TOO_LARGE"


class BackendError(CodeSearchError):
    """Raised when a backend exits with a genuine error (exit code > 1)."""

    error_code = "BACKEND_ERROR"

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        exit_code: Optional[int] = None,
    ):
        super().__init__(message, details)
        self.exit_code = exit_code


class BackendUnavailableError(CodeSearchError):
    """Raised when no usable search backend is installed."""

    error_code = "COMMAND_NOT_AVAILABLE"


class ConfigurationError(CodeSearchError):
    """Raised when the configuration file cannot be loaded."""

    error_code = "CONFIGURATION_ERROR"
