"""Custom exception classes for MCP Compression Proxy."""

from typing import Optional


class ProxyBaseError(Exception):
    """Base class for all custom exceptions in MCP Compression Proxy."""

    pass


class ConfigurationError(ProxyBaseError):
    """Raised when loading or validating the configuration file fails."""

    pass


class BackendServerError(ProxyBaseError):
    """
    Raised when interacting with a backend MCP server fails,
    or when a backend server reports an error.
    """

    def __init__(
        self,
        message: str,
        svr_name: Optional[str] = None,
        orig_exc: Optional[Exception] = None,
    ):
        self.svr_name = svr_name
        self.orig_exc = orig_exc

        full_msg = "Backend server error"
        if svr_name:
            full_msg += f" (server: {svr_name})"
        full_msg += f": {message}"
        if orig_exc:
            full_msg += f" (original error: {type(orig_exc).__name__})"
        super().__init__(full_msg)


class CachePersistenceError(ProxyBaseError):
    """Raised when the compression cache snapshot cannot be written or removed."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        orig_exc: Optional[Exception] = None,
    ):
        self.path = path
        self.orig_exc = orig_exc

        full_msg = message
        if path:
            full_msg += f" (file: {path})"
        if orig_exc:
            full_msg += f": {orig_exc}"
        super().__init__(full_msg)


class UnknownBackendError(ProxyBaseError):
    """Raised when a request names a backend that is not configured."""

    def __init__(self, svr_name: str, known: Optional[list] = None):
        self.svr_name = svr_name
        message = f"Unknown backend server '{svr_name}'"
        if known:
            message += f". Available: {', '.join(sorted(known))}"
        super().__init__(message)


class ToolCallError(ProxyBaseError):
    """Raised by the MCP front to surface an error result to the calling agent."""

    pass
