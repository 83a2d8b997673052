"""Error taxonomy shared by every modelchat component.

Transports translate their library-specific failures into these types so
callers match on the class, never on error text.
"""


class ChatError(Exception):
    """Base class for all modelchat failures."""

    @property
    def detail(self) -> str:
        """Human-readable description suitable for display."""
        return str(self)


class NetworkError(ChatError):
    """Transport failure: the request produced no response."""


class HttpError(ChatError):
    """Non-2xx response from a backend or provider."""

    def __init__(self, status: int, body: str = ""):
        self.status = status
        self.body = body
        message = f"HTTP {status}: {body}" if body else f"HTTP {status}"
        super().__init__(message)


class ModelUnavailable(HttpError):
    """The selected model does not exist or is not served by the provider."""

    def __init__(self, model: str, status: int = 404, body: str = ""):
        self.model = model
        super().__init__(status, body or f"model '{model}' not found")


class ValidationError(ChatError):
    """Input rejected locally before any request was made."""


class UploadError(ChatError):
    """Asset ingest failed, locally or on the server."""

    def __init__(self, message: str, status: int | None = None):
        self.status = status
        super().__init__(message)


class DispatcherBusy(ChatError):
    """A chat turn is already in flight."""


_NOT_FOUND_MARKERS = ("not found", "not_found", "does not exist", "is not supported")


def is_not_found(status: int, body: str) -> bool:
    """Check whether an HTTP failure means the requested model is unavailable.

    A 404 status always qualifies; proxies that wrap provider errors in a 5xx
    still carry the provider's not-found wording in the body.
    """
    if status == 404:
        return True
    lowered = body.lower()
    return any(marker in lowered for marker in _NOT_FOUND_MARKERS)
