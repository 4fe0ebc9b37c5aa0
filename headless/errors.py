from typing import Optional


class ConfigurationError(RuntimeError):
    """A required setting (usually an origin URL) is missing at startup."""


class ContentApiError(Exception):
    """Upstream content request failed after every allowed attempt."""

    def __init__(self, message: str, status_code: Optional[int] = None, attempts: int = 0):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.attempts = attempts

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"{self.message} (status {self.status_code})"
        return self.message


class HttpError(ContentApiError):
    """Non-2xx response; status_code is always set."""


class NotFoundError(HttpError):
    pass


class NetworkError(ContentApiError):
    """Connection failure or an unusable response body."""


class RequestTimeoutError(NetworkError):
    pass
