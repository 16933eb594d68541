"""Custom exceptions for the proxy application."""


class ProxyException(Exception):
    """Base class for proxy exceptions with HTTP status code.

    All custom exceptions inherit from this class and define their
    specific status_code for consistent HTTP response handling.
    """
    status_code: int = 500

    def __init__(self, message: str = "Proxy error"):
        self.message = message
        super().__init__(message)

    @property
    def headers(self) -> dict[str, str]:
        """Extra response headers for this error."""
        return {}


class ValidationError(ProxyException):
    """Raised when a DoH request is malformed.

    Covers a missing or non base64url ``dns`` parameter, a wrong content
    type and an empty or oversized POST body.

    Maps to HTTP 400 Bad Request.
    """
    status_code = 400


class RateLimitExceededError(ProxyException):
    """Raised when a client has used up its request window.

    Maps to HTTP 429 Too Many Requests.
    """
    status_code = 429

    def __init__(self, retry_after: int = 60, message: str = "Too many requests"):
        self.retry_after = retry_after
        super().__init__(message)

    @property
    def headers(self) -> dict[str, str]:
        return {"Retry-After": str(self.retry_after)}


class UpstreamExhaustedError(ProxyException):
    """Raised when every upstream provider and attempt has failed.

    Maps to HTTP 500 with a generic message; details stay in the logs.
    """
    status_code = 500

    def __init__(self, attempts: int = 0, message: str = "All upstream providers failed"):
        self.attempts = attempts
        super().__init__(message)


class MethodNotAllowedError(ProxyException):
    """Raised for methods other than GET, POST and OPTIONS on the query path.

    Maps to HTTP 405 Method Not Allowed.
    """
    status_code = 405
    allowed_methods = ("GET", "POST", "OPTIONS")

    def __init__(self, method: str = ""):
        self.method = method
        super().__init__("Method not allowed")

    @property
    def headers(self) -> dict[str, str]:
        return {"Allow": ", ".join(self.allowed_methods)}
