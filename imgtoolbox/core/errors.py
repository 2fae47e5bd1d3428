class ToolboxError(Exception):
    """Base error; carries the HTTP status the route answers with."""

    status_code = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class InvalidInput(ToolboxError):
    """Missing or malformed request field"""

    status_code = 400


class PayloadTooLarge(ToolboxError):
    """Upload exceeds the configured size limit"""

    status_code = 413


class MissingCredential(ToolboxError):
    """Server-held API key is not configured"""

    status_code = 500


class UpstreamError(ToolboxError):
    """Upstream call failed; 4xx and 5xx upstream statuses are passed through"""

    @classmethod
    def for_status(cls, status_code: int) -> "UpstreamError":
        # Redirects and other non-error statuses cannot be relayed with a body
        relayed = status_code if 400 <= status_code < 600 else 502
        return cls(f"API request failed: {status_code}", relayed)


class UpstreamResponseError(ToolboxError):
    """Upstream answered 2xx but the payload lacks the expected field"""

    status_code = 500
