# Typed failures that may cross the public entry points.
from pydantic import BaseModel


class ErrorReport(BaseModel):
    """what a caller sees when one evidence source could not be evaluated."""
    category: str
    message: str


class EvidenceError(Exception):
    category = "evidence_error"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

    def to_report(self) -> ErrorReport:
        return ErrorReport(category=self.category, message=self.message or self.__class__.__name__)


class NotFoundError(EvidenceError):
    """handle/profile/repository does not exist (or is not publicly visible). Terminal."""
    category = "not_found"


class RateLimitedError(EvidenceError):
    """platform throttled us; retry_after is the server-provided delay in seconds, if any."""
    category = "limited"

    def __init__(self, message: str = "", retry_after: float | None = None):
        super().__init__(message)
        self.retry_after = retry_after


class UpstreamTimeoutError(EvidenceError):
    """timeouts, dropped connections and 5xx answers. Retried, then surfaced."""
    category = "timeout"


class MalformedUpstreamResponse(EvidenceError):
    category = "malformed_upstream_response"


class InvalidInputError(EvidenceError):
    """input rejected before any network call."""
    category = "invalid_input"
