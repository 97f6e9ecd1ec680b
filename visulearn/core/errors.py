"""Error taxonomy shared by the providers, the planner and the orchestrator."""
from enum import Enum
from typing import Optional


class FailureKind(str, Enum):
    RATE_LIMITED = "rate_limited"
    PROVIDER = "provider"
    CONFIGURATION = "configuration"
    PARSE = "parse"
    UNEXPECTED = "unexpected"


class VisuLearnError(Exception):
    """Base class for every error raised by the backend."""

    kind: FailureKind = FailureKind.UNEXPECTED


class ConfigurationError(VisuLearnError):
    """A required setting (usually an API key) is missing."""

    kind = FailureKind.CONFIGURATION

    def __init__(self, setting: str):
        self.setting = setting
        super().__init__(f"{setting} is not configured")


class ProviderError(VisuLearnError):
    """Terminal failure reported by (or while talking to) an external provider."""

    kind = FailureKind.PROVIDER

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        self.provider = provider
        self.status_code = status_code
        status = f" ({status_code})" if status_code is not None else ""
        super().__init__(f"{provider} error{status}: {message}")


class RateLimited(ProviderError):
    """HTTP 429 from a provider. The only retryable failure."""

    kind = FailureKind.RATE_LIMITED

    def __init__(self, provider: str, message: str = "rate limit exceeded"):
        super().__init__(provider, message, status_code=429)


class ParseError(VisuLearnError):
    """Model output contained no usable JSON."""

    kind = FailureKind.PARSE

    def __init__(self, message: str, raw_text: str = ""):
        self.raw_text = raw_text
        super().__init__(message)


class PreconditionError(VisuLearnError):
    """Content planning failed, so the batch cannot start."""
