"""Exception hierarchy shared by all readers.

Every error names the upstream ``source`` it came from so the registry can
log a useful line when it marks that source as down.
"""

from typing import Optional


class PronestheusError(Exception):
    """Base class for all pronestheus errors"""

    def __init__(self, message: str, source: str = ""):
        self.source = source
        super().__init__(f"{source}: {message}" if source else message)


class ConfigurationError(PronestheusError):
    """Invalid or incomplete configuration. Aborts startup."""


class RequestError(PronestheusError):
    """Transport-level failure (connection, DNS, timeout)."""


class UpstreamStatusError(PronestheusError):
    """Upstream answered with something other than 200."""

    def __init__(self, status_code: int, source: str = "", detail: Optional[str] = None):
        self.status_code = status_code
        message = f"API responded with non-200 code: {status_code}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message, source)


class BodyReadError(PronestheusError):
    """Response body could not be read completely."""


class ParseError(PronestheusError):
    """Response body is not the JSON document we expected."""


class MissingFieldError(ParseError):
    """A required field is absent from an otherwise valid document."""

    def __init__(self, field: str, source: str = ""):
        self.field = field
        super().__init__(f"missing field '{field}' in response", source)


class NoValidDevicesError(ParseError):
    """The devices list contained no thermostats."""


class AuthenticationError(PronestheusError):
    """Could not establish an authenticated session."""


class ReauthenticationError(AuthenticationError):
    """Session expired and could not be renewed."""
