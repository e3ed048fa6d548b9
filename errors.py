# ABOUTME: Error taxonomy for the rainbow favorability engine
# ABOUTME: Each error carries a stable kind code and the HTTP status the API maps it to

from typing import Any


class RainbowEngineError(Exception):
    """Base class for every error the engine surfaces to its callers"""

    kind = 'Internal'
    http_status = 500

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        error: dict[str, Any] = {'code': self.kind, 'message': self.message}
        if self.details:
            error['details'] = self.details
        return error


class InvalidLocationError(RainbowEngineError, ValueError):
    """Coordinates outside [-90, 90] / [-180, 180]"""

    kind = 'InvalidLocation'
    http_status = 400


class MissingLocationError(RainbowEngineError):
    kind = 'MissingLocation'
    http_status = 400


class MissingTimestampError(RainbowEngineError):
    kind = 'MissingTimestamp'
    http_status = 400


class ConfigurationMissingError(RainbowEngineError):
    """Provider has no credentials; the feature is unavailable, not flaky"""

    kind = 'ConfigurationMissing'
    http_status = 503


class ProviderTimeoutError(RainbowEngineError):
    kind = 'Timeout'
    http_status = 504


class RateLimitedError(RainbowEngineError):
    kind = 'RateLimited'
    http_status = 429


class UpstreamError(RainbowEngineError):
    """Generic provider failure (bad status, bad payload, no data)"""

    kind = 'UpstreamError'
    http_status = 502


class InternalError(RainbowEngineError):
    kind = 'Internal'
    http_status = 500


class InvalidTimestampError(RainbowEngineError, ValueError):
    """A time parameter that is neither ISO-8601 nor unix seconds"""

    kind = 'InvalidTimestamp'
    http_status = 400
