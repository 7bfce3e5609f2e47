"""Failure taxonomy shared by the fetchers, the stats service and the HTTP layer."""

RATE_LIMITED = "rate_limited"
TIMEOUT = "timeout"
ERROR = "error"


class StatsError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(StatsError):
    status_code = 400


class NotFound(StatsError):
    status_code = 404


class UnknownPlatform(StatsError):
    status_code = 404


class UpstreamUnavailable(StatsError):
    """The upstream platform errored, timed out or rate-limited us."""

    _status_by_cause = {RATE_LIMITED: 503, TIMEOUT: 504, ERROR: 502}

    def __init__(self, message: str, cause: str = ERROR):
        super().__init__(message)
        self.cause = cause if cause in self._status_by_cause else ERROR

    @property
    def status_code(self) -> int:  # type: ignore[override]
        return self._status_by_cause[self.cause]
