"""
Shared HTTP access to the upstream platforms.
- one requests.Session per app, browser-like headers for page scrapes
- every call is bounded by a timeout
- transport and HTTP failures are mapped onto the devstats error taxonomy
"""
import logging
from typing import Any, Dict, Optional, Tuple

import requests

from .errors import ERROR, RATE_LIMITED, TIMEOUT, NotFound, UpstreamUnavailable

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10  # seconds

# Browser-like headers for generic scrapes
HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/121.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}

RATE_LIMIT_STATUSES = (429,)


def is_rate_limited(response: requests.Response, statuses: Tuple[int, ...] = RATE_LIMIT_STATUSES) -> bool:
    if response.status_code in statuses:
        return True
    # GitHub answers 403 with an exhausted quota header
    return response.status_code == 403 and response.headers.get("X-RateLimit-Remaining") == "0"


class UpstreamClient:
    """Thin wrapper over a requests.Session that raises devstats errors."""

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = DEFAULT_TIMEOUT):
        self.session = session or requests.Session()
        self.timeout = timeout

    def request(
        self,
        method: str,
        url: str,
        *,
        platform: str,
        headers: Optional[Dict[str, str]] = None,
        not_found_message: Optional[str] = None,
        allow_statuses: Tuple[int, ...] = (),
        rate_limit_statuses: Tuple[int, ...] = RATE_LIMIT_STATUSES,
        **kwargs: Any,
    ) -> requests.Response:
        """Issue one request and return the response for any status below 400.

        Statuses in ``allow_statuses`` are returned as well so the caller can
        inspect the body. 404 becomes NotFound when ``not_found_message`` is
        given; every other failure becomes UpstreamUnavailable with a cause
        the HTTP layer maps to 502, 503 or 504.
        """
        merged = {**HEADERS, **(headers or {})}
        try:
            response = self.session.request(method, url, headers=merged, timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout as exc:
            logger.warning("%s request timed out: %s", platform, exc)
            raise UpstreamUnavailable(f"{platform} did not respond in time", cause=TIMEOUT) from exc
        except requests.exceptions.RequestException as exc:
            logger.warning("%s request failed: %s", platform, exc)
            raise UpstreamUnavailable(f"{platform} is unreachable", cause=ERROR) from exc

        if response.status_code < 400 or response.status_code in allow_statuses:
            return response
        if response.status_code == 404 and not_found_message:
            raise NotFound(not_found_message)
        if is_rate_limited(response, rate_limit_statuses):
            raise UpstreamUnavailable(f"{platform} rate limit exceeded, try again later", cause=RATE_LIMITED)
        raise UpstreamUnavailable(f"{platform} returned HTTP {response.status_code}", cause=ERROR)

    def get(self, url: str, **kwargs: Any) -> requests.Response:
        return self.request("GET", url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> requests.Response:
        return self.request("POST", url, **kwargs)

    def get_json(self, url: str, **kwargs: Any) -> Any:
        return decode_json(self.get(url, **kwargs), kwargs["platform"])

    def post_json(self, url: str, **kwargs: Any) -> Any:
        return decode_json(self.post(url, **kwargs), kwargs["platform"])

    def close(self) -> None:
        self.session.close()


def decode_json(response: requests.Response, platform: str) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        raise UpstreamUnavailable(f"{platform} returned a malformed response") from exc
