"""Cache-backed stats lookup shared by the single-platform and per-profile endpoints."""
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Mapping, Optional

from .cache import StatsCache, stats_key
from .errors import InvalidInput, StatsError, UnknownPlatform
from .fetchers import Fetcher
from .upstream import UpstreamClient

logger = logging.getLogger(__name__)


class StatsService:
    def __init__(
        self,
        cache: StatsCache,
        client: UpstreamClient,
        fetchers: Mapping[str, Fetcher],
        ttl: Optional[int] = None,
    ):
        self.cache = cache
        self.client = client
        self.fetchers = dict(fetchers)
        self.ttl = ttl

    def fetcher_for(self, platform: str) -> Fetcher:
        try:
            return self.fetchers[platform]
        except KeyError:
            raise UnknownPlatform("Unknown platform.") from None

    def get_stats(self, platform: str, username: Optional[str]) -> Dict[str, Any]:
        fetch = self.fetcher_for(platform)
        username = (username or "").strip()
        if not username:
            raise InvalidInput(f"{platform} username is required")

        key = stats_key(platform, username)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Cache hit for %s", key)
            return cached

        record = fetch(username, self.client)
        self.cache.set(key, record, self.ttl)
        return record

    def invalidate(self, platform: str, username: Optional[str]) -> bool:
        self.fetcher_for(platform)
        username = (username or "").strip()
        if not username:
            raise InvalidInput(f"{platform} username is required")
        return self.cache.delete(stats_key(platform, username))

    def get_many(self, accounts: Mapping[str, str]) -> Dict[str, Dict[str, Any]]:
        """Look up every linked platform at once; one platform failing never hides the others."""
        linked = {p: name for p, name in accounts.items() if name and name.strip()}
        if not linked:
            return {}

        def outcome(platform: str, username: str) -> Dict[str, Any]:
            try:
                return {"status": "ok", "data": self.get_stats(platform, username)}
            except StatsError as exc:
                logger.warning("%s stats failed for %s: %s", platform, username, exc.message)
                return {"status": "error", "code": exc.status_code, "message": exc.message}
            except Exception:
                logger.exception("Unexpected error fetching %s stats for %s", platform, username)
                return {"status": "error", "code": 500, "message": "Internal server error"}

        with ThreadPoolExecutor(max_workers=len(linked)) as pool:
            futures = {p: pool.submit(outcome, p, name) for p, name in linked.items()}
        return {p: f.result() for p, f in futures.items()}
