"""Per-platform stats fetchers. Each takes ``(username, client)`` and returns a record."""
from functools import partial
from typing import Any, Callable, Dict

from ..upstream import UpstreamClient
from .codeforces import fetch_codeforces
from .github import fetch_github
from .hackerrank import fetch_hackerrank
from .leetcode import fetch_leetcode

Fetcher = Callable[[str, UpstreamClient], Dict[str, Any]]

PLATFORMS = ("github", "leetcode", "codeforces", "hackerrank")


def build_fetchers(settings) -> Dict[str, Fetcher]:
    return {
        "github": partial(fetch_github, token=settings.github_token),
        "leetcode": partial(fetch_leetcode, stats_api=settings.leetcode_stats_api),
        "codeforces": fetch_codeforces,
        "hackerrank": fetch_hackerrank,
    }


__all__ = [
    "Fetcher",
    "PLATFORMS",
    "build_fetchers",
    "fetch_codeforces",
    "fetch_github",
    "fetch_hackerrank",
    "fetch_leetcode",
]
