"""
GitHub fetcher.

Profile counts come from the users API. The contribution calendar is an
approximation: it buckets one page (up to 100) of the user's recent *public
events* per UTC day, so it undercounts active users and never reflects the
commit graph GitHub renders on the profile page. When no events fall in the
current year the calendar is reported as None.
"""
import logging
from collections import Counter
from datetime import datetime
from typing import Any, Dict, Iterable, Optional

from ..errors import StatsError
from ..upstream import UpstreamClient
from .common import Clock, clean_username, utcnow

logger = logging.getLogger(__name__)

PLATFORM = "GitHub"
GITHUB_API = "https://api.github.com"
EVENTS_PER_PAGE = 100


def github_template(username: str) -> Dict[str, Any]:
    return {
        "username": username,
        "name": None,
        "publicRepos": 0,
        "followers": 0,
        "following": 0,
        "profileUrl": f"https://github.com/{username}",
        "avatarUrl": None,
        "bio": None,
        "location": None,
        "contributionData": None,
        "totalContributions": 0,
    }


def _api_headers(token: Optional[str]) -> Dict[str, str]:
    headers = {
        "Accept": "application/vnd.github+json",
        "User-Agent": "devstats",
    }
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


def contribution_calendar(events: Iterable[Dict[str, Any]], year: int) -> Dict[str, int]:
    """Count events per UTC day for ``year``; days without events are absent."""
    days: Counter = Counter()
    for event in events:
        created = event.get("created_at") if isinstance(event, dict) else None
        if not created:
            continue
        try:
            stamp = datetime.strptime(created, "%Y-%m-%dT%H:%M:%SZ")
        except ValueError:
            continue
        if stamp.year == year:
            days[stamp.date().isoformat()] += 1
    return dict(sorted(days.items()))


def fetch_github(
    username: str,
    client: UpstreamClient,
    *,
    token: Optional[str] = None,
    now: Clock = utcnow,
) -> Dict[str, Any]:
    username = clean_username(username, PLATFORM)
    headers = _api_headers(token)
    user = client.get_json(
        f"{GITHUB_API}/users/{username}",
        platform=PLATFORM,
        headers=headers,
        not_found_message="GitHub user not found",
    )

    tpl = github_template(username)
    tpl.update({
        "name": user.get("name"),
        "publicRepos": user.get("public_repos") or 0,
        "followers": user.get("followers") or 0,
        "following": user.get("following") or 0,
        "profileUrl": user.get("html_url") or tpl["profileUrl"],
        "avatarUrl": user.get("avatar_url"),
        "bio": user.get("bio"),
        "location": user.get("location"),
    })

    # Events are best effort; the profile above is what makes the call succeed.
    try:
        events = client.get_json(
            f"{GITHUB_API}/users/{username}/events/public",
            platform=PLATFORM,
            headers=headers,
            params={"per_page": EVENTS_PER_PAGE},
        )
    except StatsError as exc:
        logger.warning("GitHub events unavailable for %s: %s", username, exc.message)
        return tpl

    calendar = contribution_calendar(events if isinstance(events, list) else [], now().year)
    if calendar:
        tpl["contributionData"] = calendar
        tpl["totalContributions"] = sum(calendar.values())
    return tpl
