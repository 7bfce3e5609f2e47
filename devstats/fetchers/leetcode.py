"""
LeetCode fetcher.

LeetCode has no official public API. A record is assembled from three
independent lookups that run side by side:
  - profile: public GraphQL profile (avatar, real name, ranking)
  - solved:  the leetcode-stats-api mirror, falling back to GraphQL submit stats
  - calendar: GraphQL submission calendar for the current year
A lookup that fails leaves its fields at the template defaults. The call only
fails when all three do.
"""
import json
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Tuple

from ..errors import RATE_LIMITED, NotFound, StatsError, UpstreamUnavailable
from ..upstream import UpstreamClient
from .common import Clock, clean_username, utcnow

logger = logging.getLogger(__name__)

PLATFORM = "LeetCode"
GRAPHQL_URL = "https://leetcode.com/graphql"
DEFAULT_STATS_API = "https://leetcode-stats-api.herokuapp.com"

PROFILE_QUERY = """
query userPublicProfile($username: String!) {
    matchedUser(username: $username) {
        username
        profile {
            userAvatar
            realName
            aboutMe
            location
            ranking
        }
    }
}
"""

SOLVED_QUERY = """
query userProblemsSolved($username: String!) {
    matchedUser(username: $username) {
        submitStatsGlobal {
            acSubmissionNum {
                difficulty
                count
            }
        }
    }
}
"""

CALENDAR_QUERY = """
query userProfileCalendar($username: String!, $year: Int) {
    matchedUser(username: $username) {
        userCalendar(year: $year) {
            submissionCalendar
        }
    }
}
"""


def leetcode_template(username: str) -> Dict[str, Any]:
    return {
        "username": username,
        "totalSolved": 0,
        "easySolved": 0,
        "mediumSolved": 0,
        "hardSolved": 0,
        "ranking": None,
        "avatar": None,
        "realName": None,
        "aboutMe": None,
        "location": None,
        "submissionData": None,
        "totalSubmissions": 0,
    }


def _graphql(client: UpstreamClient, username: str, query: str, **variables: Any) -> Dict[str, Any]:
    """Run one query and return ``matchedUser``.

    Only a null ``matchedUser`` or a "does not exist" error means NotFound; any
    other GraphQL error is an upstream failure.
    """
    j = client.post_json(
        GRAPHQL_URL,
        platform=PLATFORM,
        headers={
            "Content-Type": "application/json",
            "Origin": "https://leetcode.com",
            "Referer": f"https://leetcode.com/{username}/",
        },
        json={"query": query, "variables": {"username": username, **variables}},
    )
    data = j.get("data") if isinstance(j, dict) else None
    mu = data.get("matchedUser") if isinstance(data, dict) else None
    if isinstance(mu, dict):
        return mu
    errors = j.get("errors") if isinstance(j, dict) else None
    if errors:
        if not isinstance(errors, list):
            errors = [errors]
        detail = " ".join(str(e.get("message") or "") for e in errors if isinstance(e, dict)).lower()
        if "does not exist" in detail:
            raise NotFound("LeetCode user not found")
        if "too many requests" in detail or "rate limit" in detail:
            raise UpstreamUnavailable("LeetCode rate limit exceeded", cause=RATE_LIMITED)
        raise UpstreamUnavailable("LeetCode GraphQL query failed")
    if isinstance(data, dict) and "matchedUser" in data:
        raise NotFound("LeetCode user not found")
    raise UpstreamUnavailable("LeetCode returned a malformed response")


def _to_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


# ---------------------------------------------------
# Sub-lookups
# ---------------------------------------------------

def fetch_profile(username: str, client: UpstreamClient) -> Dict[str, Any]:
    mu = _graphql(client, username, PROFILE_QUERY)
    prof = mu.get("profile") or {}
    return {
        "username": mu.get("username") or username,
        "avatar": prof.get("userAvatar"),
        "realName": prof.get("realName") or None,
        "aboutMe": prof.get("aboutMe") or None,
        "location": prof.get("location") or None,
        "ranking": prof.get("ranking"),
    }


def _solved_from_stats_api(username: str, client: UpstreamClient, stats_api: str) -> Dict[str, Any]:
    j = client.get_json(
        f"{stats_api.rstrip('/')}/{username}",
        platform=PLATFORM,
        not_found_message="LeetCode user not found",
    )
    if not isinstance(j, dict):
        raise UpstreamUnavailable("LeetCode stats mirror returned a malformed response")
    if j.get("status") != "success":
        if "not exist" in (j.get("message") or "").lower():
            raise NotFound("LeetCode user not found")
        raise UpstreamUnavailable("LeetCode stats mirror failed")
    solved = {
        "totalSolved": _to_int(j.get("totalSolved")),
        "easySolved": _to_int(j.get("easySolved")),
        "mediumSolved": _to_int(j.get("mediumSolved")),
        "hardSolved": _to_int(j.get("hardSolved")),
    }
    if j.get("ranking") is not None:
        solved["ranking"] = j["ranking"]
    return solved


def _solved_from_graphql(username: str, client: UpstreamClient) -> Dict[str, Any]:
    mu = _graphql(client, username, SOLVED_QUERY)
    rows = (mu.get("submitStatsGlobal") or {}).get("acSubmissionNum") or []
    solved = {"totalSolved": 0, "easySolved": 0, "mediumSolved": 0, "hardSolved": 0}
    for row in rows:
        if not isinstance(row, dict):
            continue
        diff = (row.get("difficulty") or "").lower()
        count = _to_int(row.get("count"))
        if diff == "all":
            solved["totalSolved"] = count
        elif diff == "easy":
            solved["easySolved"] = count
        elif diff == "medium":
            solved["mediumSolved"] = count
        elif diff == "hard":
            solved["hardSolved"] = count
    return solved


def fetch_solved(username: str, client: UpstreamClient, stats_api: str = DEFAULT_STATS_API) -> Dict[str, Any]:
    try:
        return _solved_from_stats_api(username, client, stats_api)
    except StatsError as primary:
        logger.info("LeetCode stats mirror failed for %s (%s), trying GraphQL", username, primary.message)
        try:
            return _solved_from_graphql(username, client)
        except StatsError as fallback:
            if isinstance(primary, NotFound) and not isinstance(fallback, NotFound):
                raise primary
            raise


def parse_submission_calendar(raw: Any, year: int) -> Dict[str, int]:
    """Keep positive day counts of ``year`` from a ``{timestamp: count}`` calendar."""
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            return {}
    if not isinstance(raw, dict):
        return {}
    out = {}
    for stamp, count in raw.items():
        try:
            day = datetime.fromtimestamp(int(stamp), tz=timezone.utc)
        except (TypeError, ValueError, OverflowError, OSError):
            continue
        n = _to_int(count)
        if day.year == year and n > 0:
            out[str(int(stamp))] = n
    return dict(sorted(out.items(), key=lambda kv: int(kv[0])))


def fetch_calendar(username: str, client: UpstreamClient, year: int) -> Dict[str, Any]:
    mu = _graphql(client, username, CALENDAR_QUERY, year=year)
    raw = (mu.get("userCalendar") or {}).get("submissionCalendar")
    calendar = parse_submission_calendar(raw, year)
    return {
        "submissionData": calendar or None,
        "totalSubmissions": sum(calendar.values()),
    }


# ---------------------------------------------------
# Fetcher
# ---------------------------------------------------

def fetch_leetcode(
    username: str,
    client: UpstreamClient,
    *,
    stats_api: str = DEFAULT_STATS_API,
    now: Clock = utcnow,
) -> Dict[str, Any]:
    username = clean_username(username, PLATFORM)
    year = now().year
    lookups: List[Tuple[str, Callable[[], Dict[str, Any]]]] = [
        ("profile", lambda: fetch_profile(username, client)),
        ("solved", lambda: fetch_solved(username, client, stats_api)),
        ("calendar", lambda: fetch_calendar(username, client, year)),
    ]

    with ThreadPoolExecutor(max_workers=len(lookups)) as pool:
        futures = [(name, pool.submit(fn)) for name, fn in lookups]

    tpl = leetcode_template(username)
    failures: List[StatsError] = []
    for name, future in futures:
        try:
            part = future.result()
        except StatsError as exc:
            logger.warning("LeetCode %s lookup failed for %s: %s", name, username, exc.message)
            failures.append(exc)
            continue
        # Profile ranking wins over the mirror's when both are present
        if name == "solved" and tpl["ranking"] is not None:
            part.pop("ranking", None)
        tpl.update(part)

    if len(failures) == len(lookups):
        if any(isinstance(exc, NotFound) for exc in failures):
            raise NotFound("LeetCode user not found")
        raise failures[0]
    return tpl
