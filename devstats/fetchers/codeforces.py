from typing import Any, Dict

from ..errors import RATE_LIMITED, NotFound, UpstreamUnavailable
from ..upstream import UpstreamClient, decode_json
from .common import clean_username

PLATFORM = "Codeforces"
USER_INFO_URL = "https://codeforces.com/api/user.info"

# New accounts have no rating at all; that is a rank, not missing data.
UNRATED = "Unrated"


def codeforces_template(handle: str) -> Dict[str, Any]:
    return {
        "handle": handle,
        "rating": UNRATED,
        "maxRating": "N/A",
        "rank": "N/A",
        "maxRank": "N/A",
        "contribution": 0,
        "avatar": None,
    }


def fetch_codeforces(username: str, client: UpstreamClient) -> Dict[str, Any]:
    username = clean_username(username, PLATFORM)
    # Codeforces reports unknown handles as HTTP 400 with status FAILED and
    # answers 503 once the call limit is exceeded.
    r = client.get(
        USER_INFO_URL,
        platform=PLATFORM,
        params={"handles": username},
        allow_statuses=(400,),
        rate_limit_statuses=(429, 503),
    )
    j = decode_json(r, PLATFORM)
    if not isinstance(j, dict):
        raise UpstreamUnavailable("Codeforces returned a malformed response")

    if j.get("status") != "OK":
        comment = (j.get("comment") or "").lower()
        if "not found" in comment:
            raise NotFound("Codeforces user not found")
        if "limit exceeded" in comment:
            raise UpstreamUnavailable("Codeforces rate limit exceeded, try again later", cause=RATE_LIMITED)
        raise UpstreamUnavailable("Codeforces request failed")

    result = j.get("result") or []
    if not result:
        raise NotFound("Codeforces user not found")
    u = result[0]

    tpl = codeforces_template(u.get("handle") or username)
    if u.get("rating") is not None:
        tpl["rating"] = u["rating"]
    if u.get("maxRating") is not None:
        tpl["maxRating"] = u["maxRating"]
    tpl["rank"] = u.get("rank") or tpl["rank"]
    tpl["maxRank"] = u.get("maxRank") or tpl["maxRank"]
    tpl["contribution"] = u.get("contribution", 0)
    tpl["avatar"] = u.get("titlePhoto") or u.get("avatar")
    return tpl
