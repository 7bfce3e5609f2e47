from unittest.mock import MagicMock

import pytest

from devstats.config import Settings
from devstats.errors import ERROR, RATE_LIMITED, TIMEOUT, InvalidInput, NotFound, UpstreamUnavailable
from devstats.fetchers import PLATFORMS, build_fetchers

from .conftest import RECORD, make_response, mocked_fetchers


# ---------------------------------------------------
# Validation
# ---------------------------------------------------

@pytest.mark.parametrize("platform", PLATFORMS)
@pytest.mark.parametrize("query", ["", "?username=", "?username=%20%20", "?username=%09"])
def test_blank_username_is_rejected_before_any_call(make_client, platform, query) -> None:
    fetchers = mocked_fetchers()
    client = make_client(fetchers=fetchers)

    response = client.get(f"/stats/{platform}{query}")

    assert response.status_code == 400
    assert "required" in response.json()["message"]
    fetchers[platform].assert_not_called()


@pytest.mark.parametrize("platform", PLATFORMS)
def test_blank_username_never_reaches_upstream(make_client, settings, platform) -> None:
    client = make_client(fetchers=build_fetchers(settings))

    response = client.get(f"/stats/{platform}?username=%20")

    assert response.status_code == 400
    client.app.state.service.client.session.request.assert_not_called()


def test_malformed_username_is_rejected(make_client, settings) -> None:
    client = make_client(fetchers=build_fetchers(settings))

    response = client.get("/stats/github?username=a/b")

    assert response.status_code == 400
    assert response.json() == {"message": "GitHub username is malformed"}


def test_unknown_platform(make_client) -> None:
    response = make_client(fetchers=mocked_fetchers()).get("/stats/myspace?username=tom")
    assert response.status_code == 404
    assert response.json() == {"message": "Unknown platform."}


# ---------------------------------------------------
# Caching
# ---------------------------------------------------

def test_cached_record_skips_fetcher(make_client) -> None:
    fetchers = mocked_fetchers()
    client = make_client(fetchers=fetchers)

    first = client.get("/stats/codeforces?username=tourist")
    second = client.get("/stats/codeforces?username=tourist")

    assert first.status_code == second.status_code == 200
    assert second.json() == RECORD
    assert fetchers["codeforces"].call_count == 1


def test_surrounding_whitespace_shares_cache_entry(make_client) -> None:
    fetchers = mocked_fetchers()
    client = make_client(fetchers=fetchers)

    client.get("/stats/codeforces?username=tourist")
    client.get("/stats/codeforces?username=%20tourist%20")

    assert fetchers["codeforces"].call_count == 1


def test_expired_record_is_refetched(make_client, clock, settings) -> None:
    fetchers = mocked_fetchers()
    client = make_client(fetchers=fetchers)

    client.get("/stats/leetcode?username=alice")
    clock.advance(settings.cache_ttl - 1)
    client.get("/stats/leetcode?username=alice")
    assert fetchers["leetcode"].call_count == 1

    clock.advance(1)
    client.get("/stats/leetcode?username=alice")
    assert fetchers["leetcode"].call_count == 2


def test_failed_fetch_is_not_cached(make_client) -> None:
    fetch = MagicMock(side_effect=[UpstreamUnavailable("GitHub is unreachable"), dict(RECORD)])
    client = make_client(fetchers=mocked_fetchers(github=fetch))

    assert client.get("/stats/github?username=alice").status_code == 502
    assert client.get("/stats/github?username=alice").status_code == 200
    assert client.get("/stats/github?username=alice").status_code == 200
    assert fetch.call_count == 2


def test_platforms_do_not_share_cache_entries(make_client) -> None:
    fetchers = mocked_fetchers()
    client = make_client(fetchers=fetchers)

    client.get("/stats/github?username=alice")
    client.get("/stats/leetcode?username=alice")

    assert fetchers["github"].call_count == 1
    assert fetchers["leetcode"].call_count == 1


# ---------------------------------------------------
# Error mapping
# ---------------------------------------------------

@pytest.mark.parametrize(
    "error, status",
    [
        (InvalidInput("bad"), 400),
        (NotFound("GitHub user not found"), 404),
        (UpstreamUnavailable("limited", cause=RATE_LIMITED), 503),
        (UpstreamUnavailable("slow", cause=TIMEOUT), 504),
        (UpstreamUnavailable("broken", cause=ERROR), 502),
    ],
)
def test_fetcher_errors_map_to_status(make_client, error, status) -> None:
    client = make_client(fetchers=mocked_fetchers(github=MagicMock(side_effect=error)))

    response = client.get("/stats/github?username=alice")

    assert response.status_code == status
    assert response.json() == {"message": error.message}


def test_unexpected_error_is_500_without_details(make_client) -> None:
    fetch = MagicMock(side_effect=KeyError("matchedUser"))
    client = make_client(fetchers=mocked_fetchers(leetcode=fetch), raise_server_exceptions=False)

    response = client.get("/stats/leetcode?username=alice")

    assert response.status_code == 500
    assert response.json() == {"message": "Internal server error"}


def test_rate_limit_rejects_excess_requests(make_client) -> None:
    limited = Settings(DEVSTATS_RATE_LIMIT=2, DEVSTATS_RATE_PERIOD=60)
    client = make_client(fetchers=mocked_fetchers(), app_settings=limited)

    assert client.get("/stats/github?username=a").status_code == 200
    assert client.get("/stats/github?username=b").status_code == 200
    response = client.get("/stats/github?username=c")

    assert response.status_code == 429
    assert "Rate limit exceeded" in response.json()["message"]


# ---------------------------------------------------
# End to end against mocked upstreams
# ---------------------------------------------------

def test_github_end_to_end(make_client, settings) -> None:
    client = make_client(
        routes={
            "https://api.github.com/users/torvalds": make_response(json_body={"login": "torvalds", "public_repos": 10, "followers": 5}),
            "https://api.github.com/users/torvalds/events/public": make_response(json_body=[]),
        },
        fetchers=build_fetchers(settings),
    )

    response = client.get("/stats/github?username=torvalds")

    assert response.status_code == 200
    body = response.json()
    assert body["username"] == "torvalds"
    assert body["publicRepos"] == 10
    assert body["followers"] == 5
    assert body["contributionData"] is None
    assert body["totalContributions"] == 0


def test_codeforces_end_to_end(make_client, settings) -> None:
    client = make_client(
        routes={
            "https://codeforces.com/api/user.info": make_response(
                json_body={"status": "OK", "result": [{"handle": "tourist", "contribution": 0}]}
            ),
        },
        fetchers=build_fetchers(settings),
    )

    response = client.get("/stats/codeforces?username=tourist")

    assert response.status_code == 200
    assert response.json()["rating"] == "Unrated"


def test_leetcode_calendar_failure_still_returns_200(make_client, settings) -> None:
    def graphql(method, url, **kwargs):
        if "userProfileCalendar" in kwargs["json"]["query"]:
            return make_response(500, text="internal error")
        return make_response(json_body={"data": {"matchedUser": {"username": "alice", "profile": {"ranking": 7}}}})

    client = make_client(
        routes={
            "https://leetcode-stats-api.herokuapp.com/alice": make_response(
                json_body={"status": "success", "totalSolved": 3, "easySolved": 2, "mediumSolved": 1, "hardSolved": 0}
            ),
            "https://leetcode.com/graphql": graphql,
        },
        fetchers=build_fetchers(settings),
    )

    response = client.get("/stats/leetcode?username=alice")

    assert response.status_code == 200
    body = response.json()
    assert body["totalSolved"] == 3
    assert body["easySolved"] == 2
    assert body["submissionData"] is None


def test_leetcode_graphql_outage_is_502_not_404(make_client, settings) -> None:
    client = make_client(
        routes={
            "https://leetcode-stats-api.herokuapp.com/alice": make_response(429, text="Too Many Requests"),
            "https://leetcode.com/graphql": make_response(
                json_body={"errors": [{"message": "Internal server error"}], "data": None}
            ),
        },
        fetchers=build_fetchers(settings),
    )

    response = client.get("/stats/leetcode?username=alice")

    assert response.status_code == 502
    assert response.json()["message"] != "LeetCode user not found"


def test_hackerrank_unparseable_page_still_returns_200(make_client, settings) -> None:
    client = make_client(
        routes={"https://www.hackerrank.com/jdoe": make_response(text="<html><body>loading...</body></html>")},
        fetchers=build_fetchers(settings),
    )

    response = client.get("/stats/hackerrank?username=jdoe")

    assert response.status_code == 200
    assert response.json()["totalSolved"] == 0
    assert response.json()["rank"] == "N/A"


def test_hackerrank_missing_user_is_404(make_client, settings) -> None:
    client = make_client(
        routes={"https://www.hackerrank.com/ghost": make_response(404, text="<html>Not found</html>")},
        fetchers=build_fetchers(settings),
    )

    response = client.get("/stats/hackerrank?username=ghost")

    assert response.status_code == 404
    assert response.json() == {"message": "HackerRank user not found"}
    assert "<html>" not in response.text


# ---------------------------------------------------
# Health and cache admin
# ---------------------------------------------------

def test_health_reports_cache_backend(make_client) -> None:
    response = make_client(fetchers=mocked_fetchers()).get("/health")
    assert response.json() == {"status": "ok", "cache": "memory"}


def test_clear_cache_forces_refetch(make_client) -> None:
    fetchers = mocked_fetchers()
    client = make_client(fetchers=fetchers)

    client.get("/stats/github?username=alice")
    assert client.post("/admin/clear_cache").json() == {"cache": "cleared"}
    client.get("/stats/github?username=alice")

    assert fetchers["github"].call_count == 2


def test_invalidate_single_entry(make_client) -> None:
    fetchers = mocked_fetchers()
    client = make_client(fetchers=fetchers)

    client.get("/stats/github?username=alice")
    client.get("/stats/github?username=bob")
    assert client.delete("/admin/cache/github?username=alice").json() == {"deleted": True}
    client.get("/stats/github?username=alice")
    client.get("/stats/github?username=bob")

    assert fetchers["github"].call_count == 3
