"""
tests.test_github_activity

Landing page widgets: pure derivations and the cached GitHub client.
"""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta
from typing import Any

import httpx
import pytest

from conftest import make_settings
from portfolio_ops.landing.data import FALLBACK_LANGUAGES
from portfolio_ops.landing.github import (
    HEATMAP_WEEKS,
    GitHubActivityClient,
    calculate_streaks,
    commits_last_7d,
    fallback_heatmap,
    format_compact,
    format_relative,
    language_breakdown,
    push_daily_counts,
    recent_pushes,
)

TODAY = date(2026, 10, 18)


def _day(offset: int) -> str:
    return (TODAY - timedelta(days=offset)).isoformat()


def _push(day: str, *commits: tuple[str, str], size: int | None = None) -> dict[str, Any]:
    return {
        "type": "PushEvent",
        "created_at": f"{day}T10:00:00Z",
        "repo": {"name": "davalbra/profile"},
        "payload": {
            "size": size if size is not None else len(commits),
            "commits": [{"sha": sha, "message": message} for sha, message in commits],
        },
    }


def test_format_helpers() -> None:
    assert format_compact(5) == "5"
    assert format_compact(1000) == "1K"
    assert format_compact(1234) == "1.2K"
    assert format_compact(2_500_000) == "2.5M"

    now = datetime(2026, 10, 18, 12, 0, tzinfo=UTC)
    assert format_relative("2026-10-18T11:59:30Z", now=now) == "1 min ago"
    assert format_relative("2026-10-18T10:00:00Z", now=now) == "2 h ago"
    assert format_relative("2026-10-15T12:00:00Z", now=now) == "3 d ago"


def test_push_counts_streaks_and_week_total() -> None:
    events = [
        _push(_day(1), ("a", "fix: one"), ("b", "fix: two")),
        _push(_day(2), ("c", "feat: three")),
        {"type": "WatchEvent", "created_at": f"{_day(1)}T09:00:00Z"},
        *(_push(_day(offset), ("x", "chore")) for offset in (10, 11, 12)),
    ]
    counts = push_daily_counts(events)
    assert counts[_day(1)] == 2
    assert counts[_day(2)] == 1

    # No activity yet today: the current streak counts back from yesterday.
    assert calculate_streaks(counts, today=TODAY) == (2, 3)
    assert commits_last_7d(counts, today=TODAY) == 3
    assert calculate_streaks({}, today=TODAY) == (0, 0)


def test_fallback_heatmap_levels() -> None:
    heatmap = fallback_heatmap({_day(0): 4, _day(1): 1, _day(2): 3}, today=TODAY)
    assert len(heatmap) == HEATMAP_WEEKS
    assert all(len(week) == 7 for week in heatmap)
    assert heatmap[-1][-3:] == [3, 1, 4]
    assert sum(map(sum, heatmap)) == 8


def test_language_breakdown() -> None:
    repos = [
        {"language": "Python", "size": 300},
        {"language": "TypeScript", "size": 100},
        {"language": "Go", "size": 5000, "fork": True},
        {"language": None, "size": 10},
    ]
    assert language_breakdown(repos) == [
        {"name": "Python", "share": 75.0},
        {"name": "TypeScript", "share": 25.0},
    ]
    assert language_breakdown([]) == [dict(item) for item in FALLBACK_LANGUAGES]


def test_recent_pushes_dedupes_commits() -> None:
    events = [
        _push("2026-10-18", ("a", "feat: add lineage view\n\nlong body"), ("b", "fix: typo")),
        _push("2026-10-17", ("a", "feat: add lineage view"), ("c", "docs")),
        _push("2026-10-16", ("d", "refactor: storage")),
    ]
    pushes = recent_pushes(
        events, username="davalbra", now=datetime(2026, 10, 18, 12, 0, tzinfo=UTC)
    )
    assert [p["message"] for p in pushes] == ["feat: add lineage view", "fix: typo", "docs"]
    assert [p["type"] for p in pushes] == ["feat", "fix", "docs"]
    assert pushes[0]["time"] == "2 h ago"
    assert [p["active"] for p in pushes] == [True, False, False]

    (fallback,) = recent_pushes([], username="davalbra")
    assert fallback["repo"] == "davalbra/portfolio"


class GitHubStub:
    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/repos/davalbra/profile":
            return httpx.Response(
                200,
                json={
                    "name": "profile",
                    "description": "Portfolio",
                    "html_url": "https://github.com/davalbra/profile",
                    "stargazers_count": 7,
                    "forks_count": 1,
                    "language": "TypeScript",
                    "updated_at": "2026-10-01T00:00:00Z",
                },
            )
        if path == "/repos/davalbra/lynxInit":
            return httpx.Response(200, json={"name": "lynxInit", "private": True})
        if path == "/users/davalbra/events/public":
            if request.url.params.get("page") == "1":
                return httpx.Response(200, json=[_push("2026-10-17", ("a", "feat: x"))])
            return httpx.Response(200, json=[])
        if path == "/users/davalbra/repos":
            return httpx.Response(200, json=[{"language": "Python", "size": 10}])
        if path == "/graphql":
            weeks = [
                {
                    "contributionDays": [
                        {"date": "2026-10-17", "contributionCount": 5,
                         "contributionLevel": "FOURTH_QUARTILE"},
                        {"date": "2026-10-18", "contributionCount": 0,
                         "contributionLevel": "NONE"},
                    ]
                }
            ]
            return httpx.Response(
                200,
                json={
                    "data": {
                        "user": {
                            "contributionsCollection": {
                                "totalCommitContributions": 1234,
                                "contributionCalendar": {"weeks": weeks},
                            }
                        }
                    }
                },
            )
        return httpx.Response(404, json={"message": "Not Found"})


@pytest.mark.asyncio
async def test_pinned_repositories_fall_back_and_cache() -> None:
    stub = GitHubStub()
    async with httpx.AsyncClient(transport=httpx.MockTransport(stub)) as http:
        client = GitHubActivityClient(settings=make_settings(), http=http)
        repos = await client.pinned_repositories()
        fetched = len(stub.requests)
        await client.pinned_repositories()

    by_name = {repo["name"]: repo for repo in repos}
    assert by_name["profile"]["stars"] == 7
    assert by_name["profile"]["language"] == "TypeScript"
    # Private and missing repositories get a neutral card.
    assert by_name["lynxInit"]["stars"] == 0
    assert by_name["lynxInit"]["htmlUrl"] == "https://github.com/davalbra/lynxInit"
    assert by_name["davalbra"]["description"] == "Repository available on GitHub."
    # Failed lookups are not cached; successful ones are.
    assert len(stub.requests) - fetched == 2


@pytest.mark.asyncio
async def test_activity_without_token_uses_push_events() -> None:
    stub = GitHubStub()
    async with httpx.AsyncClient(transport=httpx.MockTransport(stub)) as http:
        client = GitHubActivityClient(settings=make_settings(), http=http)
        activity = await client.engineering_activity()

    assert not [r for r in stub.requests if r.url.path == "/graphql"]
    assert activity["keyStats"][0]["label"] == "Recent commits"
    assert activity["languageBreakdown"] == [{"name": "Python", "share": 100.0}]
    assert activity["recentPushes"][0]["message"] == "feat: x"
    assert activity["lastUpdatedAt"] == "2026-10-17T10:00:00Z"
    assert len(activity["contributionHeatmap"]) == HEATMAP_WEEKS


@pytest.mark.asyncio
async def test_activity_with_token_uses_contribution_calendar() -> None:
    stub = GitHubStub()
    settings = make_settings(github_token="ghp_test")
    async with httpx.AsyncClient(transport=httpx.MockTransport(stub)) as http:
        client = GitHubActivityClient(settings=settings, http=http)
        activity = await client.engineering_activity()

    graphql = [r for r in stub.requests if r.url.path == "/graphql"]
    assert len(graphql) == 1
    assert graphql[0].headers["authorization"] == "Bearer ghp_test"
    assert activity["keyStats"][0] == {
        "label": "Commits (12m)",
        "value": "1.2K",
        "detail": activity["keyStats"][0]["detail"],
    }
    assert activity["contributionHeatmap"] == [[4, 0]]
