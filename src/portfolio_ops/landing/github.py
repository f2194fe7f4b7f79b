"""
portfolio_ops.landing.github

GitHub activity client for the landing page.

Responsibilities:
- Fetch pinned repositories, public events and the owner's repository list (REST).
- Fetch the contribution calendar (GraphQL) when a token is configured.
- Derive the heatmap, streaks, weekly commit count and recent pushes.
- Cache every upstream response in-process for `github_cache_seconds`.

GitHub being unavailable never fails the landing page; each widget falls back to a
neutral value instead.
"""

from __future__ import annotations

import asyncio
import time
from datetime import UTC, date, datetime, timedelta
from typing import Any
from urllib.parse import quote

import httpx

from portfolio_ops.landing.data import FALLBACK_LANGUAGES
from portfolio_ops.observability.logging import get_logger
from portfolio_ops.settings import Settings

log = get_logger(__name__)

HEATMAP_WEEKS = 38
EVENT_PAGES = (1, 2)
TOP_LANGUAGES = 4
RECENT_PUSHES = 3

CONTRIBUTION_LEVELS: dict[str, int] = {
    "NONE": 0,
    "FIRST_QUARTILE": 1,
    "SECOND_QUARTILE": 2,
    "THIRD_QUARTILE": 3,
    "FOURTH_QUARTILE": 4,
}

CONTRIBUTIONS_QUERY = """
query($login: String!, $from: DateTime!, $to: DateTime!) {
  user(login: $login) {
    contributionsCollection(from: $from, to: $to) {
      totalCommitContributions
      contributionCalendar {
        weeks {
          contributionDays { date contributionCount contributionLevel }
        }
      }
    }
  }
}
"""


def today_utc() -> date:
    return datetime.now(UTC).date()


def format_compact(value: float) -> str:
    for threshold, suffix in ((1_000_000_000, "B"), (1_000_000, "M"), (1_000, "K")):
        if abs(value) >= threshold:
            return f"{value / threshold:.1f}".rstrip("0").rstrip(".") + suffix
    return f"{value:g}"


def format_relative(iso_date: str, *, now: datetime | None = None) -> str:
    created = datetime.fromisoformat(iso_date.replace("Z", "+00:00"))
    elapsed = ((now or datetime.now(UTC)) - created).total_seconds()
    if elapsed < 3600:
        return f"{max(1, int(elapsed // 60))} min ago"
    if elapsed < 86400:
        return f"{max(1, int(elapsed // 3600))} h ago"
    return f"{max(1, int(elapsed // 86400))} d ago"


def _quartile_level(count: int, max_value: int) -> int:
    if count <= 0 or max_value <= 0:
        return 0
    ratio = count / max_value
    if ratio <= 0.25:
        return 1
    if ratio <= 0.5:
        return 2
    if ratio <= 0.75:
        return 3
    return 4


def push_daily_counts(events: list[dict[str, Any]]) -> dict[str, int]:
    counts: dict[str, int] = {}
    for event in events:
        if event.get("type") != "PushEvent":
            continue
        day = str(event.get("created_at", ""))[:10]
        if not day:
            continue
        counts[day] = counts.get(day, 0) + ((event.get("payload") or {}).get("size") or 1)
    return counts


def fallback_heatmap(daily_counts: dict[str, int], *, today: date) -> list[list[int]]:
    """Weeks x 7 levels for the last HEATMAP_WEEKS weeks ending today."""
    total_days = HEATMAP_WEEKS * 7
    start = today - timedelta(days=total_days - 1)
    values = [
        daily_counts.get((start + timedelta(days=i)).isoformat(), 0) for i in range(total_days)
    ]
    max_value = max(values, default=0)
    levels = [_quartile_level(v, max_value) for v in values]
    return [levels[w * 7 : w * 7 + 7] for w in range(HEATMAP_WEEKS)]


def calculate_streaks(daily_counts: dict[str, int], *, today: date) -> tuple[int, int]:
    """Return (current, best) streaks of consecutive active days."""
    best = 0
    running = 0
    previous: date | None = None
    for key in sorted(daily_counts):
        day = date.fromisoformat(key)
        if daily_counts[key] <= 0:
            running = 0
        elif previous is not None and previous + timedelta(days=1) == day:
            running += 1
        else:
            running = 1
        best = max(best, running)
        previous = day

    # Today may simply not have activity yet; the streak then counts from yesterday.
    cursor = today if daily_counts.get(today.isoformat(), 0) > 0 else today - timedelta(days=1)
    current = 0
    while daily_counts.get(cursor.isoformat(), 0) > 0:
        current += 1
        cursor -= timedelta(days=1)
    return current, best


def commits_last_7d(daily_counts: dict[str, int], *, today: date) -> int:
    return sum(daily_counts.get((today - timedelta(days=i)).isoformat(), 0) for i in range(7))


def _push_type(message: str) -> str:
    prefix = message.split(":")[0].strip().lower()
    return prefix[:12] if prefix else "update"


def recent_pushes(
    events: list[dict[str, Any]], *, username: str, now: datetime | None = None
) -> list[dict[str, Any]]:
    commits: dict[str, dict[str, str]] = {}
    for event in events:
        if event.get("type") != "PushEvent":
            continue
        for commit in (event.get("payload") or {}).get("commits") or []:
            sha = commit.get("sha")
            if not sha or sha in commits:
                continue
            commits[sha] = {
                "message": (commit.get("message") or "").split("\n")[0] or "update repository",
                "repo": (event.get("repo") or {}).get("name", ""),
                "createdAt": event.get("created_at", ""),
            }

    if not commits:
        return [
            {
                "type": "update",
                "message": "No recent pushes available right now.",
                "repo": f"{username}/portfolio",
                "time": "n/a",
                "active": True,
            }
        ]

    return [
        {
            "type": _push_type(c["message"]),
            "message": c["message"],
            "repo": c["repo"],
            "time": format_relative(c["createdAt"], now=now),
            "active": i == 0,
        }
        for i, c in enumerate(list(commits.values())[:RECENT_PUSHES])
    ]


def language_breakdown(repos: list[dict[str, Any]]) -> list[dict[str, Any]]:
    totals: dict[str, int] = {}
    for repo in repos:
        if repo.get("fork") or not repo.get("language"):
            continue
        totals[repo["language"]] = totals.get(repo["language"], 0) + max(repo.get("size") or 0, 1)

    ranked = sorted(totals.items(), key=lambda kv: kv[1], reverse=True)[:TOP_LANGUAGES]
    top_total = sum(size for _, size in ranked)
    if not ranked or top_total == 0:
        return [dict(item) for item in FALLBACK_LANGUAGES]
    return [{"name": name, "share": size / top_total * 100} for name, size in ranked]


class GitHubActivityClient:
    def __init__(self, *, settings: Settings, http: httpx.AsyncClient) -> None:
        self._settings = settings
        self._http = http
        self._cache: dict[str, tuple[float, Any]] = {}

    @property
    def _username(self) -> str:
        return self._settings.github_username

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self._settings.github_token:
            headers["Authorization"] = f"Bearer {self._settings.github_token}"
        return headers

    def _cached(self, key: str) -> tuple[bool, Any]:
        hit = self._cache.get(key)
        if hit is None or hit[0] < time.monotonic():
            return False, None
        return True, hit[1]

    def _store(self, key: str, value: Any) -> Any:
        self._cache[key] = (time.monotonic() + self._settings.github_cache_seconds, value)
        return value

    async def _get_json(self, path: str) -> Any:
        found, value = self._cached(path)
        if found:
            return value
        url = f"{self._settings.github_api_base_url.rstrip('/')}{path}"
        try:
            r = await self._http.get(url, headers=self._headers())
        except httpx.HTTPError as e:
            log.warning("github_request_failed", path=path, error=str(e))
            return None
        if not r.is_success:
            log.warning("github_request_failed", path=path, status_code=r.status_code)
            return None
        return self._store(path, r.json())

    async def pinned_repositories(self) -> list[dict[str, Any]]:
        repos = await asyncio.gather(
            *(self._pinned(name) for name in self._settings.pinned_repos)
        )
        return list(repos)

    async def _pinned(self, name: str) -> dict[str, Any]:
        payload = await self._get_json(f"/repos/{self._username}/{quote(name, safe='')}")
        if not payload or payload.get("private"):
            return {
                "name": name,
                "description": "Repository available on GitHub.",
                "htmlUrl": f"https://github.com/{self._username}/{name}",
                "homepage": None,
                "stars": 0,
                "forks": 0,
                "language": "Unknown",
                "updatedAt": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            }
        return {
            "name": payload.get("name", name),
            "description": payload.get("description") or "Repository available on GitHub.",
            "htmlUrl": payload.get("html_url"),
            "homepage": payload.get("homepage") or None,
            "stars": payload.get("stargazers_count", 0),
            "forks": payload.get("forks_count", 0),
            "language": payload.get("language") or "Unknown",
            "updatedAt": payload.get("updated_at"),
        }

    async def _events(self) -> list[dict[str, Any]]:
        pages = await asyncio.gather(
            *(
                self._get_json(f"/users/{self._username}/events/public?per_page=100&page={page}")
                for page in EVENT_PAGES
            )
        )
        return [event for page in pages for event in (page or [])]

    async def _repos(self) -> list[dict[str, Any]]:
        path = f"/users/{self._username}/repos?per_page=100&type=owner&sort=updated"
        return await self._get_json(path) or []

    async def _contribution_calendar(self) -> tuple[int, list[list[int]], dict[str, int]] | None:
        if not self._settings.github_token:
            return None
        found, cached = self._cached("graphql:contributions")
        if found:
            return cached

        now = datetime.now(UTC)
        body = {
            "query": CONTRIBUTIONS_QUERY,
            "variables": {
                "login": self._username,
                "from": (now - timedelta(days=365)).isoformat(),
                "to": now.isoformat(),
            },
        }
        url = f"{self._settings.github_api_base_url.rstrip('/')}/graphql"
        try:
            r = await self._http.post(url, headers=self._headers(), json=body)
        except httpx.HTTPError as e:
            log.warning("github_graphql_failed", error=str(e))
            return None
        if not r.is_success:
            log.warning("github_graphql_failed", status_code=r.status_code)
            return None

        collection = ((r.json().get("data") or {}).get("user") or {}).get(
            "contributionsCollection"
        ) or {}
        weeks = (collection.get("contributionCalendar") or {}).get("weeks") or []
        if not weeks:
            return None

        daily_counts: dict[str, int] = {}
        heatmap: list[list[int]] = []
        for week in weeks[-HEATMAP_WEEKS:]:
            row = []
            for day in week.get("contributionDays") or []:
                daily_counts[day["date"]] = day.get("contributionCount", 0)
                row.append(CONTRIBUTION_LEVELS.get(day.get("contributionLevel", "NONE"), 0))
            heatmap.append(row)
        total = collection.get("totalCommitContributions") or sum(daily_counts.values())
        return self._store("graphql:contributions", (total, heatmap, daily_counts))

    async def engineering_activity(self) -> dict[str, Any]:
        events, repos = await asyncio.gather(self._events(), self._repos())
        today = today_utc()

        daily_counts = push_daily_counts(events)
        total_commits = sum(daily_counts.values())
        heatmap = fallback_heatmap(daily_counts, today=today)
        calendar = await self._contribution_calendar()
        if calendar is not None:
            total_commits, heatmap, daily_counts = calendar

        current, best = calculate_streaks(daily_counts, today=today)
        last_7d = commits_last_7d(daily_counts, today=today)
        last_updated = (
            events[0].get("created_at")
            if events
            else datetime.now(UTC).isoformat().replace("+00:00", "Z")
        )
        return {
            "keyStats": [
                {
                    "label": "Commits (12m)" if calendar is not None else "Recent commits",
                    "value": format_compact(total_commits),
                    "detail": f"{format_compact(last_7d)} in last 7d",
                },
                {
                    "label": "Current streak",
                    "value": str(current),
                    "suffix": "days",
                    "detail": f"Personal best: {best} days",
                },
            ],
            "currentStreak": current,
            "bestStreak": best,
            "commitsLast7d": last_7d,
            "languageBreakdown": language_breakdown(repos),
            "recentPushes": recent_pushes(events, username=self._username),
            "contributionHeatmap": heatmap,
            "lastUpdatedAt": last_updated,
        }


# --- Module Notes -----------------------------------------------------------
# The cache is per process and keyed by request path; a restart refreshes it.
