from __future__ import annotations

import asyncio
from typing import Any

from fastapi import APIRouter, Depends, Query

from portfolio_ops.api.deps import github_client_dep
from portfolio_ops.landing.data import FEATURED_DEPLOYMENTS, PROFILE, SERVICES, STACK_GROUPS
from portfolio_ops.landing.github import GitHubActivityClient

router = APIRouter(tags=["landing"])


@router.get("/")
async def landing(
    auth: str | None = None,
    next_path: str | None = Query(default=None, alias="next"),
    github: GitHubActivityClient = Depends(github_client_dep),
) -> dict[str, Any]:
    pinned, activity = await asyncio.gather(
        github.pinned_repositories(), github.engineering_activity()
    )
    return {
        "profile": PROFILE,
        "services": SERVICES,
        "stackGroups": STACK_GROUPS,
        "featuredDeployments": FEATURED_DEPLOYMENTS,
        "pinnedRepositories": pinned,
        "activity": activity,
        # Set when the gate bounced a page load here; the client opens the sign-in modal.
        "authPrompt": {"state": auth, "next": next_path} if auth else None,
    }
