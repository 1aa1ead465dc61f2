"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Feature-level video calls routed through the request orchestrator.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone

from ..runtime.orchestrator import OrchestratedRequest, RequestOrchestrator
from ..settings import FeatureTTLs
from ..types import JSONObject, JSONValue, OrchestratorResponse

logger = logging.getLogger("quotashield.services.videos")

CATEGORY_KEYWORDS: dict[str, str] = {
    "education": "educational learning tutorial lesson",
    "entertainment": "fun funny cartoon animation",
    "science": "science experiment STEM physics chemistry biology",
    "music": "music song nursery rhyme dance",
    "sports": "sports exercise fitness physical activity",
    "arts": "art craft drawing painting creative",
    "stories": "story book reading fairy tale bedtime",
}

_FILTER_KEYS = ("duration", "sortBy", "uploadDate")


def age_group(age: int) -> str:
    if age <= 5:
        return "preschool"
    if age <= 8:
        return "elementary"
    if age <= 12:
        return "middle grade"
    return "teen"


def _invalid(message: str) -> OrchestratorResponse:
    return OrchestratorResponse(
        error="Invalid request",
        message=message,
        status=400,
        error_kind="invalid_request",
    )


def _search_params(
    query: str,
    max_results: int,
    page_token: str | None,
    filters: Mapping[str, str | None] | None,
) -> dict[str, JSONValue]:
    params: dict[str, JSONValue] = {"q": query, "maxResults": max_results}
    if page_token:
        params["pageToken"] = page_token
    for name in _FILTER_KEYS:
        value = (filters or {}).get(name)
        if value and value != "any":
            params[name] = value
    return params


class VideoSearchService:
    """Search, detail and recommendation calls with per-feature cache lifetimes."""

    def __init__(
        self,
        orchestrator: RequestOrchestrator,
        ttls: FeatureTTLs | None = None,
    ) -> None:
        self._orchestrator = orchestrator
        self.ttls = ttls or FeatureTTLs()

    async def search_videos(
        self,
        query: str,
        identity: str | None,
        *,
        max_results: int = 8,
        page_token: str | None = None,
        filters: Mapping[str, str | None] | None = None,
    ) -> OrchestratorResponse:
        query = (query or "").strip()
        if not query:
            return _invalid("Search query is required")
        return await self._orchestrator.execute(
            OrchestratedRequest(
                operation="search",
                params=_search_params(query, max_results, page_token, filters),
                identity=identity,
                cache_ttl_s=self.ttls.search_s,
                resource="/api/youtube/search",
                throttle="videos",
            )
        )

    async def get_video_details(
        self,
        video_ids: Iterable[str],
        identity: str | None,
    ) -> OrchestratorResponse:
        ids = sorted({str(video_id).strip() for video_id in video_ids if str(video_id).strip()})
        if not ids:
            return _invalid("At least one video id is required")
        return await self._orchestrator.execute(
            OrchestratedRequest(
                operation="videos",
                params={"ids": list(ids)},
                identity=identity,
                cache_ttl_s=self.ttls.video_details_s,
                resource="/api/youtube/videos",
                throttle="videos",
            )
        )

    async def get_recommendations(
        self,
        interests: Iterable[str],
        child_age: int,
        identity: str | None,
        *,
        max_results: int = 6,
        category: str | None = None,
        page_token: str | None = None,
        filters: Mapping[str, str | None] | None = None,
    ) -> OrchestratorResponse:
        """
        Recommend videos for a child profile.

        A known `category` searches that category's keywords; otherwise the
        query is built from the interests. Both are scoped to the age group.
        """
        group = age_group(child_age)
        keywords = CATEGORY_KEYWORDS.get(category or "")
        if keywords:
            query = f"{keywords} for kids {group}"
        else:
            topics = " ".join(item.strip() for item in interests if item and item.strip())
            if not topics:
                return _invalid("Add interests to the child's profile to get recommendations")
            query = f"{topics} for kids {group} educational"

        logger.debug("Recommendation query built (age_group=%s)", group)
        return await self._orchestrator.execute(
            OrchestratedRequest(
                operation="search",
                params=_search_params(query, max_results, page_token, filters),
                identity=identity,
                cache_ttl_s=self.ttls.recommendations_s,
                resource="/api/recommendations",
                throttle="recommendations",
            )
        )

    def quota_status(self, identity: str) -> JSONObject:
        """Usage summary for `identity` and the shared budget, with usage tips."""
        quota = self._orchestrator.quota
        search_cost = max(1, self._orchestrator.provider.cost_of("search"))
        user = quota.get_status(identity)
        shared = quota.get_status()
        searches_remaining = user.units_remaining // search_cost
        can_search = user.units_remaining >= search_cost

        if searches_remaining <= 2:
            actions = [
                "Browse cached recommendations",
                "Use scheduled content",
                "Try different search terms",
            ]
        else:
            actions = [
                "Search for educational videos",
                "Explore different categories",
                "Schedule content for later",
            ]
        return {
            "user": {
                "searchesUsed": user.units_used // search_cost,
                "searchesRemaining": searches_remaining,
                "unitsUsed": user.units_used,
                "unitsRemaining": user.units_remaining,
                "canMakeRequests": can_search,
                "dailyLimit": user.budget_units // search_cost,
            },
            "global": {
                "totalUnitsUsed": shared.units_used,
                "totalUnitsRemaining": shared.units_remaining,
                "activeUsers": len(quota.usage_by_identity()),
                "dailyLimit": shared.budget_units,
                "resetAt": datetime.fromtimestamp(shared.reset_at, tz=timezone.utc).isoformat(),
            },
            "tips": {
                "message": "You can make more video searches today!"
                if can_search
                else "Daily search limit reached. Try again tomorrow or browse cached content.",
                "recommendedActions": actions,
            },
        }
