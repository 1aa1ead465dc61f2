"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

YouTube Data API v3 transport for search and video-detail lookups.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import urllib.error
import urllib.parse
import urllib.request
from collections.abc import Callable, Mapping
from datetime import datetime, timedelta, timezone
from typing import Any

from ..errors import (
    ConfigurationError,
    TerminalUpstreamError,
    TransientUpstreamError,
    UpstreamHTTPError,
)
from ..types import JSONObject, JSONValue, UpstreamResult

logger = logging.getLogger("quotashield.providers.youtube")

DEFAULT_BASE_URL = "https://www.googleapis.com/youtube/v3"

# Units charged per call by the YouTube Data API.
COST_UNITS: dict[str, int] = {
    "search": 100,
    "videos": 1,
}

MAX_SEARCH_RESULTS = 8

_ORDER = {"relevance", "date", "viewCount", "rating"}
_DURATIONS = {"short", "medium", "long"}
_UPLOAD_WINDOWS = {
    "hour": timedelta(hours=1),
    "today": timedelta(days=1),
    "week": timedelta(weeks=1),
    "month": timedelta(days=30),
    "year": timedelta(days=365),
}
_RETRYABLE_REASONS = {"rateLimitExceeded", "userRateLimitExceeded", "backendError"}
_ISO_DURATION = re.compile(r"^PT(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?$")

HttpGet = Callable[[str, float], bytes]


def _urllib_get(url: str, timeout_s: float) -> bytes:
    req = urllib.request.Request(url, headers={"Accept": "application/json"}, method="GET")
    with urllib.request.urlopen(req, timeout=timeout_s) as resp:  # noqa: S310
        return resp.read()


def format_duration(iso: str) -> str:
    """Render an ISO-8601 duration (``PT1H2M3S``) as ``1:02:03`` / ``2:03``."""
    match = _ISO_DURATION.match(iso or "")
    if match is None:
        return ""
    hours, minutes, seconds = (int(part or 0) for part in match.groups())
    if hours:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes}:{seconds:02d}"


def _thumbnail(snippet: Mapping[str, Any], *names: str) -> str:
    thumbnails = snippet.get("thumbnails") or {}
    for name in names:
        row = thumbnails.get(name)
        if isinstance(row, dict) and row.get("url"):
            return str(row["url"])
    return ""


def _video_row(video_id: str, snippet: Mapping[str, Any]) -> JSONObject:
    return {
        "id": video_id,
        "title": snippet.get("title", ""),
        "description": snippet.get("description", ""),
        "thumbnail": _thumbnail(snippet, "high", "medium", "default"),
        "high_res_thumbnail": _thumbnail(snippet, "maxres", "high"),
        "channel_name": snippet.get("channelTitle", ""),
        "published_at": snippet.get("publishedAt", ""),
    }


class YouTubeSearchProvider:
    """Search provider backed by the YouTube Data API v3."""

    provider_id = "youtube"

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout_s: float = 10.0,
        region_code: str | None = "US",
        http_get: HttpGet | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if not api_key:
            raise ConfigurationError("YouTube API key is not configured")
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self._region_code = region_code
        self._http_get = http_get or _urllib_get
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def cost_of(self, operation: str) -> int:
        return COST_UNITS.get(operation, 1)

    async def query(self, operation: str, params: Mapping[str, JSONValue]) -> UpstreamResult:
        if operation == "search":
            return await self._search(params)
        if operation == "videos":
            return await self._videos(params)
        raise TerminalUpstreamError(f"Unsupported YouTube operation '{operation}'")

    def _search_params(self, params: Mapping[str, JSONValue]) -> dict[str, str]:
        query = str(params.get("q") or "").strip()
        if not query:
            raise TerminalUpstreamError("Search query must be non-empty")
        try:
            max_results = int(params.get("maxResults") or MAX_SEARCH_RESULTS)
        except (TypeError, ValueError) as exc:
            raise TerminalUpstreamError("maxResults must be an integer") from exc

        out = {
            "part": "snippet",
            "type": "video",
            "safeSearch": "strict",
            "q": query,
            "maxResults": str(max(1, min(max_results, MAX_SEARCH_RESULTS))),
        }
        if self._region_code:
            out["regionCode"] = self._region_code
        if params.get("pageToken"):
            out["pageToken"] = str(params["pageToken"])
        if params.get("sortBy") in _ORDER:
            out["order"] = str(params["sortBy"])
        if params.get("duration") in _DURATIONS:
            out["videoDuration"] = str(params["duration"])
        window = _UPLOAD_WINDOWS.get(str(params.get("uploadDate") or ""))
        if window is not None:
            published_after = self._clock() - window
            out["publishedAfter"] = published_after.strftime("%Y-%m-%dT%H:%M:%SZ")
        return out

    async def _search(self, params: Mapping[str, JSONValue]) -> UpstreamResult:
        body = await self._get("search", self._search_params(params))
        items: list[JSONObject] = []
        for item in body.get("items") or []:
            video_id = (item.get("id") or {}).get("videoId")
            if not video_id:
                continue
            items.append(_video_row(str(video_id), item.get("snippet") or {}))

        page_info = body.get("pageInfo") or {}
        return UpstreamResult(
            items=items,
            next_page_token=body.get("nextPageToken"),
            cost_units=COST_UNITS["search"],
            total_results=page_info.get("totalResults"),
        )

    async def _videos(self, params: Mapping[str, JSONValue]) -> UpstreamResult:
        raw_ids = params.get("ids") or []
        ids = [str(i).strip() for i in raw_ids if str(i).strip()] if isinstance(raw_ids, list) else []
        if not ids:
            raise TerminalUpstreamError("At least one video id is required")

        body = await self._get(
            "videos",
            {"part": "snippet,contentDetails,statistics", "id": ",".join(ids)},
        )
        items: list[JSONObject] = []
        for item in body.get("items") or []:
            if not item.get("id"):
                continue
            row = _video_row(str(item["id"]), item.get("snippet") or {})
            row["duration"] = format_duration((item.get("contentDetails") or {}).get("duration", ""))
            row["view_count"] = (item.get("statistics") or {}).get("viewCount", "0")
            row["category_id"] = (item.get("snippet") or {}).get("categoryId", "")
            items.append(row)
        return UpstreamResult(items=items, cost_units=COST_UNITS["videos"])

    async def _get(self, endpoint: str, query: dict[str, str]) -> dict[str, Any]:
        url = f"{self._base_url}/{endpoint}?" + urllib.parse.urlencode({**query, "key": self._api_key})
        try:
            raw = await asyncio.to_thread(self._http_get, url, self.timeout_s)
        except urllib.error.HTTPError as exc:
            raise self._http_error(exc) from exc
        except urllib.error.URLError as exc:
            raise TransientUpstreamError(f"YouTube API unreachable: {exc.reason}") from exc

        try:
            decoded = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as exc:
            raise TerminalUpstreamError(f"Invalid JSON from YouTube '{endpoint}'") from exc
        if not isinstance(decoded, dict):
            raise TerminalUpstreamError(f"Unexpected YouTube '{endpoint}' payload")
        return decoded

    @staticmethod
    def _http_error(exc: urllib.error.HTTPError) -> Exception:
        message = f"YouTube API responded with HTTP {exc.code}"
        reason: str | None = None
        try:
            body = json.loads(exc.read().decode("utf-8"))
            error = body.get("error") or {}
            message = error.get("message") or message
            details = error.get("errors") or []
            if details and isinstance(details[0], dict):
                reason = details[0].get("reason")
        except Exception:  # noqa: BLE001
            pass

        if reason in _RETRYABLE_REASONS:
            return TransientUpstreamError(message)
        if reason in ("quotaExceeded", "dailyLimitExceeded"):
            logger.error("YouTube reported its daily quota as exhausted")
        return UpstreamHTTPError(exc.code, message, reason=reason)
