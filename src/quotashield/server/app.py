"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

FastAPI host exposing the orchestrated video features over HTTP.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..factory import QuotaShieldRuntime
from ..types import OrchestratorResponse

logger = logging.getLogger("quotashield.server")

IDENTITY_HEADER = "X-User-Id"


class VideoDetailsBody(BaseModel):
    videoIds: list[str] = Field(default_factory=list, max_length=50)


def _render(response: OrchestratorResponse) -> JSONResponse:
    return JSONResponse(
        response.to_payload(),
        status_code=response.status,
        headers=response.headers(),
    )


def _unauthenticated() -> JSONResponse:
    return JSONResponse({"error": "Authentication required"}, status_code=401)


class QuotaShieldServiceHost:
    """Expose video search, details, recommendations and quota status endpoints."""

    def __init__(
        self,
        runtime: QuotaShieldRuntime,
        *,
        service_name: str = "quotashield",
    ) -> None:
        self.runtime = runtime
        self.service_name = service_name

    def create_app(self) -> FastAPI:
        """Create and return FastAPI app; app shutdown shuts the runtime down."""
        runtime = self.runtime

        @asynccontextmanager
        async def lifespan(_app: FastAPI):
            yield
            await runtime.shutdown()

        app = FastAPI(title=self.service_name, lifespan=lifespan)

        def _identity(request: Request) -> str | None:
            value = (request.headers.get(IDENTITY_HEADER) or "").strip()
            return value or None

        @app.get("/health")
        async def health() -> dict[str, Any]:
            return {
                "status": "ok",
                "service": self.service_name,
                "provider": runtime.orchestrator.provider.provider_id,
                "stats": runtime.stats(),
            }

        @app.get("/api/youtube/search")
        async def search(
            request: Request,
            q: str = "",
            maxResults: int = 8,
            pageToken: str | None = None,
            duration: str | None = None,
            sortBy: str | None = None,
            uploadDate: str | None = None,
        ):
            identity = _identity(request)
            if identity is None:
                return _unauthenticated()
            response = await runtime.videos.search_videos(
                q,
                identity,
                max_results=maxResults,
                page_token=pageToken,
                filters={"duration": duration, "sortBy": sortBy, "uploadDate": uploadDate},
            )
            return _render(response)

        @app.post("/api/youtube/videos")
        async def video_details(body: VideoDetailsBody, request: Request):
            identity = _identity(request)
            if identity is None:
                return _unauthenticated()
            response = await runtime.videos.get_video_details(body.videoIds, identity)
            return _render(response)

        @app.get("/api/recommendations")
        async def recommendations(
            request: Request,
            interests: str = "",
            age: int = 8,
            maxResults: int = 6,
            category: str | None = None,
            pageToken: str | None = None,
        ):
            identity = _identity(request)
            if identity is None:
                return _unauthenticated()
            response = await runtime.videos.get_recommendations(
                [item for item in interests.split(",") if item.strip()],
                age,
                identity,
                max_results=maxResults,
                category=category,
                page_token=pageToken,
            )
            return _render(response)

        @app.get("/api/quota-status")
        async def quota_status(request: Request):
            identity = _identity(request)
            if identity is None:
                return _unauthenticated()
            logger.debug("Quota status requested (identity=%s)", identity)
            return runtime.videos.quota_status(identity)

        return app

    def run(self, **kwargs: Any) -> None:
        """
        Start the HTTP host using uvicorn.

        Args:
            **kwargs: Additional arguments passed to ``uvicorn.run()``.
        """
        try:
            import uvicorn
        except ImportError:
            raise ImportError(
                "uvicorn is required to serve quotashield. "
                "Install it with: pip install uvicorn"
            )

        uvicorn.run(
            self.create_app(),
            host=kwargs.pop("host", self.runtime.settings.host),
            port=kwargs.pop("port", self.runtime.settings.port),
            **kwargs,
        )


def create_app(runtime: QuotaShieldRuntime | None = None) -> FastAPI:
    """Build the app from an explicit runtime or from the environment."""
    if runtime is None:
        from ..factory import create_runtime

        runtime = create_runtime()
    return QuotaShieldServiceHost(runtime).create_app()
