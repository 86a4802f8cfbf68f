"""
Asset resolution endpoints.

Clients resolve content identifiers to image URLs, report failed loads to
get the next mirror (or a placeholder) back, and report successful loads so
mirror health and failover progress stay current.
"""

from typing import Any

from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from matchbuffer.api.deps import ServicesDep
from matchbuffer.models.failure import ApiResponse, create_success

router = APIRouter(prefix="/assets", tags=["assets"])


class ResolvedAssetResponse(BaseModel):
    content_id: str
    url: str
    placeholder: bool = False


class LoadFailureRequest(BaseModel):
    """A client-side image load that failed."""

    current_url: str = Field(min_length=1, description="URL that failed to load")
    content_id: str = Field(default="", description="Original content identifier")


@router.get("/resolve", response_model=ApiResponse[ResolvedAssetResponse])
async def resolve_asset(
    services: ServicesDep,
    content_id: str = Query(min_length=1),
) -> ApiResponse[Any]:
    """Resolve a content identifier on the healthiest mirror."""
    url = services.resolver.resolve_url(content_id)
    return create_success(
        ResolvedAssetResponse(
            content_id=content_id,
            url=url,
            placeholder=services.resolver.is_placeholder(url),
        )
    )


@router.post("/load-failure", response_model=ApiResponse[ResolvedAssetResponse])
async def report_load_failure(
    services: ServicesDep,
    body: LoadFailureRequest,
) -> ApiResponse[Any]:
    """Record the failure against its mirror and return the URL to try next."""
    url = services.resolver.on_load_failure(body.current_url, body.content_id)
    return create_success(
        ResolvedAssetResponse(
            content_id=body.content_id or body.current_url,
            url=url,
            placeholder=services.resolver.is_placeholder(url),
        )
    )


class LoadSuccessRequest(BaseModel):
    url: str = Field(min_length=1, description="URL that loaded")
    latency_ms: float | None = Field(default=None, ge=0)


@router.post("/load-success", response_model=ApiResponse[dict[str, Any]])
async def report_load_success(
    services: ServicesDep,
    body: LoadSuccessRequest,
) -> ApiResponse[Any]:
    """Credit the mirror the asset came from."""
    services.resolver.on_load_success(body.url, body.latency_ms)
    mirror = services.tracker.mirror_for(body.url)
    return create_success({"url": body.url, "mirror": mirror})


@router.get("/mirrors", response_model=ApiResponse[dict[str, Any]])
async def mirror_status(services: ServicesDep) -> ApiResponse[Any]:
    """Health statistics of every configured mirror."""
    return create_success(services.tracker.stats())
