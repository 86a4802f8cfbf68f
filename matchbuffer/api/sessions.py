"""
Session API endpoints.

Hands out buffered sessions and exposes the buffer's maintenance
operations. Popping never waits on scoring or asset loading.
"""

from typing import Any

from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from matchbuffer.api.deps import ServicesDep
from matchbuffer.mirrors.resolver import AssetResolver
from matchbuffer.models.failure import (
    ApiResponse,
    FailureKind,
    create_known_failure,
    create_success,
)
from matchbuffer.models.item import Item
from matchbuffer.models.session import Session

router = APIRouter(prefix="/sessions", tags=["sessions"])


class SessionItemResponse(BaseModel):
    """One item as shown to the voter."""

    id: str
    group: str
    name: str
    media_ref: str
    image_url: str
    rating: float
    promoted: bool = False


class SessionResponse(BaseModel):
    """A session ready to be shown."""

    key: str
    mode: str
    items: list[SessionItemResponse]
    information_score: float | None = None
    selection_reason: str | None = None
    enhanced: bool = False


class ResetTrackingRequest(BaseModel):
    keep_last: int | None = Field(default=None, ge=0)


class BufferSizeResponse(BaseModel):
    size: int


def _item_response(item: Item, resolver: AssetResolver) -> SessionItemResponse:
    return SessionItemResponse(
        id=item.id,
        group=item.group,
        name=item.name,
        media_ref=item.media_ref,
        image_url=resolver.resolve_url(item.media_ref),
        rating=item.rating,
        promoted=item.promoted,
    )


def session_to_response(session: Session, resolver: AssetResolver) -> SessionResponse:
    """Convert a session to its API shape with resolved image URLs."""
    return SessionResponse(
        key=session.key,
        mode=session.mode.value,
        items=[_item_response(item, resolver) for item in session.items],
        information_score=session.information_score,
        selection_reason=session.selection_reason,
        enhanced=session.enhanced,
    )


@router.get("/next", response_model=ApiResponse[SessionResponse])
async def next_session(
    services: ServicesDep,
    group: str | None = Query(default=None, min_length=1),
) -> ApiResponse[Any]:
    """
    Pop the next buffered session.

    An empty buffer is a known failure: a refill has been scheduled and
    the client should retry shortly.
    """
    session = services.cache.pop(group)
    if session is None:
        return create_known_failure(
            FailureKind.EMPTY_RESULT,
            "No session buffered; refill scheduled",
        )
    return create_success(session_to_response(session, services.resolver))


@router.post("/skip", response_model=ApiResponse[SessionResponse])
async def skip_session(
    services: ServicesDep,
    group: str | None = Query(default=None, min_length=1),
) -> ApiResponse[Any]:
    """Drop the top session and return the next one whose assets load."""
    session = await services.cache.skip_failed(group)
    if session is None:
        return create_known_failure(
            FailureKind.ASSET_UNRESOLVABLE,
            "No buffered session with loadable assets; refill scheduled",
        )
    return create_success(session_to_response(session, services.resolver))


@router.post("/reset-tracking", response_model=ApiResponse[dict[str, Any]])
async def reset_tracking(
    services: ServicesDep,
    body: ResetTrackingRequest | None = None,
) -> ApiResponse[Any]:
    """Let previously seen items and pairs be selected again."""
    keep_last = body.keep_last if body is not None else None
    services.cache.reset_tracking(keep_last)
    return create_success(services.cache.status())


@router.post("/force-reset", response_model=ApiResponse[BufferSizeResponse])
async def force_reset(services: ServicesDep) -> ApiResponse[Any]:
    """Clear everything and wait for a fresh buffer."""
    size = await services.cache.force_reset()
    return create_success(BufferSizeResponse(size=size))


@router.get("/status", response_model=ApiResponse[dict[str, Any]])
async def buffer_status(services: ServicesDep) -> ApiResponse[Any]:
    """Buffer state plus selection statistics."""
    return create_success(
        {
            **services.cache.status(),
            "selection": services.orchestrator.stats(),
        }
    )
