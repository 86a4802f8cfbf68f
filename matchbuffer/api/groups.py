"""
Group admin endpoints.

Operators enable or disable item groups and weight them. Disabling a group
flushes the buffer in the background so its sessions stop being served.
"""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, BackgroundTasks
from pydantic import BaseModel, Field

from matchbuffer.api.deps import ServicesDep
from matchbuffer.models.failure import ApiResponse, GroupNotFoundError, create_success
from matchbuffer.models.item import GroupStatus

router = APIRouter(prefix="/groups", tags=["groups"])


class GroupResponse(BaseModel):
    name: str
    active: bool
    priority: float
    item_count: int
    avg_votes_per_item: float
    last_selected: datetime | None = None


class SetActiveRequest(BaseModel):
    active: bool


class SetPriorityRequest(BaseModel):
    priority: float = Field(gt=0, description="Clamped to the supported range")


def _group_response(status: GroupStatus) -> GroupResponse:
    return GroupResponse(
        name=status.name,
        active=status.active,
        priority=status.priority,
        item_count=status.item_count,
        avg_votes_per_item=round(status.avg_votes_per_item, 2),
        last_selected=status.last_selected,
    )


@router.get("", response_model=ApiResponse[list[GroupResponse]])
async def list_groups(services: ServicesDep) -> ApiResponse[Any]:
    """All registered groups, ordered by name."""
    statuses = services.registry.statuses()
    return create_success([_group_response(statuses[name]) for name in sorted(statuses)])


@router.get("/stats", response_model=ApiResponse[dict[str, Any]])
async def group_stats(services: ServicesDep) -> ApiResponse[Any]:
    return create_success(services.registry.stats())


@router.put("/active", response_model=ApiResponse[dict[str, Any]])
async def set_all_groups_active(
    body: SetActiveRequest,
    services: ServicesDep,
    background_tasks: BackgroundTasks,
) -> ApiResponse[Any]:
    """Enable or disable every group at once."""
    changed = await services.registry.set_all_active(body.active)
    if changed and not body.active:
        background_tasks.add_task(services.cache.force_reset)
    return create_success({"active": body.active, "changed": changed})


@router.put("/{name}/active", response_model=ApiResponse[GroupResponse])
async def set_group_active(
    name: str,
    body: SetActiveRequest,
    services: ServicesDep,
    background_tasks: BackgroundTasks,
) -> ApiResponse[Any]:
    """
    Enable or disable a group.

    Disabling schedules a force reset of the buffer.
    """
    status = services.registry.get(name)
    if status is None:
        raise GroupNotFoundError(name)

    await services.registry.set_active(name, body.active)
    if not body.active:
        background_tasks.add_task(services.cache.force_reset)
    return create_success(_group_response(status))


@router.put("/{name}/priority", response_model=ApiResponse[GroupResponse])
async def set_group_priority(
    name: str,
    body: SetPriorityRequest,
    services: ServicesDep,
) -> ApiResponse[Any]:
    """Set a group's priority (clamped to the supported range)."""
    status = services.registry.get(name)
    if status is None:
        raise GroupNotFoundError(name)

    await services.registry.set_priority(name, body.priority)
    return create_success(_group_response(status))
