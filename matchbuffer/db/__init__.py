from matchbuffer.db.database import async_session_factory, get_session, init_db
from matchbuffer.db.operations import (
    get_group_status,
    get_group_statuses,
    group_status_to_model,
    item_to_model,
    query_items,
    upsert_group_status,
    upsert_items,
)

__all__ = [
    "async_session_factory",
    "get_group_status",
    "get_group_statuses",
    "get_session",
    "group_status_to_model",
    "init_db",
    "item_to_model",
    "query_items",
    "upsert_group_status",
    "upsert_items",
]
