from matchbuffer.store.base import GroupStatusStore, ItemQuery, ItemStore
from matchbuffer.store.sql import SqlItemStore

__all__ = [
    "GroupStatusStore",
    "ItemQuery",
    "ItemStore",
    "SqlItemStore",
]
