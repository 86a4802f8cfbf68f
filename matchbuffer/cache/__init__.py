from matchbuffer.cache.preload import SessionPreloadCache
from matchbuffer.cache.seen import RecencySet, SeenTracker
from matchbuffer.cache.validation import AssetValidator

__all__ = [
    "AssetValidator",
    "RecencySet",
    "SeenTracker",
    "SessionPreloadCache",
]
