from matchbuffer.mirrors.resolver import (
    AssetResolver,
    ContentRef,
    parse_content_ref,
    placeholder_seed,
)
from matchbuffer.mirrors.tracker import MirrorHealthTracker

__all__ = [
    "AssetResolver",
    "ContentRef",
    "MirrorHealthTracker",
    "parse_content_ref",
    "placeholder_seed",
]
