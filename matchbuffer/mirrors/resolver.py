"""
Content reference resolution and mirror failover.

Content identifiers take three forms:
- ipfs://CID[/path]
- a raw CID, optionally followed by /path (v0 "Qm..." or v1 base32 "b...")
- any URL containing /ipfs/CID[/path]

Anything else is a plain URL and passes through unchanged. When every
mirror has failed for a content id the resolver returns a deterministic
placeholder image.
"""

import logging
import re
from collections import OrderedDict
from dataclasses import dataclass

from matchbuffer.mirrors.tracker import MirrorHealthTracker

logger = logging.getLogger(__name__)

RAW_CID_PATTERN = re.compile(
    r"^(?:https?://)?(Qm[1-9A-HJ-NP-Za-km-z]{44,}|b[a-z2-7]{58,})(?:/(.+))?$"
)
IPFS_PATH_PATTERN = re.compile(r"/ipfs/([^/?]+)(?:/(.+))?")
IPFS_SCHEME = "ipfs://"

DEFAULT_PLACEHOLDER_TEMPLATE = "https://picsum.photos/400/400?random={seed}"

# Content ids whose failover progress is remembered
MAX_TRACKED_CONTENT = 1000


@dataclass(frozen=True)
class ContentRef:
    cid: str
    path: str | None = None

    def on_mirror(self, mirror: str) -> str:
        url = f"{mirror}{self.cid}"
        return f"{url}/{self.path}" if self.path else url


def parse_content_ref(value: str) -> ContentRef | None:
    """Extract the CID and optional path of a content identifier."""
    value = value.strip()
    if not value:
        return None

    if value.startswith(IPFS_SCHEME):
        rest = value[len(IPFS_SCHEME) :]
        if rest.startswith("ipfs/"):
            rest = rest[len("ipfs/") :]
        cid, _, path = rest.partition("/")
        return ContentRef(cid=cid, path=path or None) if cid else None

    match = RAW_CID_PATTERN.match(value)
    if match:
        return ContentRef(cid=match.group(1), path=match.group(2))

    match = IPFS_PATH_PATTERN.search(value)
    if match:
        return ContentRef(cid=match.group(1), path=match.group(2))

    return None


def placeholder_seed(value: str) -> int:
    """Stable non-negative 32-bit string hash."""
    h = 0
    for char in value:
        h = (h * 31 + ord(char)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


class AssetResolver:
    """
    Turns content identifiers into loadable URLs and reroutes failed loads.

    Failover walks the mirror list once per content id: every failure marks
    the mirror it came from as tried, and the next untried mirror in health
    order is returned until none is left.
    A fresh resolve or a successful load starts the walk over.
    """

    def __init__(
        self,
        tracker: MirrorHealthTracker,
        placeholder_template: str = DEFAULT_PLACEHOLDER_TEMPLATE,
        max_tracked: int = MAX_TRACKED_CONTENT,
    ) -> None:
        self.tracker = tracker
        self.placeholder_template = placeholder_template
        self.max_tracked = max_tracked
        self._tried: OrderedDict[str, set[str]] = OrderedDict()

    def placeholder(self, value: str) -> str:
        return self.placeholder_template.format(seed=placeholder_seed(value))

    def is_placeholder(self, url: str) -> bool:
        prefix = self.placeholder_template.split("{seed}", 1)[0]
        return bool(prefix) and url.startswith(prefix)

    def resolve_url(self, content_id: str) -> str:
        """Loadable URL for a content id on the best mirror."""
        if not content_id.strip():
            return self.placeholder(content_id)

        ref = parse_content_ref(content_id)
        if ref is None:
            return content_id
        self._tried.pop(ref.cid, None)
        return ref.on_mirror(self.tracker.best_mirror())

    def candidate_urls(self, content_id: str) -> list[str]:
        """Every mirror URL for a content id, in health order."""
        ref = parse_content_ref(content_id)
        if ref is None:
            return [content_id] if content_id.strip() else []
        return [ref.on_mirror(mirror) for mirror in self.tracker.ordered_mirrors()]

    def on_load_failure(self, current_url: str, content_id: str) -> str:
        """
        Record a failed load and return the URL to try next.

        Returns the placeholder once every mirror has been tried, and
        immediately for content that is not mirrored.
        """
        if self.is_placeholder(current_url):
            return current_url

        ref = parse_content_ref(current_url) or parse_content_ref(content_id)
        if ref is None:
            return self.placeholder(content_id or current_url)

        tried = self._tried_for(ref.cid)
        mirror = self.tracker.mirror_for(current_url)
        if mirror is not None:
            self.tracker.record_failure(mirror, "load failed")
            tried.add(mirror)

        for candidate in self.tracker.ordered_mirrors():
            if candidate not in tried:
                return ref.on_mirror(candidate)

        logger.info("mirrors_exhausted", extra={"cid": ref.cid, "tried": len(tried)})
        return self.placeholder(content_id or current_url)

    def on_load_success(self, url: str, latency_ms: float | None = None) -> None:
        """Record a successful load and forget failover progress for its content."""
        mirror = self.tracker.mirror_for(url)
        if mirror is not None:
            self.tracker.record_success(mirror, latency_ms)
        ref = parse_content_ref(url)
        if ref is not None:
            self._tried.pop(ref.cid, None)

    def _tried_for(self, cid: str) -> set[str]:
        tried = self._tried.get(cid)
        if tried is None:
            tried = set()
            self._tried[cid] = tried
            while len(self._tried) > self.max_tracked:
                self._tried.popitem(last=False)
        else:
            self._tried.move_to_end(cid)
        return tried
