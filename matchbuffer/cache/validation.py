"""
Asset validation through the mirror layer.

An asset is valid if any of its mirror URLs answers a streamed GET with a
success status before the per-asset deadline. Every attempt feeds the
mirror health tracker. Results are cached per media reference.
"""

import asyncio
import logging
import time
from collections import OrderedDict

import httpx

from matchbuffer.mirrors.resolver import AssetResolver
from matchbuffer.models.item import Item
from matchbuffer.models.session import Session

logger = logging.getLogger(__name__)

MAX_CACHED_RESULTS = 2000


class AssetValidator:
    """Checks that session images load before sessions are buffered."""

    def __init__(
        self,
        resolver: AssetResolver,
        client: httpx.AsyncClient,
        timeout: float = 2.0,
        max_cached: int = MAX_CACHED_RESULTS,
    ) -> None:
        self.resolver = resolver
        self.client = client
        self.timeout = timeout
        self.max_cached = max_cached
        self._results: OrderedDict[str, bool] = OrderedDict()

    async def validate_session(self, session: Session) -> bool:
        """True if every item has a loadable asset or is promoted."""
        results = await asyncio.gather(*(self.validate_item(item) for item in session.items))
        return all(ok or item.promoted for item, ok in zip(session.items, results, strict=True))

    async def validate_item(self, item: Item) -> bool:
        cached = self._results.get(item.media_ref)
        if cached is not None:
            self._results.move_to_end(item.media_ref)
            return cached

        try:
            async with asyncio.timeout(self.timeout):
                valid = await self._probe(item.media_ref)
        except TimeoutError:
            logger.info("asset_validation_timeout", extra={"item_id": item.id})
            valid = False

        self._remember(item.media_ref, valid)
        return valid

    async def _probe(self, media_ref: str) -> bool:
        tracker = self.resolver.tracker
        for url in self.resolver.candidate_urls(media_ref):
            mirror = tracker.mirror_for(url)
            started = time.perf_counter()
            try:
                async with self.client.stream("GET", url) as response:
                    ok = response.is_success
            except httpx.HTTPError as e:
                if mirror is not None:
                    tracker.record_failure(mirror, type(e).__name__)
                continue

            if ok:
                if mirror is not None:
                    tracker.record_success(mirror, (time.perf_counter() - started) * 1000.0)
                return True
            if mirror is not None:
                tracker.record_failure(mirror, f"HTTP {response.status_code}")
        return False

    def _remember(self, media_ref: str, valid: bool) -> None:
        self._results[media_ref] = valid
        self._results.move_to_end(media_ref)
        while len(self._results) > self.max_cached:
            self._results.popitem(last=False)

    def forget(self, media_ref: str) -> None:
        self._results.pop(media_ref, None)

    def clear(self) -> None:
        self._results.clear()

    @property
    def cached_results(self) -> int:
        return len(self._results)
