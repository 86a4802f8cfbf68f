"""
Process-wide service container.

All selection services are constructed explicitly, once per process, and
held on `app.state.services`. Apart from the configuration, the only
module-level mutable state is the set of timed-out calls that
`selection.timeouts` keeps referenced until they finish.
"""

import asyncio
import logging
import random
from collections.abc import Coroutine
from dataclasses import dataclass, field
from typing import Any

import httpx

from matchbuffer.cache.preload import SessionPreloadCache
from matchbuffer.cache.validation import AssetValidator
from matchbuffer.config import DEFAULT_WEIGHTS, ScoringWeights, Settings
from matchbuffer.jobs.mirror_sweep import start_mirror_sweep
from matchbuffer.mirrors.resolver import AssetResolver
from matchbuffer.mirrors.tracker import MirrorHealthTracker
from matchbuffer.scoring.engine import CandidateScoringEngine
from matchbuffer.scoring.groups import GroupRegistry
from matchbuffer.selection.enhanced import EnhancedStrategy
from matchbuffer.selection.legacy import LegacyStrategy
from matchbuffer.selection.orchestrator import FallbackOrchestrator
from matchbuffer.selection.policy import AdaptivePolicy
from matchbuffer.store.base import GroupStatusStore, ItemQuery, ItemStore

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything the HTTP layer needs, wired together."""

    registry: GroupRegistry
    engine: CandidateScoringEngine
    orchestrator: FallbackOrchestrator
    tracker: MirrorHealthTracker
    resolver: AssetResolver
    validator: AssetValidator
    cache: SessionPreloadCache
    http_client: httpx.AsyncClient
    background: set[asyncio.Task[object]] = field(default_factory=set)

    def spawn(self, coro: Coroutine[Any, Any, object]) -> asyncio.Task[object]:
        """Run a coroutine in the background, keeping a reference until done."""
        task = asyncio.get_running_loop().create_task(coro)
        self.background.add(task)
        task.add_done_callback(self.background.discard)
        return task


def build_services(
    config: Settings,
    item_store: ItemStore,
    group_store: GroupStatusStore | None = None,
    http_client: httpx.AsyncClient | None = None,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
    rng: random.Random | None = None,
) -> Services:
    """Construct the service graph from settings and store adapters."""
    rng = rng or random.Random()
    client = http_client or httpx.AsyncClient(
        headers={"User-Agent": f"{config.app_name}/1.0"},
        follow_redirects=True,
        timeout=config.asset_validation_timeout_seconds,
    )

    registry = GroupRegistry(group_store)
    engine = CandidateScoringEngine(registry, weights=weights, rng=rng)
    orchestrator = FallbackOrchestrator(
        enhanced=EnhancedStrategy(
            item_store,
            engine,
            registry,
            timeout=config.enhanced_timeout_seconds,
            pool_limit=config.item_pool_limit,
        ),
        legacy=LegacyStrategy(item_store, registry, rng=rng, pool_limit=config.legacy_pool_limit),
        policy=AdaptivePolicy(
            base_ratio=config.enhanced_ratio,
            min_success_rate=config.enhanced_min_success_rate,
            min_attempts=config.enhanced_min_attempts,
            window=config.enhanced_window,
            probe_interval=config.enhanced_probe_interval,
        ),
        rng=rng,
    )

    tracker = MirrorHealthTracker(
        config.mirror_urls,
        success_threshold=config.mirror_success_threshold,
        recent_failure_seconds=config.mirror_recent_failure_seconds,
        idle_reset_seconds=config.mirror_idle_reset_seconds,
    )
    resolver = AssetResolver(tracker, placeholder_template=config.placeholder_url_template)
    validator = AssetValidator(
        resolver, client, timeout=config.asset_validation_timeout_seconds
    )

    cache = SessionPreloadCache(
        orchestrator,
        validator,
        target_size=config.preload_target_size,
        minimum_size=config.preload_minimum_size,
        refill_trigger=config.preload_refill_trigger,
        concurrency=config.refill_concurrency,
        max_attempts=config.max_generation_attempts,
        keep_recent=config.tracking_keep_recent,
        max_seen_items=config.max_seen_items,
        max_seen_pairs=config.max_seen_pairs,
    )

    return Services(
        registry=registry,
        engine=engine,
        orchestrator=orchestrator,
        tracker=tracker,
        resolver=resolver,
        validator=validator,
        cache=cache,
        http_client=client,
    )


async def start_services(services: Services, config: Settings, item_store: ItemStore) -> None:
    """Load group state, start the mirror sweep and warm the buffer."""
    await services.registry.load()
    pool = await item_store.query_items(ItemQuery(limit=config.item_pool_limit))
    services.registry.observe(pool)
    logger.info("Registry ready: %d groups, %d items", len(services.registry.statuses()), len(pool))

    services.background.add(
        start_mirror_sweep(services.tracker, config.mirror_sweep_interval_seconds)
    )
    size = await services.cache.warm_up()
    logger.info("Preload buffer warmed: %d sessions", size)


async def close_services(services: Services) -> None:
    """Stop background work and release the HTTP client."""
    await services.cache.close()
    tasks = list(services.background)
    for task in tasks:
        task.cancel()
    if tasks:
        await asyncio.wait(tasks)
    await services.http_client.aclose()
