"""
Session Preload Cache: a LIFO buffer of ready-to-show sessions.

Consumers pop sessions without ever waiting on scoring or network I/O.
Refills run in the background with bounded concurrency whenever the buffer
drops to the refill trigger.

INVARIANTS:
- The buffer never holds more than target_size sessions
- At most one refill runs at a time (the in-progress flag); refills left over
  from before a force reset may still finish but never push
- A filtered pop that finds nothing evicts other sessions so a refill for
  that group has room
- No two buffered sessions share an item or a pair
- The buffer is only mutated in synchronous steps between awaits
"""

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Protocol

from matchbuffer.cache.seen import SeenTracker
from matchbuffer.models.session import PairSession, Session, session_item_ids

logger = logging.getLogger(__name__)


class SessionSource(Protocol):
    async def next_session(
        self,
        group: str | None = None,
        exclude_ids: frozenset[str] = frozenset(),
        exclude_pairs: frozenset[str] = frozenset(),
    ) -> Session | None: ...


class SessionValidator(Protocol):
    async def validate_session(self, session: Session) -> bool: ...

    def forget(self, media_ref: str) -> None: ...

    def clear(self) -> None: ...


@dataclass
class _Reservation:
    """Items and pairs claimed by the producers of one refill pass."""

    ids: set[str] = field(default_factory=set)
    pairs: set[str] = field(default_factory=set)

    def conflicts(self, session: Session) -> bool:
        if isinstance(session, PairSession) and session.key in self.pairs:
            return True
        return bool(session_item_ids(session) & self.ids)

    def claim(self, session: Session) -> None:
        self.ids |= session_item_ids(session)
        if isinstance(session, PairSession):
            self.pairs.add(session.key)


class SessionPreloadCache:
    """
    Buffer of sessions fed by a session source.

    Args:
        source: Produces one session per call (the fallback orchestrator)
        validator: Checks session assets before buffering (None = accept all)
        target_size: Buffer size a refill aims for
        minimum_size: Size below which the buffer is considered starved
        refill_trigger: Size at or below which a pop schedules a refill
        concurrency: Producers running at once during a refill
        max_attempts: Generation attempts per producer; the last is accepted
            even if its assets fail validation
        max_passes: Refill passes when a pass comes back short
        keep_recent: Seen entries kept by reset_tracking()
    """

    def __init__(
        self,
        source: SessionSource,
        validator: SessionValidator | None = None,
        target_size: int = 8,
        minimum_size: int = 3,
        refill_trigger: int = 5,
        concurrency: int = 4,
        max_attempts: int = 3,
        max_passes: int = 3,
        keep_recent: int = 2,
        max_seen_items: int = 50,
        max_seen_pairs: int = 1500,
    ) -> None:
        if not 0 < minimum_size <= refill_trigger < target_size:
            raise ValueError(
                "Buffer sizes must satisfy 0 < minimum <= trigger < target, got "
                f"minimum={minimum_size} trigger={refill_trigger} target={target_size}"
            )
        if concurrency < 1 or max_attempts < 1 or max_passes < 1:
            raise ValueError("concurrency, max_attempts and max_passes must be positive")

        self.source = source
        self.validator = validator
        self.target_size = target_size
        self.minimum_size = minimum_size
        self.refill_trigger = refill_trigger
        self.max_attempts = max_attempts
        self.max_passes = max_passes
        self.keep_recent = keep_recent
        self.seen = SeenTracker(max_items=max_seen_items, max_pairs=max_seen_pairs)

        self._buffer: list[Session] = []
        self._semaphore = asyncio.Semaphore(concurrency)
        self._refilling = False
        self._refill_task: asyncio.Task[int] | None = None
        self._tasks: set[asyncio.Task[Any]] = set()
        self._epoch = 0

        self._popped = 0
        self._empty_pops = 0
        self._discarded = 0
        self._accepted_unvalidated = 0
        self._refills = 0
        self._evicted = 0

    # -------------------------------------------------------------------------
    # Consumer side
    # -------------------------------------------------------------------------

    @property
    def size(self) -> int:
        return len(self._buffer)

    @property
    def is_refilling(self) -> bool:
        return self._refilling

    def peek(self) -> Session | None:
        return self._buffer[-1] if self._buffer else None

    def pop(self, group: str | None = None) -> Session | None:
        """
        Take the next session, or None if nothing is buffered.

        Never waits: an empty buffer schedules an emergency refill and
        returns None immediately. When a group filter matches nothing, the
        oldest buffered sessions are evicted down to the refill trigger so
        the emergency refill for that group has room to add sessions.
        """
        index = self._find(group)
        if index is None:
            self._empty_pops += 1
            logger.warning(
                "PRELOAD_BUFFER_EMPTY",
                extra={"group": group, "buffered": len(self._buffer)},
            )
            if group is not None:
                self._evict_oldest(len(self._buffer) - self.refill_trigger)
            self._schedule_refill(group=group)
            return None

        session = self._buffer.pop(index)
        self._popped += 1
        self.seen.mark(session)
        purged = self._purge(session)
        if purged:
            logger.debug("duplicates_purged", extra={"count": purged})

        if len(self._buffer) < self.minimum_size:
            logger.warning(
                "PRELOAD_BELOW_MINIMUM",
                extra={"size": len(self._buffer), "minimum": self.minimum_size},
            )
        if len(self._buffer) <= self.refill_trigger:
            self._schedule_refill()
        return session

    async def skip_failed(self, group: str | None = None) -> Session | None:
        """
        Drop the top session and return the next one whose assets revalidate.

        Gives up after max_attempts candidates and returns None.
        """
        index = self._find(group)
        if index is not None:
            dropped = self._buffer.pop(index)
            self._discarded += 1
            self._forget_assets([dropped])
            logger.info("session_skipped", extra={"key": dropped.key})

        for _ in range(self.max_attempts):
            session = self.pop(group)
            if session is None:
                return None
            self._forget_assets([session])
            if await self._validate(session):
                return session
            self._discarded += 1

        self._schedule_refill(group=group)
        return None

    def _find(self, group: str | None) -> int | None:
        """Index of the topmost session matching the group filter."""
        for index in range(len(self._buffer) - 1, -1, -1):
            if group is None or all(i.group == group for i in self._buffer[index].items):
                return index
        return None

    def _evict_oldest(self, count: int) -> None:
        if count <= 0:
            return
        del self._buffer[:count]
        self._evicted += count
        logger.info("sessions_evicted", extra={"count": count, "size": len(self._buffer)})

    def _purge(self, consumed: Session) -> int:
        consumed_ids = session_item_ids(consumed)
        consumed_key = consumed.key if isinstance(consumed, PairSession) else None
        kept = [
            s
            for s in self._buffer
            if not (session_item_ids(s) & consumed_ids)
            and not (consumed_key is not None and s.key == consumed_key)
        ]
        purged = len(self._buffer) - len(kept)
        self._buffer = kept
        return purged

    # -------------------------------------------------------------------------
    # Refill
    # -------------------------------------------------------------------------

    def _schedule_refill(self, count: int | None = None, group: str | None = None) -> None:
        if self._refilling:
            return
        self._refilling = True
        task = asyncio.get_running_loop().create_task(
            self._refill_flagged(count, group, self._epoch)
        )
        self._refill_task = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def refill(self, count: int | None = None, group: str | None = None) -> int:
        """
        Generate up to `count` sessions (default: up to target size).

        Returns the number of sessions added, 0 if a refill is already running.
        """
        if self._refilling:
            logger.debug("refill_already_running")
            return 0
        self._refilling = True
        return await self._refill_flagged(count, group, self._epoch)

    async def _refill_flagged(self, count: int | None, group: str | None, epoch: int) -> int:
        try:
            return await self._refill(count, group, epoch)
        finally:
            # A force reset hands the flag to its own refill
            if epoch == self._epoch:
                self._refilling = False

    async def _refill(self, count: int | None, group: str | None, epoch: int) -> int:
        if epoch != self._epoch:
            return 0
        room = self.target_size - len(self._buffer)
        wanted = room if count is None else min(count, room)
        if wanted <= 0:
            return 0

        self._refills += 1
        added = 0
        for pass_number in range(1, self.max_passes + 1):
            needed = min(wanted - added, self.target_size - len(self._buffer))
            if needed <= 0:
                break

            reservation = _Reservation()
            results = await asyncio.gather(
                *(self._produce(epoch, group, reservation) for _ in range(needed))
            )
            if epoch != self._epoch:
                logger.info("refill_invalidated", extra={"added": added})
                return added

            added += sum(results)
            if sum(results) < needed:
                logger.info(
                    "refill_pass_short",
                    extra={"pass": pass_number, "needed": needed, "added": sum(results)},
                )

        logger.info(
            "refill_complete",
            extra={"added": added, "wanted": wanted, "size": len(self._buffer)},
        )
        return added

    async def _produce(self, epoch: int, group: str | None, reservation: _Reservation) -> bool:
        """Generate, validate and buffer one session. Returns True if buffered."""
        async with self._semaphore:
            for attempt in range(1, self.max_attempts + 1):
                if epoch != self._epoch:
                    return False

                exclude_ids, exclude_pairs = self._exclusions(reservation)
                session = await self.source.next_session(
                    group=group, exclude_ids=exclude_ids, exclude_pairs=exclude_pairs
                )
                if session is None or reservation.conflicts(session):
                    continue
                reservation.claim(session)

                if not await self._validate(session):
                    if attempt < self.max_attempts:
                        self._discarded += 1
                        logger.debug(
                            "session_discarded",
                            extra={"key": session.key, "attempt": attempt},
                        )
                        continue
                    self._accepted_unvalidated += 1
                    logger.info("session_accepted_unvalidated", extra={"key": session.key})

                return self._push(session, epoch)
        return False

    def _exclusions(self, reservation: _Reservation) -> tuple[frozenset[str], frozenset[str]]:
        ids = set(self.seen.items) | reservation.ids
        pairs = set(self.seen.pairs) | reservation.pairs
        for buffered in self._buffer:
            ids |= session_item_ids(buffered)
            if isinstance(buffered, PairSession):
                pairs.add(buffered.key)
        return frozenset(ids), frozenset(pairs)

    def _push(self, session: Session, epoch: int) -> bool:
        if epoch != self._epoch or len(self._buffer) >= self.target_size:
            return False
        ids = session_item_ids(session)
        for buffered in self._buffer:
            if buffered.key == session.key or session_item_ids(buffered) & ids:
                return False
        self._buffer.append(session)
        return True

    async def _validate(self, session: Session) -> bool:
        if self.validator is None:
            return True
        return await self.validator.validate_session(session)

    def _forget_assets(self, sessions: Iterable[Session]) -> None:
        if self.validator is None:
            return
        for session in sessions:
            for item in session.items:
                self.validator.forget(item.media_ref)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def warm_up(self) -> int:
        """Initial fill, then top up to the minimum if the fill came back short."""
        await self.refill()
        return await self.ensure_minimum()

    async def ensure_minimum(self) -> int:
        if len(self._buffer) < self.minimum_size:
            await self.refill()
        return len(self._buffer)

    def reset_tracking(self, keep_last: int | None = None) -> None:
        """Forget seen items and pairs except the most recent few."""
        self.seen.reset(self.keep_recent if keep_last is None else keep_last)
        logger.info("tracking_reset", extra={"seen_items": len(self.seen.items)})

    async def force_reset(self) -> int:
        """
        Clear buffer, tracking and validation cache, then refill and wait.

        Refills in flight are cancelled and their results discarded, so
        overlapping resets each end with a refill of their own epoch.
        Returns the buffer size after the refill.
        """
        self._epoch += 1
        self._buffer.clear()
        self.seen.clear()
        if self.validator is not None:
            self.validator.clear()
        logger.warning("PRELOAD_FORCE_RESET", extra={"epoch": self._epoch})

        running = self._refill_task
        if running is not None and not running.done():
            running.cancel()
        # Earlier refills belong to a stale epoch and can no longer push
        self._refilling = False
        await self.refill()
        return len(self._buffer)

    async def close(self) -> None:
        """Cancel background refills."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.wait(tasks)
        self._refilling = False

    def status(self) -> dict[str, Any]:
        return {
            "size": len(self._buffer),
            "is_refilling": self._refilling,
            "target_size": self.target_size,
            "minimum_size": self.minimum_size,
            "refill_trigger": self.refill_trigger,
            "seen_items": len(self.seen.items),
            "seen_pairs": len(self.seen.pairs),
            "popped": self._popped,
            "empty_pops": self._empty_pops,
            "discarded": self._discarded,
            "accepted_unvalidated": self._accepted_unvalidated,
            "refills": self._refills,
            "evicted": self._evicted,
        }
