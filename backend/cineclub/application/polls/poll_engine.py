"""
In-process vote lifecycle.

Every active poll lives in a PollRegistry slot together with its lock, its
render sink and its deadline task. Ballot mutation, tally read and render
all happen under the poll's lock, so renders leave in the order votes were
applied. Polls are volatile: a restart drops them.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, Iterator, Optional, Sequence

from cineclub.application.ports.poll_render_port import PollRenderSink
from cineclub.domain.errors import PollNotFound
from cineclub.domain.polls import ActivePoll, PollSnapshot

logger = logging.getLogger(__name__)


@dataclass
class _PollSlot:
    poll: ActivePoll
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    sink: Optional[PollRenderSink] = None
    timer: Optional[asyncio.Task] = None
    evictor: Optional[asyncio.Task] = None


class PollRegistry:
    """Active polls by id. One instance per process, built at startup."""

    def __init__(self) -> None:
        self._slots: Dict[str, _PollSlot] = {}

    def __contains__(self, poll_id: object) -> bool:
        return poll_id in self._slots

    def __len__(self) -> int:
        return len(self._slots)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._slots))

    def add(self, slot: _PollSlot) -> None:
        if slot.poll.id in self._slots:
            raise ValueError(f"poll {slot.poll.id!r} already registered")
        self._slots[slot.poll.id] = slot

    def get(self, poll_id: str) -> _PollSlot:
        slot = self._slots.get(poll_id)
        if slot is None:
            raise PollNotFound(poll_id)
        return slot

    def discard(self, poll_id: str) -> None:
        self._slots.pop(poll_id, None)


class PollEngine:
    def __init__(
        self,
        *,
        registry: Optional[PollRegistry] = None,
        retention_s: float = 600.0,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._registry = registry if registry is not None else PollRegistry()
        self._retention_s = max(0.0, float(retention_s))
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def registry(self) -> PollRegistry:
        return self._registry

    def _new_poll_id(self, channel_id: str, now: datetime) -> str:
        base = f"{channel_id}-{int(now.timestamp() * 1000)}"
        poll_id = base
        suffix = 1
        while poll_id in self._registry:
            suffix += 1
            poll_id = f"{base}-{suffix}"
        return poll_id

    async def create(
        self,
        movies: Sequence[object],
        *,
        duration_s: float,
        channel_id: str,
        sink: Optional[PollRenderSink] = None,
    ) -> PollSnapshot:
        """Open a poll over 2..5 movies and schedule its close."""
        now = self._clock()
        poll = ActivePoll.open(
            poll_id=self._new_poll_id(str(channel_id), now),
            channel_id=str(channel_id),
            movies=movies,
            created_at=now,
            duration_s=duration_s,
        )
        slot = _PollSlot(poll=poll, sink=sink)
        self._registry.add(slot)
        slot.timer = asyncio.create_task(self._close_after(poll.id, float(duration_s)))
        logger.info("Poll %s opened with %d options for %ss", poll.id, len(poll.options), duration_s)
        return poll.snapshot()

    def attach_sink(self, poll_id: str, sink: PollRenderSink) -> None:
        self._registry.get(poll_id).sink = sink

    def snapshot(self, poll_id: str) -> PollSnapshot:
        return self._registry.get(poll_id).poll.snapshot()

    async def cast_vote(self, poll_id: str, voter_id: str, option: int) -> PollSnapshot:
        """Record (or change) a voter's choice and re-render the tally."""
        slot = self._registry.get(poll_id)
        async with slot.lock:
            slot.poll.cast(str(voter_id), int(option))
            snap = slot.poll.snapshot()
            await self._render(slot, snap)
        return snap

    async def close_poll(self, poll_id: str) -> Optional[PollSnapshot]:
        """Close the poll once. Returns None when it was already closed."""
        slot = self._registry.get(poll_id)
        async with slot.lock:
            if not slot.poll.close():
                return None
            snap = slot.poll.snapshot()
            await self._render(slot, snap)

        timer = slot.timer
        if timer is not None and timer is not asyncio.current_task() and not timer.done():
            timer.cancel()
        slot.evictor = asyncio.create_task(self._evict_after(poll_id, self._retention_s))
        winner = snap.winner_option
        logger.info(
            "Poll %s closed: votes=%d winner=%s",
            poll_id,
            snap.total_votes,
            winner.title if winner else None,
        )
        return snap

    async def abandon(self, poll_id: str) -> None:
        """Drop a poll that never reached its voters, without rendering a result."""
        slot = self._registry.get(poll_id)
        self._registry.discard(poll_id)
        for task in (slot.timer, slot.evictor):
            if task is not None and not task.done():
                task.cancel()
        logger.warning("Poll %s abandoned before publication", poll_id)

    async def _render(self, slot: _PollSlot, snap: PollSnapshot) -> None:
        sink = slot.sink
        if sink is None:
            return
        try:
            if snap.closed:
                await sink.render_final(snap)
            else:
                await sink.render_tally(snap)
        except Exception:
            logger.exception("Poll %s render failed (closed=%s)", snap.poll_id, snap.closed)

    async def _close_after(self, poll_id: str, delay_s: float) -> None:
        await asyncio.sleep(delay_s)
        try:
            await self.close_poll(poll_id)
        except PollNotFound:
            logger.debug("Poll %s vanished before its deadline", poll_id)

    async def _evict_after(self, poll_id: str, delay_s: float) -> None:
        await asyncio.sleep(delay_s)
        self._registry.discard(poll_id)
        logger.debug("Poll %s evicted after retention", poll_id)

    async def shutdown(self) -> None:
        """Cancel every pending deadline and eviction (process exit only)."""
        tasks = []
        for poll_id in self._registry:
            slot = self._registry.get(poll_id)
            for task in (slot.timer, slot.evictor):
                if task is not None and not task.done():
                    task.cancel()
                    tasks.append(task)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Poll engine stopped (%d tasks cancelled)", len(tasks))
