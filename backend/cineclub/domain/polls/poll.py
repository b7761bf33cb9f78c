from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional, Sequence

from cineclub.domain.errors import PollClosed

MIN_POLL_OPTIONS = 2
MAX_POLL_OPTIONS = 5


@dataclass(frozen=True)
class PollOption:
    """One ballot choice. `number` is the 1-based position, stable for the poll's life."""

    number: int
    tmdb_id: int
    title: str
    year: Optional[int] = None


@dataclass(frozen=True)
class PollSnapshot:
    """Consistent view of a poll, taken while holding the poll's lock."""

    poll_id: str
    channel_id: str
    options: tuple[PollOption, ...]
    counts: tuple[int, ...]
    closed: bool
    closes_at: datetime
    winner: Optional[int] = None

    @property
    def total_votes(self) -> int:
        return sum(self.counts)

    def count_for(self, number: int) -> int:
        return self.counts[number - 1]

    @property
    def winner_option(self) -> Optional[PollOption]:
        if self.winner is None:
            return None
        return self.options[self.winner - 1]


@dataclass
class ActivePoll:
    """Volatile vote state: Open -> Closed, nothing else."""

    id: str
    channel_id: str
    options: tuple[PollOption, ...]
    created_at: datetime
    closes_at: datetime
    ballots: dict[str, int] = field(default_factory=dict)
    closed: bool = False
    winner: Optional[int] = None

    @classmethod
    def open(
        cls,
        *,
        poll_id: str,
        channel_id: str,
        movies: Sequence[Any],
        created_at: datetime,
        duration_s: float,
    ) -> "ActivePoll":
        if not (MIN_POLL_OPTIONS <= len(movies) <= MAX_POLL_OPTIONS):
            raise ValueError(
                f"a poll needs between {MIN_POLL_OPTIONS} and {MAX_POLL_OPTIONS} movies, got {len(movies)}"
            )
        if duration_s <= 0:
            raise ValueError("duration_s must be positive")
        options = tuple(
            PollOption(number=idx, tmdb_id=int(m.tmdb_id), title=str(m.title), year=m.year)
            for idx, m in enumerate(movies, start=1)
        )
        return cls(
            id=poll_id,
            channel_id=str(channel_id),
            options=options,
            created_at=created_at,
            closes_at=created_at + timedelta(seconds=float(duration_s)),
        )

    def cast(self, voter_id: str, option: int) -> None:
        if self.closed:
            raise PollClosed(self.id)
        if not (1 <= int(option) <= len(self.options)):
            raise ValueError(f"option must be between 1 and {len(self.options)}")
        # Last write wins: one ballot per voter.
        self.ballots[str(voter_id)] = int(option)

    def tally(self) -> dict[int, int]:
        counts = {opt.number: 0 for opt in self.options}
        for choice in self.ballots.values():
            counts[choice] += 1
        return counts

    def close(self) -> bool:
        """Close once. Returns False when the poll was already closed."""
        if self.closed:
            return False
        self.closed = True
        counts = self.tally()
        # Highest tally; ties go to the lowest option number.
        self.winner = min(counts, key=lambda number: (-counts[number], number))
        return True

    def snapshot(self) -> PollSnapshot:
        counts = self.tally()
        return PollSnapshot(
            poll_id=self.id,
            channel_id=self.channel_id,
            options=self.options,
            counts=tuple(counts[opt.number] for opt in self.options),
            closed=self.closed,
            closes_at=self.closes_at,
            winner=self.winner,
        )
