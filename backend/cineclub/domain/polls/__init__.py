from __future__ import annotations

from cineclub.domain.polls.poll import (
    MAX_POLL_OPTIONS,
    MIN_POLL_OPTIONS,
    ActivePoll,
    PollOption,
    PollSnapshot,
)

__all__ = [
    "MAX_POLL_OPTIONS",
    "MIN_POLL_OPTIONS",
    "ActivePoll",
    "PollOption",
    "PollSnapshot",
]
