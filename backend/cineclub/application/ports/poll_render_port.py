from __future__ import annotations

from typing import Protocol

from cineclub.domain.polls import PollSnapshot


class PollRenderSink(Protocol):
    """User-visible surface of one poll (a chat message, for instance)."""

    async def render_tally(self, snapshot: PollSnapshot) -> None:
        ...

    async def render_final(self, snapshot: PollSnapshot) -> None:
        """Show the final tally and winner and stop accepting ballots on the surface."""
        ...


class PollPublisher(Protocol):
    """Posts the initial vote surface and returns the sink bound to it."""

    async def publish(self, snapshot: PollSnapshot) -> PollRenderSink:
        ...


class ChannelMessenger(Protocol):
    async def send_text(self, text: str) -> None:
        ...
