from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from cineclub.application.polls.vote_service import VoteService
from cineclub.application.ports.poll_render_port import PollPublisher
from cineclub.config.settings import ANNOUNCE_CHANNEL_ID
from cineclub.domain.catalog.titles import format_movie_line
from cineclub.server.api.rest.auth import require_api_key
from cineclub.server.api.rest.dependencies import get_poll_publisher, get_vote_service
from cineclub.server.models.schemas import MovieOut, PollRequest, PollResponse

router = APIRouter(prefix="/api/v1", tags=["polls-v1"], dependencies=[Depends(require_api_key)])


@router.post("/polls", response_model=PollResponse)
async def launch_poll(
    request: PollRequest,
    service: VoteService = Depends(get_vote_service),
    publisher: Optional[PollPublisher] = Depends(get_poll_publisher),
) -> PollResponse:
    """Launch a vote over explicit titles in the announce channel.

    Without an announce channel the resolved selection is returned and no
    poll is opened.
    """
    launch = await service.launch_from_titles(
        request.titles,
        channel_id=str(ANNOUNCE_CHANNEL_ID or "http"),
        publisher=publisher,
        duration_s=request.duration_s,
    )
    snap = launch.snapshot
    return PollResponse(
        launched=snap is not None,
        poll_id=snap.poll_id if snap else None,
        closes_at=snap.closes_at if snap else None,
        duration_s=launch.duration_s,
        count=len(launch.movies),
        titles=[format_movie_line(m) for m in launch.movies],
        movies=[MovieOut.from_domain(m) for m in launch.movies],
    )
