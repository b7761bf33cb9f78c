from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from cineclub.application.ports.poll_render_port import ChannelMessenger
from cineclub.server.api.rest.auth import require_api_key
from cineclub.server.api.rest.dependencies import get_channel_messenger
from cineclub.server.models.schemas import AnnouncementRequest, AnnouncementResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["announcements-v1"], dependencies=[Depends(require_api_key)])


@router.post("/announcements", response_model=AnnouncementResponse)
async def announce(
    request: AnnouncementRequest,
    messenger: Optional[ChannelMessenger] = Depends(get_channel_messenger),
) -> AnnouncementResponse:
    message = request.message.strip()
    if not message:
        raise HTTPException(status_code=400, detail="message is required")
    if messenger is None:
        raise HTTPException(status_code=400, detail="announce channel not configured")
    await messenger.send_text(message)
    logger.info("Announcement sent (%d chars)", len(message))
    return AnnouncementResponse(sent=True)
