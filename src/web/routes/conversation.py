"""Onboarding interview endpoint: one POST route, dispatched on ``action``."""

import asyncio
from typing import Optional, Union

import structlog
from fastapi import APIRouter, Depends, Header

from conversation.orchestrator import ConversationOrchestrator
from web.deps import get_orchestrator
from web.models import ConversationRequest, MessageResponse, StartResponse

logger = structlog.get_logger()

router = APIRouter(prefix="/api/onboarding", tags=["onboarding"])


@router.post("/conversation", response_model=Union[StartResponse, MessageResponse])
async def conversation(
    body: ConversationRequest,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
    user_agent: Optional[str] = Header(None),
    x_timezone: Optional[str] = Header(None),
):
    """Start an interview or send one answer.

    Failures raise ``TurnError``; the app-level handler renders them.
    """
    if body.action == "start":
        geolocation = body.geolocation.model_dump() if body.geolocation else None
        started = await asyncio.to_thread(
            orchestrator.start,
            owner_id=body.owner_id,
            geolocation=geolocation,
            timezone=x_timezone,
            user_agent=user_agent,
        )
        logger.info("onboarding.started", session_token=started.session_token)
        return StartResponse(
            session_token=started.session_token,
            message=started.greeting,
            is_done=started.is_done,
            estimated_completion=started.estimated_completion,
            environment_collected=started.environment_collected,
        )

    turn = await asyncio.to_thread(orchestrator.message, body.session_token, body.text)
    if turn.is_done:
        logger.info(
            "onboarding.completed",
            session_token=body.session_token,
            profile_id=turn.profile_id,
        )
    return MessageResponse(
        message=turn.message,
        suggestions=turn.suggestions or None,
        is_done=turn.is_done,
        profile=turn.profile.model_dump(mode="json") if turn.profile else None,
        profile_id=turn.profile_id,
        estimated_completion=turn.estimated_completion,
        current_phase=turn.current_phase,
    )
