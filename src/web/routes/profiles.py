"""Read access to synthesized profiles."""

import asyncio

import structlog
from fastapi import APIRouter, Depends, HTTPException

from synthesis.storage import ProfileStore
from web.deps import get_profile_store
from web.models import StoredProfileResponse

logger = structlog.get_logger()

router = APIRouter(prefix="/api/profiles", tags=["profiles"])


@router.get("/{profile_id}", response_model=StoredProfileResponse)
async def get_profile(profile_id: str, store: ProfileStore = Depends(get_profile_store)):
    stored = await asyncio.to_thread(store.get, profile_id)
    if stored is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return StoredProfileResponse(
        id=stored.id,
        session_token=stored.session_token,
        owner_id=stored.owner_id,
        created_at=stored.created_at,
        profile=stored.profile.model_dump(mode="json"),
    )
