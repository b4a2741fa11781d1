"""Pydantic request/response schemas for the web API."""

from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator

# --- Onboarding conversation ---


class Geolocation(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    city: Optional[str] = None
    country: Optional[str] = None


class ConversationRequest(BaseModel):
    """Single endpoint, discriminated by ``action``."""

    action: Literal["start", "message"]
    owner_id: Optional[str] = Field(None, max_length=200)
    geolocation: Optional[Geolocation] = None
    session_token: Optional[str] = Field(None, max_length=200)
    text: Optional[str] = Field(None, max_length=5000)

    @model_validator(mode="after")
    def require_message_fields(self):
        if self.action == "message":
            if not self.session_token:
                raise ValueError("session_token is required for action 'message'")
            if not self.text or not self.text.strip():
                raise ValueError("text is required for action 'message'")
        return self


class StartResponse(BaseModel):
    session_token: str
    message: str
    is_done: bool = False
    estimated_completion: float = 0.0
    environment_collected: bool = False


class MessageResponse(BaseModel):
    message: str
    suggestions: Optional[list[str]] = None
    is_done: bool = False
    profile: Optional[dict] = None
    profile_id: Optional[str] = None
    estimated_completion: float = 0.0
    current_phase: int = 0


class ErrorResponse(BaseModel):
    error: str
    should_retry: bool = False
    should_restart: bool = False
    technical: Optional[str] = None


# --- Profiles ---


class StoredProfileResponse(BaseModel):
    id: str
    session_token: Optional[str] = None
    owner_id: Optional[str] = None
    created_at: float
    profile: dict
