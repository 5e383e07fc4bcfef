"""Session schemas."""
from pydantic import BaseModel, EmailStr, Field
from typing import Any, Dict, Optional
from datetime import datetime


class RegisterSessionRequest(BaseModel):
    """Candidate registration."""
    full_name: str = Field(..., min_length=1)
    email: EmailStr
    phone: Optional[str] = None
    location: Optional[str] = None
    experience: Dict[str, Any] = Field(default_factory=dict)


class SessionResponse(BaseModel):
    """Response schema for a created session."""
    session_id: str
    created_at: datetime
    is_valid: bool
    expires_in_hours: float


class InvalidateSessionRequest(BaseModel):
    reason: Optional[str] = None


class InvalidateSessionResponse(BaseModel):
    success: bool
    message: str
