"""Pydantic request/response schemas used by the API.

Schemas keep API input/output shapes stable and make sure password
hashes never leave the service layer.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class RegisterIn(BaseModel):
    """Payload for user registration."""
    pseudo: str = Field(min_length=1, max_length=50)
    email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(min_length=1)


class LoginIn(BaseModel):
    """Login payload; `identifier` is either a pseudo or an e-mail."""
    identifier: str
    password: str


class TokenOut(BaseModel):
    """Authentication response containing an access token."""
    access_token: str
    token_type: str = "bearer"


class UserRead(BaseModel):
    """Sanitized user record (no password hash)."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    pseudo: str
    email: str
    created_at: datetime


class FriendshipIn(BaseModel):
    """Friendship request payload naming the target by pseudo."""
    pseudo: str


class FriendshipRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    requester_id: int
    target_id: int
    accepted: bool
    created_at: datetime


class CompetenceCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None


class CompetenceUpdate(BaseModel):
    """Partial update; fields left unset are not touched."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None


class CompetenceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str]
    created_at: datetime
