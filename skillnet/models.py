"""SQLModel data models.

This module defines the application's database tables using SQLModel.
Friendships are directed: a mutual friendship is stored as two rows,
one per direction.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(SQLModel, table=True):
    """A registered user.

    Fields:
    - `pseudo`: unique public handle
    - `email`: unique login e-mail
    - `password_hash`: hashed password string (never store plaintext)
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    pseudo: str = Field(index=True, nullable=False, unique=True)
    email: str = Field(index=True, nullable=False, unique=True)
    password_hash: str
    created_at: datetime = Field(default_factory=_utcnow)


class Friendship(SQLModel, table=True):
    """A friendship request from `requester_id` to `target_id`.

    `accepted` stays False while the request is pending. Accepting a
    request also creates the accepted mirror row in the other direction.
    """
    __table_args__ = (
        UniqueConstraint("requester_id", "target_id", name="uq_friendship_direction"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    requester_id: int = Field(foreign_key="user.id", index=True)
    target_id: int = Field(foreign_key="user.id", index=True)
    accepted: bool = False
    created_at: datetime = Field(default_factory=_utcnow)


class Competence(SQLModel, table=True):
    """A skill entry in the competences catalog."""
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    description: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
