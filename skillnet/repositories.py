"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (users,
friendships, competences) and returns SQLModel objects.
`UserRepository` and `CompetenceRepository` commit their own writes.
`FriendshipRepository` only flushes: the ledger service commits once so
that a row and its mirror are written together.
"""

from typing import List, Optional

from sqlalchemy import and_, or_
from sqlmodel import Session, select

from . import models


class UserRepository:
    """CRUD operations for `User` objects."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, user: models.User) -> models.User:
        """Persist a new user and return the managed instance."""
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def get(self, user_id: int) -> Optional[models.User]:
        """Get a `User` by primary key."""
        return self.session.get(models.User, user_id)

    def get_by_pseudo(self, pseudo: str) -> Optional[models.User]:
        """Return a `User` by pseudo or `None` if not found."""
        stmt = select(models.User).where(models.User.pseudo == pseudo)
        return self.session.exec(stmt).first()

    def get_by_email(self, email: str) -> Optional[models.User]:
        """Return a `User` by e-mail or `None` if not found."""
        stmt = select(models.User).where(models.User.email == email)
        return self.session.exec(stmt).first()

    def get_by_identifier(self, identifier: str) -> Optional[models.User]:
        """Return the user whose e-mail or pseudo equals `identifier`.

        Identifiers containing `@` are tried as an e-mail first.
        """
        if "@" in identifier:
            user = self.get_by_email(identifier)
            if user:
                return user
        return self.get_by_pseudo(identifier)


class FriendshipRepository:
    """Query and staging helpers for `Friendship` rows."""
    def __init__(self, session: Session):
        self.session = session

    def get(self, friendship_id: int) -> Optional[models.Friendship]:
        return self.session.get(models.Friendship, friendship_id)

    def get_by_user_and_friend(self, user_id: int, friend_id: int) -> Optional[models.Friendship]:
        """Return the row directed from `user_id` to `friend_id`, if any."""
        stmt = select(models.Friendship).where(
            models.Friendship.requester_id == user_id,
            models.Friendship.target_id == friend_id,
        )
        return self.session.exec(stmt).first()

    def exists_between(self, user_id: int, other_id: int) -> bool:
        """Return True if any row links the two users, in either direction."""
        stmt = select(models.Friendship.id).where(
            or_(
                and_(models.Friendship.requester_id == user_id, models.Friendship.target_id == other_id),
                and_(models.Friendship.requester_id == other_id, models.Friendship.target_id == user_id),
            )
        )
        return self.session.exec(stmt).first() is not None

    def list_accepted_for(self, user_id: int) -> List[models.Friendship]:
        """Accepted rows owned by `user_id` (one per friend)."""
        stmt = select(models.Friendship).where(
            models.Friendship.requester_id == user_id,
            models.Friendship.accepted == True,  # noqa: E712
        ).order_by(models.Friendship.id)
        return list(self.session.exec(stmt).all())

    def list_pending_for(self, user_id: int) -> List[models.Friendship]:
        """Requests awaiting a response from `user_id`."""
        stmt = select(models.Friendship).where(
            models.Friendship.target_id == user_id,
            models.Friendship.accepted == False,  # noqa: E712
        ).order_by(models.Friendship.id)
        return list(self.session.exec(stmt).all())

    def add(self, friendship: models.Friendship) -> models.Friendship:
        """Stage `friendship` and flush so it gets an id."""
        self.session.add(friendship)
        self.session.flush()
        return friendship

    def delete(self, friendship: models.Friendship) -> None:
        self.session.delete(friendship)
        self.session.flush()


class CompetenceRepository:
    """CRUD operations for `Competence` objects."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, competence: models.Competence) -> models.Competence:
        self.session.add(competence)
        self.session.commit()
        self.session.refresh(competence)
        return competence

    def get(self, competence_id: int) -> Optional[models.Competence]:
        return self.session.get(models.Competence, competence_id)

    def list_all(self) -> List[models.Competence]:
        stmt = select(models.Competence).order_by(models.Competence.id)
        return list(self.session.exec(stmt).all())

    def save(self, competence: models.Competence) -> models.Competence:
        """Commit changes made to an already persisted competence."""
        self.session.add(competence)
        self.session.commit()
        self.session.refresh(competence)
        return competence

    def delete(self, competence: models.Competence) -> None:
        self.session.delete(competence)
        self.session.commit()
