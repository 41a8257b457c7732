"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories
and domain rules. Services raise `errors.SkillnetError` subclasses for
outcomes the caller must see (missing rows, wrong actor, invalid state)
and let infrastructure failures propagate.
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import jwt
from passlib.context import CryptContext
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session

from . import models, repositories
from .config import Settings
from .errors import ConflictError, ForbiddenError, NotFoundError, UnauthenticatedError
from .schemas import CompetenceCreate, CompetenceUpdate, UserRead

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

logger = logging.getLogger("skillnet.services")


class AuthService:
    """Registration, credential verification and token issuance."""
    def __init__(self, session: Session, settings: Settings):
        self.session = session
        self.settings = settings
        self.user_repo = repositories.UserRepository(session)

    def register(self, pseudo: str, email: str, password: str) -> models.User:
        """Create a new user with a hashed password.

        Raises `ConflictError` when the pseudo or e-mail is already taken.
        """
        if self.user_repo.get_by_pseudo(pseudo):
            raise ConflictError("pseudo already taken")
        if self.user_repo.get_by_email(email):
            raise ConflictError("email already registered")
        user = models.User(pseudo=pseudo, email=email, password_hash=PWD_CTX.hash(password))
        try:
            user = self.user_repo.create(user)
        except IntegrityError:
            # lost a race against a concurrent registration
            self.session.rollback()
            raise ConflictError("pseudo or email already registered")
        logger.info("user registered id=%s pseudo=%s", user.id, user.pseudo)
        return user

    def verify_credentials(self, identifier: str, password: str) -> Optional[UserRead]:
        """Check `password` for the user named by pseudo or e-mail.

        Returns the sanitized user on success and `None` for an unknown
        user or a wrong password.
        """
        user = self.user_repo.get_by_identifier(identifier)
        if not user:
            return None
        if not PWD_CTX.verify(password, user.password_hash):
            return None
        return UserRead.model_validate(user)

    def issue_token(self, user_id: int) -> str:
        """Return a signed bearer token for `user_id`.

        The user is re-read from the database so the claims reflect the
        stored record rather than whatever the caller passed in.
        """
        user = self.user_repo.get(user_id)
        if not user:
            raise NotFoundError("user not found")
        now = datetime.now(timezone.utc)
        claim = self.settings.TOKEN_DISPLAY_CLAIM
        payload = {
            "sub": str(user.id),
            claim: getattr(user, claim),
            "iat": now,
            "exp": now + timedelta(hours=self.settings.JWT_EXPIRE_HOURS),
        }
        return jwt.encode(payload, self.settings.JWT_SECRET, algorithm=self.settings.JWT_ALGORITHM)

    def decode_token(self, token: str) -> dict:
        """Verify signature and expiry and return the token payload."""
        try:
            return jwt.decode(token, self.settings.JWT_SECRET, algorithms=[self.settings.JWT_ALGORITHM])
        except jwt.ExpiredSignatureError:
            raise UnauthenticatedError("token expired")
        except jwt.InvalidTokenError:
            raise UnauthenticatedError("invalid token")


class FriendshipService:
    """The friendship ledger: request, accept (with mirror) and remove.

    A mutual friendship is two accepted rows, one per direction. Accept
    and remove touch both rows and commit them in a single transaction.
    """
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.FriendshipRepository(session)
        self.user_repo = repositories.UserRepository(session)

    def find_one(self, friendship_id: int) -> models.Friendship:
        friendship = self.repo.get(friendship_id)
        if not friendship:
            raise NotFoundError("friendship not found")
        return friendship

    def find_by_user_and_friend(self, user_id: int, friend_id: int) -> models.Friendship:
        friendship = self.repo.get_by_user_and_friend(user_id, friend_id)
        if not friendship:
            raise NotFoundError("friendship not found")
        return friendship

    def list_friends(self, user_id: int) -> List[models.Friendship]:
        return self.repo.list_accepted_for(user_id)

    def list_pending(self, user_id: int) -> List[models.Friendship]:
        return self.repo.list_pending_for(user_id)

    def request(self, requester_id: int, target_id: int) -> models.Friendship:
        """Create a pending request from `requester_id` to `target_id`.

        Only one row may link a pair of users before acceptance, so a
        second request in either direction is refused. The unique
        (requester_id, target_id) constraint catches concurrent requests
        that both pass the check.
        """
        if not self.user_repo.get(requester_id) or not self.user_repo.get(target_id):
            raise NotFoundError("user not found")
        if requester_id == target_id:
            raise ConflictError("cannot send a friendship request to yourself")
        if self.repo.exists_between(requester_id, target_id):
            raise ConflictError("a friendship already links these users")
        with self._transaction(conflict="a friendship already links these users"):
            friendship = self.repo.add(models.Friendship(requester_id=requester_id, target_id=target_id))
        self.session.refresh(friendship)
        logger.info("friendship requested id=%s %s -> %s", friendship.id, requester_id, target_id)
        return friendship

    def request_by_pseudo(self, requester_id: int, pseudo: str) -> models.Friendship:
        target = self.user_repo.get_by_pseudo(pseudo)
        if not target:
            raise NotFoundError("user not found")
        return self.request(requester_id, target.id)

    def accept(self, friendship_id: int, acting_user_id: int) -> models.Friendship:
        """Accept a pending request as its target and create the mirror row."""
        friendship = self.find_one(friendship_id)
        if friendship.target_id != acting_user_id:
            raise ForbiddenError("only the requested user may accept")
        if friendship.accepted:
            raise ConflictError("friendship already accepted")
        with self._transaction(conflict="friendship already accepted"):
            friendship.accepted = True
            self.repo.add(friendship)
            mirror = self.repo.get_by_user_and_friend(friendship.target_id, friendship.requester_id)
            if mirror is None:
                mirror = models.Friendship(requester_id=friendship.target_id, target_id=friendship.requester_id)
            mirror.accepted = True
            self.repo.add(mirror)
        self.session.refresh(friendship)
        logger.info("friendship accepted id=%s mirror=%s", friendship.id, mirror.id)
        return friendship

    def remove(self, friendship_id: int, acting_user_id: int) -> None:
        """Delete a row, and its mirror when the friendship was accepted.

        Either party may remove. A missing mirror does not block the
        deletion of the primary row.
        """
        friendship = self.find_one(friendship_id)
        if acting_user_id not in (friendship.requester_id, friendship.target_id):
            raise ForbiddenError("only a party to the friendship may remove it")
        with self._transaction():
            if friendship.accepted:
                mirror = self.repo.get_by_user_and_friend(friendship.target_id, friendship.requester_id)
                if mirror is not None:
                    self.repo.delete(mirror)
                else:
                    logger.warning("accepted friendship id=%s has no mirror row", friendship.id)
            self.repo.delete(friendship)
        logger.info("friendship removed id=%s by user=%s", friendship_id, acting_user_id)

    @contextmanager
    def _transaction(self, conflict: Optional[str] = None):
        """Commit the staged writes once, or roll all of them back.

        With `conflict` set, a constraint violation is reported as a
        `ConflictError` carrying that message.
        """
        try:
            yield
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            logger.exception("friendship transaction rolled back")
            if conflict is None:
                raise
            raise ConflictError(conflict)
        except SQLAlchemyError:
            self.session.rollback()
            logger.exception("friendship transaction rolled back")
            raise


class CompetenceService:
    """CRUD over the competences catalog."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.CompetenceRepository(session)

    def create(self, data: CompetenceCreate) -> models.Competence:
        return self.repo.create(models.Competence(**data.model_dump()))

    def find_all(self) -> List[models.Competence]:
        return self.repo.list_all()

    def find_one(self, competence_id: int) -> models.Competence:
        competence = self.repo.get(competence_id)
        if not competence:
            raise NotFoundError("competence not found")
        return competence

    def update(self, competence_id: int, data: CompetenceUpdate) -> models.Competence:
        """Apply the fields the client actually sent; others are kept."""
        competence = self.find_one(competence_id)
        changes = data.model_dump(exclude_unset=True)
        # name is required on the table, an explicit null means "leave it"
        if changes.get("name", "") is None:
            changes.pop("name")
        for key, value in changes.items():
            setattr(competence, key, value)
        return self.repo.save(competence)

    def remove(self, competence_id: int) -> None:
        self.repo.delete(self.find_one(competence_id))
