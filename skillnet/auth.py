"""FastAPI security dependency.

`get_current_user` validates the bearer token and returns the
corresponding `User` from the database. The acting user is always taken
from the token's `sub` claim, never from the request body.
"""

from fastapi import Depends, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from . import models, repositories
from .config import Settings, get_settings
from .database import get_session
from .errors import UnauthenticatedError
from .services import AuthService

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Security(bearer_scheme),
    db: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> models.User:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise UnauthenticatedError("not authenticated")
    payload = AuthService(db, settings).decode_token(credentials.credentials)
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise UnauthenticatedError("invalid token payload")
    user = repositories.UserRepository(db).get(user_id)
    if not user:
        raise UnauthenticatedError("user not found")
    return user
