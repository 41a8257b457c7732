"""FastAPI application entrypoint and HTTP controllers.

Controllers are intentionally thin: they accept requests, delegate to
services, and return JSON responses. Domain errors raised by services
are translated to HTTP statuses by `error_handlers`.

Endpoints implemented:
- POST /auth/register
- POST /auth/login
- GET /auth/me
- POST /friendships
- GET /friendships
- GET /friendships/pending
- GET /friendships/{id}
- PATCH /friendships/{id}
- DELETE /friendships/{id}
- POST /competences, GET /competences
- GET, PATCH, DELETE /competences/{id}
"""

import json
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import List

from fastapi import Depends, FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import Session

from . import models, services
from .auth import get_current_user
from .config import Settings, get_settings
from .database import create_db_and_tables, get_session
from .error_handlers import register_error_handlers
from .errors import UnauthenticatedError
from .schemas import (
    CompetenceCreate,
    CompetenceRead,
    CompetenceUpdate,
    FriendshipIn,
    FriendshipRead,
    LoginIn,
    RegisterIn,
    TokenOut,
    UserRead,
)

logger = logging.getLogger("skillnet.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    create_db_and_tables()
    yield


def create_app() -> FastAPI:
    """Build the FastAPI application with middleware and routes.

    Routes and the engine read settings through `get_settings`, so tests
    swap configuration with `app.dependency_overrides`.
    """
    settings = get_settings()
    if not logging.getLogger().handlers:
        logging.basicConfig(level=settings.LOG_LEVEL)

    app = FastAPI(title="skillnet API", lifespan=lifespan)
    # Wide-open CORS keeps local browser frontends working without extra config in dev.
    if settings.ALLOW_DEV_CORS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    app.middleware("http")(request_context_middleware)
    register_error_handlers(app)
    _register_auth_routes(app)
    _register_friendship_routes(app)
    _register_competence_routes(app)
    return app


async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
        logger.exception(
            "request_failed %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "duration_ms": elapsed_ms,
                    "client": request.client.host if request.client else "unknown",
                },
                ensure_ascii=True,
            ),
        )
        raise
    response.headers["X-Request-ID"] = req_id
    elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
    logger.info(
        "request_done %s",
        json.dumps(
            {
                "request_id": req_id,
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
                "duration_ms": elapsed_ms,
                "client": request.client.host if request.client else "unknown",
            },
            ensure_ascii=True,
        ),
    )
    return response


def _register_auth_routes(app: FastAPI) -> None:

    @app.post('/auth/register', response_model=UserRead, status_code=status.HTTP_201_CREATED)
    def register(payload: RegisterIn, db: Session = Depends(get_session), settings: Settings = Depends(get_settings)):
        """Register a new user; pseudo and e-mail must both be unused."""
        return services.AuthService(db, settings).register(payload.pseudo, payload.email, payload.password)

    @app.post('/auth/login', response_model=TokenOut)
    def login(payload: LoginIn, db: Session = Depends(get_session), settings: Settings = Depends(get_settings)):
        """Authenticate by pseudo or e-mail and return a signed JWT.

        The token carries the user id as `sub` plus the configured
        display claim.
        """
        auth = services.AuthService(db, settings)
        user = auth.verify_credentials(payload.identifier, payload.password)
        if not user:
            raise UnauthenticatedError("invalid credentials")
        return TokenOut(access_token=auth.issue_token(user.id))

    @app.get('/auth/me', response_model=UserRead)
    def me(user: models.User = Depends(get_current_user)):
        return user


def _register_friendship_routes(app: FastAPI) -> None:

    @app.post('/friendships', response_model=FriendshipRead, status_code=status.HTTP_201_CREATED)
    def request_friendship(payload: FriendshipIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
        """Send a friendship request to the user named by `pseudo`."""
        return services.FriendshipService(db).request_by_pseudo(user.id, payload.pseudo)

    @app.get('/friendships', response_model=List[FriendshipRead])
    def list_friendships(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
        """List the caller's accepted friendships (rows the caller owns)."""
        return services.FriendshipService(db).list_friends(user.id)

    @app.get('/friendships/pending', response_model=List[FriendshipRead])
    def list_pending(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
        """List requests awaiting the caller's response."""
        return services.FriendshipService(db).list_pending(user.id)

    @app.get('/friendships/{friendship_id}', response_model=FriendshipRead)
    def get_friendship(friendship_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
        return services.FriendshipService(db).find_one(friendship_id)

    @app.patch('/friendships/{friendship_id}', response_model=FriendshipRead)
    def accept_friendship(friendship_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
        """Accept a pending request; only its target may do so.

        Also creates the accepted row in the opposite direction.
        """
        return services.FriendshipService(db).accept(friendship_id, user.id)

    @app.delete('/friendships/{friendship_id}', status_code=status.HTTP_204_NO_CONTENT)
    def remove_friendship(friendship_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
        """Remove a friendship (and its mirror row); either party may do so."""
        services.FriendshipService(db).remove(friendship_id, user.id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)


def _register_competence_routes(app: FastAPI) -> None:

    @app.post('/competences', response_model=CompetenceRead, status_code=status.HTTP_201_CREATED)
    def create_competence(payload: CompetenceCreate, db: Session = Depends(get_session)):
        return services.CompetenceService(db).create(payload)

    @app.get('/competences', response_model=List[CompetenceRead])
    def list_competences(db: Session = Depends(get_session)):
        return services.CompetenceService(db).find_all()

    @app.get('/competences/{competence_id}', response_model=CompetenceRead)
    def get_competence(competence_id: int, db: Session = Depends(get_session)):
        return services.CompetenceService(db).find_one(competence_id)

    @app.patch('/competences/{competence_id}', response_model=CompetenceRead)
    def update_competence(competence_id: int, payload: CompetenceUpdate, db: Session = Depends(get_session)):
        """Update the fields present in the body; the rest are kept."""
        return services.CompetenceService(db).update(competence_id, payload)

    @app.delete('/competences/{competence_id}', status_code=status.HTTP_204_NO_CONTENT)
    def delete_competence(competence_id: int, db: Session = Depends(get_session)):
        services.CompetenceService(db).remove(competence_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)


app = create_app()
