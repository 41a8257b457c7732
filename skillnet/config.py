"""Application settings and validation."""

import os
from functools import lru_cache

DEFAULT_JWT_SECRET = "change_me_for_prod"
TOKEN_DISPLAY_CLAIMS = ("pseudo", "email")


class Settings:
    ENV: str
    DATABASE_URL: str
    JWT_SECRET: str
    JWT_ALGORITHM: str
    JWT_EXPIRE_HOURS: int
    TOKEN_DISPLAY_CLAIM: str
    ALLOW_INSECURE_JWT: bool
    ALLOW_DEV_CORS: bool
    LOG_LEVEL: str

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./skillnet.db")
        self.JWT_SECRET = os.getenv("JWT_SECRET", DEFAULT_JWT_SECRET)
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.JWT_EXPIRE_HOURS = int(os.getenv("JWT_EXPIRE_HOURS", "24"))
        # the display claim carried next to `sub` in issued tokens
        self.TOKEN_DISPLAY_CLAIM = os.getenv("TOKEN_DISPLAY_CLAIM", "pseudo").lower()
        self.ALLOW_INSECURE_JWT = os.getenv("ALLOW_INSECURE_JWT", "false").lower() == "true"
        self.ALLOW_DEV_CORS = os.getenv("ALLOW_DEV_CORS", "true").lower() == "true"
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self._validate()

    def _validate(self):
        if self.ENV != "dev" and not self.ALLOW_INSECURE_JWT and self.JWT_SECRET == DEFAULT_JWT_SECRET:
            raise RuntimeError("JWT_SECRET must be set to a non-default value in non-dev environments")
        if self.TOKEN_DISPLAY_CLAIM not in TOKEN_DISPLAY_CLAIMS:
            raise RuntimeError(f"TOKEN_DISPLAY_CLAIM must be one of {', '.join(TOKEN_DISPLAY_CLAIMS)}")
        if self.JWT_EXPIRE_HOURS <= 0:
            raise RuntimeError("JWT_EXPIRE_HOURS must be > 0")


@lru_cache
def get_settings() -> Settings:
    """Return the process settings, read from the environment once.

    Used as a FastAPI dependency so tests can override it.
    """
    return Settings()
