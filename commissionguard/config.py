# commissionguard/config.py
import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel


class ConfigurationError(Exception):
    """Raised when required deployment identifiers are missing."""

    def __init__(self, missing):
        self.missing = list(missing)
        super().__init__("Missing required settings: " + ", ".join(self.missing))


class Settings(BaseModel):
    mongodb_uri: str
    mongodb_db: str = "commissionguard"
    app_id: str
    jwt_secret: str
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24
    session_cookie: str = "cg_session"

    @property
    def tickets_collection(self) -> str:
        # Tickets live under a path scoped by the deployment's app id
        return f"artifacts.{self.app_id}.tickets"


REQUIRED = {
    "mongodb_uri": "MONGODB_URI",
    "app_id": "APP_ID",
    "jwt_secret": "JWT_SECRET",
}


def load_settings(env: Optional[dict] = None) -> Settings:
    """Build settings from the environment, failing fast on missing identifiers.

    When ``env`` is None the process environment is used, after loading ``.env``.
    """
    if env is None:
        load_dotenv()
        env = os.environ

    missing = [var for var in REQUIRED.values() if not env.get(var)]
    if missing:
        raise ConfigurationError(missing)

    values = {field: env[var] for field, var in REQUIRED.items()}
    if env.get("MONGODB_DB"):
        values["mongodb_db"] = env["MONGODB_DB"]
    if env.get("JWT_ALGORITHM"):
        values["jwt_algorithm"] = env["JWT_ALGORITHM"]
    if env.get("ACCESS_TOKEN_EXPIRE_MINUTES"):
        values["access_token_expire_minutes"] = int(env["ACCESS_TOKEN_EXPIRE_MINUTES"])
    return Settings(**values)
