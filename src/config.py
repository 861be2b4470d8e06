"""Configuration module for the Sun Class API.

This module provides centralized configuration management, including directory
paths, API server settings, database and credential settings. All values can
be overridden via environment variables. The resulting ``Settings`` object is
immutable and is built once at process start, then passed explicitly to the
components that need it.
"""

import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict

# Load environment variables from .env file
load_dotenv()

# --- Directory Configuration ---

# Root directory of the project
ROOT_DIR = Path(__file__).parent.parent.resolve()

# Data directory name
DATA_DIR_NAME = "data"
DATA_DIR = ROOT_DIR / DATA_DIR_NAME

# Uploaded assignment files (materials and submissions)
UPLOADS_DIR_NAME = "uploads"
UPLOADS_DIR = DATA_DIR / UPLOADS_DIR_NAME

# --- API Server Configuration ---

API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
API_PORT: int = int(os.getenv("API_PORT", "8081"))

# --- Application Defaults ---

PROJECT_NAME: str = "Sun Class API"
VERSION: str = "1.0.0"

# Credential lifetime in days; the auth cookie max-age matches it
TOKEN_TTL_DAYS: int = 7

AUTH_COOKIE_NAME: str = "auth_token"

DEFAULT_CORS_ALLOWED_ORIGINS: str = "http://localhost:5173,http://127.0.0.1:5173"


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _split_origins(raw: str) -> List[str]:
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


class Settings(BaseModel):
    """Immutable runtime settings shared by the app, database and credential store."""

    model_config = ConfigDict(frozen=True)

    project_name: str = PROJECT_NAME
    version: str = VERSION
    api_prefix: str = "/api"

    # Database
    database_url: str = f"sqlite:///{DATA_DIR}/sun_class.db"
    db_pool_size: int = 5

    # Credentials
    jwt_secret: Optional[str] = None
    jwt_algorithm: str = "HS256"
    token_ttl_days: int = TOKEN_TTL_DAYS
    auth_cookie_name: str = AUTH_COOKIE_NAME
    auth_cookie_secure: bool = True

    # Blob storage
    upload_dir: Path = UPLOADS_DIR

    cors_allowed_origins: List[str] = _split_origins(DEFAULT_CORS_ALLOWED_ORIGINS)
    log_level: str = "INFO"


def load_settings() -> Settings:
    """Build the settings object from environment variables.

    Returns:
        A frozen Settings instance.
    """
    return Settings(
        api_prefix=os.getenv("API_PREFIX", "/api"),
        database_url=os.getenv(
            "DATABASE_URL", f"sqlite:///{DATA_DIR}/sun_class.db"
        ),
        db_pool_size=int(os.getenv("DB_POOL_SIZE", "5")),
        jwt_secret=os.getenv("JWT_SECRET"),
        jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
        auth_cookie_secure=_env_flag("AUTH_COOKIE_SECURE", True),
        upload_dir=Path(os.getenv("UPLOAD_DIR", str(UPLOADS_DIR))),
        cors_allowed_origins=_split_origins(
            os.getenv("CORS_ALLOWED_ORIGINS", DEFAULT_CORS_ALLOWED_ORIGINS)
        ),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
