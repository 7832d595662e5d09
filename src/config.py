"""Configuration module for the Looped CMS backend.

This module provides centralized configuration management, including directory
paths, API server settings, database, authentication and email delivery.
All configuration values can be overridden via environment variables.
"""

import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# --- Directory Configuration ---

# Root directory of the project
ROOT_DIR = Path(__file__).parent.parent.resolve()

# Data directory name
DATA_DIR_NAME = "data"
DATA_DIR = ROOT_DIR / DATA_DIR_NAME

# --- API Server Configuration ---

API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
API_PORT: int = int(os.getenv("API_PORT", "8000"))

# CORS allowed origins (comma-separated list)
_CORS_ALLOWED_ORIGINS_STR: str = os.getenv(
    "CORS_ALLOWED_ORIGINS",
    "http://localhost:4200,http://127.0.0.1:4200,http://localhost:3000,"
    "http://127.0.0.1:3000",
)
CORS_ALLOWED_ORIGINS: List[str] = [
    origin.strip()
    for origin in _CORS_ALLOWED_ORIGINS_STR.split(",")
    if origin.strip()
]

# --- Database Configuration ---

DATABASE_URL: str = os.getenv(
    "DATABASE_URL", f"sqlite:///{DATA_DIR}/looped_cms.db"
)

# Seconds to wait on a busy/unreachable store before giving up
DB_TIMEOUT_SECONDS: float = float(os.getenv("DB_TIMEOUT_SECONDS", "5"))

# --- Authentication Configuration ---

JWT_SECRET_KEY: str = os.getenv("JWT_SECRET_KEY", "change-me-in-production")
JWT_ALGORITHM: str = "HS256"

# Lifetime of a login session
SESSION_TTL_MINUTES: int = int(os.getenv("SESSION_TTL_MINUTES", str(60 * 24 * 7)))

# Bcrypt work factor
BCRYPT_ROUNDS: int = int(os.getenv("BCRYPT_ROUNDS", "12"))

# Invite codes and password reset tokens share the same lifetime
INVITE_CODE_TTL_HOURS: int = 24
RESET_TOKEN_TTL_HOURS: int = INVITE_CODE_TTL_HOURS

# --- Staff Policy Configuration ---

ALLOW_EMAIL_REUSE_AFTER_DELETE: bool = (
    os.getenv("ALLOW_EMAIL_REUSE_AFTER_DELETE", "true").lower() == "true"
)
ROLLBACK_INVITE_ON_NOTIFICATION_FAILURE: bool = (
    os.getenv("ROLLBACK_INVITE_ON_NOTIFICATION_FAILURE", "false").lower() == "true"
)
BLOCK_LOGIN_DURING_RESET: bool = (
    os.getenv("BLOCK_LOGIN_DURING_RESET", "false").lower() == "true"
)

# --- Email Configuration ---

# "smtp" for real delivery, "memory" keeps messages in process (dev/tests)
EMAIL_PROVIDER: str = os.getenv("EMAIL_PROVIDER", "memory")

SMTP_HOST: Optional[str] = os.getenv("SMTP_HOST")
SMTP_PORT: int = int(os.getenv("SMTP_PORT", "587"))
SMTP_USERNAME: Optional[str] = os.getenv("SMTP_USERNAME")
SMTP_PASSWORD: Optional[str] = os.getenv("SMTP_PASSWORD")
SMTP_USE_TLS: bool = os.getenv("SMTP_USE_TLS", "true").lower() == "true"
SMTP_TIMEOUT_SECONDS: float = float(os.getenv("SMTP_TIMEOUT_SECONDS", "10"))
SMTP_FROM_EMAIL: str = os.getenv("SMTP_FROM_EMAIL", "no-reply@looped.dev")
SMTP_FROM_NAME: str = os.getenv("SMTP_FROM_NAME", "Looped CMS")

# Base URL of the admin dashboard, used to build links in emails
ADMIN_BASE_URL: str = os.getenv("ADMIN_BASE_URL", "http://localhost:4200")

# --- Logging Configuration ---

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
