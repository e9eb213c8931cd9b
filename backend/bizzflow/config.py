# backend/bizzflow/config.py
from __future__ import annotations
import os


def _split_csv(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/bizzflow.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///bizzflow.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

    # Origins of the single-page client allowed to call the API
    CORS_ALLOWED_ORIGINS = _split_csv(
        os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:3000,http://localhost:3001,http://localhost:3002",
        )
    )

    SESSION_TTL_HOURS = int(os.environ.get("SESSION_TTL_HOURS", "24"))
