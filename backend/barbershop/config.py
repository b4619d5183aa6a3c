# backend/barbershop/config.py
from __future__ import annotations
import os


def _split_csv(value: str) -> set[str]:
    return {part.strip() for part in value.split(",") if part.strip()}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/barbershop.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///barbershop.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Bounded wait before re-reading commission totals after a close.
    # The commission calculation may run asynchronously (database trigger).
    COMMISSION_SETTLE_DELAY_SECONDS = float(os.environ.get("COMMISSION_SETTLE_DELAY_SECONDS", "0.3"))

    API_VERSION = "1.0.0"

    SESSION_TTL_HOURS = int(os.environ.get("SESSION_TTL_HOURS", "24"))

    CORS_ALLOWED_ORIGINS = _split_csv(
        os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173",
        )
    )
