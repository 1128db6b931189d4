# backend/bangunpos/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/bangunpos.sqlite3 unless DATABASE_URL is set
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///bangunpos.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Sale prices may drift from the unit catalog; beyond this we log (or reject in strict mode)
    PRICE_MISMATCH_TOLERANCE = os.environ.get("PRICE_MISMATCH_TOLERANCE", "0.01")
    STRICT_PRICE_CHECK = _env_bool("STRICT_PRICE_CHECK", False)

    RECEIPT_PREFIX = os.environ.get("RECEIPT_PREFIX", "TXN")

    DEFAULT_PAGE_SIZE = 10
    MAX_PAGE_SIZE = 100

    CORS_ORIGINS = {
        origin.strip()
        for origin in os.environ.get(
            "CORS_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:8080",
        ).split(",")
        if origin.strip()
    }
