# backend/storeops/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/storeops.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///storeops.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Stores without a usable timezone bucket their days in this zone
    DEFAULT_TIMEZONE = os.environ.get("DEFAULT_TIMEZONE", "UTC")

    # Daily summary leaderboard size
    SUMMARY_TOP_PRODUCTS = int(os.environ.get("SUMMARY_TOP_PRODUCTS", "5"))

    # Outbox delivery
    EVENTS_DISPATCH_INLINE = _env_bool("EVENTS_DISPATCH_INLINE", True)
    EVENTS_DISPATCH_BATCH_SIZE = int(os.environ.get("EVENTS_DISPATCH_BATCH_SIZE", "100"))

    # Commit transactions (optimistic conflicts, lock timeouts)
    TRANSACTION_RETRY_ATTEMPTS = int(os.environ.get("TRANSACTION_RETRY_ATTEMPTS", "3"))
    TRANSACTION_RETRY_BACKOFF = float(os.environ.get("TRANSACTION_RETRY_BACKOFF", "0.1"))

    CURRENCY_SYMBOL = os.environ.get("CURRENCY_SYMBOL", "GHS")
    ACTIVITY_FEED_LIMIT = int(os.environ.get("ACTIVITY_FEED_LIMIT", "50"))
