# backend/stockpos/config.py
from __future__ import annotations
import os


def _parse_api_tokens(raw: str | None) -> dict[str, str]:
    """Parse "token:user_id,token2:user_id2" into a lookup dict."""
    tokens: dict[str, str] = {}
    if not raw:
        return tokens
    for pair in raw.split(","):
        pair = pair.strip()
        if not pair or ":" not in pair:
            continue
        token, user_id = pair.split(":", 1)
        if token.strip() and user_id.strip():
            tokens[token.strip()] = user_id.strip()
    return tokens


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/stockpos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///stockpos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Identity is issued upstream; we only map bearer tokens to opaque user ids.
    API_TOKENS = _parse_api_tokens(os.environ.get("STOCKPOS_API_TOKENS"))
    IDENTITY_RESOLVER = None

    CHECKOUT_RETRY_ATTEMPTS = int(os.environ.get("CHECKOUT_RETRY_ATTEMPTS", "3"))
    CHECKOUT_RETRY_BACKOFF = float(os.environ.get("CHECKOUT_RETRY_BACKOFF", "0.1"))

    LOW_STOCK_DEFAULT = int(os.environ.get("LOW_STOCK_DEFAULT", "5"))
    DASHBOARD_TOP_LIMIT = int(os.environ.get("DASHBOARD_TOP_LIMIT", "5"))
