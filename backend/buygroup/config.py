# backend/buygroup/config.py
from __future__ import annotations
import os


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite file in the working directory unless DATABASE_URL points elsewhere
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///buygroup.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Bearer sessions issued by `flask users issue-token`
    SESSION_TTL_HOURS = int(os.environ.get("SESSION_TTL_HOURS", "24"))

    # Outbound "deal is live" webhook (Discord bot relay)
    DEAL_WEBHOOK_URL = os.environ.get("DEAL_WEBHOOK_URL")
    DEAL_WEBHOOK_SECRET = os.environ.get("DEAL_WEBHOOK_SECRET")
    DEAL_WEBHOOK_TIMEOUT = float(os.environ.get("DEAL_WEBHOOK_TIMEOUT", "5"))

    # Shared secret for the bot digest endpoint
    BOT_API_KEY = os.environ.get("BOT_API_KEY")

    WEBSITE_URL = os.environ.get("WEBSITE_URL", "http://localhost:3000")
    BUYING_GROUP_NAME = os.environ.get("BUYING_GROUP_NAME", "Buying Group")
    BUYING_GROUP_ID = os.environ.get("BUYING_GROUP_ID", "buygroup")

    # Exclusive (VIP) membership is re-checked at most once per window
    EXCLUSIVE_MEMBER_CACHE_SECONDS = int(os.environ.get("EXCLUSIVE_MEMBER_CACHE_SECONDS", "3600"))

    # Callable (profile) -> bool supplied by the identity provider integration.
    # None disables membership refresh.
    MEMBERSHIP_LOOKUP = None
