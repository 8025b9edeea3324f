"""
Environment configuration

Values are read from the process environment (a local .env file is loaded
first) each time they are requested, so a changed environment is picked up
without restarting the process.
"""

import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

DEFAULT_SITE_URL = "https://sachtalks.in"

BLOGS_COLLECTION = "blogs"
CONTACTS_COLLECTION = "contact_submissions"


def _first_set(*names: str) -> Optional[str]:
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return None


def mongodb_uri() -> Optional[str]:
    return _first_set("MONGODB_URI", "DATABASE_URL")


def database_name() -> Optional[str]:
    return _first_set("DB_NAME", "DATABASE_NAME")


def mongodb_api_url() -> Optional[str]:
    """Base URL of a remote /mongodb-api endpoint, if the site talks to one."""
    return os.getenv("MONGODB_API_URL")


def youtube_api_key() -> Optional[str]:
    return os.getenv("YOUTUBE_API_KEY")


def youtube_channel_id() -> Optional[str]:
    return os.getenv("YOUTUBE_CHANNEL_ID")


def site_url() -> str:
    return (os.getenv("SITE_URL") or DEFAULT_SITE_URL).rstrip("/")


def admin_password() -> Optional[str]:
    return os.getenv("ADMIN_PASSWORD")


def port() -> int:
    return int(os.getenv("PORT", 8000))
