"""Shared Flask extensions.

Every module imports `db` and `limiter` from here so there is exactly one
instance of each per process; `app.create_app()` binds them to the app.
"""

from datetime import datetime, timezone

from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_sqlalchemy import SQLAlchemy


db = SQLAlchemy()

# Storage is chosen in create_app() from RATE_LIMIT_STORAGE_URL (memory:// or redis://).
limiter = Limiter(get_remote_address, default_limits=["200 per day", "50 per hour"])


def utcnow() -> datetime:
    """Naive UTC timestamp; every DateTime column in this app stores naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
