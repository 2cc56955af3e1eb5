"""Shared test helpers for dates and bearer tokens."""

from datetime import datetime, timedelta, timezone

import jwt

from marketplace.core.config import settings


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def day(offset: int, hour: int = 0) -> datetime:
    """Midnight UTC ``offset`` days from today, plus ``hour`` hours."""
    today = utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
    return today + timedelta(days=offset, hours=hour)


def make_token(user_id: str, roles: tuple = (), **claims) -> str:
    payload = {
        "sub": user_id,
        "roles": list(roles),
        "exp": datetime.now(timezone.utc) + timedelta(hours=1),
        **claims,
    }
    return jwt.encode(payload, settings.bearer_token_secret, algorithm="HS256")


def bearer(user_id: str, roles: tuple = ()) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id, roles)}"}
