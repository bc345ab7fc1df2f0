from __future__ import annotations

import logging

from fastapi import Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.errors import AuthenticationError
from taskhub.models.tenancy import User

logger = logging.getLogger(__name__)

AUTHORIZATION_HEADER = "Authorization"
BEARER_PREFIX = "Bearer"


def extract_user_id(request: Request) -> int | None:
    """
    Read the caller's user id from `Authorization: Bearer <user id>`.

    This stands in for the upstream identity provider: in production the token
    is verified there and only the resulting user id reaches this service.
    No header means an anonymous request (None); a header that cannot be read
    is an AuthenticationError.
    """

    raw = request.headers.get(AUTHORIZATION_HEADER)
    if not raw:
        logger.info("Anonymous request path=%s method=%s", request.url.path, request.method)
        return None

    scheme, _, token = raw.partition(" ")
    token = token.strip()
    if scheme != BEARER_PREFIX or not token.isdigit():
        logger.warning(
            "Rejected credentials scheme=%r path=%s method=%s",
            scheme,
            request.url.path,
            request.method,
        )
        raise AuthenticationError(
            f"Invalid {AUTHORIZATION_HEADER} header. Expected '{BEARER_PREFIX} <user id>'.",
            {"scheme": scheme},
        )
    return int(token)


async def load_user(db: AsyncSession, user_id: int) -> User:
    """Load the active caller row; unknown, inactive and deleted users are all 401."""
    stmt = select(User).where(User.id == user_id, User.is_active.is_(True), User.is_deleted.is_(False))
    user = (await db.scalars(stmt)).first()
    if user is None:
        logger.warning("Unknown or inactive user user_id=%s", user_id)
        raise AuthenticationError("Invalid or inactive user", {"user_id": user_id})
    return user
