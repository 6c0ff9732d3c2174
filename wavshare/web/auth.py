"""
Bearer-token authentication for the REST API.

Tokens are opaque strings issued by `WavshareDb.issue_token()` (see the
`add-user` CLI command). Routes that act on behalf of a user depend on
`current_user_id`; public reads that also serve anonymous callers depend
on `optional_user_id`.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from wavshare.core import AuthenticationError

if TYPE_CHECKING:
    from wavshare.core.store import WavshareDb

logger = logging.getLogger(__name__)

_bearer = HTTPBearer(auto_error=False)

# Reference set by the web server during route registration
_db: WavshareDb | None = None


def configure_auth(db: WavshareDb) -> None:
    global _db
    _db = db


async def current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> int:
    """Resolve the `Authorization: Bearer <token>` header to a user id."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Authentication required")
    if _db is None:
        raise RuntimeError("Authentication is not configured")
    user_id = await _db.resolve_token(credentials.credentials)
    if user_id is None:
        logger.debug("Rejected unknown bearer token")
        raise AuthenticationError("Invalid or expired token")
    return user_id


async def optional_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> int | None:
    """Like `current_user_id`, but anonymous callers get None instead of a 401."""
    if credentials is None or not credentials.credentials:
        return None
    return await current_user_id(credentials)
