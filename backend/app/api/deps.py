"""Common FastAPI dependencies."""

from __future__ import annotations

import random
from typing import Optional

from fastapi import Header, Query

from app.core.errors import ForbiddenError
from app.core.security import admin_enabled, verify_admin_key
from app.db.session import get_db  # noqa: F401  re-exported for routes and tests

_rng = random.Random()


def get_rng() -> random.Random:
    """Randomness source for selection tie-breaks and the QC draw. Tests override this."""

    return _rng


def require_admin(
    x_admin_key: Optional[str] = Header(default=None, alias="X-Admin-Key"),
    key: Optional[str] = Query(default=None),
) -> None:
    if not admin_enabled():
        raise ForbiddenError("Admin operations are disabled (ADMIN_KEY not set)")
    if not verify_admin_key(x_admin_key or key):
        raise ForbiddenError("Unauthorized")
