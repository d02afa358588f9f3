from __future__ import annotations

import hmac
from typing import Optional

from app.core.config import settings


def admin_enabled() -> bool:
    return bool((settings.ADMIN_KEY or "").strip())


def verify_admin_key(key: Optional[str]) -> bool:
    if not admin_enabled() or not key:
        return False
    return hmac.compare_digest(str(key).encode("utf-8"), settings.ADMIN_KEY.strip().encode("utf-8"))
