from __future__ import annotations

import secrets
from typing import Generator

from fastapi import Header, HTTPException

from storeroom.app.core.config import settings
from storeroom.app.db.session import SessionLocal


def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def require_admin(x_admin_token: str | None = Header(default=None, alias="X-Admin-Token")) -> None:
    if not settings.ADMIN_TOKEN:
        raise HTTPException(status_code=500, detail="ADMIN_TOKEN not configured on server")
    provided = (x_admin_token or "").encode()
    if not secrets.compare_digest(provided, settings.ADMIN_TOKEN.encode()):
        raise HTTPException(status_code=403, detail="Admin access required")
