from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storeroom.app.api.deps import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health")


@router.get("")
def health(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("Healthcheck DB error")
        return JSONResponse(status_code=500, content={"status": "error", "reason": "db_unreachable"})
    return {"status": "ok", "service": "storeroom"}
