from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storeroom.app.api.deps import get_db
from storeroom.app.schemas.usage import UsageRecordRead
from storeroom.services import usage_log

router = APIRouter(prefix="/usage")


@router.get("", response_model=list[UsageRecordRead])
def list_usage(
    component_id: int | None = None,
    limit: int | None = Query(default=None, ge=1, le=1000),
    db: Session = Depends(get_db),
):
    """
    Historique (READ ONLY), plus récent d'abord.
    Aucune route d'écriture : l'historique suit les mouvements de stock.
    """
    return usage_log.list_usage(db, component_id=component_id, limit=limit)
