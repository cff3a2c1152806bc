from __future__ import annotations

import json

from sqlalchemy.orm import Session

from storeroom.app.db.models.models_v1 import AuditLog


def record(db: Session, *, action: str, entity_type: str, entity_id: int | str, **meta) -> AuditLog:
    # même transaction que l'appelant : audité seulement si le changement est commité
    entry = AuditLog(
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        meta=json.dumps(meta, default=str) if meta else None,
    )
    db.add(entry)
    return entry
