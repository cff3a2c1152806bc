"""
Historique d'usage : journal append-only des mouvements de stock.

Les lignes ne sont créées que par le ledger (saisie manuelle, approbation
/ retour de demande) et ne disparaissent qu'avec leur composant.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from storeroom.app.db.models.models_v1 import Component, UsageRecord
from storeroom.app.db.models.core_types import UsageType


def append(
    db: Session,
    *,
    component_id: int,
    quantity: int,
    type: UsageType,
    project: str = "",
    notes: str = "",
    request_id: int | None = None,
    happened_at: datetime | None = None,
) -> UsageRecord:
    """
    Ajoute une ligne dans la transaction courante (pas de commit).

    Le signe suit le type : remove -> négatif, add -> positif.
    """
    delta = -abs(quantity) if type == UsageType.remove else abs(quantity)

    record = UsageRecord(
        component_id=component_id,
        request_id=request_id,
        quantity=delta,
        type=type,
        project=project or "",
        notes=notes or "",
        date=happened_at or datetime.now(timezone.utc),
    )
    db.add(record)
    return record


def list_usage(
    db: Session,
    *,
    component_id: int | None = None,
    limit: int | None = None,
) -> list[dict]:
    stmt = (
        select(UsageRecord, Component.name, Component.unit)
        .join(Component, Component.id == UsageRecord.component_id)
        .order_by(UsageRecord.date.desc(), UsageRecord.id.desc())
    )
    if component_id is not None:
        stmt = stmt.where(UsageRecord.component_id == component_id)
    if limit is not None:
        stmt = stmt.limit(limit)

    return [
        {
            "id": u.id,
            "component_id": u.component_id,
            "component_name": name,
            "component_unit": unit,
            "request_id": u.request_id,
            "quantity": u.quantity,
            "type": u.type,
            "project": u.project,
            "notes": u.notes,
            "date": u.date,
        }
        for u, name, unit in db.execute(stmt).all()
    ]
