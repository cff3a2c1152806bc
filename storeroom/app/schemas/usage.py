from datetime import datetime

from pydantic import BaseModel

from storeroom.app.db.models.core_types import UsageType


class UsageRecordRead(BaseModel):
    """Historique (READ ONLY) : les lignes ne sont créées que par le ledger."""

    id: int
    component_id: int
    component_name: str
    component_unit: str
    request_id: int | None
    quantity: int  # signé : < 0 retrait, > 0 ajout
    type: UsageType
    project: str
    notes: str
    date: datetime
