from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, Response
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.orm import Session

from storeroom.app.api.deps import get_db, require_admin
from storeroom.app.db.models.models_v1 import Component
from storeroom.app.db.models.core_types import UsageType
from storeroom.app.schemas.component import ComponentRead
from storeroom.services import inventory, notifications

router = APIRouter(prefix="/components")


class ComponentCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    quantity: int = Field(default=0, ge=0)
    unit: str = Field(default="pcs", min_length=1, max_length=32)
    min_stock: int = Field(default=0, ge=0)
    location: str = Field(default="", max_length=255)
    supplier: str = Field(default="", max_length=255)
    image_url: str = ""
    category_id: int | None = None
    category_name: str | None = Field(default=None, max_length=200)
    # None -> déduit du nom de catégorie ("consumable")
    consumable: bool | None = None


class UsageCreate(BaseModel):
    type: UsageType
    quantity: int = Field(gt=0)
    project: str = Field(default="", max_length=255)
    notes: str = ""


@router.get("", response_model=list[ComponentRead])
def list_components(db: Session = Depends(get_db)):
    return (
        db.execute(select(Component).order_by(Component.created_at.desc(), Component.id.desc()))
        .scalars()
        .all()
    )


@router.post("", status_code=201, response_model=ComponentRead)
def create_component(payload: ComponentCreate, db: Session = Depends(get_db)):
    return inventory.create_component(db, **payload.model_dump())


@router.delete("/{component_id}", status_code=204, dependencies=[Depends(require_admin)])
def delete_component(component_id: int, db: Session = Depends(get_db)):
    inventory.delete_component(db, component_id)
    return Response(status_code=204)


@router.post("/{component_id}/usage", status_code=201)
def record_usage(
    component_id: int,
    payload: UsageCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    result = inventory.record_manual_usage(
        db,
        component_id,
        type=payload.type,
        quantity=payload.quantity,
        project=payload.project,
        notes=payload.notes,
    )
    if result.low_stock:
        background_tasks.add_task(notifications.dispatch_low_stock, result.component)

    return {
        "id": result.record_id,
        "component_id": result.component.id,
        "quantity": result.component.quantity,
        "low_stock": result.low_stock,
    }
