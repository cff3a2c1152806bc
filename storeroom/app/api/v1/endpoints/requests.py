from __future__ import annotations

from datetime import date

from fastapi import APIRouter, BackgroundTasks, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from storeroom.app.api.deps import get_db, require_admin
from storeroom.app.db.models.models_v1 import Request
from storeroom.app.db.models.core_types import RequestStatus
from storeroom.app.schemas.request import RequestRead
from storeroom.services import notifications
from storeroom.services import requests as lifecycle

router = APIRouter(prefix="/requests")


# ---------- Schemas ----------
class RequestItemIn(BaseModel):
    component_id: int
    quantity: int = Field(gt=0)
    description: str = ""


class RequestIn(BaseModel):
    personnel_name: str = Field(min_length=1, max_length=255)
    email: str | None = Field(default=None, max_length=255)
    department: str | None = Field(default=None, max_length=128)
    expected_return_date: date | None = None
    face_image: str | None = None
    items: list[RequestItemIn] = Field(min_length=1)


class StatusUpdate(BaseModel):
    status: RequestStatus


# ---------- Helpers ----------
def _serialize(req: Request) -> dict:
    return {
        "id": req.id,
        "personnel_name": req.personnel_name,
        "email": req.email,
        "department": req.department,
        "status": req.status,
        "requested_at": req.requested_at,
        "approved_at": req.approved_at,
        "returned_at": req.returned_at,
        "expected_return_date": req.expected_return_date,
        "face_image": req.face_image,
        "items": [
            {
                "component_id": it.component_id,
                "component_name": it.component.name,
                "component_unit": it.component.unit,
                "consumable": it.component.consumable,
                "quantity": it.quantity,
                "description": it.description,
            }
            for it in req.items
        ],
    }


# ---------- Endpoints ----------
@router.get("", response_model=list[RequestRead])
def list_requests(status: RequestStatus | None = None, db: Session = Depends(get_db)):
    return [_serialize(r) for r in lifecycle.list_requests(db, status)]


@router.get("/outstanding", response_model=list[RequestRead])
def list_outstanding(db: Session = Depends(get_db)):
    return [_serialize(r) for r in lifecycle.list_outstanding(db)]


@router.get("/{request_id}", response_model=RequestRead)
def get_request(request_id: int, db: Session = Depends(get_db)):
    return _serialize(lifecycle.get_request(db, request_id))


@router.post("", status_code=201, response_model=RequestRead)
def create_request(payload: RequestIn, db: Session = Depends(get_db)):
    req = lifecycle.create_request(db, **payload.model_dump(exclude={"items"}), items=payload.items)
    return _serialize(lifecycle.get_request(db, req.id))


@router.patch("/{request_id}", response_model=RequestRead)
def edit_request(request_id: int, payload: RequestIn, db: Session = Depends(get_db)):
    lifecycle.edit_request(db, request_id, **payload.model_dump(exclude={"items"}), items=payload.items)
    return _serialize(lifecycle.get_request(db, request_id))


@router.patch(
    "/{request_id}/status",
    response_model=RequestRead,
    dependencies=[Depends(require_admin)],
)
def set_status(
    request_id: int,
    payload: StatusUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    result = lifecycle.set_status(db, request_id, payload.status)
    # après commit : un échec d'envoi ne touche pas la transition
    background_tasks.add_task(notifications.dispatch_transition, result)
    return _serialize(lifecycle.get_request(db, request_id))
