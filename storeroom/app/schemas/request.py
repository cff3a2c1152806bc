from datetime import date, datetime

from pydantic import BaseModel

from storeroom.app.db.models.core_types import RequestStatus


class RequestItemRead(BaseModel):
    component_id: int
    component_name: str
    component_unit: str
    consumable: bool
    quantity: int
    description: str


class RequestRead(BaseModel):
    id: int
    personnel_name: str
    email: str | None
    department: str | None
    status: RequestStatus
    requested_at: datetime
    approved_at: datetime | None
    returned_at: datetime | None
    expected_return_date: date | None
    face_image: str | None
    items: list[RequestItemRead]
