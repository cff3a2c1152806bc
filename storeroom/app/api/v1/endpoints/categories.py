from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.orm import Session

from storeroom.app.api.deps import get_db
from storeroom.app.db.models.models_v1 import Category
from storeroom.app.schemas.component import CategoryRead
from storeroom.services import inventory

router = APIRouter(prefix="/categories")


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)


@router.get("", response_model=list[CategoryRead])
def list_categories(db: Session = Depends(get_db)):
    return db.execute(select(Category).order_by(Category.name.asc())).scalars().all()


@router.post("", status_code=201, response_model=CategoryRead)
def create_category(payload: CategoryCreate, db: Session = Depends(get_db)):
    # existant -> renvoyé tel quel (pas de 409)
    return inventory.get_or_create_category(db, payload.name)
