from datetime import datetime

from pydantic import BaseModel


class ComponentRead(BaseModel):
    id: int
    name: str
    quantity: int
    unit: str
    min_stock: int
    location: str
    supplier: str
    image_url: str
    category_id: int | None
    category_name: str
    consumable: bool
    low_stock: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CategoryRead(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True
