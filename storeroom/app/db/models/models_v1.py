from __future__ import annotations

from datetime import datetime, date

from sqlalchemy import (
    String,
    Integer,
    BigInteger,
    DateTime,
    Date,
    Boolean,
    ForeignKey,
    Text,
    Enum,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storeroom.app.db.base import Base
from storeroom.app.db.models.core_types import RequestStatus, UsageType

# SQLite : autoincrement uniquement sur INTEGER PRIMARY KEY
PK = BigInteger().with_variant(Integer, "sqlite")


# ---------- CATALOG ----------
class Category(Base):
    __tablename__ = "categories"
    id: Mapped[int] = mapped_column(PK, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)


class Component(Base):
    __tablename__ = "components"
    id: Mapped[int] = mapped_column(PK, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    unit: Mapped[str] = mapped_column(String(32), default="pcs", nullable=False)
    min_stock: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    location: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    supplier: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    image_url: Mapped[str] = mapped_column(Text, default="", nullable=False)
    category_id: Mapped[int | None] = mapped_column(ForeignKey("categories.id", ondelete="SET NULL"))
    category_name: Mapped[str] = mapped_column(String(200), default="", nullable=False)
    # consommable : pas de retour attendu après sortie
    consumable: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    category: Mapped[Category | None] = relationship()
    usage_records: Mapped[list["UsageRecord"]] = relationship(
        back_populates="component",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_component_quantity_nonneg"),
        CheckConstraint("min_stock >= 0", name="ck_component_min_stock_nonneg"),
    )

    @property
    def low_stock(self) -> bool:
        return self.quantity <= self.min_stock


# ---------- REQUESTS ----------
class Request(Base):
    __tablename__ = "requests"
    id: Mapped[int] = mapped_column(PK, primary_key=True)
    personnel_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255))
    department: Mapped[str | None] = mapped_column(String(128))
    status: Mapped[RequestStatus] = mapped_column(
        Enum(RequestStatus, name="request_status"),
        default=RequestStatus.PENDING,
        nullable=False,
    )
    requested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    returned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    expected_return_date: Mapped[date | None] = mapped_column(Date)
    face_image: Mapped[str | None] = mapped_column(Text)

    items: Mapped[list["RequestItem"]] = relationship(
        back_populates="request",
        cascade="all, delete-orphan",
        order_by="RequestItem.component_id",
    )

    __table_args__ = (Index("ix_requests_status_requested", "status", "requested_at"),)


class RequestItem(Base):
    __tablename__ = "request_items"
    request_id: Mapped[int] = mapped_column(ForeignKey("requests.id", ondelete="CASCADE"), primary_key=True)
    component_id: Mapped[int] = mapped_column(ForeignKey("components.id", ondelete="CASCADE"), primary_key=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)

    request: Mapped[Request] = relationship(back_populates="items")
    component: Mapped[Component] = relationship()

    __table_args__ = (CheckConstraint("quantity > 0", name="ck_request_item_qty_pos"),)


# ---------- USAGE HISTORY ----------
class UsageRecord(Base):
    __tablename__ = "usage_history"
    id: Mapped[int] = mapped_column(PK, primary_key=True)
    component_id: Mapped[int] = mapped_column(
        ForeignKey("components.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    request_id: Mapped[int | None] = mapped_column(ForeignKey("requests.id", ondelete="SET NULL"))

    # delta signé : négatif = retrait, positif = ajout
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[UsageType] = mapped_column(Enum(UsageType, name="usage_type"), nullable=False)
    project: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    notes: Mapped[str] = mapped_column(Text, default="", nullable=False)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    component: Mapped[Component] = relationship(back_populates="usage_records")

    __table_args__ = (
        CheckConstraint("quantity <> 0", name="ck_usage_quantity_nonzero"),
        Index("ix_usage_history_component_date", "component_id", "date"),
    )


# ---------- AUDIT ----------
class AuditLog(Base):
    __tablename__ = "audit_log"
    id: Mapped[int] = mapped_column(PK, primary_key=True)
    action: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False)
    meta: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    __table_args__ = (Index("ix_audit_entity", "entity_type", "entity_id"),)
