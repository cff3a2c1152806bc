from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, NamedTuple

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storeroom.app.db.models.models_v1 import (
    Category,
    Component,
    Request,
    RequestItem,
    UsageRecord,
)
from storeroom.app.db.models.core_types import UsageType
from storeroom.app.db.session import atomic
from storeroom.services import audit, usage_log
from storeroom.services.errors import InsufficientStock, NotFound, PersistenceFailure, ValidationError

logger = logging.getLogger(__name__)

CONSUMABLE_CATEGORY = re.compile(r"consumable", re.IGNORECASE)


class LineItem(NamedTuple):
    component_id: int
    quantity: int
    description: str = ""


@dataclass(frozen=True)
class ComponentSnapshot:
    """Copie détachée d'un composant, utilisable après fermeture de la session."""

    id: int
    name: str
    quantity: int
    min_stock: int
    unit: str
    category_name: str
    location: str


@dataclass(frozen=True)
class ManualUsageResult:
    record_id: int
    component: ComponentSnapshot
    low_stock: bool


def snapshot(component: Component) -> ComponentSnapshot:
    return ComponentSnapshot(
        id=int(component.id),
        name=component.name,
        quantity=int(component.quantity),
        min_stock=int(component.min_stock),
        unit=component.unit,
        category_name=component.category_name,
        location=component.location,
    )


def is_low_stock(component: Component | ComponentSnapshot) -> bool:
    return component.quantity <= component.min_stock


def is_consumable_category(category_name: str | None) -> bool:
    return bool(category_name and CONSUMABLE_CATEGORY.search(category_name))


# ---------- READ / LOCK ----------
def load_components(
    db: Session,
    component_ids: Iterable[int],
    *,
    lock: bool = False,
) -> dict[int, Component]:
    """
    Charge les composants demandés, indexés par id.

    lock=True -> SELECT ... FOR UPDATE, ids triés (ordre de verrouillage
    stable entre transactions concurrentes). populate_existing force la
    relecture des quantités déjà présentes dans la session.
    """
    ids = sorted({int(cid) for cid in component_ids if cid is not None})
    if not ids:
        return {}

    stmt = select(Component).where(Component.id.in_(ids)).order_by(Component.id.asc())
    if lock:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)

    found = {int(c.id): c for c in db.execute(stmt).scalars().all()}
    for cid in ids:
        if cid not in found:
            raise NotFound(f"Component {cid} not found")
    return found


def check_availability(
    db: Session,
    items: Iterable[LineItem | RequestItem],
    *,
    lock: bool = False,
) -> dict[int, Component]:
    """
    Vérifie que chaque ligne est couverte par le stock courant.

    Échoue à la première ligne insuffisante (rien n'est réservé ni débité).
    Appelé en mode consultatif (création/édition) et en mode autoritaire
    (approbation, lock=True, même transaction que le débit).
    """
    items = list(items)
    components = load_components(db, (it.component_id for it in items), lock=lock)

    for it in items:
        comp = components[int(it.component_id)]
        available = int(comp.quantity)
        if available <= 0 or available < it.quantity:
            raise InsufficientStock(int(comp.id), available, int(it.quantity))

    return components


# ---------- MUTATIONS ----------
def debit(component: Component, quantity: int) -> None:
    if quantity <= 0:
        raise ValidationError("Debit quantity must be positive")
    if component.quantity < quantity:
        raise InsufficientStock(int(component.id), int(component.quantity), quantity)
    component.quantity -= quantity


def credit(component: Component, quantity: int) -> None:
    if quantity <= 0:
        raise ValidationError("Credit quantity must be positive")
    component.quantity += quantity


def record_manual_usage(
    db: Session,
    component_id: int,
    *,
    type: UsageType,
    quantity: int,
    project: str = "",
    notes: str = "",
) -> ManualUsageResult:
    """Entrée/sortie manuelle de stock, hors demande."""
    if quantity <= 0:
        raise ValidationError("Quantity must be greater than zero")

    with atomic(db):
        comp = load_components(db, [component_id], lock=True)[int(component_id)]

        if type == UsageType.remove:
            debit(comp, quantity)
        else:
            credit(comp, quantity)

        record = usage_log.append(
            db,
            component_id=comp.id,
            quantity=quantity,
            type=type,
            project=project,
            notes=notes,
        )
        db.flush()
        result = ManualUsageResult(
            record_id=int(record.id),
            component=snapshot(comp),
            low_stock=type == UsageType.remove and is_low_stock(comp),
        )

    logger.info(
        "Manual usage %s x%s on component %s (now %s)",
        type.value,
        quantity,
        component_id,
        result.component.quantity,
    )
    return result


# ---------- CATALOG ----------
def _find_category(db: Session, name: str) -> Category | None:
    return db.execute(select(Category).where(Category.name == name)).scalar_one_or_none()


def get_or_create_category(db: Session, name: str) -> Category:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Name is required")

    cat = _find_category(db, name)
    if cat:
        return cat

    try:
        with atomic(db):
            cat = Category(name=name)
            db.add(cat)
            db.flush()
    except PersistenceFailure as exc:
        # Concurrence : même nom créé entre le select et l'insert (unique)
        if not isinstance(exc.__cause__, IntegrityError):
            raise
        cat = _find_category(db, name)
        if cat is None:
            raise
        logger.info("Category %r created concurrently, reusing id %s", name, cat.id)
    return cat


def create_component(
    db: Session,
    *,
    name: str,
    quantity: int = 0,
    unit: str = "pcs",
    min_stock: int = 0,
    location: str = "",
    supplier: str = "",
    image_url: str = "",
    category_id: int | None = None,
    category_name: str | None = None,
    consumable: bool | None = None,
) -> Component:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Name is required")
    if quantity < 0 or min_stock < 0:
        raise ValidationError("quantity and min_stock must be >= 0")

    with atomic(db):
        final_category_name = (category_name or "").strip()
        if category_id is not None:
            cat = db.get(Category, category_id)
            if not cat:
                raise ValidationError(f"Invalid category_id {category_id}")
            final_category_name = final_category_name or cat.name

        if consumable is None:
            consumable = is_consumable_category(final_category_name)

        comp = Component(
            name=name,
            quantity=quantity,
            unit=unit or "pcs",
            min_stock=min_stock,
            location=location or "",
            supplier=supplier or "",
            image_url=image_url or "",
            category_id=category_id,
            category_name=final_category_name,
            consumable=consumable,
        )
        db.add(comp)
        db.flush()

    return comp


def delete_component(db: Session, component_id: int) -> None:
    """
    Supprime le composant, son historique, les lignes de demande qui
    le référencent et les demandes restées sans ligne.
    """
    with atomic(db):
        comp = db.get(Component, component_id)
        if not comp:
            raise NotFound("Component not found")

        request_ids = db.execute(
            select(RequestItem.request_id).where(RequestItem.component_id == component_id)
        ).scalars().all()

        db.execute(delete(RequestItem).where(RequestItem.component_id == component_id))
        db.execute(delete(UsageRecord).where(UsageRecord.component_id == component_id))
        # collections déjà chargées (items, usage_records) : relues après le delete en masse
        db.expire_all()
        db.delete(comp)
        db.flush()

        emptied = []
        if request_ids:
            emptied = db.execute(
                select(Request)
                .where(Request.id.in_(request_ids))
                .where(~Request.items.any())
            ).scalars().all()
            for req in emptied:
                db.delete(req)

        audit.record(
            db,
            action="component.delete",
            entity_type="component",
            entity_id=component_id,
            deleted_requests=[int(r.id) for r in emptied],
        )

    logger.info("Deleted component %s (%s emptied requests removed)", component_id, len(emptied))
