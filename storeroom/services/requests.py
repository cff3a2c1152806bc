"""
Cycle de vie des demandes (PENDING -> APPROVED -> RETURNED).

Point d'entrée unique pour toute transition de statut : set_status().
Chaque opération tourne dans UNE transaction (atomic) :
    - verrou FOR UPDATE sur la demande
    - verrou FOR UPDATE sur les composants concernés (ordre d'id croissant)
    - contrôle de stock autoritaire + débit/crédit + historique + statut
Rien n'est écrit si une étape échoue.

Les notifications ne partent PAS d'ici : on renvoie des snapshots détachés,
la couche HTTP les envoie après commit.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Callable, Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from storeroom.app.db.models.models_v1 import Component, Request, RequestItem
from storeroom.app.db.models.core_types import RequestStatus, UsageType
from storeroom.app.db.session import atomic
from storeroom.services import audit, inventory, usage_log
from storeroom.services.errors import Conflict, NotFound, ValidationError
from storeroom.services.inventory import ComponentSnapshot, LineItem

logger = logging.getLogger(__name__)

# Ancien format : "Nom <adresse@mail>" dans personnel_name
LEGACY_EMAIL_IN_NAME = re.compile(r"<\s*([^<>\s]+@[^<>\s]+)\s*>")


@dataclass(frozen=True)
class RequestItemSnapshot:
    component_id: int
    component_name: str
    quantity: int
    unit: str
    consumable: bool
    description: str


@dataclass(frozen=True)
class RequestSnapshot:
    id: int
    personnel_name: str
    email: str | None
    department: str | None
    status: RequestStatus
    items: tuple[RequestItemSnapshot, ...]
    requested_at: datetime
    approved_at: datetime | None
    returned_at: datetime | None


@dataclass(frozen=True)
class TransitionResult:
    request: RequestSnapshot
    previous_status: RequestStatus
    # composants laissés <= min_stock par un débit de cette transition
    low_stock: tuple[ComponentSnapshot, ...] = ()


def _now() -> datetime:
    return datetime.now(timezone.utc)


def recipient_email(request: Request | RequestSnapshot) -> str | None:
    if request.email:
        return request.email
    match = LEGACY_EMAIL_IN_NAME.search(request.personnel_name or "")
    return match.group(1) if match else None


def snapshot_request(req: Request) -> RequestSnapshot:
    return RequestSnapshot(
        id=int(req.id),
        personnel_name=req.personnel_name,
        email=recipient_email(req),
        department=req.department,
        status=req.status,
        items=tuple(
            RequestItemSnapshot(
                component_id=int(it.component_id),
                component_name=it.component.name,
                quantity=int(it.quantity),
                unit=it.component.unit,
                consumable=bool(it.component.consumable),
                description=it.description,
            )
            for it in req.items
        ),
        requested_at=req.requested_at,
        approved_at=req.approved_at,
        returned_at=req.returned_at,
    )


# ---------- VALIDATION ----------
def _clean_name(personnel_name: str | None) -> str:
    name = (personnel_name or "").strip()
    if not name:
        raise ValidationError("personnel_name is required")
    return name


def _validate_items(items: Iterable) -> list[LineItem]:
    lines: list[LineItem] = []
    seen: set[int] = set()

    for it in items or []:
        component_id = getattr(it, "component_id", None)
        quantity = getattr(it, "quantity", None)
        if component_id is None or quantity is None or quantity <= 0:
            raise ValidationError("Each item needs a component and a quantity greater than zero")
        if int(component_id) in seen:
            raise ValidationError(f"Component {component_id} appears more than once")
        seen.add(int(component_id))
        lines.append(LineItem(int(component_id), int(quantity), getattr(it, "description", "") or ""))

    if not lines:
        raise ValidationError("At least one item is required")
    return lines


def _lock_request(db: Session, request_id: int) -> Request:
    req = (
        db.execute(
            select(Request)
            .where(Request.id == request_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        .scalars()
        .one_or_none()
    )
    if not req:
        raise NotFound("Request not found")
    return req


# ---------- READS ----------
def _with_items(stmt):
    return stmt.options(selectinload(Request.items).selectinload(RequestItem.component))


def get_request(db: Session, request_id: int) -> Request:
    req = db.execute(_with_items(select(Request).where(Request.id == request_id))).scalar_one_or_none()
    if not req:
        raise NotFound("Request not found")
    return req


def list_requests(db: Session, status: RequestStatus | None = None) -> list[Request]:
    stmt = _with_items(select(Request)).order_by(Request.requested_at.desc(), Request.id.desc())
    if status is not None:
        stmt = stmt.where(Request.status == status)
    return list(db.execute(stmt).scalars().all())


def list_outstanding(db: Session) -> list[Request]:
    """Demandes approuvées dont au moins une ligne doit revenir (non consommable)."""
    stmt = (
        _with_items(select(Request))
        .where(Request.status == RequestStatus.APPROVED)
        .where(Request.items.any(RequestItem.component.has(Component.consumable.is_(False))))
        .order_by(Request.requested_at.desc(), Request.id.desc())
    )
    return list(db.execute(stmt).scalars().all())


# ---------- CREATE / EDIT ----------
def create_request(
    db: Session,
    *,
    personnel_name: str,
    items: Iterable,
    email: str | None = None,
    department: str | None = None,
    expected_return_date: date | None = None,
    face_image: str | None = None,
) -> Request:
    """
    Crée une demande PENDING.

    Contrôle de stock CONSULTATIF (aucune réservation) : l'approbation
    revalide. Aucun mouvement de stock ici.
    """
    name = _clean_name(personnel_name)
    lines = _validate_items(items)

    with atomic(db):
        inventory.check_availability(db, lines)

        req = Request(
            personnel_name=name,
            email=email,
            department=department,
            status=RequestStatus.PENDING,
            requested_at=_now(),
            expected_return_date=expected_return_date,
            face_image=face_image,
        )
        req.items = [
            RequestItem(component_id=ln.component_id, quantity=ln.quantity, description=ln.description)
            for ln in lines
        ]
        db.add(req)
        db.flush()

        audit.record(
            db,
            action="request.create",
            entity_type="request",
            entity_id=req.id,
            items=[ln._asdict() for ln in lines],
        )

    logger.info("Request %s created by %s (%s items)", req.id, name, len(lines))
    return req


def edit_request(
    db: Session,
    request_id: int,
    *,
    personnel_name: str,
    items: Iterable,
    email: str | None = None,
    department: str | None = None,
    expected_return_date: date | None = None,
    face_image: str | None = None,
) -> Request:
    """
    Remplace tout le contenu d'une demande PENDING (nom, champs optionnels,
    lignes). Un champ optionnel absent est remis à None.
    """
    name = _clean_name(personnel_name)
    lines = _validate_items(items)

    with atomic(db):
        req = _lock_request(db, request_id)
        if req.status != RequestStatus.PENDING:
            raise Conflict(f"Only PENDING requests can be edited (status={req.status.value})")

        inventory.check_availability(db, lines)

        req.personnel_name = name
        req.email = email
        req.department = department
        req.expected_return_date = expected_return_date
        req.face_image = face_image

        # remplacement complet : delete puis insert (clé composite request_id/component_id)
        req.items.clear()
        db.flush()
        req.items.extend(
            RequestItem(component_id=ln.component_id, quantity=ln.quantity, description=ln.description)
            for ln in lines
        )
        db.flush()

        audit.record(
            db,
            action="request.edit",
            entity_type="request",
            entity_id=req.id,
            items=[ln._asdict() for ln in lines],
        )

    logger.info("Request %s edited (%s items)", request_id, len(lines))
    return req


# ---------- TRANSITIONS ----------
def _approve(db: Session, req: Request, now: datetime) -> list[ComponentSnapshot]:
    # contrôle autoritaire, composants verrouillés jusqu'au commit
    components = inventory.check_availability(db, req.items, lock=True)

    for it in req.items:
        comp = components[int(it.component_id)]
        inventory.debit(comp, it.quantity)
        usage_log.append(
            db,
            component_id=comp.id,
            quantity=it.quantity,
            type=UsageType.remove,
            project=f"Request by {req.personnel_name}",
            notes=it.description,
            request_id=req.id,
            happened_at=now,
        )

    req.approved_at = now
    return [inventory.snapshot(c) for c in components.values() if inventory.is_low_stock(c)]


def _return(db: Session, req: Request, now: datetime) -> list[ComponentSnapshot]:
    components = inventory.load_components(db, (it.component_id for it in req.items), lock=True)

    for it in req.items:
        comp = components[int(it.component_id)]
        if comp.consumable:
            # consommé définitivement : ni crédit ni historique
            continue
        inventory.credit(comp, it.quantity)
        usage_log.append(
            db,
            component_id=comp.id,
            quantity=it.quantity,
            type=UsageType.add,
            project=f"Return by {req.personnel_name}",
            notes=it.description,
            request_id=req.id,
            happened_at=now,
        )

    req.returned_at = now
    return []


def _revert_approval(db: Session, req: Request, now: datetime) -> list[ComponentSnapshot]:
    # APPROVED -> PENDING : on rend TOUT le stock débité à l'approbation
    components = inventory.load_components(db, (it.component_id for it in req.items), lock=True)

    for it in req.items:
        comp = components[int(it.component_id)]
        inventory.credit(comp, it.quantity)
        usage_log.append(
            db,
            component_id=comp.id,
            quantity=it.quantity,
            type=UsageType.add,
            project=f"Approval reverted for {req.personnel_name}",
            notes=it.description,
            request_id=req.id,
            happened_at=now,
        )

    req.approved_at = None
    return []


Transition = Callable[[Session, Request, datetime], list[ComponentSnapshot]]

TRANSITIONS: dict[tuple[RequestStatus, RequestStatus], Transition] = {
    (RequestStatus.PENDING, RequestStatus.APPROVED): _approve,
    (RequestStatus.APPROVED, RequestStatus.RETURNED): _return,
    (RequestStatus.APPROVED, RequestStatus.PENDING): _revert_approval,
}


def set_status(db: Session, request_id: int, status: RequestStatus | str) -> TransitionResult:
    try:
        target = RequestStatus(status)
    except ValueError:
        raise ValidationError("Invalid status") from None

    with atomic(db):
        req = _lock_request(db, request_id)
        if not req.items:
            raise ValidationError("Request has no items")

        previous = req.status
        transition = TRANSITIONS.get((previous, target))
        if transition is None:
            raise Conflict(f"Cannot move request from {previous.value} to {target.value}")

        low_stock = transition(db, req, _now())
        req.status = target

        audit.record(
            db,
            action="request.status",
            entity_type="request",
            entity_id=req.id,
            previous=previous.value,
            status=target.value,
        )
        db.flush()

        result = TransitionResult(
            request=snapshot_request(req),
            previous_status=previous,
            low_stock=tuple(low_stock),
        )

    logger.info("Request %s: %s -> %s", request_id, previous.value, target.value)
    for comp in result.low_stock:
        logger.warning("Low stock on component %s (%s <= %s)", comp.id, comp.quantity, comp.min_stock)
    return result
