import pytest
from sqlalchemy import select

from storeroom.app.db.models.models_v1 import (
    AuditLog,
    Category,
    Component,
    Request,
    RequestItem,
    UsageRecord,
)
from storeroom.app.db.models.core_types import UsageType
from storeroom.services import inventory, requests
from storeroom.services.errors import InsufficientStock, NotFound, ValidationError
from storeroom.services.inventory import LineItem


def test_check_availability_passes_when_stock_covers(db_session, make_component):
    a = make_component("Propeller", quantity=5)
    b = make_component("ESC", quantity=2)

    comps = inventory.check_availability(
        db_session,
        [LineItem(a.id, 5), LineItem(b.id, 1)],
    )

    assert set(comps) == {a.id, b.id}
    # consultatif : rien ne bouge
    assert db_session.get(Component, a.id).quantity == 5


def test_check_availability_rejects_out_of_stock(db_session, make_component):
    empty = make_component("Battery", quantity=0)

    with pytest.raises(InsufficientStock) as exc:
        inventory.check_availability(db_session, [LineItem(empty.id, 1)])

    assert exc.value.component_id == empty.id
    assert exc.value.available == 0


def test_check_availability_reports_the_short_item(db_session, make_component):
    ok = make_component("Frame", quantity=10)
    short = make_component("Camera", quantity=2)

    with pytest.raises(InsufficientStock) as exc:
        inventory.check_availability(
            db_session,
            [LineItem(ok.id, 3), LineItem(short.id, 5)],
        )

    assert exc.value.component_id == short.id
    assert exc.value.available == 2
    assert exc.value.requested == 5


def test_check_availability_unknown_component(db_session):
    with pytest.raises(NotFound):
        inventory.check_availability(db_session, [LineItem(999, 1)])


def test_debit_refuses_to_go_negative(db_session, make_component):
    comp = make_component(quantity=3)

    with pytest.raises(InsufficientStock):
        inventory.debit(comp, 4)

    assert comp.quantity == 3


def test_credit_and_debit_reject_non_positive(db_session, make_component):
    comp = make_component(quantity=3)

    with pytest.raises(ValidationError):
        inventory.debit(comp, 0)
    with pytest.raises(ValidationError):
        inventory.credit(comp, -2)


def test_manual_remove_records_negative_delta(db_session, make_component):
    comp = make_component(quantity=10, min_stock=5)

    result = inventory.record_manual_usage(
        db_session,
        comp.id,
        type=UsageType.remove,
        quantity=6,
        project="Field test",
        notes="bench",
    )

    assert result.component.quantity == 4
    assert result.low_stock is True

    rec = db_session.get(UsageRecord, result.record_id)
    assert rec.quantity == -6
    assert rec.type == UsageType.remove
    assert rec.project == "Field test"
    assert db_session.get(Component, comp.id).quantity == 4


def test_manual_add_records_positive_delta(db_session, make_component):
    comp = make_component(quantity=1, min_stock=5)

    result = inventory.record_manual_usage(db_session, comp.id, type=UsageType.add, quantity=7)

    assert result.component.quantity == 8
    assert result.low_stock is False
    assert db_session.get(UsageRecord, result.record_id).quantity == 7


def test_manual_remove_beyond_stock_writes_nothing(db_session, make_component):
    comp = make_component(quantity=2)

    with pytest.raises(InsufficientStock):
        inventory.record_manual_usage(db_session, comp.id, type=UsageType.remove, quantity=3)

    assert db_session.get(Component, comp.id).quantity == 2
    assert db_session.execute(select(UsageRecord)).scalars().all() == []


def test_create_component_derives_consumable_from_category(db_session):
    glue = inventory.create_component(db_session, name="CA glue", category_name="Consumables")
    drill = inventory.create_component(db_session, name="Drill", category_name="Tools")
    forced = inventory.create_component(
        db_session, name="Zip ties", category_name="Tools", consumable=True
    )

    assert glue.consumable is True
    assert drill.consumable is False
    assert forced.consumable is True


def test_create_component_uses_category_name_from_id(db_session):
    cat = inventory.get_or_create_category(db_session, "Electronics")

    comp = inventory.create_component(db_session, name="GPS", category_id=cat.id)

    assert comp.category_name == "Electronics"
    assert comp.consumable is False


def test_get_or_create_category_is_idempotent(db_session):
    first = inventory.get_or_create_category(db_session, " Sensors ")
    second = inventory.get_or_create_category(db_session, "Sensors")

    assert first.id == second.id


def test_get_or_create_category_reuses_row_created_concurrently(db_session, monkeypatch):
    """
    GIVEN "Sensors" existe déjà en base
    WHEN le select initial le rate (insert concurrent entre select et insert)
    THEN la violation d'unicité est absorbée et la ligne existante est renvoyée
    """
    existing_id = inventory.get_or_create_category(db_session, "Sensors").id

    real_find = inventory._find_category
    calls = []

    def miss_first(db, name):
        calls.append(name)
        return None if len(calls) == 1 else real_find(db, name)

    monkeypatch.setattr(inventory, "_find_category", miss_first)

    cat = inventory.get_or_create_category(db_session, "Sensors")

    assert cat.id == existing_id
    assert len(calls) == 2
    assert len(db_session.execute(select(Category)).scalars().all()) == 1


def test_delete_component_cascades(db_session, make_component):
    gone = make_component("Gimbal", quantity=5)
    kept = make_component("Antenna", quantity=5)

    inventory.record_manual_usage(db_session, gone.id, type=UsageType.remove, quantity=1)
    only_gone = requests.create_request(
        db_session, personnel_name="Ada", items=[LineItem(gone.id, 1)]
    )
    mixed = requests.create_request(
        db_session, personnel_name="Bola", items=[LineItem(gone.id, 1), LineItem(kept.id, 2)]
    )
    only_gone_id, mixed_id, gone_id = only_gone.id, mixed.id, gone.id

    inventory.delete_component(db_session, gone_id)

    assert db_session.get(Component, gone_id) is None
    assert db_session.execute(
        select(UsageRecord).where(UsageRecord.component_id == gone_id)
    ).scalars().all() == []
    # demande vidée -> supprimée ; demande mixte -> garde sa ligne restante
    assert db_session.get(Request, only_gone_id) is None
    remaining = db_session.execute(
        select(RequestItem).where(RequestItem.request_id == mixed_id)
    ).scalars().all()
    assert [it.component_id for it in remaining] == [kept.id]

    audit = db_session.execute(
        select(AuditLog).where(AuditLog.action == "component.delete")
    ).scalar_one()
    assert audit.entity_id == str(gone_id)


def test_delete_unknown_component(db_session):
    with pytest.raises(NotFound):
        inventory.delete_component(db_session, 12345)
