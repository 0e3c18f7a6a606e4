from datetime import datetime, timedelta, timezone

import pytest

from src.marketplace.errors import DriverAssignmentError, InvalidTransitionError, OrderNotFoundError
from src.marketplace.models.domain import OrderItem, OrderStatus, ParentOrder, Suborder
from src.marketplace.persistence.memory import InMemoryStore
from src.marketplace.services.orders import drivers
from src.marketplace.services.orders.status import (
    ALLOWED_TRANSITIONS,
    STATUS_LABELS,
    can_transition,
    get_status_history,
    update_parent_status,
    update_status,
)


class Clock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


def _suborder(sid: str, parent_id: str, position: int, status: OrderStatus = OrderStatus.PLACED) -> Suborder:
    return Suborder(
        id=sid,
        order_number=f"ORD-1-ABC-{position + 1}",
        parent_order_id=parent_id,
        shop_id=f"shop-{position}",
        items=[OrderItem(product_id="p", product_name="Bread", quantity=1, unit_price=5.0, total_price=5.0)],
        subtotal=5.0,
        pickup_sequence_index=position,
        status=status,
    )


def _parent(pid: str = "parent-1", statuses=(OrderStatus.PLACED, OrderStatus.PLACED), fee: float = 25.0) -> ParentOrder:
    return ParentOrder(
        id=pid,
        order_number=f"ORD-{pid}",
        user_id="user-1",
        customer_name="Mona",
        customer_phone="+20100",
        delivery_address="Cairo",
        delivery_latitude=30.0,
        delivery_longitude=31.0,
        subtotal=5.0 * len(statuses),
        total_delivery_fee=fee,
        platform_fee=0.0,
        total=5.0 * len(statuses) + fee,
        route_km=4.0,
        route_minutes=10,
        pickup_sequence=list(range(1, len(statuses) + 1)),
        delivery_fee_breakdown={},
        delivery_settings_snapshot={},
        suborders=[_suborder(f"{pid}-sub-{index}", pid, index, status) for index, status in enumerate(statuses)],
    )


def _store(*parents: ParentOrder, start: datetime | None = None) -> InMemoryStore:
    store = InMemoryStore(clock=Clock(start or datetime(2026, 3, 10, tzinfo=timezone.utc)))
    for parent in parents:
        store.commit_order_graph(parent, actor_id="user-1")
    return store


def _advance(store: InMemoryStore, order_id: str, *statuses: OrderStatus) -> None:
    for status in statuses:
        update_status(order_id, status, "shop-owner", store=store)


def test_transition_table():
    assert can_transition(OrderStatus.PLACED, OrderStatus.CONFIRMED)
    assert can_transition(OrderStatus.PREPARING, OrderStatus.OUT_FOR_DELIVERY)
    assert can_transition(OrderStatus.READY_FOR_PICKUP, OrderStatus.OUT_FOR_DELIVERY)
    assert not can_transition(OrderStatus.PLACED, OrderStatus.DELIVERED)
    assert not can_transition(OrderStatus.READY_FOR_PICKUP, OrderStatus.PREPARING)
    for status in (OrderStatus.DELIVERED, OrderStatus.CANCELLED):
        assert ALLOWED_TRANSITIONS[status] == frozenset()
    for status, allowed in ALLOWED_TRANSITIONS.items():
        if not status.is_terminal:
            assert OrderStatus.CANCELLED in allowed


def test_every_status_has_a_label():
    assert set(STATUS_LABELS) == set(OrderStatus)


def test_placed_to_delivered_is_rejected_without_history():
    store = _store(_parent())

    with pytest.raises(InvalidTransitionError) as excinfo:
        update_status("parent-1-sub-0", OrderStatus.DELIVERED, "driver-1", store=store)

    assert excinfo.value.current == "PLACED"
    assert excinfo.value.requested == "DELIVERED"
    assert store.get_suborder("parent-1-sub-0").status is OrderStatus.PLACED
    assert len(get_status_history("parent-1-sub-0", store=store)) == 1


def test_out_for_delivery_to_delivered_appends_one_history_record():
    store = _store(_parent())
    _advance(
        store,
        "parent-1-sub-0",
        OrderStatus.CONFIRMED,
        OrderStatus.PREPARING,
        OrderStatus.OUT_FOR_DELIVERY,
    )
    before = len(get_status_history("parent-1-sub-0", store=store))

    updated = update_status("parent-1-sub-0", OrderStatus.DELIVERED, "driver-1", notes="Left at door", store=store)

    history = get_status_history("parent-1-sub-0", store=store)
    assert updated.status is OrderStatus.DELIVERED
    assert len(history) == before + 1
    assert history[-1].status is OrderStatus.DELIVERED
    assert history[-1].actor_id == "driver-1"
    assert history[-1].notes == "Left at door"
    assert [record.status for record in history] == [
        OrderStatus.PLACED,
        OrderStatus.CONFIRMED,
        OrderStatus.PREPARING,
        OrderStatus.OUT_FOR_DELIVERY,
        OrderStatus.DELIVERED,
    ]


def test_status_accepts_plain_strings():
    store = _store(_parent())

    updated = update_status("parent-1-sub-0", "CONFIRMED", "shop-owner", store=store)

    assert updated.status is OrderStatus.CONFIRMED


def test_unknown_order_is_not_found():
    store = _store()

    with pytest.raises(OrderNotFoundError):
        update_status("missing", OrderStatus.CONFIRMED, "shop-owner", store=store)
    with pytest.raises(OrderNotFoundError):
        update_parent_status("missing", OrderStatus.CANCELLED, "admin", store=store)


def test_concurrent_change_surfaces_as_invalid_transition():
    class RacingStore(InMemoryStore):
        def apply_status_change(self, order_id, expected_status, new_status, actor_id, notes=None):
            # Another actor cancels between our read and our write.
            super().apply_status_change(order_id, expected_status, OrderStatus.CANCELLED, "other", None)
            return super().apply_status_change(order_id, expected_status, new_status, actor_id, notes)

    store = RacingStore(clock=Clock(datetime(2026, 3, 10, tzinfo=timezone.utc)))
    store.commit_order_graph(_parent(), actor_id="user-1")

    with pytest.raises(InvalidTransitionError) as excinfo:
        update_status("parent-1-sub-0", OrderStatus.CONFIRMED, "shop-owner", store=store)

    assert excinfo.value.current == "CANCELLED"
    assert store.get_suborder("parent-1-sub-0").status is OrderStatus.CANCELLED


def test_cancelling_parent_cascades_to_children():
    store = _store(_parent())

    parent = update_parent_status("parent-1", OrderStatus.CANCELLED, "admin", notes="Customer request", store=store)

    assert parent.status is OrderStatus.CANCELLED
    assert [sub.status for sub in parent.suborders] == [OrderStatus.CANCELLED, OrderStatus.CANCELLED]

    parent_history = get_status_history("parent-1", store=store)
    child_history = [get_status_history(sub.id, store=store) for sub in parent.suborders]
    new_records = [parent_history[-1]] + [history[-1] for history in child_history]
    assert len(parent_history) == 2
    assert all(len(history) == 2 for history in child_history)
    assert len(new_records) == 3
    assert all(record.status is OrderStatus.CANCELLED for record in new_records)
    assert parent_history[-1].notes == "Customer request"
    assert child_history[0][-1].notes == "Cascaded from parent order ORD-parent-1"


def test_cascade_skips_terminal_children_and_bypasses_table():
    store = _store(_parent(statuses=(OrderStatus.PLACED, OrderStatus.PLACED, OrderStatus.PLACED)))
    update_status("parent-1-sub-2", OrderStatus.CANCELLED, "shop-owner", store=store)
    update_parent_status("parent-1", OrderStatus.CONFIRMED, "admin", store=store)
    update_parent_status("parent-1", OrderStatus.PREPARING, "admin", store=store)

    parent = update_parent_status("parent-1", OrderStatus.OUT_FOR_DELIVERY, "driver-1", store=store)

    # PLACED -> OUT_FOR_DELIVERY is not in the table, but cascades force it.
    assert [sub.status for sub in parent.suborders] == [
        OrderStatus.OUT_FOR_DELIVERY,
        OrderStatus.OUT_FOR_DELIVERY,
        OrderStatus.CANCELLED,
    ]
    assert len(get_status_history("parent-1-sub-2", store=store)) == 2


def test_non_cascading_parent_status_leaves_children_alone():
    store = _store(_parent())

    parent = update_parent_status("parent-1", OrderStatus.CONFIRMED, "admin", store=store)

    assert parent.status is OrderStatus.CONFIRMED
    assert [sub.status for sub in parent.suborders] == [OrderStatus.PLACED, OrderStatus.PLACED]
    assert len(get_status_history("parent-1-sub-0", store=store)) == 1


def test_parent_transitions_use_the_same_table():
    store = _store(_parent())

    with pytest.raises(InvalidTransitionError):
        update_parent_status("parent-1", OrderStatus.DELIVERED, "driver-1", store=store)
    assert len(get_status_history("parent-1", store=store)) == 1


def test_assign_driver_sets_side_field_only():
    store = _store(_parent())

    parent = drivers.assign_driver("parent-1", "driver-1", store=store)

    assert parent.delivery_user_id == "driver-1"
    assert parent.status is OrderStatus.PLACED
    assert len(get_status_history("parent-1", store=store)) == 1
    assert drivers.assign_driver("parent-1", "driver-1", store=store).delivery_user_id == "driver-1"


def test_assign_driver_conflicts():
    store = _store(_parent("p1"), _parent("p2"))
    drivers.assign_driver("p1", "driver-1", store=store)
    update_parent_status("p2", OrderStatus.CANCELLED, "admin", store=store)

    with pytest.raises(DriverAssignmentError):
        drivers.assign_driver("p1", "driver-2", store=store)
    with pytest.raises(DriverAssignmentError):
        drivers.assign_driver("p2", "driver-1", store=store)
    with pytest.raises(OrderNotFoundError):
        drivers.assign_driver("missing", "driver-1", store=store)


def test_driver_active_orders_and_history():
    store = _store(_parent("p1"), _parent("p2"), _parent("p3"))
    for pid in ("p1", "p2", "p3"):
        drivers.assign_driver(pid, "driver-1", store=store)
    for status in (OrderStatus.CONFIRMED, OrderStatus.PREPARING, OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED):
        update_parent_status("p1", status, "driver-1", store=store)

    active = drivers.get_active_orders("driver-1", store=store)
    history = drivers.get_delivery_history("driver-1", store=store)

    # Newest first.
    assert [parent.id for parent in active] == ["p3", "p2"]
    assert [parent.id for parent in history] == ["p1"]
    assert drivers.get_active_orders("driver-2", store=store) == []


def test_delivery_stats_count_this_month_only():
    store = _store(_parent("old", fee=30.0), start=datetime(2026, 2, 27, tzinfo=timezone.utc))
    drivers.assign_driver("old", "driver-1", store=store)
    for status in (OrderStatus.CONFIRMED, OrderStatus.PREPARING, OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED):
        update_parent_status("old", status, "driver-1", store=store)

    store._clock.now = datetime(2026, 3, 5, tzinfo=timezone.utc)
    for pid, fee in (("new-1", 22.5), ("new-2", 17.25), ("cancelled", 40.0)):
        store.commit_order_graph(_parent(pid, fee=fee), actor_id="user-1")
        drivers.assign_driver(pid, "driver-1", store=store)
    for pid in ("new-1", "new-2"):
        for status in (OrderStatus.CONFIRMED, OrderStatus.PREPARING, OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED):
            update_parent_status(pid, status, "driver-1", store=store)
    update_parent_status("cancelled", OrderStatus.CANCELLED, "admin", store=store)

    stats = drivers.get_delivery_stats("driver-1", now=datetime(2026, 3, 20, 15, 30, tzinfo=timezone.utc), store=store)

    assert stats.period_start == datetime(2026, 3, 1, tzinfo=timezone.utc)
    assert stats.monthly_count == 2
    assert stats.monthly_earnings == 39.75
