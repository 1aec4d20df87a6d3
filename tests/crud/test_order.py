from datetime import timedelta

from jgpnr import crud
from jgpnr.schemas.enums import OrderStatus
from jgpnr.utils.dates import utcnow
from tests.utils.customer import create_random_customer
from tests.utils.order import create_paid_order, create_random_order


def test_search_orders_by_customer_name(db, order_service):
    """
    Tests that free-text search matches on the customer's name.
    """
    # ARRANGE
    ngozi = create_random_customer(db, first_name="Ngozi")
    create_random_order(order_service, db, customer=ngozi)
    create_random_order(order_service, db)

    # ACT
    orders, total = crud.order.search(db, search="ngozi")

    # ASSERT
    assert total == 1
    assert orders[0].customer_id == ngozi.id


def test_search_orders_by_status_and_date(db, order_service):
    create_paid_order(order_service, db)
    create_random_order(order_service, db)
    now = utcnow()

    completed, total = crud.order.search(
        db,
        status=OrderStatus.COMPLETED,
        date_from=now - timedelta(days=1),
        date_to=now + timedelta(days=1),
    )
    future, future_total = crud.order.search(db, date_from=now + timedelta(days=1))

    assert total == 1
    assert completed[0].status == OrderStatus.COMPLETED.value
    assert future_total == 0


def test_get_by_order_number_loads_tickets(db, order_service):
    order = create_random_order(order_service, db, quantity=3, amount=750000)

    found = crud.order.get_by_order_number(db, order_number=order.order_number)

    assert found.id == order.id
    assert len(found.tickets) == 3


def test_completed_totals(db, order_service):
    create_paid_order(order_service, db, quantity=2, amount=500000)
    create_paid_order(order_service, db, quantity=1, amount=250000)
    create_random_order(order_service, db, quantity=5, amount=1250000)

    assert crud.order.completed_totals(db) == (750000, 3)
    assert crud.order.count_by_status(db) == {
        OrderStatus.COMPLETED.value: 2,
        OrderStatus.PENDING.value: 1,
    }


def test_transition_only_applies_from_expected_status(db, order_service):
    order = create_random_order(order_service, db)

    moved = crud.order.transition(
        db, order.id, from_status=OrderStatus.PENDING, to_status=OrderStatus.CANCELLED,
        values={"cancel_reason": "No show"},
    )
    again = crud.order.transition(
        db, order.id, from_status=OrderStatus.PENDING, to_status=OrderStatus.COMPLETED
    )
    db.commit()

    assert moved is True
    assert again is False
    db.refresh(order)
    assert order.status == OrderStatus.CANCELLED.value
    assert order.cancel_reason == "No show"
