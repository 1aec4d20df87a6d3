from jgpnr import crud
from jgpnr.schemas.customer import CustomerCreate, CustomerUpdate
from tests.utils.customer import create_random_customer


def test_create_customer_normalises_email(db):
    """
    Tests that emails are stored lower-cased and looked up case-insensitively.
    """
    # ARRANGE
    customer_in = CustomerCreate(
        first_name="Tunde", last_name="Bakare", email="Tunde.Bakare@Example.com"
    )

    # ACT
    customer = crud.customer.create(db, obj_in=customer_in)

    # ASSERT
    assert customer.id.startswith("cus_")
    assert customer.email == "tunde.bakare@example.com"
    assert customer.total_orders == 0
    assert customer.total_spent == 0
    assert crud.customer.get_by_email(db, email="TUNDE.BAKARE@example.com").id == customer.id


def test_search_customers(db):
    create_random_customer(db, first_name="Ngozi", last_name="Eze")
    create_random_customer(db, first_name="Emeka", last_name="Obi")

    customers, total = crud.customer.search(db, search="ngo")

    assert total == 1
    assert customers[0].first_name == "Ngozi"


def test_update_customer(db):
    customer = create_random_customer(db)

    updated = crud.customer.update(
        db, db_obj=customer, obj_in=CustomerUpdate(phone="+2348099999999")
    )

    assert updated.phone == "+2348099999999"
    assert updated.first_name == "Ada"


def test_reverse_purchase_never_goes_negative(db):
    customer = create_random_customer(db)

    crud.customer.reverse_purchase(db, customer=customer, amount=250000)
    db.commit()

    assert customer.total_orders == 0
    assert customer.total_spent == 0
