"""Cash register session lifecycle and reconciliation."""

import pytest
from sqlalchemy.exc import IntegrityError

from papeleria.errors import (
    CannotDeleteOpenSession,
    ResourceNotFound,
    SessionAlreadyClosed,
    SessionAlreadyOpen,
    ValidationError,
)
from papeleria.models import CashRegister
from papeleria.services import register_service, sales_service


def _cash_sale(user_id, register_id, product_id, amount_cents, method="CASH"):
    return sales_service.create_sale(
        user_id=user_id,
        cash_register_id=register_id,
        items=[{"product_id": product_id, "quantity": 1, "unit_price_cents": amount_cents}],
        payments=[{"method": method, "amount_cents": amount_cents}],
    )


def test_open_register(db_session, cashier):
    register = register_service.open_register(cashier.id, 50000, notes="Turno manana")

    assert register.status == "OPEN"
    assert register.opening_amount_cents == 50000
    assert register.opened_at is not None
    assert register.closed_at is None
    assert register_service.get_user_open_register(cashier.id).id == register.id


def test_second_open_for_same_user_rejected(db_session, cashier):
    register_service.open_register(cashier.id, 50000)

    with pytest.raises(SessionAlreadyOpen):
        register_service.open_register(cashier.id, 1000)

    assert db_session.query(CashRegister).filter_by(user_id=cashier.id, status="OPEN").count() == 1


def test_different_users_may_each_hold_an_open_register(db_session, cashier, other_cashier):
    register_service.open_register(cashier.id, 1000)
    register_service.open_register(other_cashier.id, 2000)

    assert len(register_service.list_open_registers()) == 2


def test_reopen_after_close(db_session, cashier):
    first = register_service.open_register(cashier.id, 1000)
    register_service.close_register(first.id, 1000)

    second = register_service.open_register(cashier.id, 3000)
    assert second.id != first.id
    assert second.status == "OPEN"


def test_open_for_unknown_user(db_session):
    with pytest.raises(ResourceNotFound):
        register_service.open_register(4040, 1000)


def test_negative_opening_amount_rejected(db_session, cashier):
    with pytest.raises(ValidationError):
        register_service.open_register(cashier.id, -1)


def test_close_reconciles_cash_sales(db_session, cashier, make_product):
    product = make_product(stock=10)
    register = register_service.open_register(cashier.id, 50000)
    for amount in (10000, 15000, 5000):
        _cash_sale(cashier.id, register.id, product.id, amount)

    closed = register_service.close_register(register.id, 80000)

    assert closed.status == "CLOSED"
    assert closed.expected_amount_cents == 80000
    assert closed.difference_cents == 0
    assert closed.closed_at is not None


def test_non_cash_payments_are_not_expected_in_drawer(db_session, cashier, make_product):
    product = make_product(stock=10)
    register = register_service.open_register(cashier.id, 20000)
    _cash_sale(cashier.id, register.id, product.id, 7000)
    _cash_sale(cashier.id, register.id, product.id, 9000, method="CARD")

    assert register_service.compute_expected_amount(register) == 27000

    closed = register_service.close_register(register.id, 26500, notes="Faltante")

    assert closed.expected_amount_cents == 27000
    assert closed.difference_cents == -500
    assert closed.notes == "Faltante"


def test_register_less_sales_do_not_count(db_session, cashier, make_product):
    product = make_product(stock=10)
    register = register_service.open_register(cashier.id, 1000)
    _cash_sale(cashier.id, None, product.id, 5000)

    closed = register_service.close_register(register.id, 1000)
    assert closed.expected_amount_cents == 1000


def test_close_twice_rejected(db_session, cashier):
    register = register_service.open_register(cashier.id, 1000)
    register_service.close_register(register.id, 1000)

    with pytest.raises(SessionAlreadyClosed):
        register_service.close_register(register.id, 5000)

    assert register_service.get_register(register.id).closing_amount_cents == 1000


def test_close_unknown_register(db_session):
    with pytest.raises(ResourceNotFound):
        register_service.close_register(123456, 0)


def test_remove_open_register_rejected(db_session, cashier):
    register = register_service.open_register(cashier.id, 1000)

    with pytest.raises(CannotDeleteOpenSession):
        register_service.remove_register(register.id)

    assert register_service.get_register(register.id).status == "OPEN"


def test_remove_closed_register_soft_deletes(db_session, cashier):
    register = register_service.open_register(cashier.id, 1000)
    register_service.close_register(register.id, 1000)

    register_service.remove_register(register.id)

    assert db_session.get(CashRegister, register.id).deleted_at is not None
    assert register_service.list_registers() == []
    with pytest.raises(ResourceNotFound):
        register_service.get_register(register.id)


def test_serialized_open_register_carries_live_expected(db_session, cashier, make_product):
    product = make_product(stock=10)
    register = register_service.open_register(cashier.id, 1000)
    _cash_sale(cashier.id, register.id, product.id, 2500)

    data = register_service.register_to_dict(register)

    assert data["status"] == "OPEN"
    assert data["expected_amount_cents"] == 3500
    assert data["difference_cents"] is None


def test_list_registers_by_status(db_session, cashier, other_cashier):
    closed = register_service.open_register(cashier.id, 1000)
    register_service.close_register(closed.id, 1000)
    still_open = register_service.open_register(other_cashier.id, 1000)

    assert [r.id for r in register_service.list_registers("closed")] == [closed.id]
    assert [r.id for r in register_service.list_open_registers()] == [still_open.id]


def test_unrelated_integrity_error_is_not_reported_as_already_open(db_session, cashier, monkeypatch):
    # opened_at is NOT NULL; the failure has nothing to do with an open session
    monkeypatch.setattr(register_service, "utcnow", lambda: None)

    with pytest.raises(IntegrityError):
        register_service.open_register(cashier.id, 1000)

    assert register_service.get_user_open_register(cashier.id) is None


def test_removed_sale_leaves_expected_cash(db_session, cashier, make_product):
    product = make_product(stock=10)
    register = register_service.open_register(cashier.id, 1000)
    kept = _cash_sale(cashier.id, register.id, product.id, 2500)
    dropped = _cash_sale(cashier.id, register.id, product.id, 4000)

    sales_service.remove_sale(dropped["sale"]["id"])
    closed = register_service.close_register(register.id, 3500)

    assert kept["sale"]["id"] != dropped["sale"]["id"]
    assert closed.expected_amount_cents == 3500
    assert closed.difference_cents == 0
