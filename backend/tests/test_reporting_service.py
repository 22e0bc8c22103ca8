"""Ledger aggregation: dashboard, best sellers, tender breakdowns, day bounds."""

from datetime import datetime, timedelta

import pytest

from papeleria.errors import ResourceNotFound, ValidationError
from papeleria.models import Sale
from papeleria.services import purchase_service, register_service, reporting_service, sales_service
from papeleria.time_utils import utcnow


def _sale(user_id, lines, payments, **kwargs):
    return sales_service.create_sale(user_id=user_id, items=lines, payments=payments, **kwargs)


def _set_created_at(session, sale_id, when):
    session.get(Sale, sale_id).created_at = when
    session.commit()


def test_empty_dashboard(db_session):
    stats = reporting_service.dashboard_stats()

    assert stats["total_sales"] == 0
    assert stats["total_revenue_cents"] == 0
    assert stats["net_profit_cents"] == 0
    assert stats["today_sales"] == 0


def test_dashboard_stats(db_session, cashier, supplier, make_product):
    notebook = make_product(stock=10, min_stock=2)
    make_product(stock=1, min_stock=5)

    _sale(cashier.id, [{"product_id": notebook.id, "quantity": 2, "unit_price_cents": 3000}],
          [{"method": "CASH", "amount_cents": 6000}])
    _sale(cashier.id, [{"product_id": notebook.id, "quantity": 1, "unit_price_cents": 3000}],
          [{"method": "CARD", "amount_cents": 3000, "voucher_number": "V-1"}])
    purchase_service.create_purchase(
        supplier_id=supplier.id,
        user_id=cashier.id,
        details=[{"product_id": notebook.id, "quantity": 5, "unit_cost_cents": 1000}],
    )

    stats = reporting_service.dashboard_stats()

    assert stats["total_sales"] == 2
    assert stats["total_revenue_cents"] == 9000
    assert stats["total_expenses_cents"] == 5000
    assert stats["net_profit_cents"] == 4000
    assert stats["total_products"] == 2
    assert stats["low_stock_product_count"] == 1
    assert stats["today_sales"] == 2
    assert stats["today_revenue_cents"] == 9000


def test_top_selling_mixes_products_and_services(db_session, cashier, make_product, make_service):
    pen = make_product(name="Lapicero", stock=100)
    ream = make_product(name="Resma", stock=100)
    copies = make_service("Fotocopia", 200)

    _sale(cashier.id, [
        {"product_id": pen.id, "quantity": 5, "unit_price_cents": 1000},
        {"product_id": ream.id, "quantity": 1, "unit_price_cents": 22000},
        {"item_type": "service", "service_id": copies.id, "quantity": 40, "unit_price_cents": 200},
    ], [{"method": "CASH", "amount_cents": 35000}])

    by_quantity = reporting_service.top_selling_items(limit=5)
    assert [(row["item_type"], row["name"]) for row in by_quantity] == [
        ("service", "Fotocopia"),
        ("product", "Lapicero"),
        ("product", "Resma"),
    ]
    assert by_quantity[0]["item_id"] == copies.id
    assert by_quantity[0]["total_sold"] == 40
    assert by_quantity[0]["revenue_cents"] == 8000

    by_revenue = reporting_service.top_selling_items(limit=2, order_by="revenue")
    assert [row["name"] for row in by_revenue] == ["Resma", "Fotocopia"]


@pytest.mark.parametrize("kwargs", [{"limit": 0}, {"order_by": "profit"}, {"start": "yesterday"}])
def test_top_selling_rejects_bad_arguments(db_session, kwargs):
    with pytest.raises(ValidationError):
        reporting_service.top_selling_items(**kwargs)


def test_payment_breakdown_percentages(db_session, cashier, make_product):
    product = make_product(stock=100)
    _sale(cashier.id, [{"product_id": product.id, "quantity": 1, "unit_price_cents": 7500}], [
        {"method": "CASH", "amount_cents": 5000},
        {"method": "NEQUI", "amount_cents": 2500, "reference_number": "NQ-1"},
    ])
    _sale(cashier.id, [{"product_id": product.id, "quantity": 1, "unit_price_cents": 2500}],
          [{"method": "CASH", "amount_cents": 2500}])

    report = reporting_service.sales_by_payment_method()

    assert report["grand_total_cents"] == 10000
    assert report["total_transactions"] == 3
    rows = {row["payment_method"]: row for row in report["rows"]}
    assert rows["CASH"]["count"] == 2
    assert rows["CASH"]["total_cents"] == 7500
    assert rows["CASH"]["percentage"] == 75.0
    assert rows["NEQUI"]["percentage"] == 25.0

    only_nequi = reporting_service.sales_by_payment_method(method="nequi")
    assert [row["payment_method"] for row in only_nequi["rows"]] == ["NEQUI"]
    assert only_nequi["rows"][0]["percentage"] == 100.0


def test_payment_breakdown_with_no_sales(db_session):
    report = reporting_service.sales_by_payment_method()

    assert report["grand_total_cents"] == 0
    assert report["rows"] == []


def test_mixed_payment_sales_and_vouchers(db_session, cashier, make_product):
    product = make_product(stock=100)
    mixed = _sale(cashier.id, [{"product_id": product.id, "quantity": 1, "unit_price_cents": 4000}], [
        {"method": "CASH", "amount_cents": 1000},
        {"method": "CARD", "amount_cents": 3000, "voucher_number": "V-555"},
    ])
    _sale(cashier.id, [{"product_id": product.id, "quantity": 1, "unit_price_cents": 4000}], [
        {"method": "CASH", "amount_cents": 2000},
        {"method": "CASH", "amount_cents": 2000},
    ])

    report = reporting_service.mixed_payment_sales()
    assert report["count"] == 1
    assert report["sales"][0]["sale"]["id"] == mixed["sale"]["id"]
    assert report["total_cents"] == 4000

    voucher_report = reporting_service.vouchers()
    assert voucher_report["count"] == 1
    assert voucher_report["vouchers"][0]["voucher_number"] == "V-555"
    assert reporting_service.vouchers(method="TRANSFER")["count"] == 0


def test_register_reconciliation(db_session, cashier, make_product):
    product = make_product(stock=100)
    register = register_service.open_register(cashier.id, 50000)
    for amount, method in ((10000, "CASH"), (6000, "CARD"), (4000, "CASH")):
        _sale(cashier.id, [{"product_id": product.id, "quantity": 1, "unit_price_cents": amount}],
              [{"method": method, "amount_cents": amount}], cash_register_id=register.id)

    live = reporting_service.register_reconciliation(register.id)
    assert live["status"] == "OPEN"
    assert live["expected_amount_cents"] == 64000
    assert live["difference_cents"] is None
    assert live["sales_count"] == 3
    assert live["total_sales_cents"] == 20000
    breakdown = {row["payment_method"]: row for row in live["payment_method_breakdown"]}
    assert breakdown["CASH"]["total_cents"] == 14000
    assert breakdown["CASH"]["percentage"] == 70.0
    assert breakdown["CARD"]["percentage"] == 30.0

    register_service.close_register(register.id, 63000)
    closed = reporting_service.register_reconciliation(register.id)
    assert closed["status"] == "CLOSED"
    assert closed["expected_amount_cents"] == 64000
    assert closed["difference_cents"] == -1000
    assert closed["closing_amount_cents"] == 63000


def test_register_reconciliation_unknown(db_session):
    with pytest.raises(ResourceNotFound):
        reporting_service.register_reconciliation(999)


def test_daily_sales_uses_report_timezone(db_session, cashier, make_product):
    product = make_product(stock=100)
    late_evening = _sale(cashier.id, [{"product_id": product.id, "quantity": 1, "unit_price_cents": 1000}],
                         [{"method": "CASH", "amount_cents": 1000}], tax_amount_cents=160)
    next_morning = _sale(cashier.id, [{"product_id": product.id, "quantity": 1, "unit_price_cents": 2000}],
                         [{"method": "CASH", "amount_cents": 2000}])

    # 2025-01-16 03:00 UTC is 2025-01-15 22:00 in Bogota (UTC-5)
    _set_created_at(db_session, late_evening["sale"]["id"], datetime(2025, 1, 16, 3, 0))
    _set_created_at(db_session, next_morning["sale"]["id"], datetime(2025, 1, 16, 13, 0))

    day_15 = reporting_service.daily_sales("2025-01-15")
    assert day_15["sales_count"] == 1
    assert day_15["total_revenue_cents"] == 1000
    assert day_15["total_tax_cents"] == 160
    assert [entry["sale"]["id"] for entry in day_15["sales"]] == [late_evening["sale"]["id"]]

    day_16 = reporting_service.daily_sales("2025-01-16")
    assert day_16["sales_count"] == 1
    assert day_16["total_revenue_cents"] == 2000

    inclusive_range = reporting_service.net_profit("2025-01-15", "2025-01-16")
    assert inclusive_range["total_revenue_cents"] == 3000
    assert inclusive_range["profit_margin"] == 100.0


def test_net_profit(db_session, cashier, supplier, make_product):
    product = make_product(stock=0)
    purchase_service.create_purchase(
        supplier_id=supplier.id,
        user_id=cashier.id,
        details=[{"product_id": product.id, "quantity": 10, "unit_cost_cents": 500}],
    )
    _sale(cashier.id, [{"product_id": product.id, "quantity": 4, "unit_price_cents": 2000}],
          [{"method": "CASH", "amount_cents": 8000}])

    report = reporting_service.net_profit()

    assert report["total_revenue_cents"] == 8000
    assert report["total_expenses_cents"] == 5000
    assert report["net_profit_cents"] == 3000
    assert report["profit_margin"] == 37.5


def test_net_profit_without_revenue_has_zero_margin(db_session):
    assert reporting_service.net_profit()["profit_margin"] == 0.0


def test_sales_chart_buckets_today(db_session, cashier, make_product):
    product = make_product(stock=100)
    _sale(cashier.id, [{"product_id": product.id, "quantity": 1, "unit_price_cents": 1200}],
          [{"method": "CASH", "amount_cents": 1200}])
    old = _sale(cashier.id, [{"product_id": product.id, "quantity": 1, "unit_price_cents": 999}],
                [{"method": "CASH", "amount_cents": 999}])
    _set_created_at(db_session, old["sale"]["id"], utcnow() - timedelta(days=60))

    chart = reporting_service.sales_chart("week")

    assert len(chart["labels"]) == 7
    assert chart["data"][-1] == 1200
    assert sum(chart["data"]) == 1200
    assert len(reporting_service.sales_chart("month")["labels"]) == 30

    with pytest.raises(ValidationError):
        reporting_service.sales_chart("decade")


def test_recent_sales_and_low_stock(db_session, cashier, make_product):
    product = make_product(stock=3, min_stock=2)
    for _ in range(3):
        _sale(cashier.id, [{"product_id": product.id, "quantity": 1, "unit_price_cents": 100}],
              [{"method": "CASH", "amount_cents": 100}])

    recent = reporting_service.recent_sales(2)
    assert len(recent) == 2
    assert recent[0]["sale"]["id"] > recent[1]["sale"]["id"]

    low = reporting_service.low_stock_products()
    assert [p["id"] for p in low] == [product.id]
    assert low[0]["is_low_stock"] is True


def test_removed_sale_drops_out_of_dashboard_and_reconciliation(db_session, cashier, make_product):
    product = make_product(stock=10)
    register = register_service.open_register(cashier.id, 50000)
    _sale(cashier.id, [{"product_id": product.id, "quantity": 1, "unit_price_cents": 3000}],
          [{"method": "CASH", "amount_cents": 3000}], cash_register_id=register.id)
    dropped = _sale(cashier.id, [{"product_id": product.id, "quantity": 2, "unit_price_cents": 3000}],
                    [{"method": "CARD", "amount_cents": 6000, "voucher_number": "V-9"}],
                    cash_register_id=register.id)

    sales_service.remove_sale(dropped["sale"]["id"])

    stats = reporting_service.dashboard_stats()
    assert stats["total_sales"] == 1
    assert stats["total_revenue_cents"] == 3000
    assert dropped["sale"]["id"] not in [s["sale"]["id"] for s in reporting_service.recent_sales()]
    assert reporting_service.vouchers()["count"] == 0

    detail = reporting_service.register_reconciliation(register.id)
    assert detail["sales_count"] == 1
    assert detail["total_sales_cents"] == 3000
    assert detail["expected_amount_cents"] == 53000
    assert [row["payment_method"] for row in detail["payment_method_breakdown"]] == ["CASH"]


def test_sales_by_category(db_session, cashier, make_product, make_service):
    notebook = make_product("Cuaderno", stock=50, category_id=1, category_name="Cuadernos")
    pen = make_product("Lapicero", stock=50, category_id=2, category_name="Escritura")
    eraser = make_product("Borrador", stock=50)
    copies = make_service("Fotocopia", 200)

    _sale(cashier.id, [
        {"product_id": notebook.id, "quantity": 2, "unit_price_cents": 3000},
        {"product_id": pen.id, "quantity": 4, "unit_price_cents": 750},
        {"product_id": eraser.id, "quantity": 1, "unit_price_cents": 1000},
        {"item_type": "service", "service_id": copies.id, "quantity": 10, "unit_price_cents": 200},
    ], [{"method": "CASH", "amount_cents": 12000}])

    report = reporting_service.sales_by_category()

    assert report["total_cents"] == 10000
    rows = {row["category"]: row for row in report["categories"]}
    assert list(rows) == ["Cuadernos", "Escritura", "Uncategorized"]
    assert rows["Cuadernos"]["total_cents"] == 6000
    assert rows["Cuadernos"]["percentage"] == 60.0
    assert rows["Escritura"]["total_sold"] == 4
    assert rows["Escritura"]["percentage"] == 30.0
    assert rows["Uncategorized"]["category_id"] is None
    assert rows["Uncategorized"]["total_cents"] == 1000
    assert rows["Uncategorized"]["percentage"] == 10.0


def test_sales_by_category_with_no_sales(db_session):
    assert reporting_service.sales_by_category() == {"total_cents": 0, "categories": []}
    with pytest.raises(ValidationError):
        reporting_service.sales_by_category(start="2025-02-10", end="2025-02-01")
