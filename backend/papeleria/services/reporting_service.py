# Overview: Read-only aggregation over completed sales, payments and purchases.

from __future__ import annotations

from datetime import date, datetime, timedelta

from flask import current_app
from sqlalchemy import func, or_

from papeleria.extensions import db
from papeleria.errors import ValidationError
from papeleria.models import Product, Purchase, Sale, SaleItem, SalePayment
from papeleria.models.sales import ITEM_TYPE_PRODUCT, PAYMENT_METHODS, SALE_STATUS_COMPLETED
from papeleria.services import stock_service
from papeleria.services.register_service import compute_expected_amount, get_register
from papeleria.services.sales_service import get_sale, list_sales
from papeleria.time_utils import (
    local_day_bounds,
    local_today,
    parse_report_range,
    to_local_date,
    to_utc_z,
)


TOP_SELLING_ORDERS = ("quantity", "revenue")

UNCATEGORIZED = "Uncategorized"

CHART_PERIOD_DAYS = {
    "week": 7,
    "month": 30,
    "year": 365,
}


def _tz_name() -> str:
    return current_app.config["REPORT_TIMEZONE"]


def _parse_range(start: str | None, end: str | None) -> tuple[datetime | None, datetime | None]:
    try:
        start_dt, end_dt = parse_report_range(start, end, _tz_name())
    except ValueError:
        raise ValidationError("start/end must be YYYY-MM-DD dates or ISO-8601 datetimes")
    if start_dt and end_dt and start_dt >= end_dt:
        raise ValidationError("start must be before end")
    return start_dt, end_dt


def _parse_day(day) -> date:
    if day is None or day == "":
        return local_today(_tz_name())
    if isinstance(day, date):
        return day
    try:
        return date.fromisoformat(str(day).strip())
    except ValueError:
        raise ValidationError("date must be YYYY-MM-DD")


def _percentage(part: int, whole: int) -> float:
    if not whole:
        return 0.0
    return round(part * 100.0 / whole, 2)


def _completed_sales(query, start_dt=None, end_dt=None):
    query = query.filter(
        Sale.status == SALE_STATUS_COMPLETED,
        Sale.deleted_at.is_(None),
    )
    if start_dt:
        query = query.filter(Sale.created_at >= start_dt)
    if end_dt:
        query = query.filter(Sale.created_at < end_dt)
    return query


def _sales_totals(start_dt=None, end_dt=None) -> tuple[int, int]:
    """(count, revenue_cents) of completed sales in [start_dt, end_dt)."""
    row = _completed_sales(
        db.session.query(
            func.count(Sale.id),
            func.coalesce(func.sum(Sale.total_cents), 0),
        ),
        start_dt,
        end_dt,
    ).one()
    return int(row[0] or 0), int(row[1] or 0)


def _purchase_expenses(start_dt=None, end_dt=None) -> int:
    query = db.session.query(
        func.coalesce(func.sum(Purchase.total_cents), 0)
    ).filter(Purchase.deleted_at.is_(None))
    if start_dt:
        query = query.filter(Purchase.purchase_date >= start_dt)
    if end_dt:
        query = query.filter(Purchase.purchase_date < end_dt)
    return int(query.scalar() or 0)


def _payment_breakdown(
    *,
    start_dt=None,
    end_dt=None,
    method: str | None = None,
    cash_register_id: int | None = None,
    sale_ids=None,
) -> dict:
    query = _completed_sales(
        db.session.query(
            SalePayment.payment_method,
            func.count(SalePayment.id).label("count"),
            func.coalesce(func.sum(SalePayment.amount_cents), 0).label("total_cents"),
        ).join(Sale, Sale.id == SalePayment.sale_id),
        start_dt,
        end_dt,
    )
    if method:
        query = query.filter(SalePayment.payment_method == method)
    if cash_register_id is not None:
        query = query.filter(Sale.cash_register_id == cash_register_id)
    if sale_ids is not None:
        query = query.filter(Sale.id.in_(sale_ids))

    rows = query.group_by(SalePayment.payment_method).order_by(SalePayment.payment_method).all()

    grand_total = sum(int(row.total_cents or 0) for row in rows)
    return {
        "grand_total_cents": grand_total,
        "total_transactions": sum(int(row.count or 0) for row in rows),
        "rows": [
            {
                "payment_method": row.payment_method,
                "count": int(row.count or 0),
                "total_cents": int(row.total_cents or 0),
                "percentage": _percentage(int(row.total_cents or 0), grand_total),
            }
            for row in rows
        ],
    }


def _normalize_method(method: str | None) -> str | None:
    if not method:
        return None
    normalized = method.strip().upper()
    if normalized not in PAYMENT_METHODS:
        raise ValidationError(f"method must be one of {list(PAYMENT_METHODS)}")
    return normalized


# =============================================================================
# DASHBOARD
# =============================================================================

def dashboard_stats(start: str | None = None, end: str | None = None) -> dict:
    """
    Headline figures. Sales and expenses are restricted to [start, end) when
    given; "today" is the current calendar day in REPORT_TIMEZONE.
    """
    start_dt, end_dt = _parse_range(start, end)

    total_sales, total_revenue = _sales_totals(start_dt, end_dt)
    total_expenses = _purchase_expenses(start_dt, end_dt)

    today_start, today_end = local_day_bounds(local_today(_tz_name()), _tz_name())
    today_sales, today_revenue = _sales_totals(today_start, today_end)

    total_products = db.session.query(func.count(Product.id)).filter(
        Product.is_active.is_(True),
        Product.deleted_at.is_(None),
    ).scalar()

    return {
        "start": to_utc_z(start_dt),
        "end": to_utc_z(end_dt),
        "total_sales": total_sales,
        "total_revenue_cents": total_revenue,
        "total_expenses_cents": total_expenses,
        "net_profit_cents": total_revenue - total_expenses,
        "total_products": int(total_products or 0),
        "low_stock_product_count": stock_service.count_low_stock_products(),
        "today_sales": today_sales,
        "today_revenue_cents": today_revenue,
    }


def top_selling_items(
    limit: int | None = None,
    start: str | None = None,
    end: str | None = None,
    order_by: str = "quantity",
) -> list[dict]:
    """
    Best sellers across products and services.

    Rows are grouped per catalog item; the name is the snapshot recorded on
    the sale lines.
    """
    if limit is None:
        limit = current_app.config["TOP_SELLING_DEFAULT_LIMIT"]
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise ValidationError("limit must be a positive integer")
    if order_by not in TOP_SELLING_ORDERS:
        raise ValidationError(f"order_by must be one of {list(TOP_SELLING_ORDERS)}")

    start_dt, end_dt = _parse_range(start, end)

    total_sold = func.coalesce(func.sum(SaleItem.quantity), 0).label("total_sold")
    revenue = func.coalesce(func.sum(SaleItem.subtotal_cents), 0).label("revenue_cents")

    query = _completed_sales(
        db.session.query(
            SaleItem.item_type,
            SaleItem.product_id,
            SaleItem.service_id,
            func.max(SaleItem.name).label("name"),
            total_sold,
            revenue,
        ).join(Sale, Sale.id == SaleItem.sale_id),
        start_dt,
        end_dt,
    ).group_by(SaleItem.item_type, SaleItem.product_id, SaleItem.service_id)

    if order_by == "revenue":
        query = query.order_by(revenue.desc(), total_sold.desc())
    else:
        query = query.order_by(total_sold.desc(), revenue.desc())

    rows = query.limit(limit).all()
    return [
        {
            "item_type": row.item_type,
            "item_id": row.product_id if row.item_type == ITEM_TYPE_PRODUCT else row.service_id,
            "name": row.name,
            "total_sold": int(row.total_sold or 0),
            "revenue_cents": int(row.revenue_cents or 0),
        }
        for row in rows
    ]


def sales_by_category(start: str | None = None, end: str | None = None) -> dict:
    """
    Product revenue grouped by the product's catalog category.

    Service lines have no category and are left out. Products without a
    category are reported together under UNCATEGORIZED.
    """
    start_dt, end_dt = _parse_range(start, end)

    revenue = func.coalesce(func.sum(SaleItem.subtotal_cents), 0).label("total_cents")

    rows = _completed_sales(
        db.session.query(
            Product.category_id,
            func.max(Product.category_name).label("category_name"),
            func.coalesce(func.sum(SaleItem.quantity), 0).label("total_sold"),
            revenue,
        )
        .select_from(SaleItem)
        .join(Sale, Sale.id == SaleItem.sale_id)
        .join(Product, Product.id == SaleItem.product_id),
        start_dt,
        end_dt,
    ).filter(
        SaleItem.item_type == ITEM_TYPE_PRODUCT,
    ).group_by(Product.category_id).order_by(revenue.desc()).all()

    total = sum(int(row.total_cents or 0) for row in rows)
    return {
        "total_cents": total,
        "categories": [
            {
                "category_id": row.category_id,
                "category": row.category_name if row.category_id is not None else UNCATEGORIZED,
                "total_sold": int(row.total_sold or 0),
                "total_cents": int(row.total_cents or 0),
                "percentage": _percentage(int(row.total_cents or 0), total),
            }
            for row in rows
        ],
    }


def sales_chart(period: str = "week") -> dict:
    """
    Revenue per local calendar day over the trailing period, today included.
    Days without sales are present with zero.
    """
    if period not in CHART_PERIOD_DAYS:
        raise ValidationError(f"period must be one of {list(CHART_PERIOD_DAYS)}")

    tz_name = _tz_name()
    today = local_today(tz_name)
    first_day = today - timedelta(days=CHART_PERIOD_DAYS[period] - 1)
    start_dt, _ = local_day_bounds(first_day, tz_name)
    _, end_dt = local_day_bounds(today, tz_name)

    rows = _completed_sales(
        db.session.query(Sale.created_at, Sale.total_cents),
        start_dt,
        end_dt,
    ).all()

    # Bucketing happens here so the day boundary follows REPORT_TIMEZONE on every engine
    buckets: dict[date, int] = {}
    for created_at, total_cents in rows:
        day = to_local_date(created_at, tz_name)
        buckets[day] = buckets.get(day, 0) + int(total_cents or 0)

    labels = []
    data = []
    day = first_day
    while day <= today:
        labels.append(day.isoformat())
        data.append(buckets.get(day, 0))
        day += timedelta(days=1)

    return {"period": period, "labels": labels, "data": data}


def low_stock_products() -> list[dict]:
    return [product.to_dict() for product in stock_service.low_stock_products()]


def recent_sales(limit: int = 10) -> list[dict]:
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise ValidationError("limit must be a positive integer")

    sale_ids = db.session.query(Sale.id).filter(
        Sale.deleted_at.is_(None),
    ).order_by(Sale.created_at.desc(), Sale.id.desc()).limit(limit).all()
    return [get_sale(sale_id) for (sale_id,) in sale_ids]


# =============================================================================
# REPORTS
# =============================================================================

def sales_by_payment_method(
    start: str | None = None,
    end: str | None = None,
    method: str | None = None,
) -> dict:
    start_dt, end_dt = _parse_range(start, end)
    breakdown = _payment_breakdown(
        start_dt=start_dt,
        end_dt=end_dt,
        method=_normalize_method(method),
    )
    breakdown["start"] = to_utc_z(start_dt)
    breakdown["end"] = to_utc_z(end_dt)
    return breakdown


def mixed_payment_sales(start: str | None = None, end: str | None = None) -> dict:
    """Sales settled with more than one distinct payment method."""
    start_dt, end_dt = _parse_range(start, end)

    sale_ids = [
        sale_id
        for (sale_id,) in _completed_sales(
            db.session.query(Sale.id).join(SalePayment, SalePayment.sale_id == Sale.id),
            start_dt,
            end_dt,
        ).group_by(Sale.id).having(
            func.count(func.distinct(SalePayment.payment_method)) > 1
        ).order_by(Sale.id.desc()).all()
    ]

    sales = [get_sale(sale_id) for sale_id in sale_ids]
    return {
        "start": to_utc_z(start_dt),
        "end": to_utc_z(end_dt),
        "count": len(sales),
        "total_cents": sum(entry["sale"]["total_cents"] for entry in sales),
        "sales": sales,
        "payment_breakdown": _payment_breakdown(sale_ids=sale_ids)["rows"] if sale_ids else [],
    }


def vouchers(
    start: str | None = None,
    end: str | None = None,
    method: str | None = None,
) -> dict:
    """Payments carrying a card voucher or a transfer/wallet reference."""
    start_dt, end_dt = _parse_range(start, end)
    method = _normalize_method(method)

    query = _completed_sales(
        db.session.query(SalePayment, Sale).join(Sale, Sale.id == SalePayment.sale_id),
        start_dt,
        end_dt,
    ).filter(
        or_(
            SalePayment.voucher_number.isnot(None),
            SalePayment.reference_number.isnot(None),
        )
    )
    if method:
        query = query.filter(SalePayment.payment_method == method)

    rows = []
    for payment, sale in query.order_by(Sale.created_at.desc(), SalePayment.id.desc()).all():
        entry = payment.to_dict()
        entry["invoice_number"] = sale.invoice_number
        entry["sale_total_cents"] = sale.total_cents
        entry["sale_created_at"] = to_utc_z(sale.created_at)
        rows.append(entry)

    return {
        "start": to_utc_z(start_dt),
        "end": to_utc_z(end_dt),
        "count": len(rows),
        "total_cents": sum(row["amount_cents"] for row in rows),
        "vouchers": rows,
    }


def register_reconciliation(register_id: int) -> dict:
    """
    Per-session view: frozen figures for a CLOSED register, live expected
    amount for an OPEN one, plus sales and tender breakdown.
    """
    register = get_register(register_id)

    sales_count, total_sales = (
        int(value or 0)
        for value in _completed_sales(
            db.session.query(
                func.count(Sale.id),
                func.coalesce(func.sum(Sale.total_cents), 0),
            )
        ).filter(Sale.cash_register_id == register.id).one()
    )

    return {
        "register_id": register.id,
        "user_id": register.user_id,
        "status": register.status,
        "opened_at": to_utc_z(register.opened_at),
        "closed_at": to_utc_z(register.closed_at),
        "opening_amount_cents": register.opening_amount_cents,
        "closing_amount_cents": register.closing_amount_cents,
        "expected_amount_cents": compute_expected_amount(register),
        "difference_cents": register.difference_cents,
        "sales_count": sales_count,
        "total_sales_cents": total_sales,
        "payment_method_breakdown": _payment_breakdown(cash_register_id=register.id)["rows"],
    }


def daily_sales(day=None) -> dict:
    """One local calendar day: counts, revenue, tax, tenders and the sales."""
    day = _parse_day(day)
    start_dt, end_dt = local_day_bounds(day, _tz_name())

    row = _completed_sales(
        db.session.query(
            func.count(Sale.id),
            func.coalesce(func.sum(Sale.total_cents), 0),
            func.coalesce(func.sum(Sale.tax_amount_cents), 0),
            func.coalesce(func.sum(Sale.discount_cents), 0),
        ),
        start_dt,
        end_dt,
    ).one()

    return {
        "date": day.isoformat(),
        "sales_count": int(row[0] or 0),
        "total_revenue_cents": int(row[1] or 0),
        "total_tax_cents": int(row[2] or 0),
        "total_discount_cents": int(row[3] or 0),
        "payment_breakdown": _payment_breakdown(start_dt=start_dt, end_dt=end_dt)["rows"],
        "sales": [
            entry for entry in list_sales(day)
            if entry["sale"]["status"] == SALE_STATUS_COMPLETED
        ],
    }


def net_profit(start: str | None = None, end: str | None = None) -> dict:
    """Sales revenue minus purchase expenses over the range."""
    start_dt, end_dt = _parse_range(start, end)

    _, revenue = _sales_totals(start_dt, end_dt)
    expenses = _purchase_expenses(start_dt, end_dt)
    net = revenue - expenses

    return {
        "start": to_utc_z(start_dt),
        "end": to_utc_z(end_dt),
        "total_revenue_cents": revenue,
        "total_expenses_cents": expenses,
        "net_profit_cents": net,
        "profit_margin": _percentage(net, revenue),
    }
