from flask import Blueprint, jsonify, request

from papeleria.errors import CommerceError
from papeleria.routes import commerce_error_response, positive_int_arg
from papeleria.services import reporting_service


dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("/stats")
def stats():
    try:
        report = reporting_service.dashboard_stats(
            start=request.args.get("start"),
            end=request.args.get("end"),
        )
        return jsonify(report), 200
    except CommerceError as exc:
        return commerce_error_response(exc)


@dashboard_bp.get("/top-selling")
def top_selling():
    try:
        items = reporting_service.top_selling_items(
            limit=positive_int_arg("limit"),
            start=request.args.get("start"),
            end=request.args.get("end"),
            order_by=request.args.get("order_by", "quantity"),
        )
        return jsonify({"items": items}), 200
    except CommerceError as exc:
        return commerce_error_response(exc)


@dashboard_bp.get("/sales-by-category")
def sales_by_category():
    try:
        report = reporting_service.sales_by_category(
            start=request.args.get("start"),
            end=request.args.get("end"),
        )
        return jsonify(report), 200
    except CommerceError as exc:
        return commerce_error_response(exc)


@dashboard_bp.get("/sales-chart")
def sales_chart():
    try:
        return jsonify(reporting_service.sales_chart(request.args.get("period", "week"))), 200
    except CommerceError as exc:
        return commerce_error_response(exc)


@dashboard_bp.get("/low-stock")
def low_stock():
    return jsonify({"products": reporting_service.low_stock_products()}), 200


@dashboard_bp.get("/recent-sales")
def recent_sales():
    try:
        sales = reporting_service.recent_sales(positive_int_arg("limit", 10))
        return jsonify({"sales": sales}), 200
    except CommerceError as exc:
        return commerce_error_response(exc)
