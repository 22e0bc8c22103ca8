from flask import Blueprint, jsonify, request

from papeleria.errors import CommerceError
from papeleria.routes import commerce_error_response
from papeleria.services import reporting_service


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/sales-by-payment-method")
def sales_by_payment_method():
    try:
        report = reporting_service.sales_by_payment_method(
            start=request.args.get("start"),
            end=request.args.get("end"),
            method=request.args.get("method"),
        )
        return jsonify(report), 200
    except CommerceError as exc:
        return commerce_error_response(exc)


@reports_bp.get("/mixed-payment-sales")
def mixed_payment_sales():
    try:
        report = reporting_service.mixed_payment_sales(
            start=request.args.get("start"),
            end=request.args.get("end"),
        )
        return jsonify(report), 200
    except CommerceError as exc:
        return commerce_error_response(exc)


@reports_bp.get("/vouchers")
def vouchers():
    try:
        report = reporting_service.vouchers(
            start=request.args.get("start"),
            end=request.args.get("end"),
            method=request.args.get("method"),
        )
        return jsonify(report), 200
    except CommerceError as exc:
        return commerce_error_response(exc)


@reports_bp.get("/cash-register-detail/<int:register_id>")
def cash_register_detail(register_id: int):
    try:
        return jsonify(reporting_service.register_reconciliation(register_id)), 200
    except CommerceError as exc:
        return commerce_error_response(exc)


@reports_bp.get("/daily-sales")
def daily_sales():
    try:
        return jsonify(reporting_service.daily_sales(request.args.get("date"))), 200
    except CommerceError as exc:
        return commerce_error_response(exc)


@reports_bp.get("/net-profit")
def net_profit():
    try:
        report = reporting_service.net_profit(
            start=request.args.get("start"),
            end=request.args.get("end"),
        )
        return jsonify(report), 200
    except CommerceError as exc:
        return commerce_error_response(exc)
