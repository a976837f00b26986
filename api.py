# api.py
# Read-only JSON endpoints; every payload uses the camelCase view models.
from flask import Blueprint, jsonify
from flask_login import current_user, login_required

from ledger import buyer_due, reconcile_dues
from models import DailyRecord, Milkman, Payment, Product
from services import current_rates
from utils import role_required
from viewmodels import (due_view, milkman_view, product_view, profile_view, rates_view,
                        record_view)

api = Blueprint("api", __name__, url_prefix="/api")


@api.route("/me")
@login_required
def me():
    payload = profile_view(current_user)
    if current_user.milkman is not None:
        payload["milkman"] = milkman_view(current_user.milkman)
    return jsonify(payload)


@api.route("/records")
@login_required
def records():
    query = DailyRecord.query
    if current_user.role != "admin":
        query = query.filter_by(user_id=current_user.id)
    rows = query.order_by(DailyRecord.date, DailyRecord.id).all()
    return jsonify([record_view(r) for r in rows])


@api.route("/rates")
@login_required
def rates():
    return jsonify(rates_view(current_rates()))


@api.route("/dues")
@login_required
@role_required("admin", "buyer")
def dues():
    if current_user.role == "buyer":
        records = DailyRecord.query.filter_by(user_id=current_user.id).all()
        payments = Payment.query.filter_by(buyer_id=current_user.id).all()
        return jsonify(due_view(buyer_due(records, payments, current_user.id, current_user.username)))
    dues = reconcile_dues(DailyRecord.query.all(), Payment.query.all())
    return jsonify({str(k): due_view(v) for k, v in dues.items()})


@api.route("/milkmen")
@login_required
@role_required("admin")
def milkmen():
    return jsonify([milkman_view(m) for m in Milkman.query.order_by(Milkman.name).all()])


@api.route("/products")
@login_required
def products():
    return jsonify([product_view(p) for p in Product.query.order_by(Product.name).all()])
