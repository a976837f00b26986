# admin.py
from flask import Blueprint, current_app, flash, jsonify, redirect, render_template, request, url_for
from flask_login import login_required
from sqlalchemy.exc import SQLAlchemyError

from errors import DairyError
from ledger import profit_summary, rate_for_role, recent, summarize_records
from models import DailyRecord, Milkman, MilkmanPayment, Product, ProductSale, Profile
from payments import METHODS, process_payment
from services import (add_daily_record, add_product, approve_milkman, current_rates, delete_product,
                      get_or_raise, pay_milkman, reject_milkman, sell_product, set_dairy_rates, upcoming_rates,
                      update_product)
from utils import parse_date, parse_id, parse_number, role_required, today_ist, wants_json

admin = Blueprint("admin", __name__, url_prefix="/admin")


def _db_failure(what):
    current_app.logger.exception("%s failed", what)
    return f"Could not {what}. Try again."


@admin.route("/")
@login_required
@role_required("admin")
def overview():
    records = DailyRecord.query.all()
    sales = ProductSale.query.all()
    stats = summarize_records(records)
    stats["total_users"] = Profile.query.filter(Profile.role != "admin").count()
    stats["pending_milkmen"] = Milkman.query.filter_by(status="pending").count()
    return render_template("admin/overview.html",
                           stats=stats,
                           profit=profit_summary(records, sales),
                           rates=current_rates(),
                           recent_records=recent(records, 10))


# ---- milkmen --------------------------------------------------------------

@admin.route("/milkmen")
@login_required
@role_required("admin")
def milkmen_list():
    milkmen = Milkman.query.order_by(Milkman.status, Milkman.name).all()
    payments = MilkmanPayment.query.order_by(MilkmanPayment.date.desc(), MilkmanPayment.id.desc()).limit(50).all()
    return render_template("admin/milkmen.html", milkmen=milkmen, payments=payments, methods=METHODS)


def _decide(milkman_id, decide, verb):
    try:
        milkman = get_or_raise(Milkman, milkman_id, "Milkman")
        changed = decide(milkman)
    except DairyError as e:
        if wants_json():
            return jsonify({"error": str(e)}), e.status_code
        flash(str(e), "error")
        return redirect(url_for("admin.milkmen_list"))
    except SQLAlchemyError:
        msg = _db_failure(f"{verb} milkman")
        if wants_json():
            return jsonify({"error": msg}), 500
        flash(msg, "error")
        return redirect(url_for("admin.milkmen_list"))

    message = f"{milkman.name} {verb}d" if changed else f"{milkman.name} was already {milkman.status}"
    if wants_json():
        return jsonify({"message": message, "status": milkman.status, "changed": changed}), 200
    flash(message, "success")
    return redirect(url_for("admin.milkmen_list"))


@admin.route("/milkmen/<int:milkman_id>/approve", methods=["POST"])
@login_required
@role_required("admin")
def approve(milkman_id):
    return _decide(milkman_id, approve_milkman, "approve")


@admin.route("/milkmen/<int:milkman_id>/reject", methods=["POST"])
@login_required
@role_required("admin")
def reject(milkman_id):
    return _decide(milkman_id, reject_milkman, "reject")


@admin.route("/milkmen/<int:milkman_id>/pay", methods=["POST"])
@login_required
@role_required("admin")
def pay(milkman_id):
    try:
        milkman = get_or_raise(Milkman, milkman_id, "Milkman")
        amount = parse_number(request.form.get("amount"), "amount")
        result = process_payment(request.form.get("method"), request.form)
        pay_milkman(milkman, amount, result.method, result.transaction_id)
    except DairyError as e:
        flash(str(e), "error")
    except SQLAlchemyError:
        flash(_db_failure("record milkman payment"), "error")
    else:
        flash(f"Paid {milkman.name} ({result.transaction_id})", "success")
    return redirect(url_for("admin.milkmen_list"))


# ---- rates ----------------------------------------------------------------

@admin.route("/rates", methods=["GET", "POST"])
@login_required
@role_required("admin")
def rates():
    if request.method == "POST":
        try:
            saved = set_dairy_rates(parse_number(request.form.get("milkman_rate"), "milkman rate"),
                                    parse_number(request.form.get("buyer_rate"), "buyer rate"),
                                    parse_date(request.form.get("effective_date")))
        except DairyError as e:
            flash(str(e), "error")
        except SQLAlchemyError:
            flash(_db_failure("update rates"), "error")
        else:
            if saved.effective_date > today_ist():
                flash(f"Dairy rates scheduled from {saved.effective_date}", "success")
            else:
                flash("Dairy rates updated", "success")
        return redirect(url_for("admin.rates"))
    return render_template("admin/rates.html", rates=current_rates(), upcoming=upcoming_rates())


# ---- daily records --------------------------------------------------------

@admin.route("/records")
@login_required
@role_required("admin")
def records():
    try:
        day = parse_date(request.args.get("date"))
    except DairyError as e:
        flash(str(e), "error")
        day = today_ist()
    rows = DailyRecord.query.filter_by(date=day).order_by(DailyRecord.type, DailyRecord.user_name).all()
    users = Profile.query.filter(Profile.role.in_(("buyer", "milkman"))).order_by(Profile.username).all()
    return render_template("admin/records.html", day=day, records=rows, totals=summarize_records(rows),
                           users=users, rates=current_rates())


@admin.route("/records/new", methods=["POST"])
@login_required
@role_required("admin")
def new_record():
    try:
        profile = get_or_raise(Profile, parse_id(request.form.get("user_id"), "user"), "User")
        quantity = parse_number(request.form.get("quantity"), "quantity")
        day = parse_date(request.form.get("date"))
        # snapshot the rate now; the record keeps it forever
        rate = rate_for_role(profile.role, current_rates())
        record = add_daily_record(profile, day, quantity, rate)
    except DairyError as e:
        flash(str(e), "error")
    except SQLAlchemyError:
        flash(_db_failure("save daily record"), "error")
    else:
        flash(f"{record.type.capitalize()} recorded for {record.user_name}", "success")
        return redirect(url_for("admin.records", date=record.date.isoformat()))
    return redirect(url_for("admin.records"))


# ---- products -------------------------------------------------------------

@admin.route("/products")
@login_required
@role_required("admin")
def products():
    catalog = Product.query.order_by(Product.category, Product.name).all()
    sales = ProductSale.query.order_by(ProductSale.date.desc(), ProductSale.id.desc()).limit(100).all()
    customers = Profile.query.filter(Profile.role.in_(("buyer", "milkman"))).order_by(Profile.username).all()
    return render_template("admin/products.html", products=catalog, sales=sales, customers=customers)


def _product_form():
    return (request.form.get("name"), request.form.get("category"), request.form.get("unit"),
            parse_number(request.form.get("price"), "price"))


@admin.route("/products/new", methods=["POST"])
@login_required
@role_required("admin")
def new_product():
    try:
        product = add_product(*_product_form())
    except DairyError as e:
        flash(str(e), "error")
    except SQLAlchemyError:
        flash(_db_failure("add product"), "error")
    else:
        flash(f"{product.name} added", "success")
    return redirect(url_for("admin.products"))


@admin.route("/products/<int:product_id>/edit", methods=["POST"])
@login_required
@role_required("admin")
def edit_product(product_id):
    try:
        product = get_or_raise(Product, product_id, "Product")
        update_product(product, *_product_form())
    except DairyError as e:
        flash(str(e), "error")
    except SQLAlchemyError:
        flash(_db_failure("update product"), "error")
    else:
        flash(f"{product.name} updated", "success")
    return redirect(url_for("admin.products"))


@admin.route("/products/<int:product_id>/delete", methods=["POST"])
@login_required
@role_required("admin")
def remove_product(product_id):
    try:
        product = get_or_raise(Product, product_id, "Product")
        delete_product(product)
    except DairyError as e:
        return jsonify({"error": str(e)}), e.status_code
    except SQLAlchemyError as e:
        return jsonify({"error": _db_failure("delete product"), "details": str(e)}), 500
    return jsonify({"message": "Product deleted."}), 200


@admin.route("/sales/new", methods=["POST"])
@login_required
@role_required("admin")
def new_sale():
    try:
        product = get_or_raise(Product, parse_id(request.form.get("product_id"), "product"), "Product")
        customer = get_or_raise(Profile, parse_id(request.form.get("customer_id"), "customer"), "Customer")
        sale = sell_product(product, customer,
                            parse_number(request.form.get("quantity"), "quantity"),
                            parse_date(request.form.get("date")))
    except DairyError as e:
        flash(str(e), "error")
    except SQLAlchemyError:
        flash(_db_failure("record sale"), "error")
    else:
        flash(f"Sold {sale.product_name} to {sale.buyer_name}", "success")
    return redirect(url_for("admin.products"))
