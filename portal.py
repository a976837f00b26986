# portal.py
# Buyer and milkman self-service pages.
from flask import Blueprint, current_app, flash, redirect, render_template, request, url_for
from flask_login import current_user, login_required
from sqlalchemy.exc import SQLAlchemyError

from errors import DairyError
from ledger import buyer_due, recent, summarize_records
from models import DailyRecord, MilkmanPayment, Payment, ProductSale
from payments import METHODS, process_payment
from services import (current_rates, record_buyer_payment, set_availability, settle_milkman_balance,
                      update_account_details, update_contact)
from utils import month_range_for_date, parse_number, role_required, today_ist

portal = Blueprint("portal", __name__, url_prefix="")


def _own_records():
    return (DailyRecord.query.filter_by(user_id=current_user.id)
            .order_by(DailyRecord.date, DailyRecord.id).all())


@portal.route("/buyer")
@login_required
@role_required("buyer")
def buyer_dashboard():
    records = _own_records()
    payments = Payment.query.filter_by(buyer_id=current_user.id).order_by(Payment.date.desc()).all()
    due = buyer_due(records, payments, current_user.id, current_user.username)
    start, end = month_range_for_date(today_ist())
    this_month = summarize_records([r for r in records if start <= r.date <= end])
    return render_template("buyer/dashboard.html",
                           due=due,
                           totals=summarize_records(records),
                           this_month=this_month,
                           rates=current_rates(),
                           recent_records=recent(records, 10),
                           payments=payments[:10],
                           product_sales=ProductSale.query.filter_by(buyer_id=current_user.id).all(),
                           methods=METHODS)


@portal.route("/buyer/pay", methods=["POST"])
@login_required
@role_required("buyer")
def buyer_pay():
    try:
        amount = parse_number(request.form.get("amount"), "amount")
        result = process_payment(request.form.get("method"), request.form)
        record_buyer_payment(current_user, amount, result.method, result.transaction_id)
    except DairyError as e:
        flash(str(e), "error")
    except SQLAlchemyError:
        current_app.logger.exception("buyer payment failed")
        flash("Payment could not be recorded. Try again.", "error")
    else:
        flash(f"Payment received. Transaction id {result.transaction_id}", "success")
    return redirect(url_for("portal.buyer_dashboard"))


@portal.route("/milkman")
@login_required
@role_required("milkman")
def milkman_dashboard():
    milkman = current_user.milkman
    records = _own_records()
    payments = (MilkmanPayment.query.filter_by(milkman_id=current_user.id)
                .order_by(MilkmanPayment.date.desc()).limit(20).all())
    return render_template("milkman/dashboard.html",
                           milkman=milkman,
                           totals=summarize_records(records),
                           rates=current_rates(),
                           recent_records=recent(records, 10),
                           payments=payments,
                           methods=METHODS)


@portal.route("/milkman/account", methods=["POST"])
@login_required
@role_required("milkman")
def milkman_account():
    try:
        update_account_details(current_user.milkman,
                               request.form.get("account_number"),
                               request.form.get("ifsc_code"))
    except DairyError as e:
        flash(str(e), "error")
    except SQLAlchemyError:
        current_app.logger.exception("account details update failed")
        flash("Could not save account details. Try again.", "error")
    else:
        flash("Account details updated", "success")
    return redirect(url_for("portal.milkman_dashboard"))


@portal.route("/milkman/availability", methods=["POST"])
@login_required
@role_required("milkman")
def milkman_availability():
    available = request.form.get("available") in ("1", "true", "on")
    try:
        set_availability(current_user.milkman, available)
    except SQLAlchemyError:
        current_app.logger.exception("availability update failed")
        flash("Could not update availability. Try again.", "error")
    else:
        flash("Marked available" if available else "Marked not available", "success")
    return redirect(url_for("portal.milkman_dashboard"))


@portal.route("/milkman/pay", methods=["POST"])
@login_required
@role_required("milkman")
def milkman_pay():
    try:
        amount = parse_number(request.form.get("amount"), "amount")
        result = process_payment(request.form.get("method"), request.form)
        settle_milkman_balance(current_user.milkman, amount, result.method, result.transaction_id)
    except DairyError as e:
        flash(str(e), "error")
    except SQLAlchemyError:
        current_app.logger.exception("milkman settlement failed")
        flash("Payment could not be recorded. Try again.", "error")
    else:
        flash(f"Payment received. Transaction id {result.transaction_id}", "success")
    return redirect(url_for("portal.milkman_dashboard"))


@portal.route("/profile", methods=["GET", "POST"])
@login_required
def profile():
    if request.method == "POST":
        try:
            update_contact(current_user, request.form.get("phone"), request.form.get("location"))
        except SQLAlchemyError:
            current_app.logger.exception("profile update failed")
            flash("Could not update profile. Try again.", "error")
        else:
            flash("Profile updated", "success")
        return redirect(url_for("portal.profile"))
    return render_template("profile.html")
