# services.py
"""Write paths for the dairy ledgers.

Every function here is one database transaction: it either commits all of its
writes or rolls the session back and re-raises, so a failed call leaves the
previous state untouched.
"""
import logging
import math
from contextlib import contextmanager
from datetime import date

from flask import current_app
from werkzeug.security import generate_password_hash

from errors import NotFoundError, PaymentError, StatusError, ValidationError
from ledger import rate_for_role, record_amount, record_type_for_role
from models import (db, DailyRecord, DairyRates, Milkman, MilkmanPayment, Payment,
                    Product, ProductSale, Profile, ROLES)
from payments import validate_bank_details
from utils import today_ist

log = logging.getLogger(__name__)

SIGNUP_ROLES = ("buyer", "milkman")


@contextmanager
def transaction():
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


def get_or_raise(model, obj_id, label):
    obj = db.session.get(model, obj_id) if obj_id is not None else None
    if obj is None:
        raise NotFoundError(f"{label} not found.")
    return obj


def _positive(value, label):
    if value is None or not math.isfinite(value) or value <= 0:
        raise ValidationError(f"{label} must be greater than zero.")
    return value


# ---- profiles -------------------------------------------------------------

def register_profile(username, email, password, role, phone=None, location=None):
    username = (username or "").strip()
    email = (email or "").strip().lower()
    if not username or not email or not password:
        raise ValidationError("Username, email and password are required.")
    if role not in ROLES:
        raise ValidationError("Unknown role.")
    if Profile.query.filter((Profile.username == username) | (Profile.email == email)).first():
        raise ValidationError("Username or email already registered.")

    with transaction() as session:
        profile = Profile(username=username, email=email, role=role,
                          password_hash=generate_password_hash(password),
                          phone=phone or None, location=location or None)
        session.add(profile)
        session.flush()
        if role == "milkman":
            # milkmen start pending until an admin decides
            session.add(Milkman(id=profile.id, name=username, location=location or "",
                                phone=phone or None))
    log.info("registered %s %s (id=%s)", role, username, profile.id)
    return profile


def update_contact(profile, phone, location):
    with transaction():
        profile.phone = (phone or "").strip() or None
        profile.location = (location or "").strip() or None
        if profile.milkman is not None:
            profile.milkman.phone = profile.phone
            profile.milkman.location = profile.location or ""
    log.info("contact details updated for %s", profile.username)
    return profile


# ---- rates ----------------------------------------------------------------

def current_rates(on=None):
    # newest row already in effect; future-dated rows wait for their day
    on = on or today_ist()
    rates = (DairyRates.query.filter(DairyRates.effective_date <= on)
             .order_by(DairyRates.effective_date.desc(), DairyRates.created_at.desc(), DairyRates.id.desc())
             .first())
    if rates is None:
        # transient defaults, not persisted
        rates = DairyRates(milkman_rate=current_app.config["DEFAULT_MILKMAN_RATE"],
                           buyer_rate=current_app.config["DEFAULT_BUYER_RATE"],
                           effective_date=on)
    return rates


def upcoming_rates(after=None):
    after = after or today_ist()
    return (DairyRates.query.filter(DairyRates.effective_date > after)
            .order_by(DairyRates.effective_date, DairyRates.id).all())


def set_dairy_rates(milkman_rate, buyer_rate, effective_date=None):
    _positive(milkman_rate, "Milkman rate")
    _positive(buyer_rate, "Buyer rate")
    if buyer_rate <= milkman_rate:
        raise ValidationError("Buyer rate must be higher than milkman rate.")
    with transaction() as session:
        rates = DairyRates(milkman_rate=milkman_rate, buyer_rate=buyer_rate,
                           effective_date=effective_date or today_ist())
        session.add(rates)
    log.info("dairy rates set: milkman=%.2f buyer=%.2f", milkman_rate, buyer_rate)
    return rates


# ---- daily records --------------------------------------------------------

def add_daily_record(profile, day, quantity, rate):
    """Record a purchase (buyer) or supply (milkman) at the given rate.

    The rate is stored on the record as-is; later rate changes never alter it.
    A supply also credits the milkman's running total_due.
    """
    record_type = record_type_for_role(profile.role)
    _positive(quantity, "Quantity")
    _positive(rate, "Rate")
    milkman = None
    if record_type == "supply":
        milkman = profile.milkman
        if milkman is None or milkman.status != "approved":
            raise StatusError(f"{profile.username} is not an approved milkman.")

    amount = record_amount(quantity, rate)
    with transaction() as session:
        record = DailyRecord(user_id=profile.id, user_name=profile.username,
                             user_role=profile.role, date=day or date.today(),
                             quantity=quantity, rate=rate, amount=amount, type=record_type)
        session.add(record)
        if milkman is not None:
            milkman.total_due = round((milkman.total_due or 0) + amount, 2)
    log.info("%s recorded for %s: %.2fL @ %.2f = %.2f",
             record_type, profile.username, quantity, rate, amount)
    return record


def add_daily_record_at_current_rate(profile, day, quantity):
    return add_daily_record(profile, day, quantity, rate_for_role(profile.role, current_rates()))


# ---- milkmen --------------------------------------------------------------

def _decide_milkman(milkman, target):
    if milkman.status == target:
        return False
    if milkman.status != "pending":
        raise StatusError(f"{milkman.name} is already {milkman.status}.")
    with transaction():
        milkman.status = target
    log.info("milkman %s %s", milkman.name, target)
    return True


def approve_milkman(milkman):
    """pending -> approved. Returns False when it was already approved."""
    return _decide_milkman(milkman, "approved")


def reject_milkman(milkman):
    return _decide_milkman(milkman, "rejected")


def pay_milkman(milkman, amount, method, transaction_id, day=None):
    _positive(amount, "Amount")
    owed = round(milkman.total_due or 0, 2)
    if owed <= 0:
        raise PaymentError(f"Nothing is due to {milkman.name}.")
    if amount > owed:
        raise PaymentError(f"Amount exceeds the {owed:.2f} due to {milkman.name}.")

    # ledger row and due decrement commit together
    with transaction() as session:
        payment = MilkmanPayment(milkman_id=milkman.id, milkman_name=milkman.name,
                                 amount=amount, payment_method=method,
                                 transaction_id=transaction_id, date=day or date.today(),
                                 direction="to_milkman")
        session.add(payment)
        milkman.total_due = round(owed - amount, 2)
    log.info("paid milkman %s %.2f via %s (%s)", milkman.name, amount, method, transaction_id)
    return payment


def settle_milkman_balance(milkman, amount, method, transaction_id, day=None):
    _positive(amount, "Amount")
    owes = round(-(milkman.total_due or 0), 2)
    if owes <= 0:
        raise PaymentError("You do not owe the dairy anything.")
    if amount > owes:
        raise PaymentError(f"Amount exceeds the {owes:.2f} you owe.")

    with transaction() as session:
        payment = MilkmanPayment(milkman_id=milkman.id, milkman_name=milkman.name,
                                 amount=amount, payment_method=method,
                                 transaction_id=transaction_id, date=day or date.today(),
                                 direction="to_dairy")
        session.add(payment)
        milkman.total_due = round(milkman.total_due + amount, 2)
    log.info("milkman %s settled %.2f via %s (%s)", milkman.name, amount, method, transaction_id)
    return payment


def update_account_details(milkman, account_number, ifsc_code):
    account_number, ifsc_code = validate_bank_details(account_number, ifsc_code)
    with transaction():
        milkman.account_number = account_number
        milkman.ifsc_code = ifsc_code
    log.info("bank details updated for milkman %s", milkman.name)
    return milkman


def set_availability(milkman, available):
    with transaction():
        milkman.available = bool(available)
    return milkman


# ---- buyer payments -------------------------------------------------------

def record_buyer_payment(buyer, amount, method, transaction_id, day=None):
    if buyer.role != "buyer":
        raise ValidationError("Payments can only be recorded for buyers.")
    _positive(amount, "Amount")
    with transaction() as session:
        payment = Payment(buyer_id=buyer.id, buyer_name=buyer.username, amount=amount,
                          payment_method=method, transaction_id=transaction_id,
                          date=day or date.today())
        session.add(payment)
    log.info("buyer %s paid %.2f via %s (%s)", buyer.username, amount, method, transaction_id)
    return payment


# ---- products -------------------------------------------------------------

def _product_fields(name, category, unit, price):
    name = (name or "").strip()
    category = (category or "").strip()
    unit = (unit or "").strip()
    if not name or not category or not unit:
        raise ValidationError("Name, category and unit are required.")
    _positive(price, "Price")
    return name, category, unit, price


def add_product(name, category, unit, price):
    name, category, unit, price = _product_fields(name, category, unit, price)
    with transaction() as session:
        product = Product(name=name, category=category, unit=unit, price=price)
        session.add(product)
    log.info("product added: %s @ %.2f/%s", name, price, unit)
    return product


def update_product(product, name, category, unit, price):
    name, category, unit, price = _product_fields(name, category, unit, price)
    with transaction():
        product.name = name
        product.category = category
        product.unit = unit
        product.price = price
    log.info("product %s updated", product.id)
    return product


def delete_product(product):
    sold = ProductSale.query.filter_by(product_id=product.id).count()
    if sold:
        raise StatusError(f"{product.name} has {sold} sales. Cannot delete.")
    with transaction() as session:
        session.delete(product)
    log.info("product %s deleted", product.name)


def sell_product(product, customer, quantity, day=None):
    """Sell a catalog product, snapshotting its current price.

    Sales to a milkman are taken out of the milkman's total_due; buyers settle
    product sales on the spot so they never enter the milk due.
    """
    if customer.role not in ("buyer", "milkman"):
        raise ValidationError("Products can only be sold to buyers or milkmen.")
    _positive(quantity, "Quantity")
    amount = record_amount(quantity, product.price)
    with transaction() as session:
        sale = ProductSale(product_id=product.id, product_name=product.name,
                           buyer_id=customer.id, buyer_name=customer.username,
                           buyer_role=customer.role, quantity=quantity, rate=product.price,
                           amount=amount, date=day or date.today())
        session.add(sale)
        if customer.role == "milkman" and customer.milkman is not None:
            customer.milkman.total_due = round((customer.milkman.total_due or 0) - amount, 2)
    log.info("sold %s x%.2f to %s for %.2f", product.name, quantity, customer.username, amount)
    return sale
