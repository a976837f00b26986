from datetime import date, timedelta

import pytest

from errors import NotFoundError, PaymentError, StatusError, ValidationError
from ledger import buyer_due
from models import db, DailyRecord, Milkman, MilkmanPayment, Payment, Product, ProductSale
from services import (add_daily_record, add_daily_record_at_current_rate, add_product, approve_milkman,
                      current_rates, delete_product, get_or_raise, pay_milkman, record_buyer_payment,
                      register_profile, reject_milkman, sell_product, set_availability,
                      set_dairy_rates, settle_milkman_balance, update_account_details,
                      update_contact, update_product, upcoming_rates)
from utils import today_ist


def _due(buyer):
    return buyer_due(DailyRecord.query.all(), Payment.query.all(), buyer.id)


def test_register_milkman_creates_pending_row(profiles):
    milkman = profiles["milkman"].milkman
    assert milkman is not None
    assert milkman.status == "pending"
    assert milkman.total_due == 0
    assert milkman.location == "Pune"
    assert profiles["buyer"].milkman is None


def test_register_rejects_duplicates_and_bad_roles(profiles):
    with pytest.raises(ValidationError):
        register_profile("asha", "other@example.com", "pw", "buyer")
    with pytest.raises(ValidationError):
        register_profile("new", "ASHA@example.com", "pw", "buyer")
    with pytest.raises(ValidationError):
        register_profile("new", "new@example.com", "pw", "superuser")
    with pytest.raises(ValidationError):
        register_profile("", "new@example.com", "pw", "buyer")


def test_current_rates_defaults_until_saved(ctx):
    rates = current_rates()
    assert (rates.milkman_rate, rates.buyer_rate) == (55, 70)
    set_dairy_rates(50, 60)
    rates = current_rates()
    assert (rates.milkman_rate, rates.buyer_rate) == (50, 60)


@pytest.mark.parametrize("milkman_rate,buyer_rate", [(60, 60), (70, 60), (0, 60), (50, -1)])
def test_invalid_rates_are_rejected(ctx, milkman_rate, buyer_rate):
    with pytest.raises(ValidationError):
        set_dairy_rates(milkman_rate, buyer_rate)


def test_future_dated_rates_wait_for_their_day(ctx):
    today = today_ist()
    tomorrow = today + timedelta(days=1)
    set_dairy_rates(50, 60)
    set_dairy_rates(52, 65, effective_date=tomorrow)
    assert current_rates().buyer_rate == 60
    assert current_rates(on=tomorrow).buyer_rate == 65
    assert [r.buyer_rate for r in upcoming_rates()] == [65]
    assert upcoming_rates(after=tomorrow) == []


def test_backdated_rates_do_not_override_newer_ones(ctx):
    today = today_ist()
    set_dairy_rates(50, 60, effective_date=today)
    set_dairy_rates(45, 55, effective_date=today - timedelta(days=30))
    assert current_rates().buyer_rate == 60
    assert current_rates(on=today - timedelta(days=1)).buyer_rate == 55


@pytest.mark.parametrize("bad", [float("inf"), float("-inf"), float("nan")])
def test_non_finite_numbers_are_rejected(profiles, bad):
    buyer = profiles["buyer"]
    with pytest.raises(ValidationError):
        set_dairy_rates(50, bad)
    with pytest.raises(ValidationError):
        add_daily_record(buyer, date(2024, 1, 1), bad, 70)
    with pytest.raises(ValidationError):
        record_buyer_payment(buyer, bad, "UPI", "UPI1")
    assert DailyRecord.query.count() == 0
    assert Payment.query.count() == 0


def test_buyer_due_example(profiles):
    buyer = profiles["buyer"]
    add_daily_record(buyer, date(2024, 1, 1), 10, 70)
    record_buyer_payment(buyer, 500, "UPI", "UPI1")
    assert _due(buyer).due == 200
    add_daily_record(buyer, date(2024, 1, 2), 5, 70)
    assert _due(buyer).due == 550
    record_buyer_payment(buyer, 550, "Card", "CARD1")
    assert _due(buyer).due == 0


def test_rate_snapshot_survives_rate_change(profiles):
    buyer = profiles["buyer"]
    set_dairy_rates(50, 60)
    first = add_daily_record_at_current_rate(buyer, date(2024, 1, 1), 10)
    set_dairy_rates(50, 65)
    second = add_daily_record_at_current_rate(buyer, date(2024, 1, 2), 10)
    db.session.expire_all()
    assert db.session.get(DailyRecord, first.id).rate == 60
    assert db.session.get(DailyRecord, first.id).amount == 600
    assert db.session.get(DailyRecord, second.id).amount == 650


def test_daily_record_validation(profiles):
    with pytest.raises(ValidationError):
        add_daily_record(profiles["buyer"], date(2024, 1, 1), 0, 70)
    with pytest.raises(ValidationError):
        add_daily_record(profiles["admin"], date(2024, 1, 1), 5, 70)
    # pending milkmen cannot supply
    with pytest.raises(StatusError):
        add_daily_record(profiles["milkman"], date(2024, 1, 1), 5, 55)
    assert DailyRecord.query.count() == 0


def test_supply_credits_milkman(profiles):
    profile = profiles["milkman"]
    approve_milkman(profile.milkman)
    record = add_daily_record(profile, date(2024, 1, 1), 10, 55)
    assert record.type == "supply"
    assert record.user_role == "milkman"
    assert profile.milkman.total_due == 550


def test_approval_is_idempotent(profiles):
    milkman = profiles["milkman"].milkman
    assert approve_milkman(milkman) is True
    assert milkman.status == "approved"
    assert approve_milkman(milkman) is False
    assert milkman.status == "approved"
    with pytest.raises(StatusError):
        reject_milkman(milkman)


def test_rejection(profiles):
    milkman = profiles["milkman"].milkman
    assert reject_milkman(milkman) is True
    assert reject_milkman(milkman) is False
    with pytest.raises(StatusError):
        approve_milkman(milkman)


def test_pay_milkman_decrements_due_atomically(profiles):
    profile = profiles["milkman"]
    approve_milkman(profile.milkman)
    add_daily_record(profile, date(2024, 1, 1), 10, 55)
    payment = pay_milkman(profile.milkman, 200, "UPI", "UPI42")
    assert payment.direction == "to_milkman"
    milkman = db.session.get(Milkman, profile.id)
    assert milkman.total_due == 350
    assert MilkmanPayment.query.count() == 1


def test_pay_milkman_never_goes_below_zero(profiles):
    profile = profiles["milkman"]
    approve_milkman(profile.milkman)
    with pytest.raises(PaymentError):
        pay_milkman(profile.milkman, 10, "UPI", "UPI1")
    add_daily_record(profile, date(2024, 1, 1), 2, 55)
    with pytest.raises(PaymentError):
        pay_milkman(profile.milkman, 111, "UPI", "UPI2")
    with pytest.raises(ValidationError):
        pay_milkman(profile.milkman, 0, "UPI", "UPI3")
    pay_milkman(profile.milkman, 110, "UPI", "UPI4")
    assert profile.milkman.total_due == 0


def test_failed_payment_leaves_due_untouched(profiles):
    profile = profiles["milkman"]
    approve_milkman(profile.milkman)
    add_daily_record(profile, date(2024, 1, 1), 10, 55)
    pay_milkman(profile.milkman, 100, "UPI", "UPI-DUP")
    with pytest.raises(Exception):
        # duplicate transaction id violates the unique constraint
        pay_milkman(profile.milkman, 100, "UPI", "UPI-DUP")
    milkman = db.session.get(Milkman, profile.id)
    assert milkman.total_due == 450
    assert MilkmanPayment.query.count() == 1


def test_product_sale_to_milkman_and_settlement(profiles):
    profile = profiles["milkman"]
    approve_milkman(profile.milkman)
    add_daily_record(profile, date(2024, 1, 1), 2, 55)
    feed = add_product("Cattle Feed", "Feed", "kg", 28)
    sale = sell_product(feed, profile, 5)
    assert sale.amount == 140
    assert sale.buyer_role == "milkman"
    assert profile.milkman.total_due == -30
    with pytest.raises(PaymentError):
        settle_milkman_balance(profile.milkman, 31, "UPI", "UPI9")
    payment = settle_milkman_balance(profile.milkman, 30, "UPI", "UPI10")
    assert payment.direction == "to_dairy"
    assert profile.milkman.total_due == 0
    with pytest.raises(PaymentError):
        settle_milkman_balance(profile.milkman, 1, "UPI", "UPI11")


def test_product_sale_snapshots_price(profiles):
    paneer = add_product("Paneer", "Dairy", "kg", 320)
    sale = sell_product(paneer, profiles["buyer"], 0.5)
    update_product(paneer, "Paneer", "Dairy", "kg", 400)
    db.session.expire_all()
    sale = db.session.get(ProductSale, sale.id)
    assert (sale.rate, sale.amount) == (320, 160)
    # buyer product sales stay out of the milk due
    assert _due(profiles["buyer"]).due == 0
    with pytest.raises(ValidationError):
        sell_product(paneer, profiles["admin"], 1)


def test_product_validation_and_delete(profiles):
    with pytest.raises(ValidationError):
        add_product("", "Dairy", "kg", 10)
    with pytest.raises(ValidationError):
        add_product("Ghee", "Dairy", "kg", 0)
    ghee = add_product("Ghee", "Dairy", "kg", 650)
    curd = add_product("Curd", "Dairy", "kg", 60)
    sell_product(ghee, profiles["buyer"], 1)
    with pytest.raises(StatusError):
        delete_product(ghee)
    delete_product(curd)
    assert [p.name for p in Product.query.all()] == ["Ghee"]


def test_buyer_payment_validation(profiles):
    with pytest.raises(ValidationError):
        record_buyer_payment(profiles["buyer"], 0, "UPI", "UPI1")
    with pytest.raises(ValidationError):
        record_buyer_payment(profiles["milkman"], 10, "UPI", "UPI2")


def test_account_details_and_availability(profiles):
    milkman = profiles["milkman"].milkman
    update_account_details(milkman, "123456789012345", "abcd0123456")
    assert (milkman.account_number, milkman.ifsc_code) == ("123456789012345", "ABCD0123456")
    with pytest.raises(PaymentError):
        update_account_details(milkman, "12345", "ABCD0123456")
    set_availability(milkman, False)
    assert milkman.available is False


def test_update_contact_follows_to_milkman(profiles):
    profile = profiles["milkman"]
    update_contact(profile, " 9876543210 ", "Nashik")
    assert profile.phone == "9876543210"
    assert profile.milkman.phone == "9876543210"
    assert profile.milkman.location == "Nashik"


def test_get_or_raise(ctx):
    with pytest.raises(NotFoundError):
        get_or_raise(Milkman, 999, "Milkman")
    with pytest.raises(NotFoundError):
        get_or_raise(Milkman, None, "Milkman")
