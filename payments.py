# payments.py
import re
import time
from collections import namedtuple

from errors import PaymentError

PaymentResult = namedtuple("PaymentResult", ["method", "transaction_id"])

METHODS = {
    # form value: (ledger label, transaction id prefix)
    "upi": ("UPI", "UPI"),
    "card": ("Card", "CARD"),
    "bank": ("Bank Transfer", "BANK"),
}

UPI_RE = re.compile(r"^[\w.\-]{2,}@[A-Za-z]{2,}$")
CARD_NUMBER_RE = re.compile(r"^\d{12,19}$")
EXPIRY_RE = re.compile(r"^(0[1-9]|1[0-2])/\d{2}$")
CVV_RE = re.compile(r"^\d{3,4}$")
ACCOUNT_RE = re.compile(r"^\d{9,18}$")
IFSC_RE = re.compile(r"^[A-Z]{4}0[A-Z0-9]{6}$")


def clean_account_number(value):
    return re.sub(r"\D", "", value or "")


def clean_ifsc(value):
    return re.sub(r"[^A-Z0-9]", "", (value or "").upper())


def validate_bank_details(account_number, ifsc_code):
    account_number = clean_account_number(account_number)
    ifsc_code = clean_ifsc(ifsc_code)
    if not ACCOUNT_RE.match(account_number):
        raise PaymentError("Account number should be between 9-18 digits.")
    if not IFSC_RE.match(ifsc_code):
        raise PaymentError("Invalid IFSC code format. Should be like ABCD0123456.")
    return account_number, ifsc_code


def _check_upi(form):
    upi_id = (form.get("upi_id") or "").strip()
    if not UPI_RE.match(upi_id):
        raise PaymentError("Enter a valid UPI id, e.g. name@bank.")


def _check_card(form):
    number = re.sub(r"[\s-]", "", form.get("card_number") or "")
    if not CARD_NUMBER_RE.match(number):
        raise PaymentError("Card number should be 12-19 digits.")
    if not EXPIRY_RE.match((form.get("card_expiry") or "").strip()):
        raise PaymentError("Card expiry should be MM/YY.")
    if not CVV_RE.match((form.get("card_cvv") or "").strip()):
        raise PaymentError("CVV should be 3 or 4 digits.")
    if not (form.get("card_name") or "").strip():
        raise PaymentError("Cardholder name required.")


def _check_bank(form):
    validate_bank_details(form.get("account_number"), form.get("ifsc_code"))


CHECKS = {"upi": _check_upi, "card": _check_card, "bank": _check_bank}


def make_transaction_id(prefix, now=None):
    millis = int((now if now is not None else time.time()) * 1000)
    return f"{prefix}{millis}"


def process_payment(method, form, now=None):
    """Validate the chosen method's fields and issue a transaction id.

    No money moves here; the caller records the returned id in a ledger.
    """
    method = (method or "").lower()
    if method not in METHODS:
        raise PaymentError("Choose UPI, card or bank transfer.")
    CHECKS[method](form)
    label, prefix = METHODS[method]
    return PaymentResult(label, make_transaction_id(prefix, now))
