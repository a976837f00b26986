# utils.py
import math
from datetime import date, datetime, timedelta
from functools import wraps
from zoneinfo import ZoneInfo

from flask import flash, jsonify, redirect, request, url_for
from flask_login import current_user

from errors import ValidationError

IST = ZoneInfo("Asia/Kolkata")


def today_ist():
    return datetime.now(IST).date()


def month_range_for_date(d: date):
    start = d.replace(day=1)
    next_month = (start + timedelta(days=32)).replace(day=1)
    return start, next_month - timedelta(days=1)


def parse_date(value, default=None):
    # form dates arrive as yyyy-mm-dd; blank means today in IST
    if not value:
        return default or today_ist()
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError("Invalid date format. Use YYYY-MM-DD.")


def parse_number(value, label):
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {label} value.")
    # "inf" and "nan" parse as floats
    if not math.isfinite(number):
        raise ValidationError(f"Invalid {label} value.")
    return number


def parse_id(value, label):
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {label} selection.")


def wants_json():
    return request.is_json or request.path.startswith("/api/")


def role_required(*roles):
    def wrapper(f):
        @wraps(f)
        def decorated_view(*args, **kwargs):
            if current_user.role not in roles:
                if wants_json():
                    return jsonify({"error": "Permission denied."}), 403
                flash("Not authorized", "error")
                return redirect(url_for("dashboard"))
            return f(*args, **kwargs)
        return decorated_view
    return wrapper
