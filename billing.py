# billing.py
from flask import Blueprint, current_app, flash, render_template, request, redirect, url_for, send_file
from flask_login import login_required, current_user
from io import BytesIO
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from errors import DairyError, ValidationError
from ledger import BuyerDue, buyer_due, reconcile_dues
from models import DailyRecord, Payment, Profile
from services import get_or_raise
from utils import month_range_for_date, parse_date, role_required, today_ist

billing = Blueprint("billing", __name__, url_prefix="")


@billing.route("/dues")
@login_required
@role_required("admin")
def dues_list():
    dues = reconcile_dues(DailyRecord.query.filter_by(type="purchase").all(), Payment.query.all())
    # buyers with no ledger rows yet still get a zero line
    for b in Profile.query.filter_by(role="buyer").all():
        dues.setdefault(b.id, BuyerDue(b.id, b.username))
    rows = sorted(dues.values(), key=lambda d: d.due, reverse=True)
    outstanding = round(sum(d.due for d in rows if d.due > 0), 2)
    return render_template("dues.html", dues=rows, outstanding=outstanding)


def _statement_data(buyer_id):
    buyer = get_or_raise(Profile, buyer_id, "Buyer")
    if buyer.role != "buyer":
        raise ValidationError(f"{buyer.username} is not a buyer.")
    start_default, end_default = month_range_for_date(today_ist())
    start = parse_date(request.args.get("start_date"), start_default)
    end = parse_date(request.args.get("end_date"), end_default)

    records = DailyRecord.query.filter_by(user_id=buyer.id, type="purchase").order_by(DailyRecord.date).all()
    payments = Payment.query.filter_by(buyer_id=buyer.id).order_by(Payment.date).all()
    return {
        "buyer": buyer,
        "start": start,
        "end": end,
        "days": group_records_by_day([r for r in records if start <= r.date <= end]),
        "payments": [p for p in payments if start <= p.date <= end],
        # outstanding is always all-time, the period only filters the rows shown
        "due": buyer_due(records, payments, buyer.id, buyer.username),
    }


def _can_view(buyer_id):
    return current_user.role == "admin" or (current_user.role == "buyer" and current_user.id == buyer_id)


@billing.route("/dues/<int:buyer_id>/statement")
@login_required
def statement(buyer_id):
    if not _can_view(buyer_id):
        flash("Not authorized", "error")
        return redirect(url_for("dashboard"))
    try:
        data = _statement_data(buyer_id)
    except DairyError as e:
        flash(str(e), "error")
        return redirect(url_for("dashboard"))
    return render_template("statement.html", **data)


@billing.route("/dues/<int:buyer_id>/statement.pdf")
@login_required
def statement_pdf(buyer_id):
    if not _can_view(buyer_id):
        flash("Not authorized", "error")
        return redirect(url_for("dashboard"))
    try:
        data = _statement_data(buyer_id)
    except DairyError as e:
        flash(str(e), "error")
        return redirect(url_for("dashboard"))

    buffer = BytesIO()
    render_statement_pdf(buffer, data, current_app.config.get("CURRENCY_SYMBOL", ""))
    buffer.seek(0)
    filename = f"statement_{data['buyer'].username}_{data['start']}_{data['end']}.pdf"
    return send_file(buffer, as_attachment=True, download_name=filename, mimetype="application/pdf")


def render_statement_pdf(buffer, data, currency=""):
    c = canvas.Canvas(buffer, pagesize=A4)
    width, height = A4
    margin = 15 * mm
    usable_width = width - 2 * margin
    buyer, due = data["buyer"], data["due"]

    # header
    y = height - margin
    c.setFillColorRGB(0.1, 0.3, 0.6)
    c.setFont("Helvetica-Bold", 20)
    c.drawCentredString(width / 2, y, "DAIRYCONNECT")
    y -= 10 * mm
    c.setStrokeColorRGB(0.1, 0.3, 0.6)
    c.setLineWidth(1.5)
    c.line(margin, y, width - margin, y)
    y -= 8 * mm

    c.setFont("Helvetica-Bold", 12)
    c.setFillColorRGB(0, 0, 0)
    c.drawString(margin, y, f"Statement for: {buyer.username}")
    y -= 6 * mm
    c.setFont("Helvetica", 10)
    c.drawString(margin, y, f"Period: {data['start']} to {data['end']}")
    y -= 10 * mm

    col_headers = ["Date", "Qty(L)", "Rate", "Amount"]
    col_widths = [0.40, 0.20, 0.20, 0.20]
    col_positions = [margin]
    for w in col_widths:
        col_positions.append(col_positions[-1] + w * usable_width)

    def table_header(y):
        c.setFont("Helvetica-Bold", 9)
        c.setFillColorRGB(0.95, 0.95, 1)
        c.rect(margin, y - 3, usable_width, 10, fill=1, stroke=0)
        c.setFillColorRGB(0, 0, 0)
        for i, h in enumerate(col_headers):
            c.drawString(col_positions[i] + 2, y, h)
        c.setFont("Helvetica", 9)
        return y - 12

    y = table_header(y)
    period_total = 0
    for day, records in data["days"]:
        for r in records:
            if y < margin + 60:
                c.showPage()
                y = table_header(height - margin)
            values = [r.date.strftime("%d-%m-%Y"), f"{r.quantity:.2f}", f"{r.rate:.2f}", f"{r.amount:.2f}"]
            for i, v in enumerate(values):
                if i >= 1:
                    c.drawRightString(col_positions[i + 1] - 2, y, v)
                else:
                    c.drawString(col_positions[i] + 2, y, v)
            y -= 12
            period_total += r.amount

    y -= 5
    c.setStrokeColorRGB(0.1, 0.3, 0.6)
    c.line(margin, y, width - margin, y)
    y -= 12
    c.setFont("Helvetica-Bold", 10)
    c.setFillColorRGB(0.1, 0.3, 0.6)
    c.drawRightString(width - margin, y, f"Purchases this period: {currency}{period_total:.2f}")
    y -= 12
    paid = sum(p.amount for p in data["payments"])
    c.drawRightString(width - margin, y, f"Payments this period: {currency}{paid:.2f}")
    y -= 14
    c.setFont("Helvetica-Bold", 11)
    label = "Credit" if due.is_credit else "Amount due"
    c.drawRightString(width - margin, y, f"{label}: {currency}{abs(due.due):.2f}")

    c.setFont("Helvetica-Oblique", 9)
    c.setFillColorRGB(0.4, 0.4, 0.4)
    c.drawCentredString(width / 2, margin, "Thank you for choosing DairyConnect.")
    c.showPage()
    c.save()


def group_records_by_day(records):
    daily = {}
    for r in records:
        daily.setdefault(r.date, []).append(r)
    return sorted(daily.items(), key=lambda x: x[0])
