# ledger.py
"""Aggregates computed from the daily record, payment and sale ledgers.

Nothing here touches the database: callers pass in rows (model instances or
any object with the same attribute names) and get plain values back. Dues are
never stored, they are recomputed from the ledgers on every read.
"""
from dataclasses import dataclass

from errors import ValidationError

RATE_FIELD_BY_ROLE = {"buyer": "buyer_rate", "milkman": "milkman_rate"}
RECORD_TYPE_BY_ROLE = {"buyer": "purchase", "milkman": "supply"}


@dataclass
class BuyerDue:
    buyer_id: int
    buyer_name: str
    total_purchases: float = 0.0
    total_payments: float = 0.0

    @property
    def due(self):
        return round(self.total_purchases - self.total_payments, 2)

    @property
    def is_credit(self):
        # overpaid buyers are shown a credit, not clamped to zero
        return self.due < 0


def reconcile_dues(records, payments):
    """Return {buyer_id: BuyerDue} from purchase records and buyer payments.

    Records and payments are grouped by buyer id; the name is only kept for
    display. A buyer appears as soon as either ledger mentions them.
    """
    dues = {}
    for r in records:
        if r.type != "purchase":
            continue
        entry = dues.setdefault(r.user_id, BuyerDue(r.user_id, r.user_name))
        entry.total_purchases = round(entry.total_purchases + r.amount, 2)
    for p in payments:
        entry = dues.setdefault(p.buyer_id, BuyerDue(p.buyer_id, p.buyer_name))
        entry.total_payments = round(entry.total_payments + p.amount, 2)
    return dues


def buyer_due(records, payments, buyer_id, buyer_name=""):
    dues = reconcile_dues(
        [r for r in records if r.user_id == buyer_id],
        [p for p in payments if p.buyer_id == buyer_id],
    )
    return dues.get(buyer_id, BuyerDue(buyer_id, buyer_name))


def rate_for_role(role, rates):
    field = RATE_FIELD_BY_ROLE.get(role)
    if field is None:
        raise ValidationError(f"No milk rate applies to role '{role}'.")
    return getattr(rates, field)


def record_type_for_role(role):
    try:
        return RECORD_TYPE_BY_ROLE[role]
    except KeyError:
        raise ValidationError(f"Daily records cannot be created for role '{role}'.")


def record_amount(quantity, rate):
    return round(quantity * rate, 2)


def summarize_records(records):
    summary = {
        "count": 0,
        "total_quantity": 0.0,
        "total_amount": 0.0,
        "purchase_quantity": 0.0,
        "purchase_amount": 0.0,
        "supply_quantity": 0.0,
        "supply_amount": 0.0,
    }
    for r in records:
        summary["count"] += 1
        summary["total_quantity"] += r.quantity
        summary["total_amount"] += r.amount
        summary[f"{r.type}_quantity"] += r.quantity
        summary[f"{r.type}_amount"] += r.amount
    return {k: (round(v, 2) if isinstance(v, float) else v) for k, v in summary.items()}


def profit_summary(records, product_sales):
    totals = summarize_records(records)
    product_revenue = round(sum(s.amount for s in product_sales), 2)
    milk_revenue = totals["purchase_amount"]
    milk_cost = totals["supply_amount"]
    return {
        "milk_revenue": milk_revenue,
        "milk_cost": milk_cost,
        "product_revenue": product_revenue,
        "profit": round(milk_revenue + product_revenue - milk_cost, 2),
    }


def recent(rows, n=10):
    # newest first; ties on date fall back to insertion order
    return sorted(rows, key=lambda r: (r.date, r.id or 0), reverse=True)[:n]
