# viewmodels.py
# Rows -> camelCase dicts for the JSON endpoints and client-side scripts.


def _day(d):
    return d.isoformat() if d else None


def profile_view(p):
    return {
        "id": p.id,
        "username": p.username,
        "email": p.email,
        "role": p.role,
        "phone": p.phone,
        "location": p.location,
    }


def milkman_view(m):
    return {
        "id": m.id,
        "name": m.name,
        "username": m.username,
        "location": m.location,
        "status": m.status,
        "phone": m.phone,
        "rating": m.rating or 0,
        "available": bool(m.available),
        "accountNumber": m.account_number,
        "ifscCode": m.ifsc_code,
        "totalDue": m.total_due or 0,
    }


def record_view(r):
    return {
        "id": r.id,
        "userId": r.user_id,
        "userName": r.user_name,
        "userRole": r.user_role,
        "date": _day(r.date),
        "quantity": r.quantity,
        "rate": r.rate,
        "amount": r.amount,
        "type": r.type,
    }


def rates_view(rates):
    return {
        "milkmanRate": rates.milkman_rate,
        "buyerRate": rates.buyer_rate,
        "effectiveDate": _day(rates.effective_date),
    }


def payment_view(p):
    return {
        "id": p.id,
        "buyerId": p.buyer_id,
        "buyerName": p.buyer_name,
        "amount": p.amount,
        "paymentMethod": p.payment_method,
        "transactionId": p.transaction_id,
        "date": _day(p.date),
    }


def milkman_payment_view(p):
    return {
        "id": p.id,
        "milkmanId": p.milkman_id,
        "milkmanName": p.milkman_name,
        "amount": p.amount,
        "paymentMethod": p.payment_method,
        "transactionId": p.transaction_id,
        "direction": p.direction,
        "date": _day(p.date),
    }


def product_view(p):
    return {"id": p.id, "name": p.name, "category": p.category, "unit": p.unit, "price": p.price}


def product_sale_view(s):
    return {
        "id": s.id,
        "productId": s.product_id,
        "productName": s.product_name,
        "buyerId": s.buyer_id,
        "buyerName": s.buyer_name,
        "buyerRole": s.buyer_role,
        "quantity": s.quantity,
        "rate": s.rate,
        "amount": s.amount,
        "date": _day(s.date),
    }


def due_view(d):
    return {
        "buyerId": d.buyer_id,
        "buyerName": d.buyer_name,
        "totalPurchases": d.total_purchases,
        "totalPayments": d.total_payments,
        "due": d.due,
    }
