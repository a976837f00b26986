# models.py
from flask_sqlalchemy import SQLAlchemy
from flask_login import UserMixin
from datetime import datetime, date

db = SQLAlchemy()

ROLES = ("admin", "buyer", "milkman")
MILKMAN_STATUSES = ("pending", "approved", "rejected")
RECORD_TYPES = ("purchase", "supply")


class Profile(UserMixin, db.Model):
    __tablename__ = "profiles"
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(256))
    role = db.Column(db.String(20), nullable=False)  # admin / buyer / milkman
    phone = db.Column(db.String(30))
    location = db.Column(db.String(250))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    milkman = db.relationship("Milkman", backref="profile", uselist=False)


class Milkman(db.Model):
    __tablename__ = "milkmen"
    # shares the profile's id
    id = db.Column(db.Integer, db.ForeignKey("profiles.id"), primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    location = db.Column(db.String(250), nullable=False, default="")
    status = db.Column(db.String(20), nullable=False, default="pending")
    phone = db.Column(db.String(30))
    rating = db.Column(db.Float, default=0.0)
    available = db.Column(db.Boolean, default=True)
    account_number = db.Column(db.String(18))
    ifsc_code = db.Column(db.String(11))
    # positive: dairy owes the milkman, negative: milkman owes the dairy
    total_due = db.Column(db.Float, nullable=False, default=0.0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    @property
    def username(self):
        return self.profile.username if self.profile else self.name


class DailyRecord(db.Model):
    __tablename__ = "daily_records"
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=False)
    user_name = db.Column(db.String(80), nullable=False)
    user_role = db.Column(db.String(20), nullable=False)  # buyer / milkman
    date = db.Column(db.Date, nullable=False, default=date.today)
    quantity = db.Column(db.Float, nullable=False)
    rate = db.Column(db.Float, nullable=False)  # snapshot at insert time
    amount = db.Column(db.Float, nullable=False)
    type = db.Column(db.String(10), nullable=False)  # purchase / supply
    created_at = db.Column(db.DateTime, default=datetime.utcnow)


class DairyRates(db.Model):
    __tablename__ = "dairy_rates"
    id = db.Column(db.Integer, primary_key=True)
    milkman_rate = db.Column(db.Float, nullable=False)
    buyer_rate = db.Column(db.Float, nullable=False)
    effective_date = db.Column(db.Date, nullable=False, default=date.today)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)


class Payment(db.Model):
    __tablename__ = "payments"
    id = db.Column(db.Integer, primary_key=True)
    buyer_id = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=False)
    buyer_name = db.Column(db.String(80), nullable=False)
    amount = db.Column(db.Float, nullable=False)
    payment_method = db.Column(db.String(30), nullable=False)
    transaction_id = db.Column(db.String(40), unique=True, nullable=False)
    date = db.Column(db.Date, nullable=False, default=date.today)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)


class MilkmanPayment(db.Model):
    __tablename__ = "milkman_payments"
    id = db.Column(db.Integer, primary_key=True)
    milkman_id = db.Column(db.Integer, db.ForeignKey("milkmen.id"), nullable=False)
    milkman_name = db.Column(db.String(120), nullable=False)
    amount = db.Column(db.Float, nullable=False)
    payment_method = db.Column(db.String(30), nullable=False)
    transaction_id = db.Column(db.String(40), unique=True, nullable=False)
    date = db.Column(db.Date, nullable=False, default=date.today)
    direction = db.Column(db.String(12), nullable=False, default="to_milkman")  # to_milkman / to_dairy
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    milkman = db.relationship("Milkman", backref="payments")


class Product(db.Model):
    __tablename__ = "products"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    category = db.Column(db.String(60), nullable=False)
    unit = db.Column(db.String(20), nullable=False)  # kg / litre / piece
    price = db.Column(db.Float, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)


class ProductSale(db.Model):
    __tablename__ = "product_sales"
    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    product_name = db.Column(db.String(120), nullable=False)
    buyer_id = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=False)
    buyer_name = db.Column(db.String(80), nullable=False)
    buyer_role = db.Column(db.String(20), nullable=False)
    quantity = db.Column(db.Float, nullable=False)
    rate = db.Column(db.Float, nullable=False)  # product price at sale time
    amount = db.Column(db.Float, nullable=False)
    date = db.Column(db.Date, nullable=False, default=date.today)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    product = db.relationship("Product", backref="sales")
