# config.py
import os
from dotenv import load_dotenv

load_dotenv()

basedir = os.path.abspath(os.path.dirname(__file__))


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "replace-with-a-strong-secret")
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL") or f"sqlite:///{os.path.join(basedir, 'dairy.sqlite3')}"
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # seeded by `flask init-db`
    ADMIN_USERNAME = os.environ.get("ADMIN_USERNAME", "admin")
    ADMIN_EMAIL = os.environ.get("ADMIN_EMAIL", "admin@dairyconnect.local")
    ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD", "adminpass")

    # used until an admin saves the first rates row
    DEFAULT_MILKMAN_RATE = float(os.environ.get("DEFAULT_MILKMAN_RATE", 55))
    DEFAULT_BUYER_RATE = float(os.environ.get("DEFAULT_BUYER_RATE", 70))

    CURRENCY_SYMBOL = os.environ.get("CURRENCY_SYMBOL", "₹")


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    LOG_LEVEL = "WARNING"
