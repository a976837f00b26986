# app.py
import logging

import click
from flask import Flask, jsonify, redirect, request, url_for
from flask_login import LoginManager, current_user, login_required

from admin import admin
from api import api
from auth import auth
from billing import billing
from config import Config
from models import db, DairyRates, Product, Profile
from portal import portal
from services import add_product, register_profile
from utils import today_ist


def configure_logging(app):
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app.logger.setLevel(level)


def create_app(config_object=Config):
    app = Flask(__name__, static_folder="static", template_folder="templates")
    app.config.from_object(config_object)
    configure_logging(app)

    db.init_app(app)

    login_manager = LoginManager()
    login_manager.login_view = "auth.login"
    login_manager.init_app(app)

    app.register_blueprint(auth)
    app.register_blueprint(admin)
    app.register_blueprint(portal)
    app.register_blueprint(billing)
    app.register_blueprint(api)

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(Profile, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        if request.path.startswith("/api/"):
            return jsonify({"error": "Login required."}), 401
        return redirect(url_for("auth.login"))

    @app.context_processor
    def inject_currency():
        return {"currency": app.config.get("CURRENCY_SYMBOL", "")}

    @app.route("/")
    @login_required
    def dashboard():
        # one dashboard per role
        if current_user.role == "admin":
            return redirect(url_for("admin.overview"))
        if current_user.role == "milkman":
            return redirect(url_for("portal.milkman_dashboard"))
        return redirect(url_for("portal.buyer_dashboard"))

    @app.cli.command("init-db")
    def init_db():
        db.create_all()
        # seed default admin if not present
        if not Profile.query.filter_by(role="admin").first():
            register_profile(app.config["ADMIN_USERNAME"], app.config["ADMIN_EMAIL"],
                             app.config["ADMIN_PASSWORD"], "admin")
        if DairyRates.query.count() == 0:
            db.session.add(DairyRates(milkman_rate=app.config["DEFAULT_MILKMAN_RATE"],
                                      buyer_rate=app.config["DEFAULT_BUYER_RATE"],
                                      effective_date=today_ist()))
            db.session.commit()
        if Product.query.count() == 0:
            for name, category, unit, price in [
                ("Paneer", "Dairy", "kg", 320.0),
                ("Ghee", "Dairy", "kg", 650.0),
                ("Curd", "Dairy", "kg", 60.0),
                ("Cattle Feed", "Feed", "kg", 28.0),
            ]:
                add_product(name, category, unit, price)
        click.echo("DB initialized and seeded.")

    # create tables automatically if file missing
    with app.app_context():
        db.create_all()

    return app


if __name__ == "__main__":
    app = create_app()
    app.run(host="0.0.0.0", debug=True)
