# auth.py
from flask import Blueprint, current_app, render_template, request, redirect, url_for, flash
from werkzeug.security import check_password_hash
from flask_login import login_user, logout_user, login_required, current_user
from sqlalchemy.exc import SQLAlchemyError

from errors import DairyError
from models import Profile
from services import SIGNUP_ROLES, register_profile

auth = Blueprint("auth", __name__, url_prefix="/auth")


@auth.route("/login", methods=["GET", "POST"])
def login():
    if current_user.is_authenticated:
        return redirect(url_for("dashboard"))
    if request.method == "POST":
        login_name = request.form.get("username", "").strip()
        password = request.form.get("password", "")
        user = Profile.query.filter(
            (Profile.username == login_name) | (Profile.email == login_name.lower())
        ).first()
        if not user or not check_password_hash(user.password_hash, password):
            current_app.logger.warning("failed login for %r", login_name)
            flash("Invalid username or password", "error")
            return redirect(url_for("auth.login"))
        login_user(user, remember=bool(request.form.get("remember")))
        current_app.logger.info("%s logged in as %s", user.username, user.role)
        return redirect(url_for("dashboard"))
    return render_template("login.html")


@auth.route("/signup", methods=["GET", "POST"])
def signup():
    if request.method == "POST":
        role = request.form.get("role", "")
        if role not in SIGNUP_ROLES:
            flash("Choose a role: buyer or milkman", "error")
            return redirect(url_for("auth.signup"))
        try:
            user = register_profile(
                request.form.get("username"),
                request.form.get("email"),
                request.form.get("password"),
                role,
                phone=request.form.get("phone"),
                location=request.form.get("location"),
            )
        except DairyError as e:
            flash(str(e), "error")
            return redirect(url_for("auth.signup"))
        except SQLAlchemyError:
            current_app.logger.exception("signup failed")
            flash("Could not create account. Try again.", "error")
            return redirect(url_for("auth.signup"))
        login_user(user)
        if role == "milkman":
            flash("Account created. An admin must approve you before supplies are recorded.", "success")
        else:
            flash("Account created", "success")
        return redirect(url_for("dashboard"))
    return render_template("signup.html", roles=SIGNUP_ROLES)


@auth.route("/logout")
@login_required
def logout():
    logout_user()
    flash("You have been logged out successfully.", "success")
    return redirect(url_for("auth.login"))
