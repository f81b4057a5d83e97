"""Account registration, token issue, and self-service account endpoints."""
from datetime import datetime

from flask import Blueprint, current_app, jsonify
from flask_login import current_user, login_required
from flask_wtf import FlaskForm
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from wtforms import PasswordField, StringField
from wtforms.validators import DataRequired, Email, Length, Optional, ValidationError

from extensions import db
from models import User
from utils.accounts import delete_account
from utils.audit import log_action
from utils.errors import Conflict, DependencyFailure, Forbidden, Unauthorized
from utils.forms import bind_form
from utils.security import issue_access_token, password_meets_policy

auth_bp = Blueprint("auth", __name__)


class RegistrationForm(FlaskForm):
    full_name = StringField("Full Name", validators=[DataRequired(), Length(max=150)])
    email = StringField("Email", validators=[DataRequired(), Email(), Length(max=255)])
    phone = StringField("Phone", validators=[Optional(), Length(max=32)])
    organization = StringField("Organization", validators=[Optional(), Length(max=255)])
    password = PasswordField("Password", validators=[DataRequired(), Length(min=12)])

    def validate_password(self, field):
        ok, reason = password_meets_policy(field.data)
        if not ok:
            raise ValidationError(reason)


class TokenForm(FlaskForm):
    email = StringField("Email", validators=[DataRequired(), Length(max=255)])
    password = PasswordField("Password", validators=[DataRequired()])


@auth_bp.route("/register", methods=["POST"])
def register():
    form = bind_form(RegistrationForm)
    email = form.email.data.lower().strip()
    if User.query.filter_by(email=email).first():
        raise Conflict("An account with this email already exists.")

    user = User(
        full_name=form.full_name.data.strip(),
        email=email,
        phone=(form.phone.data or "").strip() or None,
        organization=(form.organization.data or "").strip() or None,
        is_active=True,
    )
    user.set_password(form.password.data)
    try:
        db.session.add(user)
        db.session.flush()
        log_action("REGISTER", user, entity_type="user", entity_id=user.id)
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise Conflict("Unable to register with the provided details.") from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Registration failed")
        raise DependencyFailure() from exc

    current_app.logger.info("User registered", extra={"user_id": user.id})
    return jsonify({"ok": True, "userId": user.id}), 201


@auth_bp.route("/token", methods=["POST"])
def issue_token():
    form = bind_form(TokenForm)
    user = User.query.filter_by(email=form.email.data.lower().strip()).first()
    if not user or not user.check_password(form.password.data):
        log_action("LOGIN_FAILED", user, details={"email": form.email.data.lower().strip()})
        db.session.commit()
        raise Unauthorized("Invalid credentials provided.")
    if not user.is_active:
        raise Forbidden("Your account is inactive. Please contact support.")

    user.last_login_at = datetime.utcnow()
    log_action("LOGIN", user)
    db.session.commit()
    return jsonify(
        {
            "accessToken": issue_access_token(user),
            "tokenType": "Bearer",
            "expiresIn": int(current_app.config["ACCESS_TOKEN_TTL_SECONDS"]),
        }
    )


@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    return jsonify(current_user.profile_payload())


@auth_bp.route("/delete-account", methods=["POST"])
@login_required
def delete_my_account():
    delete_account(current_user._get_current_object())
    return jsonify({"success": True})
