"""Grievance filing and listing."""
from flask import Blueprint, current_app, jsonify
from flask_login import current_user, login_required
from flask_wtf import FlaskForm
from sqlalchemy.exc import SQLAlchemyError
from wtforms import SelectField, StringField, TextAreaField
from wtforms.validators import DataRequired, Length, Optional

from extensions import db
from models import Application, Grievance
from utils.audit import log_action
from utils.errors import DependencyFailure, NotFound
from utils.forms import bind_form
from utils.numbering import GRIEVANCE_PREFIX, NumberingError, next_number

grievances_bp = Blueprint("grievances", __name__)

GRIEVANCE_CATEGORIES: list[tuple[str, str]] = [
    ("delay", "Processing delay"),
    ("inspection", "Inspection conduct"),
    ("decision", "Decision dispute"),
    ("certificate", "Certificate issue"),
    ("portal", "Portal problem"),
    ("other", "Other"),
]


class GrievanceForm(FlaskForm):
    category = SelectField("Category", choices=GRIEVANCE_CATEGORIES, validators=[DataRequired()])
    subject = StringField("Subject", validators=[DataRequired(), Length(max=255)])
    description = TextAreaField("Description", validators=[DataRequired(), Length(min=10, max=5000)])
    application_number = StringField("Application Number", validators=[Optional(), Length(max=32)])


@grievances_bp.route("", methods=["POST"])
@login_required
def file_grievance():
    form = bind_form(GrievanceForm)

    application_id = None
    reference = (form.application_number.data or "").strip().upper()
    if reference:
        query = Application.query.filter_by(application_number=reference)
        if not current_user.is_staff:
            query = query.filter_by(applicant_id=current_user.id)
        application = query.first()
        if application is None:
            raise NotFound("Referenced application not found")
        application_id = application.id

    try:
        grievance = Grievance(
            grievance_number=next_number(GRIEVANCE_PREFIX),
            submitted_by=current_user.id,
            application_id=application_id,
            category=form.category.data,
            subject=form.subject.data.strip(),
            description=form.description.data.strip(),
            status="submitted",
        )
        db.session.add(grievance)
        db.session.flush()
        log_action(
            "GRIEVANCE_FILED",
            current_user,
            entity_type="grievance",
            entity_id=grievance.id,
            details={"grievanceNumber": grievance.grievance_number, "applicationId": application_id},
        )
        db.session.commit()
    except (SQLAlchemyError, NumberingError) as exc:
        db.session.rollback()
        current_app.logger.exception("Grievance filing failed", extra={"user_id": current_user.id})
        raise DependencyFailure("Grievance could not be saved") from exc

    current_app.logger.info("Grievance filed", extra={"grievance_id": grievance.id})
    return jsonify({"ok": True, "grievanceNumber": grievance.grievance_number}), 201


@grievances_bp.route("", methods=["GET"])
@login_required
def list_grievances():
    grievances = (
        Grievance.query.filter_by(submitted_by=current_user.id)
        .order_by(Grievance.created_at.desc())
        .all()
    )
    return jsonify({"items": [g.payload() for g in grievances]})
