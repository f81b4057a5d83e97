"""Application intake and read endpoints."""
from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required
from flask_wtf import FlaskForm
from wtforms import BooleanField, IntegerField, SelectField, StringField, TextAreaField
from wtforms.validators import DataRequired, Length, NumberRange, Optional

from extensions import db
from models import APPLICATION_STATUSES, APPLICATION_TYPES, BUILDING_CATEGORIES, Application
from utils.errors import Forbidden, InvalidInput, NotFound
from utils.forms import bind_form, json_body
from utils.lifecycle import create_application, submit_application

applications_bp = Blueprint("applications", __name__)


class BuildingForm(FlaskForm):
    name = StringField("Building Name", validators=[DataRequired(), Length(max=255)])
    category = SelectField("Category", choices=[(c, c) for c in BUILDING_CATEGORIES], validators=[DataRequired()])
    address = StringField("Address", validators=[DataRequired(), Length(max=500)])
    city = StringField("City", validators=[DataRequired(), Length(max=120)])
    state = StringField("State", validators=[Optional(), Length(max=120)])
    pincode = StringField("Pincode", validators=[DataRequired(), Length(min=4, max=12)])
    floors = IntegerField("Floors", validators=[DataRequired(), NumberRange(min=1, max=300)])
    area_sqft = IntegerField("Area (sq ft)", validators=[DataRequired(), NumberRange(min=1)])
    year_built = IntegerField("Year Built", validators=[Optional(), NumberRange(min=1800, max=2100)])
    occupancy_capacity = IntegerField("Occupancy", validators=[Optional(), NumberRange(min=0)])


class ApplicationForm(FlaskForm):
    application_type = SelectField(
        "Application Type",
        choices=[(t, t) for t in APPLICATION_TYPES],
        default="new",
        validators=[Optional()],
    )
    purpose = TextAreaField("Purpose", validators=[Optional(), Length(max=2000)])
    notes = TextAreaField("Notes", validators=[Optional(), Length(max=4000)])
    submit = BooleanField("Submit", default=True)


@applications_bp.route("", methods=["POST"])
@login_required
def create():
    payload = json_body()
    building_payload = payload.get("building")
    if not isinstance(building_payload, dict):
        raise InvalidInput("building: This field is required.")
    building_form = bind_form(BuildingForm, building_payload)
    form = bind_form(ApplicationForm, payload)

    building = {field.name: field.data for field in building_form}
    application = create_application(
        current_user._get_current_object(),
        building,
        application_type=form.application_type.data or "new",
        purpose=form.purpose.data,
        notes=form.notes.data,
        submit=form.submit.data if payload.get("submit") is not None else True,
    )
    return (
        jsonify(
            {
                "ok": True,
                "applicationId": application.id,
                "applicationNumber": application.application_number,
                "status": application.status,
            }
        ),
        201,
    )


@applications_bp.route("/<application_id>/submit", methods=["POST"])
@login_required
def submit(application_id):
    application = submit_application(current_user._get_current_object(), application_id)
    return jsonify({"ok": True, "applicationNumber": application.application_number})


@applications_bp.route("", methods=["GET"])
@login_required
def list_applications():
    try:
        page = int(request.args.get("page", 1))
    except (TypeError, ValueError):
        page = 1
    page = 1 if page < 1 else page
    per_page = max(1, min(int(current_app.config.get("APPLICATIONS_PER_PAGE", 20)), 100))

    query = Application.query
    if not current_user.is_staff:
        query = query.filter(Application.applicant_id == current_user.id)
    status_filter = (request.args.get("status") or "").strip().lower()
    if status_filter:
        if status_filter not in APPLICATION_STATUSES:
            raise InvalidInput("Unknown status filter")
        query = query.filter(Application.status == status_filter)

    pagination = query.order_by(Application.created_at.desc()).paginate(page=page, per_page=per_page, error_out=False)
    return jsonify(
        {
            "items": [application.summary_payload() for application in pagination.items],
            "page": pagination.page,
            "pages": pagination.pages,
            "total": pagination.total,
        }
    )


@applications_bp.route("/<application_id>", methods=["GET"])
@login_required
def detail(application_id):
    application = db.session.get(Application, application_id)
    if application is None:
        raise NotFound("Application not found")
    if application.applicant_id != current_user.id and not current_user.is_staff:
        raise Forbidden()
    return jsonify(application.detail_payload())
