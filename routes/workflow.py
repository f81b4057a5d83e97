"""Staff endpoints that drive application status transitions."""
from flask import Blueprint, jsonify
from flask_login import current_user

from models import STAFF_ROLES
from utils.decorators import roles_required
from utils.errors import InvalidInput
from utils.forms import json_body
from utils.lifecycle import complete_inspection, decide, schedule_inspection

workflow_bp = Blueprint("workflow", __name__)


def _text(payload: dict, key: str):
    value = payload.get(key)
    if value is not None and not isinstance(value, str):
        raise InvalidInput(f"{key} must be a string")
    return value


@workflow_bp.route("/schedule-inspection", methods=["POST"])
@roles_required(*STAFF_ROLES)
def schedule():
    payload = json_body()
    inspection = schedule_inspection(
        current_user._get_current_object(),
        _text(payload, "applicationId"),
        _text(payload, "scheduledDate"),
        _text(payload, "scheduledTime"),
    )
    return jsonify({"ok": True, "inspectionId": inspection.id})


@workflow_bp.route("/complete-inspection", methods=["POST"])
@roles_required(*STAFF_ROLES)
def complete():
    payload = json_body()
    photo_urls = payload.get("photoUrls")
    if photo_urls is not None and not isinstance(photo_urls, list):
        raise InvalidInput("photoUrls must be a list of strings")
    inspection = complete_inspection(
        current_user._get_current_object(),
        inspection_id=_text(payload, "inspectionId"),
        application_id=_text(payload, "applicationId"),
        findings=_text(payload, "findings"),
        recommendations=_text(payload, "recommendations"),
        overall_score=payload.get("overallScore"),
        photo_urls=photo_urls,
    )
    return jsonify({"ok": True, "inspectionId": inspection.id})


@workflow_bp.route("/decision", methods=["POST"])
@roles_required("admin")
def decision():
    payload = json_body()
    application, noc = decide(
        current_user._get_current_object(),
        _text(payload, "applicationId"),
        _text(payload, "decision"),
        _text(payload, "rejectionReason"),
    )
    return jsonify({"ok": True, "status": application.status, "nocNumber": noc.noc_number if noc else None})
