"""Public certificate verification plus certificate download and revocation."""
from io import BytesIO

from flask import Blueprint, current_app, jsonify, request, send_file
from flask_login import current_user, login_required
from flask_wtf import FlaskForm
from wtforms import TextAreaField
from wtforms.validators import DataRequired, Length

from models import NOC
from utils.decorators import roles_required
from utils.errors import Forbidden, NotFound
from utils.forms import bind_form
from utils.lifecycle import normalize_noc_number, revoke_noc
from utils.pdf_generator import generate_certificate_pdf
from utils.verification import verify_noc

verification_bp = Blueprint("verification", __name__)


class RevocationForm(FlaskForm):
    reason = TextAreaField("Reason", validators=[DataRequired(), Length(max=2000)])


def _verification_response(noc_number):
    try:
        result = verify_noc(noc_number)
    except NotFound as exc:
        return jsonify({"notFound": True, "error": exc.message}), 404
    return jsonify(result)


@verification_bp.route("/verify/<noc_number>", methods=["GET"])
def verify_by_path(noc_number):
    return _verification_response(noc_number)


@verification_bp.route("/verify", methods=["GET"])
def verify_by_query():
    return _verification_response(request.args.get("nocNumber") or request.args.get("noc"))


@verification_bp.route("/nocs/<noc_number>/certificate", methods=["GET"])
@login_required
def certificate(noc_number):
    number = normalize_noc_number(noc_number)
    noc = NOC.query.filter_by(noc_number=number).first()
    if noc is None:
        raise NotFound("NOC not found")
    if noc.application.applicant_id != current_user.id and not current_user.is_staff:
        raise Forbidden()

    payload = noc.payload()
    payload["applicationNumber"] = noc.application.application_number
    payload["building"] = noc.building.payload() if noc.building else {}
    pdf_bytes = generate_certificate_pdf(payload)
    current_app.logger.info("Certificate rendered", extra={"noc_number": number, "user_id": current_user.id})
    return send_file(
        BytesIO(pdf_bytes),
        mimetype="application/pdf",
        as_attachment=True,
        download_name=f"{number}.pdf",
    )


@verification_bp.route("/nocs/<noc_number>/revoke", methods=["POST"])
@roles_required("admin")
def revoke(noc_number):
    form = bind_form(RevocationForm)
    noc = revoke_noc(current_user._get_current_object(), noc_number, form.reason.data)
    return jsonify({"ok": True, "status": noc.status})
