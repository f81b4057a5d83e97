"""Application lifecycle: every status change an application can go through.

Each operation validates its input, loads the records it needs, applies the
transition and its side records (inspection, certificate, history, audit) in a
single transaction, and only then dispatches notifications. Role checks live
on the HTTP views; these functions trust the ``actor`` they are handed.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, Iterable, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models import (
    APPLICATION_TYPES,
    BUILDING_CATEGORIES,
    NOC,
    Application,
    ApplicationStatusHistory,
    Building,
    Inspection,
)
from utils.audit import log_action
from utils.errors import Conflict, DependencyFailure, Forbidden, InvalidInput, NotFound
from utils.notifications import (
    notify_decision,
    notify_inspection_completed,
    notify_inspection_scheduled,
    notify_revocation,
)
from utils.numbering import APPLICATION_PREFIX, NOC_PREFIX, NumberingError, next_number
from utils.security import hash_record

# Source status -> statuses reachable from it.
TRANSITIONS: Dict[str, frozenset] = {
    "draft": frozenset({"submitted"}),
    "submitted": frozenset({"inspection_scheduled"}),
    "under_review": frozenset({"inspection_scheduled"}),
    "inspection_scheduled": frozenset({"inspection_scheduled", "inspection_completed"}),
    "inspection_completed": frozenset({"approved", "rejected"}),
    "approved": frozenset(),
    "rejected": frozenset(),
    "requires_compliance": frozenset(),
}

DECISIONS = ("approve", "reject")

_BUILDING_REQUIRED = ("name", "category", "address", "city", "pincode", "floors", "area_sqft")


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def _require_transition(application: Application, target: str) -> None:
    if not can_transition(application.status, target):
        raise Conflict(f"Application in status '{application.status}' cannot move to '{target}'")


def _record_status(application: Application, new_status: str, actor, remarks: Optional[str] = None) -> None:
    actor_id = actor.id if actor is not None else None
    history = ApplicationStatusHistory(
        application=application,
        previous_status=application.status,
        new_status=new_status,
        remarks=remarks,
        changed_by=actor_id,
    )
    application.status = new_status
    db.session.add(history)


def _commit(event: str, **extra: Any) -> None:
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception(f"{event} failed", extra=extra)
        raise DependencyFailure(f"{event} could not be saved") from exc


def parse_schedule_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise InvalidInput("scheduledDate is required")
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except ValueError as exc:
        raise InvalidInput("scheduledDate must use the YYYY-MM-DD format") from exc


def add_years(start: date, years: int) -> date:
    try:
        return start.replace(year=start.year + years)
    except ValueError:
        # 29 February in a non-leap target year
        return start.replace(year=start.year + years, day=28)


def _clean_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    cleaned = str(value).strip()
    return cleaned or None


def _validate_building(data: Dict[str, Any]) -> None:
    missing = [field for field in _BUILDING_REQUIRED if data.get(field) in (None, "")]
    if missing:
        raise InvalidInput(f"Missing building fields: {', '.join(missing)}")
    if data["category"] not in BUILDING_CATEGORIES:
        raise InvalidInput("Unknown building category")
    for field in ("floors", "area_sqft"):
        if not isinstance(data[field], int) or isinstance(data[field], bool) or data[field] < 1:
            raise InvalidInput(f"{field} must be a positive integer")


def create_application(
    applicant,
    building: Dict[str, Any],
    *,
    application_type: str = "new",
    purpose: Optional[str] = None,
    notes: Optional[str] = None,
    submit: bool = True,
) -> Application:
    """Register a building and an application for it.

    With ``submit`` the application is numbered and enters ``submitted``
    straight away; otherwise it is kept as an unnumbered draft.
    """
    _validate_building(building or {})
    if application_type not in APPLICATION_TYPES:
        raise InvalidInput("Unknown application type")

    try:
        record = Building(
            owner_id=applicant.id,
            name=building["name"].strip(),
            category=building["category"],
            address=building["address"].strip(),
            city=building["city"].strip(),
            state=_clean_text(building.get("state")),
            pincode=str(building["pincode"]).strip(),
            floors=building["floors"],
            area_sqft=building["area_sqft"],
            year_built=building.get("year_built"),
            occupancy_capacity=building.get("occupancy_capacity"),
        )
        application = Application(
            building=record,
            applicant_id=applicant.id,
            application_type=application_type,
            purpose=_clean_text(purpose),
            notes=_clean_text(notes),
            status="draft",
        )
        db.session.add_all([record, application])
        if submit:
            application.application_number = next_number(APPLICATION_PREFIX)
            application.submitted_at = datetime.utcnow()
            _record_status(application, "submitted", applicant, remarks="Application submitted")
        else:
            history = ApplicationStatusHistory(
                application=application,
                previous_status=None,
                new_status="draft",
                remarks="Draft created",
                changed_by=applicant.id,
            )
            db.session.add(history)
        db.session.flush()
        log_action(
            "APPLICATION_CREATED",
            applicant,
            entity_type="application",
            entity_id=application.id,
            details={"status": application.status, "applicationNumber": application.application_number},
        )
    except (SQLAlchemyError, NumberingError) as exc:
        db.session.rollback()
        current_app.logger.exception("Application creation failed", extra={"user_id": applicant.id})
        raise DependencyFailure("Application could not be saved") from exc

    _commit("Application creation", user_id=applicant.id)
    current_app.logger.info(
        "Application created",
        extra={"application_id": application.id, "status": application.status},
    )
    return application


def submit_application(actor, application_id: str) -> Application:
    if not application_id:
        raise InvalidInput("applicationId is required")
    application = db.session.get(Application, application_id)
    if application is None:
        raise NotFound("Application not found")
    if application.applicant_id != actor.id:
        raise Forbidden("Only the applicant can submit this application")
    _require_transition(application, "submitted")

    try:
        application.application_number = next_number(APPLICATION_PREFIX)
        application.submitted_at = datetime.utcnow()
        _record_status(application, "submitted", actor, remarks="Application submitted")
        log_action(
            "APPLICATION_SUBMITTED",
            actor,
            entity_type="application",
            entity_id=application.id,
            details={"applicationNumber": application.application_number},
        )
    except (SQLAlchemyError, NumberingError) as exc:
        db.session.rollback()
        current_app.logger.exception("Application submission failed", extra={"application_id": application_id})
        raise DependencyFailure("Application could not be submitted") from exc

    _commit("Application submission", application_id=application_id)
    current_app.logger.info("Application submitted", extra={"application_id": application.id})
    return application


def schedule_inspection(actor, application_id: str, scheduled_date, scheduled_time: Optional[str]) -> Inspection:
    """Create the application's inspection, or move the existing one."""
    if not application_id:
        raise InvalidInput("applicationId is required")
    when = parse_schedule_date(scheduled_date)
    slot = (scheduled_time or "").strip()
    if not slot:
        raise InvalidInput("scheduledTime is required")
    if slot not in current_app.config["INSPECTION_TIME_SLOTS"]:
        raise InvalidInput("scheduledTime is not an available inspection slot")

    application = db.session.get(Application, application_id)
    if application is None:
        raise NotFound("Application not found")
    _require_transition(application, "inspection_scheduled")

    inspection = application.inspection
    rescheduled = inspection is not None
    if inspection is None:
        inspection = Inspection(
            application=application,
            building_id=application.building_id,
            officer_id=actor.id,
            scheduled_date=when,
            scheduled_time=slot,
            status="scheduled",
        )
        db.session.add(inspection)
    else:
        inspection.scheduled_date = when
        inspection.scheduled_time = slot
        inspection.status = "scheduled"
        inspection.officer_id = actor.id

    remarks = f"Inspection {'rescheduled' if rescheduled else 'scheduled'} for {when.isoformat()} {slot}"
    _record_status(application, "inspection_scheduled", actor, remarks=remarks)
    try:
        db.session.flush()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Inspection scheduling failed", extra={"application_id": application_id})
        raise DependencyFailure("Inspection could not be scheduled") from exc
    log_action(
        "INSPECTION_RESCHEDULED" if rescheduled else "INSPECTION_SCHEDULED",
        actor,
        entity_type="inspection",
        entity_id=inspection.id,
        details={"applicationId": application.id, "date": when.isoformat(), "time": slot},
    )
    _commit("Inspection scheduling", application_id=application.id, actor_id=actor.id)

    current_app.logger.info(
        "Inspection scheduled",
        extra={"application_id": application.id, "inspection_id": inspection.id, "rescheduled": rescheduled},
    )
    notify_inspection_scheduled(application, inspection)
    return inspection


def _validate_score(value) -> Optional[int]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise InvalidInput("overallScore must be an integer between 0 and 100")
    if isinstance(value, str):
        try:
            value = int(value.strip())
        except ValueError as exc:
            raise InvalidInput("overallScore must be an integer between 0 and 100") from exc
    if not isinstance(value, int) or not 0 <= value <= 100:
        raise InvalidInput("overallScore must be an integer between 0 and 100")
    return value


def _validate_photos(value: Optional[Iterable]) -> list:
    if value is None:
        return []
    if isinstance(value, str) or not all(isinstance(url, str) for url in value):
        raise InvalidInput("photoUrls must be a list of strings")
    return [url.strip() for url in value if url.strip()]


def complete_inspection(
    actor,
    *,
    inspection_id: Optional[str] = None,
    application_id: Optional[str] = None,
    findings: Optional[str] = None,
    recommendations: Optional[str] = None,
    overall_score=None,
    photo_urls: Optional[Iterable[str]] = None,
) -> Inspection:
    """Record inspection results. Never creates an inspection."""
    if not inspection_id and not application_id:
        raise InvalidInput("inspectionId or applicationId is required")
    score = _validate_score(overall_score)
    photos = _validate_photos(photo_urls)

    if inspection_id:
        inspection = db.session.get(Inspection, inspection_id)
    else:
        inspection = Inspection.query.filter_by(application_id=application_id).first()
    if inspection is None:
        current_app.logger.warning(
            "Completion requested for a missing inspection",
            extra={"inspection_id": inspection_id, "application_id": application_id},
        )
        raise NotFound("Inspection not found")

    if inspection.status in ("completed", "cancelled"):
        raise Conflict(f"Inspection is already {inspection.status}")
    application = inspection.application
    _require_transition(application, "inspection_completed")

    now = datetime.utcnow()
    inspection.status = "completed"
    inspection.findings = _clean_text(findings)
    inspection.recommendations = _clean_text(recommendations)
    inspection.overall_score = score
    inspection.photos = photos
    inspection.arrival_time = inspection.arrival_time or now
    inspection.departure_time = now
    _record_status(application, "inspection_completed", actor, remarks="Inspection completed")
    log_action(
        "INSPECTION_COMPLETED",
        actor,
        entity_type="inspection",
        entity_id=inspection.id,
        details={"applicationId": application.id, "score": score},
    )
    _commit("Inspection completion", inspection_id=inspection.id, actor_id=actor.id)

    current_app.logger.info(
        "Inspection completed",
        extra={"application_id": application.id, "inspection_id": inspection.id, "score": score},
    )
    notify_inspection_completed(application, inspection)
    return inspection


def _issue_noc(application: Application, actor) -> NOC:
    today = datetime.utcnow().date()
    applicant = application.applicant
    noc = NOC(
        noc_number=next_number(NOC_PREFIX, on=today),
        application=application,
        building_id=application.building_id,
        issued_by=actor.id,
        issued_to=(applicant.full_name if applicant and applicant.full_name else "Applicant"),
        issue_date=today,
        valid_from=today,
        valid_until=add_years(today, int(current_app.config.get("NOC_VALIDITY_YEARS", 1))),
        status="active",
        conditions=[],
    )
    noc.verification_hash = hash_record(
        {
            "nocNumber": noc.noc_number,
            "applicationId": application.id,
            "buildingId": noc.building_id,
            "issuedTo": noc.issued_to,
            "validFrom": noc.valid_from,
            "validUntil": noc.valid_until,
        }
    )
    db.session.add(noc)
    return noc


def decide(actor, application_id: str, decision: Optional[str], rejection_reason: Optional[str] = None):
    """Approve or reject an inspected application.

    Returns ``(application, noc)``; ``noc`` is None for a rejection. On
    approval the status change and the certificate are written together or
    not at all.
    """
    normalized = (decision or "").strip().lower()
    if normalized not in DECISIONS:
        raise InvalidInput("decision must be 'approve' or 'reject'")
    reason = _clean_text(rejection_reason)
    if normalized == "reject" and not reason:
        raise InvalidInput("A rejection reason is required")
    if not application_id:
        raise InvalidInput("applicationId is required")

    application = db.session.get(Application, application_id)
    if application is None:
        raise NotFound("Application not found")
    target = "approved" if normalized == "approve" else "rejected"
    _require_transition(application, target)

    noc = None
    try:
        if normalized == "approve":
            application.rejection_reason = None
            _record_status(application, target, actor, remarks="Application approved")
            noc = _issue_noc(application, actor)
            db.session.flush()
        else:
            # status first; the reason is only allowed on a rejected row
            _record_status(application, target, actor, remarks=reason[:500])
            application.rejection_reason = reason
        log_action(
            "APPLICATION_APPROVED" if noc else "APPLICATION_REJECTED",
            actor,
            entity_type="application",
            entity_id=application.id,
            details={"nocNumber": noc.noc_number} if noc else {"reason": reason},
        )
    except (SQLAlchemyError, NumberingError) as exc:
        db.session.rollback()
        current_app.logger.exception("Decision failed", extra={"application_id": application_id})
        raise DependencyFailure("Decision could not be saved") from exc

    _commit("Decision", application_id=application_id, actor_id=actor.id)

    current_app.logger.info(
        "Application decided",
        extra={"application_id": application.id, "decision": normalized, "noc": noc.noc_number if noc else None},
    )
    notify_decision(application, normalized, noc)
    return application, noc


def normalize_noc_number(value: Optional[str]) -> str:
    return (value or "").strip().upper()


def revoke_noc(actor, noc_number: str, reason: Optional[str]) -> NOC:
    number = normalize_noc_number(noc_number)
    cleaned = _clean_text(reason)
    if not number:
        raise InvalidInput("NOC number is required")
    if not cleaned:
        raise InvalidInput("A revocation reason is required")

    noc = NOC.query.filter_by(noc_number=number).first()
    if noc is None:
        raise NotFound("NOC not found")
    if noc.status == "revoked":
        raise Conflict("NOC is already revoked")

    noc.status = "revoked"
    noc.revoked_at = datetime.utcnow()
    noc.revocation_reason = cleaned
    log_action(
        "NOC_REVOKED",
        actor,
        entity_type="noc",
        entity_id=noc.id,
        details={"nocNumber": noc.noc_number, "reason": cleaned},
    )
    _commit("NOC revocation", noc_number=number, actor_id=actor.id)

    current_app.logger.info("NOC revoked", extra={"noc_number": number})
    notify_revocation(noc)
    return noc
