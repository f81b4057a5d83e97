"""In-app notifications and detached email for workflow transitions.

Everything here runs after the transition has committed. Failures are logged
and swallowed: a notification problem never reverses or fails a transition.
"""
from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models import NOC, Application, Inspection, Notification
from utils.email_service import EmailDeliveryError, send_notification_email
from utils.markdown_formatter import (
    format_decision_markdown,
    format_inspection_scheduled_markdown,
    format_revocation_markdown,
)

_executor: Optional[ThreadPoolExecutor] = None
_executor_lock = threading.Lock()


def _get_executor(app) -> ThreadPoolExecutor:
    global _executor
    with _executor_lock:
        if _executor is None:
            _executor = ThreadPoolExecutor(
                max_workers=int(app.config.get("MAIL_WORKERS", 4)),
                thread_name_prefix="noc-mail",
            )
    return _executor


def format_long_date(value) -> str:
    return f"{value:%A}, {value.day} {value:%B} {value.year}"


def notify(
    user_id: str,
    title: str,
    message: str,
    *,
    notification_type: str = "info",
    action_url: Optional[str] = None,
) -> Optional[Notification]:
    """Write an in-app notification in its own transaction."""
    try:
        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            type=notification_type,
            action_url=action_url,
        )
        db.session.add(notification)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception(
            "Notification insert failed",
            extra={"user_id": user_id, "title": title},
        )
        return None
    current_app.logger.info("Notification created", extra={"user_id": user_id, "title": title})
    return notification


def _deliver(recipient: str, subject: str, markdown_body: str, application_id: Optional[str], context: Dict) -> None:
    try:
        send_notification_email(
            recipient,
            subject,
            markdown_body,
            application_id=application_id,
            context=context,
        )
        current_app.logger.info("Notification email sent", extra={"subject": subject, "application_id": application_id})
    except EmailDeliveryError as exc:
        current_app.logger.warning(
            "Notification email failed",
            extra={"subject": subject, "application_id": application_id, "error": str(exc)},
        )
    except Exception:
        current_app.logger.exception("Unexpected error while sending notification email", extra={"subject": subject})


def _deliver_in_context(app, *args) -> None:
    with app.app_context():
        _deliver(*args)


def queue_email(
    recipient: Optional[str],
    subject: str,
    markdown_body: str,
    *,
    application_id: Optional[str] = None,
    context: Optional[Dict] = None,
) -> None:
    """Hand an email to the mail pool; only plain values cross the thread boundary."""
    if not recipient:
        current_app.logger.info("Email skipped: recipient has no address", extra={"subject": subject})
        return
    app = current_app._get_current_object()
    args = (recipient, subject, markdown_body, application_id, dict(context or {}))
    if app.config.get("MAIL_ASYNC", True):
        try:
            _get_executor(app).submit(_deliver_in_context, app, *args)
        except RuntimeError:
            app.logger.exception("Mail pool unavailable", extra={"subject": subject})
        return
    _deliver(*args)


def _applicant_name(application: Application) -> str:
    applicant = application.applicant
    return applicant.full_name if applicant and applicant.full_name else "Applicant"


def notify_inspection_scheduled(application: Application, inspection: Inspection) -> None:
    building = application.building
    long_date = format_long_date(inspection.scheduled_date)
    notify(
        application.applicant_id,
        "Inspection Scheduled",
        f"Your inspection for application {application.application_number} is scheduled for "
        f"{long_date} at {inspection.scheduled_time}. Building: {building.name if building else 'N/A'}",
        notification_type="info",
        action_url=application.detail_path,
    )
    address = ", ".join(part for part in (building.address, building.city) if part) if building else ""
    markdown_body = format_inspection_scheduled_markdown(
        {
            "applicant_name": _applicant_name(application),
            "application_number": application.application_number,
            "building_name": building.name if building else None,
            "building_address": address,
            "scheduled_date": long_date,
            "scheduled_time": inspection.scheduled_time,
        }
    )
    queue_email(
        application.applicant.email if application.applicant else None,
        f"Inspection Scheduled - {application.application_number}",
        markdown_body,
        application_id=application.id,
        context={"preheader": "Your fire safety inspection has been scheduled.", "action_url": application.detail_path},
    )


def notify_inspection_completed(application: Application, inspection: Inspection) -> None:
    score = inspection.overall_score if inspection.overall_score is not None else "Pending"
    notify(
        application.applicant_id,
        "Inspection Completed",
        f"The inspection for your application {application.application_number} has been completed. "
        f"Score: {score}. Decision pending.",
        notification_type="info",
        action_url=application.detail_path,
    )


def notify_decision(application: Application, decision: str, noc: Optional[NOC] = None) -> None:
    noc_number = noc.noc_number if noc else None
    if decision == "approve":
        title = "NOC Approved"
        message = f"Your application {application.application_number} has been approved."
        if noc_number:
            message += f" Your NOC Number: {noc_number}"
        notification_type = "success"
    else:
        title = "NOC Rejected"
        message = (
            f"Your application {application.application_number} was rejected. "
            f"Reason: {application.rejection_reason}"
        )
        notification_type = "error"
    notify(
        application.applicant_id,
        title,
        message,
        notification_type=notification_type,
        action_url=application.detail_path,
    )
    markdown_body = format_decision_markdown(
        {
            "decision": decision,
            "applicant_name": _applicant_name(application),
            "application_number": application.application_number,
            "noc_number": noc_number,
            "valid_until": noc.valid_until.isoformat() if noc else None,
            "rejection_reason": application.rejection_reason,
        }
    )
    queue_email(
        application.applicant.email if application.applicant else None,
        f"{title} - {application.application_number}",
        markdown_body,
        application_id=application.id,
        context={"preheader": message, "action_url": application.detail_path},
    )


def notify_revocation(noc: NOC) -> None:
    application = noc.application
    notify(
        application.applicant_id,
        "NOC Revoked",
        f"Your NOC {noc.noc_number} has been revoked. Reason: {noc.revocation_reason}",
        notification_type="warning",
        action_url=application.detail_path,
    )
    queue_email(
        application.applicant.email if application.applicant else None,
        f"NOC Revoked - {noc.noc_number}",
        format_revocation_markdown(
            {
                "applicant_name": _applicant_name(application),
                "noc_number": noc.noc_number,
                "reason": noc.revocation_reason,
            }
        ),
        application_id=application.id,
        context={"preheader": "Your No-Objection Certificate has been revoked.", "action_url": application.detail_path},
    )
