"""SMTP-backed email dispatcher for workflow notifications."""
import smtplib
import ssl
from email.message import EmailMessage
from email.utils import formatdate, make_msgid
from typing import Dict, List, Tuple

from flask import current_app, render_template
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models import EmailAuditLog
from utils.markdown_formatter import markdown_to_email_html, markdown_to_plaintext

EMAIL_TEMPLATE = "email/notification.html"


class EmailDeliveryError(Exception):
    """Raised when email dispatch fails."""


def _render_email_content(subject: str, markdown_body: str, context: Dict) -> Tuple[str, str]:
    """Return plaintext and HTML bodies using a shared markdown source."""
    text_body = markdown_to_plaintext(markdown_body)
    ctx = dict(context or {})
    preheader = ctx.pop("preheader", "")
    html_body = render_template(
        EMAIL_TEMPLATE,
        subject=subject,
        content_html=markdown_to_email_html(markdown_body),
        preheader=preheader,
        **ctx,
    )
    return text_body, html_body


def _resolve_sender() -> str:
    return current_app.config.get("MAIL_DEFAULT_SENDER") or ""


def _dispatch_email(subject: str, text_body: str, html_body: str, sender: str, recipients: List[str]) -> None:
    if not recipients:
        raise EmailDeliveryError("No recipients resolved for email dispatch")
    if not sender:
        raise EmailDeliveryError("MAIL_DEFAULT_SENDER is not configured")

    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = sender
    msg["To"] = ", ".join(recipients)
    msg["Date"] = formatdate(localtime=True)
    msg["Message-ID"] = make_msgid()
    msg.set_content(text_body or markdown_to_plaintext(html_body))
    msg.add_alternative(html_body, subtype="html")

    host = current_app.config.get("MAIL_SERVER")
    port = int(current_app.config.get("MAIL_PORT", 25))
    username = current_app.config.get("MAIL_USERNAME")
    password = current_app.config.get("MAIL_PASSWORD")
    use_tls = bool(current_app.config.get("MAIL_USE_TLS"))
    use_ssl = bool(current_app.config.get("MAIL_USE_SSL"))

    if not host:
        raise EmailDeliveryError("MAIL_SERVER is not configured")

    try:
        if use_ssl:
            context = ssl.create_default_context()
            with smtplib.SMTP_SSL(host, port, context=context, timeout=30) as server:
                if username and password:
                    server.login(username, password)
                server.send_message(msg)
        else:
            with smtplib.SMTP(host, port, timeout=30) as server:
                server.ehlo()
                if use_tls:
                    server.starttls(context=ssl.create_default_context())
                if username and password:
                    server.login(username, password)
                server.send_message(msg)
    except Exception as exc:  # pragma: no cover - external I/O
        raise EmailDeliveryError(str(exc)) from exc


def _persist_audit(
    application_id: str | None,
    recipient: str,
    subject: str,
    body: str,
    status: str,
    error: str | None = None,
) -> None:
    log = EmailAuditLog(
        application_id=application_id,
        recipient_email=recipient or "unknown",
        subject=subject,
        email_body_snapshot=body,
        delivery_status=status,
        error_message=error,
    )
    db.session.add(log)
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to record email audit entry", extra={"subject": subject})


def send_notification_email(
    recipient: str,
    subject: str,
    markdown_body: str,
    *,
    application_id: str | None = None,
    context: Dict | None = None,
) -> None:
    """Render and send one notification email, recording the outcome.

    Raises EmailDeliveryError after the failure has been recorded.
    """
    text_body, html_body = _render_email_content(subject, markdown_body, context or {})
    try:
        _dispatch_email(subject, text_body, html_body, _resolve_sender(), [recipient] if recipient else [])
    except EmailDeliveryError as exc:
        _persist_audit(application_id, recipient, subject, html_body, status="FAILED", error=str(exc))
        raise
    _persist_audit(application_id, recipient, subject, html_body, status="SENT")
