"""Blueprint registration, health check, and in-app notifications."""
from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models import Notification
from utils.errors import DependencyFailure, NotFound
from .admin import admin_bp
from .applications import applications_bp
from .auth import auth_bp
from .grievances import grievances_bp
from .verification import verification_bp
from .workflow import workflow_bp

main_bp = Blueprint("main", __name__)

__all__ = [
    "main_bp",
    "auth_bp",
    "applications_bp",
    "workflow_bp",
    "verification_bp",
    "grievances_bp",
    "admin_bp",
]


@main_bp.route("/health")
def health():
    return jsonify({"status": "ok"})


@main_bp.route("/api/notifications", methods=["GET"])
@login_required
def list_notifications():
    query = Notification.query.filter_by(user_id=current_user.id)
    if request.args.get("unread", "").lower() in ("1", "true", "yes"):
        query = query.filter_by(read=False)
    notifications = query.order_by(Notification.created_at.desc()).limit(100).all()
    unread = Notification.query.filter_by(user_id=current_user.id, read=False).count()
    return jsonify({"items": [n.payload() for n in notifications], "unreadCount": unread})


@main_bp.route("/api/notifications/<notification_id>/read", methods=["POST"])
@login_required
def mark_notification_read(notification_id):
    notification = Notification.query.filter_by(id=notification_id, user_id=current_user.id).first()
    if notification is None:
        raise NotFound("Notification not found")
    notification.read = True
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to mark notification read", extra={"notification_id": notification_id})
        raise DependencyFailure() from exc
    return jsonify({"ok": True})


@main_bp.route("/api/notifications/read-all", methods=["POST"])
@login_required
def mark_all_notifications_read():
    try:
        updated = Notification.query.filter_by(user_id=current_user.id, read=False).update(
            {Notification.read: True}, synchronize_session=False
        )
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to mark notifications read", extra={"user_id": current_user.id})
        raise DependencyFailure() from exc
    return jsonify({"ok": True, "updated": updated})
