"""Account maintenance: self-service deletion and role assignment."""
from datetime import datetime
from typing import Iterable, List

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models import (
    APP_ROLES,
    NOC,
    Application,
    ApplicationStatusHistory,
    AuditLog,
    Building,
    Grievance,
    Inspection,
    Notification,
    User,
    UserRole,
)
from utils.audit import log_action
from utils.errors import Conflict, DependencyFailure, InvalidInput, NotFound

# Applications in these states carry no issued record and go with the account.
DISPOSABLE_STATUSES = ("draft", "submitted", "under_review", "inspection_scheduled", "rejected")


def delete_account(user: User) -> bool:
    """Remove the caller's data. Returns True when the user row itself was deleted.

    Applications that reached an issued or decided-on-record state are kept;
    in that case the account is anonymized and deactivated instead.
    """
    user_id = user.id
    try:
        disposable: List[Application] = Application.query.filter(
            Application.applicant_id == user_id,
            Application.status.in_(DISPOSABLE_STATUSES),
        ).all()
        disposable_ids = [application.id for application in disposable]
        building_ids = {application.building_id for application in disposable}

        if disposable_ids:
            Grievance.query.filter(
                Grievance.application_id.in_(disposable_ids),
                Grievance.submitted_by != user_id,
            ).update({Grievance.application_id: None}, synchronize_session=False)
            Grievance.query.filter(
                Grievance.application_id.in_(disposable_ids),
                Grievance.submitted_by == user_id,
            ).delete(synchronize_session=False)
        for application in disposable:
            db.session.delete(application)
        db.session.flush()

        for building in Building.query.filter(Building.owner_id == user_id).all():
            in_use = (
                building.applications.count()
                or Inspection.query.filter_by(building_id=building.id).count()
                or NOC.query.filter_by(building_id=building.id).count()
            )
            if not in_use:
                db.session.delete(building)

        Grievance.query.filter_by(submitted_by=user_id).delete(synchronize_session=False)
        Notification.query.filter_by(user_id=user_id).delete(synchronize_session=False)
        UserRole.query.filter_by(user_id=user_id).delete(synchronize_session=False)
        AuditLog.query.filter_by(user_id=user_id).update({AuditLog.user_id: None}, synchronize_session=False)
        ApplicationStatusHistory.query.filter_by(changed_by=user_id).update(
            {ApplicationStatusHistory.changed_by: None}, synchronize_session=False
        )
        db.session.expire(user, ["roles"])

        retained = (
            Application.query.filter_by(applicant_id=user_id).count()
            or Inspection.query.filter_by(officer_id=user_id).count()
            or NOC.query.filter_by(issued_by=user_id).count()
            or Building.query.filter_by(owner_id=user_id).count()
        )
        if retained:
            user.full_name = "Deleted User"
            user.email = f"deleted-{user_id}@invalid"
            user.phone = None
            user.organization = None
            user.is_active = False
            user.set_password(f"deleted-{user_id}-{datetime.utcnow().timestamp()}")
            deleted = False
        else:
            db.session.delete(user)
            deleted = True
        log_action(
            "ACCOUNT_DELETED",
            None,
            entity_type="user",
            entity_id=user_id,
            details={"applicationsRemoved": len(disposable_ids), "anonymized": not deleted},
        )
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Account deletion failed", extra={"user_id": user_id})
        raise DependencyFailure("Account could not be deleted") from exc

    current_app.logger.info(
        "Account deleted",
        extra={"user_id": user_id, "applications_removed": len(disposable_ids), "anonymized": not deleted},
    )
    return deleted


def assign_roles(actor: User, user_id: str, roles: Iterable[str]) -> User:
    """Replace a user's role set."""
    requested = {str(role).strip().lower() for role in roles or [] if str(role).strip()}
    unknown = requested - set(APP_ROLES)
    if unknown:
        raise InvalidInput(f"Unknown roles: {', '.join(sorted(unknown))}")

    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound("User not found")

    if user.id == actor.id and user.is_admin and "admin" not in requested:
        raise Conflict("Administrators cannot remove their own admin role")

    previous = sorted(user.role_names)
    try:
        for assignment in list(user.roles):
            if assignment.role not in requested:
                user.roles.remove(assignment)
        held = {assignment.role for assignment in user.roles}
        for role in sorted(requested - held):
            user.roles.append(UserRole(role=role, assigned_by=actor.id))
        log_action(
            "ROLES_ASSIGNED",
            actor,
            entity_type="user",
            entity_id=user.id,
            details={"previous": previous, "roles": sorted(requested)},
        )
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Role assignment failed", extra={"user_id": user_id})
        raise DependencyFailure("Roles could not be saved") from exc

    current_app.logger.info("Roles assigned", extra={"user_id": user.id, "roles": sorted(requested)})
    return user
