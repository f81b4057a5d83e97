"""Authorization decorators for role-based access control."""
from functools import wraps

from flask import current_app, request
from flask_login import current_user, login_required
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from utils.audit import log_action
from utils.errors import Forbidden


def roles_required(*roles):
    """Gate a view on the caller holding at least one of ``roles``.

    Missing or invalid credentials are rejected by ``login_required`` (401)
    before any role lookup happens; a valid caller without a matching role
    gets 403 and an ``UNAUTHORIZED_ACCESS`` audit entry.
    """
    allowed = {r.lower() for r in roles}

    def decorator(view_func):
        @wraps(view_func)
        @login_required
        def wrapped(*args, **kwargs):
            held = current_user.role_names
            if held & allowed:
                return view_func(*args, **kwargs)

            current_app.logger.warning(
                "Unauthorized role access attempt",
                extra={"user_id": current_user.id, "roles": sorted(held), "path": request.path},
            )
            try:
                log_action(
                    "UNAUTHORIZED_ACCESS",
                    current_user,
                    details={"path": request.path, "required": sorted(allowed)},
                )
                db.session.commit()
            except SQLAlchemyError:
                db.session.rollback()
                current_app.logger.exception("Failed to record unauthorized access attempt")
            raise Forbidden()

        return wrapped

    return decorator
