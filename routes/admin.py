"""Administrative endpoints."""
from flask import Blueprint, jsonify
from flask_login import current_user

from models import User
from utils.accounts import assign_roles
from utils.decorators import roles_required
from utils.errors import InvalidInput
from utils.forms import json_body

admin_bp = Blueprint("admin", __name__)


@admin_bp.route("/users", methods=["GET"])
@roles_required("admin")
def list_users():
    users = User.query.order_by(User.created_at.desc()).all()
    return jsonify({"items": [dict(user.profile_payload(), isActive=user.is_active) for user in users]})


@admin_bp.route("/users/<user_id>/roles", methods=["POST"])
@roles_required("admin")
def set_roles(user_id):
    roles = json_body().get("roles")
    if not isinstance(roles, list) or not all(isinstance(role, str) for role in roles):
        raise InvalidInput("roles must be a list of role names")
    user = assign_roles(current_user._get_current_object(), user_id, roles)
    return jsonify({"ok": True, "roles": sorted(user.role_names)})
