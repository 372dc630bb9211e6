# admin/users.py
from flask import Blueprint, jsonify, request

from access import catalog
from access.context import require_permission
from access.decorators import authorize
from services import users as user_service
from utils.helpers import parse_bool

admin_users_bp = Blueprint("admin_users", __name__, url_prefix="/users")


# ----------------------
# Account list
# ----------------------
@admin_users_bp.route("", methods=["GET"])
@authorize(permissions=(catalog.VIEW_USERS,))
def list_users(auth):
    verified = request.args.get("is_verified")
    users = user_service.list_users(
        is_verified=parse_bool(verified, "is_verified") if verified is not None else None
    )
    return jsonify({"users": [u.to_dict() for u in users], "count": len(users)})


@admin_users_bp.route("/<int:user_id>", methods=["GET"])
@authorize(permissions=(catalog.VIEW_USERS,))
def get_user(user_id, auth):
    return jsonify({"user": user_service.get_user(user_id).to_dict()})


# ----------------------
# Create account
# ----------------------
@admin_users_bp.route("", methods=["POST"])
@authorize(permissions=(catalog.CREATE_USER,))
def create_user(auth):
    data = request.get_json(silent=True) or {}
    user = user_service.create_user(
        data.get("email"),
        data.get("password"),
        role_key=data.get("role"),
        is_verified=parse_bool(data.get("is_verified", False), "is_verified"),
    )
    return jsonify({"message": "User created successfully", "user": user.to_dict()}), 201


# ----------------------
# Edit account
# ----------------------
@admin_users_bp.route("/<int:user_id>", methods=["PATCH", "PUT"])
@authorize(permissions=(catalog.EDIT_USER,))
def update_user(user_id, auth):
    data = request.get_json(silent=True) or {}
    if data.get("role") is not None:
        # role changes also need manage_user_roles
        require_permission(auth, catalog.MANAGE_USER_ROLES)
    user = user_service.update_user(
        user_id,
        email=data.get("email"),
        password=data.get("password"),
        role_key=data.get("role"),
        is_verified=data.get("is_verified"),
    )
    return jsonify({"message": "User updated successfully", "user": user.to_dict()})


# ----------------------
# Delete account
# ----------------------
@admin_users_bp.route("/<int:user_id>", methods=["DELETE"])
@authorize(permissions=(catalog.DELETE_USER,))
def delete_user(user_id, auth):
    user_service.delete_user(user_id)
    return jsonify({"message": "User deleted successfully"})
