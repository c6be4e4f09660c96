# Overview: Admin-only staff account management.

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_auth, require_role
from ..errors import DomainError, domain_error_response
from ..models.auth import ROLE_ADMIN
from ..services import auth_service
from ..validation import ValidationError, normalize_keys


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_role(ROLE_ADMIN)
def list_users_route():
    users = auth_service.list_users()
    return jsonify({"items": [u.to_dict() for u in users], "count": len(users)}), 200


@users_bp.post("")
@require_auth
@require_role(ROLE_ADMIN)
def create_user_route():
    data = normalize_keys(request.get_json(silent=True) or {})
    try:
        user = auth_service.create_user(
            username=data.get("username"),
            email=data.get("email"),
            password=data.get("password"),
            role=data.get("role") or "cashier",
        )
        return jsonify(user.to_dict()), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.patch("/<user_id>")
@require_auth
@require_role(ROLE_ADMIN)
def update_user_route(user_id: str):
    data = normalize_keys(request.get_json(silent=True) or {})
    unknown = sorted(set(data) - {"role", "is_active", "email", "password"})
    if unknown:
        return jsonify({"error": f"Field not allowed: {unknown[0]}"}), 400
    if "is_active" in data and not isinstance(data["is_active"], bool):
        return jsonify({"error": "is_active must be a boolean"}), 400

    try:
        user = auth_service.update_user(
            user_id,
            role=data.get("role"),
            is_active=data.get("is_active"),
            email=data.get("email"),
            password=data.get("password"),
        )
        return jsonify(user.to_dict()), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except DomainError as e:
        return domain_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update user")
        return jsonify({"error": "Internal server error"}), 500
