# utils/helpers.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Tuple

from flask import request
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from access.tokens import get_token_from_header, peek_claims
from errors import ConflictError, ElectionError, StorageError, ValidationError
from models import db, OperationLog, utcnow

# --------------------------------------------------
# 🔧 Input coercion
# --------------------------------------------------
def require_fields(data: Dict[str, Any], *fields: str) -> None:
    """
    Raise ValidationError naming every missing field, e.g.
    "name and description are required".
    """
    missing = [f for f in fields if data.get(f) in (None, "")]
    if not missing:
        return
    if len(missing) == 1:
        names = missing[0]
    else:
        names = ", ".join(missing[:-1]) + " and " + missing[-1]
    raise ValidationError(f"{names} {'is' if len(missing) == 1 else 'are'} required")


def parse_datetime(value: Any, field: str) -> datetime:
    """
    Accept a datetime or an ISO-8601 string; return naive UTC.
    Offset-aware values are converted, naive ones are taken as UTC.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value.strip():
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(raw)
        except ValueError:
            raise ValidationError(f"{field} must be an ISO-8601 datetime")
    else:
        raise ValidationError(f"{field} must be an ISO-8601 datetime")

    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def parse_bool(value: Any, field: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return value.lower() == "true"
    raise ValidationError(f"{field} must be a boolean value")


def require_str(value: Any, field: str) -> str:
    """Stripped string value; anything else is a ValidationError."""
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    return value.strip()


def coerce_id(value: Any, field: str) -> int:
    """
    Integer id from an int, an integral float or a digit string.
    1.9 or "1.5" is rejected, never truncated.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer id")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise ValidationError(f"{field} must be an integer id")


def coerce_ids(values: Iterable[Any] | None, field: str) -> List[int]:
    """Integer ids, de-duplicated, first occurrence order kept."""
    if values is None:
        return []
    if isinstance(values, (str, bytes)) or not isinstance(values, (list, tuple, set)):
        raise ValidationError(f"{field} must be a list of ids")
    seen: List[int] = []
    for v in values:
        i = coerce_id(v, field)
        if i not in seen:
            seen.append(i)
    return seen

# --------------------------------------------------
# 💾 Commit with storage error mapping
# --------------------------------------------------
def commit(conflict_message: str = "Record already exists") -> None:
    """
    Commit the current transaction. Unique-index violations become
    ConflictError(conflict_message); any other storage failure becomes
    StorageError. The session is rolled back on every failure.
    """
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        raise ConflictError(conflict_message) from e
    except ElectionError:
        db.session.rollback()
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        raise StorageError("Storage error") from e

# --------------------------------------------------
# 📝 Operation log
# --------------------------------------------------
METHOD_LABELS = {
    "GET": "View",
    "POST": "Submit",
    "PUT": "Update",
    "DELETE": "Delete",
    "PATCH": "Modify",
}

ENDPOINT_LABELS = {
    # auth
    "auth.signup": "Sign up",
    "auth.login": "Log in",
    "auth.logout": "Log out",
    "auth.refresh": "Refresh token",
    "auth.verify_user": "Verify user",

    # users
    "admin_users.create_user": "Create user",
    "admin_users.update_user": "Update user",
    "admin_users.delete_user": "Delete user",

    # committees
    "committees.create_committee": "Create committee",
    "committees.update_committee": "Update committee",
    "committees.deactivate_committee": "Deactivate committee",
    "committees.delete_committee": "Delete committee",
    "committees.add_member": "Add committee member",
    "committees.remove_member": "Remove committee member",

    # elections
    "elections.create_election": "Create election",
    "elections.update_election": "Update election",
    "elections.delete_election": "Delete election",
    "elections.start_election": "Start election",
    "elections.close_election": "Close election",

    # candidates
    "candidates.create_candidate": "Register candidate",
    "candidates.update_candidate": "Update candidate",
    "candidates.delete_candidate": "Delete candidate",

    # votes
    "votes.cast_vote": "Cast vote",
}

SENSITIVE_KEYS = {"password", "new_password", "refresh_token", "token"}


def _sanitize_dict(d: Dict[str, Any]) -> Dict[str, Any]:
    if not d or not isinstance(d, dict):
        return {}
    return {k: ("***" if k.lower() in SENSITIVE_KEYS else v) for k, v in d.items()}


def describe_request(req) -> str:
    """
    Render the request as a readable action string, with secrets masked.
    Ballot contents are never written to the log.
    """
    method = METHOD_LABELS.get(req.method, req.method)
    endpoint = (req.endpoint or "").strip()

    base = ENDPOINT_LABELS.get(endpoint)
    if base:
        action = f"{base} ({method})"
    else:
        action = f"{method} {req.path}"

    if req.method in ("POST", "PUT", "PATCH", "DELETE") and endpoint != "votes.cast_vote":
        json_data = _sanitize_dict(req.get_json(silent=True) or {})
        if json_data:
            action += f" | JSON: {json_data}"

    return action[:1024]


def add_log(user_type: str, user_id: int | None, action: str, status_code: int | None = None) -> None:
    log = OperationLog(
        user_type=user_type,
        user_id=user_id,
        action=action,
        status_code=status_code,
        ip_address=request.remote_addr if request else None,
        timestamp=utcnow(),
    )
    db.session.add(log)
    db.session.commit()


def get_request_user(req) -> Tuple[str, int | None]:
    """
    Identify the caller from the bearer token claims (no DB lookup).
    Anything unreadable is logged as a guest.
    """
    token = get_token_from_header(req)
    claims = peek_claims(token) if token else None
    if not claims:
        return "guest", None
    try:
        user_id = int(claims.get("sub"))
    except (TypeError, ValueError):
        return "guest", None
    return claims.get("role") or "user", user_id


def should_log_request(req, exclude_prefixes=("/static",), exclude_endpoints: set[str] | None = None) -> bool:
    """
    Only state-changing requests (POST/PUT/PATCH/DELETE) are recorded.
    """
    if req.method not in ("POST", "PUT", "DELETE", "PATCH"):
        return False
    if any(req.path.startswith(p) for p in exclude_prefixes):
        return False
    if exclude_endpoints and req.endpoint in exclude_endpoints:
        return False
    return True
