import logging

from flask import current_app

from access.tokens import REFRESH, decode_token, generate_access_token, generate_refresh_token
from errors import AuthenticationError, AuthorizationError, ConflictError, NotFoundError, ValidationError
from models import db, Candidate, Committee, Election, Role, User, Vote
from services import atomic
from utils.helpers import commit, parse_bool, require_fields, require_str

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def _normalize_email(email):
    email = require_str(email, 'email').lower()
    if '@' not in email:
        raise ValidationError("A valid email is required")
    return email


def _check_password(password):
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")


def get_role(key):
    role = Role.query.filter_by(key=key).first()
    if role is None:
        raise ValidationError(f"Unknown role '{key}'")
    return role


def get_user(user_id):
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def list_users(is_verified=None):
    q = User.query
    if is_verified is not None:
        q = q.filter(User.is_verified.is_(is_verified))
    return q.order_by(User.created_at.desc(), User.id.desc()).all()


def list_unverified_users():
    return list_users(is_verified=False)


@atomic
def create_user(email, password, role_key=None, is_verified=False):
    require_fields({'email': email, 'password': password}, 'email', 'password')
    email = _normalize_email(email)
    _check_password(password)
    if User.query.filter_by(email=email).first():
        raise ConflictError("Email already exists")

    user = User(
        email=email,
        role=get_role(role_key or current_app.config['DEFAULT_ROLE']),
        is_verified=bool(is_verified),
    )
    user.set_password(password)
    db.session.add(user)
    commit("Email already exists")
    logger.info("Created user %s (%s) with role %s", user.id, user.email, user.role.key)
    return user


def register(email, password):
    """Self sign-up: default role, unverified until an admin verifies."""
    return create_user(email, password, is_verified=False)


def issue_tokens(user):
    return {
        'access_token': generate_access_token(user),
        'refresh_token': generate_refresh_token(user),
        'token_type': 'Bearer',
    }


def authenticate(email, password):
    require_fields({'email': email, 'password': password}, 'email', 'password')
    user = User.query.filter_by(email=require_str(email, 'email').lower()).first()
    if user is None or not user.check_password(password):
        raise AuthenticationError("Invalid credentials")
    if not user.is_verified:
        raise AuthorizationError("Account not verified. Please wait for admin verification.")
    logger.info("User %s logged in", user.id)
    return user, issue_tokens(user)


def refresh(refresh_token):
    if not refresh_token:
        raise ValidationError("refresh_token is required")
    claims = decode_token(refresh_token, expected_type=REFRESH)
    try:
        user = db.session.get(User, int(claims.get('sub')))
    except (TypeError, ValueError):
        user = None
    if user is None:
        raise AuthenticationError("Invalid token - user not found")
    if not user.is_verified:
        raise AuthorizationError("Account not verified. Please wait for admin verification.")
    return user, issue_tokens(user)


@atomic
def update_user(user_id, email=None, password=None, role_key=None, is_verified=None):
    user = get_user(user_id)
    if email is not None:
        email = _normalize_email(email)
        other = User.query.filter(User.email == email, User.id != user.id).first()
        if other:
            raise ConflictError("Email already exists")
        user.email = email
    if password is not None:
        _check_password(password)
        user.set_password(password)
    if role_key is not None:
        user.role = get_role(role_key)
    if is_verified is not None:
        user.is_verified = parse_bool(is_verified, 'is_verified')
    commit("Email already exists")
    logger.info("Updated user %s", user.id)
    return user


@atomic
def verify_user(user_id, is_verified):
    if is_verified is None:
        raise ValidationError("is_verified must be a boolean value")
    user = get_user(user_id)
    user.is_verified = parse_bool(is_verified, 'is_verified')
    commit()
    logger.info("User %s verification set to %s", user.id, user.is_verified)
    return user


@atomic
def delete_user(user_id):
    user = get_user(user_id)
    if (Vote.query.filter_by(member_id=user.id).first()
            or Candidate.query.filter_by(user_id=user.id).first()):
        raise ValidationError("Cannot delete user referenced by votes or candidacies")
    if user.committee_id is not None:
        raise ValidationError("Remove the user from their committee before deleting")
    if (Committee.query.filter_by(created_by_id=user.id).first()
            or Election.query.filter_by(created_by_id=user.id).first()):
        raise ValidationError("Cannot delete user who created committees or elections")

    db.session.delete(user)
    commit()
    logger.info("Deleted user %s", user_id)


def ensure_admin(email, password):
    """Create a verified admin unless the email is already taken. Returns (user, created)."""
    existing = User.query.filter_by(email=_normalize_email(email)).first()
    if existing is not None:
        return existing, False
    return create_user(email, password, role_key='admin', is_verified=True), True
