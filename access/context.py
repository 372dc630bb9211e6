"""
Per-request authorization context.

``AuthContext`` is resolved once from the bearer token and handed to the
view explicitly; predicates never touch ``flask.request``.
"""
from dataclasses import dataclass
from typing import FrozenSet, Optional

from access.tokens import decode_token
from errors import AuthenticationError, AuthorizationError
from models import db, User


@dataclass(frozen=True)
class AuthContext:
    user: User
    role_key: Optional[str]
    permissions: FrozenSet[str]
    is_verified: bool
    role_active: bool = True

    @classmethod
    def for_user(cls, user):
        role = user.role
        active = role is not None and bool(role.is_active)
        perms = frozenset(role.permission_keys) if active else frozenset()
        return cls(
            user=user,
            role_key=role.key if role is not None else None,
            permissions=perms,
            is_verified=bool(user.is_verified),
            role_active=active,
        )

    @property
    def user_id(self):
        return self.user.id

    def to_dict(self):
        return {
            'role': self.role_key,
            'permissions': sorted(self.permissions),
            'is_verified': self.is_verified,
        }


def resolve_context(token):
    claims = decode_token(token)
    try:
        user_id = int(claims.get('sub'))
    except (TypeError, ValueError):
        raise AuthenticationError('Invalid token')
    user = db.session.get(User, user_id)
    if user is None:
        raise AuthenticationError('Invalid token - user not found')
    return AuthContext.for_user(user)


# ---------- predicates ----------

def is_authenticated(ctx):
    return ctx is not None


def has_role(ctx, *roles):
    """An inactive role matches nothing."""
    return ctx is not None and ctx.role_active and ctx.role_key in roles


def has_permission(ctx, *keys):
    """True when the context holds ANY of ``keys``."""
    return ctx is not None and any(k in ctx.permissions for k in keys)


def is_verified(ctx):
    return ctx is not None and ctx.is_verified


# ---------- guards ----------

def require_authentication(ctx):
    if not is_authenticated(ctx):
        raise AuthenticationError('Authentication required')
    return ctx


def require_role(ctx, *roles):
    require_authentication(ctx)
    if not has_role(ctx, *roles):
        raise AuthorizationError('Insufficient permissions', payload={
            'required': list(roles),
            'current': ctx.role_key,
        })
    return ctx


def require_permission(ctx, *keys):
    require_authentication(ctx)
    if ctx.role_key is None:
        raise AuthorizationError('User has no role assigned')
    if not has_permission(ctx, *keys):
        raise AuthorizationError('Insufficient permissions', payload={
            'required': list(keys),
            'user_permissions': sorted(ctx.permissions),
        })
    return ctx


def require_verification(ctx):
    require_authentication(ctx)
    if not ctx.is_verified:
        raise AuthorizationError('Account verification required')
    return ctx
