from functools import wraps

from flask import request

from access.context import (
    require_authentication,
    require_permission,
    require_role,
    require_verification,
    resolve_context,
)
from access.tokens import get_token_from_header
from errors import AuthenticationError


def authorize(permissions=(), roles=(), verified=False):
    """
    Gate a view behind a bearer token and pass the resolved ``auth``
    context as a keyword argument.

    ``permissions``: caller needs ANY of them.
    ``roles``: caller's role must be one of them.
    ``verified``: caller's account must be verified.
    """
    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            token = get_token_from_header(request)
            if not token:
                raise AuthenticationError('Access token required')
            auth = require_authentication(resolve_context(token))
            if roles:
                require_role(auth, *roles)
            if permissions:
                require_permission(auth, *permissions)
            if verified:
                require_verification(auth)
            return view(*args, auth=auth, **kwargs)
        return wrapper
    return decorator


login_required = authorize()
