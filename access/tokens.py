"""
Bearer tokens (HS256 JWT via python-jose).

Claims: ``sub`` (user id as string), ``email``, ``role`` (role key),
``type`` (``access`` or ``refresh``), ``iat`` and ``exp``.
"""
from datetime import datetime, timedelta, timezone

from flask import current_app
from jose import ExpiredSignatureError, JWTError, jwt

from errors import AuthenticationError

ACCESS = 'access'
REFRESH = 'refresh'


def _encode(user, token_type, expires_delta):
    now = datetime.now(timezone.utc)
    claims = {
        'sub': str(user.id),
        'email': user.email,
        'role': user.role.key if user.role else None,
        'type': token_type,
        'iat': now,
        'exp': now + expires_delta,
    }
    return jwt.encode(
        claims,
        current_app.config['JWT_SECRET_KEY'],
        algorithm=current_app.config['JWT_ALGORITHM'],
    )


def generate_access_token(user):
    minutes = current_app.config['JWT_ACCESS_EXPIRES_MINUTES']
    return _encode(user, ACCESS, timedelta(minutes=minutes))


def generate_refresh_token(user):
    days = current_app.config['JWT_REFRESH_EXPIRES_DAYS']
    return _encode(user, REFRESH, timedelta(days=days))


def decode_token(token, expected_type=ACCESS):
    try:
        claims = jwt.decode(
            token,
            current_app.config['JWT_SECRET_KEY'],
            algorithms=[current_app.config['JWT_ALGORITHM']],
        )
    except ExpiredSignatureError as e:
        raise AuthenticationError('Token expired') from e
    except JWTError as e:
        raise AuthenticationError('Invalid token') from e

    if claims.get('type') != expected_type:
        raise AuthenticationError('Invalid token type')
    return claims


def peek_claims(token):
    """Claims of a valid access token, or None. Used for request logging only."""
    try:
        return decode_token(token)
    except AuthenticationError:
        return None


def get_token_from_header(req):
    header = req.headers.get('Authorization', '')
    if not header.startswith('Bearer '):
        return None
    token = header[len('Bearer '):].strip()
    return token or None
