"""
Transactional business operations. Each public mutating function either
commits one transaction or raises an ``errors.ElectionError`` with the
session rolled back.
"""
from functools import wraps

from models import db


def atomic(func):
    """Roll the session back when the wrapped operation raises."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except Exception:
            db.session.rollback()
            raise
    return wrapper
