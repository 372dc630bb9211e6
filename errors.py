"""
Error kinds raised by the election services and rendered by the HTTP layer.

Every error carries a human readable ``message``, the HTTP ``status_code`` it
maps to, and an optional ``payload`` dict merged into the JSON response
(e.g. the conflicting election, the offending member ids).
"""


class ElectionError(Exception):
    status_code = 500

    def __init__(self, message, payload=None):
        super().__init__(message)
        self.message = message
        self.payload = payload or {}

    def to_dict(self):
        data = dict(self.payload)
        data['message'] = self.message
        return data


class ValidationError(ElectionError):
    """Missing or malformed input, or a violated business rule."""
    status_code = 400


class IntegrityViolation(ValidationError):
    """Cross-entity rule broken at flush time (candidate/vote coherence)."""


class ConflictError(ElectionError):
    """Uniqueness violation: the record already exists."""
    status_code = 409


class NotFoundError(ElectionError):
    status_code = 404


class AuthorizationError(ElectionError):
    """Insufficient role/permission or unverified account."""
    status_code = 403


class AuthenticationError(AuthorizationError):
    """Missing, malformed or expired credential."""
    status_code = 401


class StorageError(ElectionError):
    status_code = 500
