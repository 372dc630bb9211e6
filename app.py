import logging
import os

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from config import Config
from errors import ElectionError
from models import db, migrate
from utils.helpers import (
    add_log,
    describe_request,
    get_request_user,
    should_log_request
)

# -------------------------------------------------
# Silence werkzeug access lines for noisy paths
# -------------------------------------------------
def silence_werkzeug(noisy_paths=None):
    if noisy_paths is None:
        noisy_paths = ("/healthz", "/favicon.ico")

    class EndpointFilter(logging.Filter):
        def __init__(self, paths):
            super().__init__()
            self.paths = paths

        def filter(self, record: logging.LogRecord) -> bool:
            try:
                msg = record.getMessage()
            except Exception:
                return True
            return not any(p in msg for p in self.paths)

    wlog = logging.getLogger("werkzeug")
    wlog.addFilter(EndpointFilter(noisy_paths))
    for h in wlog.handlers:
        h.addFilter(EndpointFilter(noisy_paths))


def configure_logging(app):
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    app.logger.setLevel(level)
    silence_werkzeug()


# -------------------------------------------------
# Error handlers: every ElectionError becomes JSON
# -------------------------------------------------
def register_error_handlers(app):
    @app.errorhandler(ElectionError)
    def handle_election_error(e):
        if e.status_code >= 500:
            app.logger.error(f"{request.method} {request.path} failed: {e.message}", exc_info=e)
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({"message": e.description}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        db.session.rollback()
        app.logger.exception(f"Unhandled error on {request.method} {request.path}")
        return jsonify({"message": "Internal server error"}), 500


# -------------------------------------------------
# Operation log for mutating requests
# -------------------------------------------------
EXCLUDE_PREFIXES = ("/static", "/healthz")
EXCLUDE_ENDPOINTS = set()


def register_operation_log(app):
    @app.after_request
    def auto_log_mutating_requests(response):
        if not app.config.get("LOG_OPERATIONS", True):
            return response
        if not should_log_request(request, exclude_prefixes=EXCLUDE_PREFIXES, exclude_endpoints=EXCLUDE_ENDPOINTS):
            return response
        user_type, user_id = get_request_user(request)
        action = describe_request(request)
        try:
            add_log(user_type, user_id, action, response.status_code)
        except Exception as e:
            db.session.rollback()
            app.logger.warning(f"Could not write operation log: {e}")
        return response


# -------------------------------------------------
# CLI commands
# -------------------------------------------------
def register_commands(app):
    @app.cli.command("init-db")
    def init_db_command():
        """Create all tables and seed the role catalog."""
        from access.catalog import seed_roles_and_permissions

        db.create_all()
        seed_roles_and_permissions()
        print("Database initialized")

    @app.cli.command("seed-roles")
    def seed_roles_command():
        """Upsert the built-in permissions and roles."""
        from access.catalog import seed_roles_and_permissions

        permissions, roles = seed_roles_and_permissions()
        print(f"Seeded {len(permissions)} permissions, roles: {', '.join(r.key for r in roles)}")

    @app.cli.command("init-admin")
    def init_admin_command():
        """Create the default verified admin (ADMIN_EMAIL / ADMIN_PASSWORD)."""
        from services.users import ensure_admin

        email = os.getenv("ADMIN_EMAIL", "admin@example.com")
        user, created = ensure_admin(email, os.getenv("ADMIN_PASSWORD", "admin123"))
        if created:
            print(f'Admin account "{user.email}" created')
        else:
            print(f'Admin account "{user.email}" already exists')


# -------------------------------------------------
# App factory
# -------------------------------------------------
def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)
    configure_logging(app)

    db.init_app(app)
    migrate.init_app(app, db)

    from admin import admin_bp, admin_users_bp
    from auth import auth_bp
    from candidates import candidates_bp
    from committees import committees_bp
    from elections import elections_bp
    from votes import votes_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(admin_users_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(committees_bp)
    app.register_blueprint(elections_bp)
    app.register_blueprint(candidates_bp)
    app.register_blueprint(votes_bp)

    # health check for the hosting platform
    @app.route("/healthz")
    def healthz():
        return "OK", 200

    register_error_handlers(app)
    register_operation_log(app)
    register_commands(app)
    return app


if __name__ == '__main__':
    app = create_app()
    app.run(host="0.0.0.0", port=app.config["PORT"], debug=False)
