# run_server.py
import os
import sys
import socket

# -------------------------------------------------
# Local IP, for the startup banner
# -------------------------------------------------
def get_local_ip():
    try:
        s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        s.connect(("8.8.8.8", 80))
        ip = s.getsockname()[0]
        s.close()
        return ip
    except OSError:
        return "127.0.0.1"

# -------------------------------------------------
# Paths (also when frozen by PyInstaller)
# -------------------------------------------------
def get_runtime_base_dir():
    if getattr(sys, "frozen", False):
        return os.path.dirname(sys.executable)
    return os.path.abspath(os.path.dirname(__file__))

BASE_DIR = get_runtime_base_dir()
INSTANCE_DIR = os.path.join(BASE_DIR, "instance")
os.makedirs(INSTANCE_DIR, exist_ok=True)

# -------------------------------------------------
# Environment read by config.py
# -------------------------------------------------
os.environ.setdefault("SECRET_KEY", "change-me-in-production")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{os.path.join(INSTANCE_DIR, 'elections.db')}")

from waitress import serve

from access.catalog import seed_roles_and_permissions
from app import create_app
from models import db
from services.users import ensure_admin

app = create_app()


def bootstrap_first_run():
    """Create tables, seed the role catalog and the default admin."""
    with app.app_context():
        db.create_all()
        seed_roles_and_permissions()
        user, created = ensure_admin(
            os.getenv("ADMIN_EMAIL", "admin@example.com"),
            os.getenv("ADMIN_PASSWORD", "admin123"),
        )
        if created:
            app.logger.info(f"Default admin created: {user.email}")


def run():
    port = app.config["PORT"]
    ip = get_local_ip()
    print("Starting election server...")
    print(f"   http://127.0.0.1:{port}")
    print(f"   or on the local network: http://{ip}:{port}")
    serve(app, host="0.0.0.0", port=port)

if __name__ == "__main__":
    bootstrap_first_run()
    run()
