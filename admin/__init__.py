from flask import Blueprint

# /admin
admin_bp = Blueprint('admin', __name__, url_prefix='/admin')

from .logs import admin_logs_bp
from .users import admin_users_bp

admin_bp.register_blueprint(admin_logs_bp)
