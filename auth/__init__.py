from .routes import auth_bp
