from .routes import committees_bp
