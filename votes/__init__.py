from .routes import votes_bp
