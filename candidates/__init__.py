from .routes import candidates_bp
