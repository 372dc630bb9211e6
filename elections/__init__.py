from .routes import elections_bp
