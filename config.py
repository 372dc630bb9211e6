import os


def _database_url():
    db_url = os.environ.get('DATABASE_URL', 'sqlite:///voting_system.db')

    # Render / Heroku hand out postgres://, SQLAlchemy wants postgresql+psycopg://
    if db_url.startswith("postgres://"):
        db_url = db_url.replace("postgres://", "postgresql+psycopg://", 1)
    elif db_url.startswith("postgresql://") and not db_url.startswith("postgresql+psycopg://"):
        db_url = db_url.replace("postgresql://", "postgresql+psycopg://", 1)

    # Neon adds channel_binding, psycopg drops the connection with it
    if "channel_binding" in db_url:
        db_url = db_url.replace("&channel_binding=require", "")
    return db_url


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'supersecretkey123'
    SQLALCHEMY_DATABASE_URI = _database_url()
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 1800,
    }

    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY') or 'your-secret-key-change-in-production'
    JWT_ALGORITHM = 'HS256'
    JWT_ACCESS_EXPIRES_MINUTES = int(os.environ.get('JWT_ACCESS_EXPIRES_MINUTES', 60 * 24))
    JWT_REFRESH_EXPIRES_DAYS = int(os.environ.get('JWT_REFRESH_EXPIRES_DAYS', 7))

    DEFAULT_ROLE = os.environ.get('DEFAULT_ROLE', 'member')

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_OPERATIONS = os.environ.get('LOG_OPERATIONS', 'true').lower() == 'true'
    PORT = int(os.environ.get('PORT', 5000))


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret-key'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    JWT_SECRET_KEY = 'test-jwt-secret-key'
    LOG_LEVEL = 'WARNING'
