# ==========================================================================================================
# -------------- Configuration file for the commission service ---------------------------------------------
# ==========================================================================================================
import os
from dotenv import load_dotenv


if os.environ.get("FLASK_ENV") != "production":
    load_dotenv()

basedir = os.path.abspath(os.path.dirname(__file__))


def _database_url():
    url = os.getenv("DATABASE_URL")
    if not url:
        url = f"sqlite:///{os.path.join(basedir, 'instance', 'commissions.db')}"

    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+pg8000://", 1)
    return url


class Config:

    SECRET_KEY = os.getenv("SECRET_KEY")
    FLASK_ENV = os.getenv("FLASK_ENV", "production")
    DEBUG = os.getenv("DEBUG", "False").lower() in ("true", "1", "t")

    SQLALCHEMY_DATABASE_URI = _database_url()
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 300,
    }
    if not SQLALCHEMY_DATABASE_URI.startswith("sqlite"):
        SQLALCHEMY_ENGINE_OPTIONS.update({"pool_size": 10, "max_overflow": 20})

    # Auth0 bearer tokens (RS256 via JWKS). Without a domain, HS256 with JWT_SECRET_KEY.
    AUTH0_DOMAIN = os.getenv("AUTH0_DOMAIN")
    AUTH0_AUDIENCE = os.getenv("AUTH0_AUDIENCE")
    AUTH0_CLIENT_ID = os.getenv("AUTH0_CLIENT_ID")
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")

    DEFAULT_DIRECT_COMMISSION = 10
    DEFAULT_LEVEL_COMMISSIONS = [5, 3, 1]
    COMMISSIONS_PAGE_LIMIT = 20
    COMMISSIONS_MAX_PAGE_LIMIT = 100

    LOG_DIR = os.getenv("LOG_DIR", "logs")
    LOG_TO_FILE = os.getenv("LOG_TO_FILE", "True").lower() in ("true", "1", "t")


class TestingConfig(Config):
    TESTING = True
    FLASK_ENV = "testing"
    SECRET_KEY = "test-secret-key"
    JWT_SECRET_KEY = "test-jwt-secret-for-the-commission-suite"
    AUTH0_DOMAIN = None
    AUTH0_AUDIENCE = None
    AUTH0_CLIENT_ID = None
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    LOG_TO_FILE = False
