import os
from flask import Flask
from werkzeug.exceptions import HTTPException, NotFound
from sqlalchemy.exc import IntegrityError

import auth  # noqa: F401  registers the Flask-Login loaders
from config import Config
from extensions import db, init_extensions
from logger import configure_app_logging
from commissions.errors import error_response, handle_db_error


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    if app.config.get("FLASK_ENV") == "production" and not app.config.get("SECRET_KEY"):
        raise ValueError("SECRET_KEY must be set in production")

    # ------------------------------------------------------------------------------------------
    # LOGGING
    # ------------------------------------------------------------------------------------------
    configure_app_logging(app)

    # ------------------------------------------------------------------------------------------
    # DATABASE URI Fix
    # ------------------------------------------------------------------------------------------
    database_uri = app.config.get("SQLALCHEMY_DATABASE_URI")
    if database_uri and database_uri.startswith("sqlite:///") and ":memory:" not in database_uri:
        os.makedirs(os.path.dirname(database_uri.replace("sqlite:///", "", 1)), exist_ok=True)

    # ------------------------------------------------------------------------------------------
    # Initialize extensions
    # ------------------------------------------------------------------------------------------
    init_extensions(app)

    register_blueprints(app)
    register_error_handlers(app)
    register_commands(app)

    @app.route("/healthz")
    def healthz():
        return {"status": "ok"}, 200

    app.logger.info(f"Commission service started ({app.config.get('FLASK_ENV')})")
    return app


def register_blueprints(app):
    from blueprints.commissions import bp as commissions_bp

    app.register_blueprint(commissions_bp)


def register_error_handlers(app):
    """Every error leaves the API as {message, error?} JSON."""

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        # Unmatched routes carry werkzeug's stock description
        if isinstance(e, NotFound) and e.description == NotFound.description:
            return error_response("Not found", 404)
        return error_response(e.description, e.code)

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(e):
        return handle_db_error(e, "database operation", db.session)

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        return handle_db_error(e, "request", db.session)


def register_commands(app):
    from cli import register_cli

    register_cli(app)


# ----------------------
# Local development
# ----------------------
if __name__ == "__main__":
    app = create_app()
    port = int(os.environ.get("PORT", 5000))
    app.run(debug=app.config.get("DEBUG", False), host="0.0.0.0", port=port)
