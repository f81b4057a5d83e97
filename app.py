"""Flask application factory for the Fire NOC service."""
import os
from typing import Optional

from dotenv import load_dotenv
from flask import Flask, jsonify, request
from sqlalchemy import create_engine, text
from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from werkzeug.exceptions import HTTPException

from extensions import db, login_manager, migrate
from utils.errors import WorkflowError
from utils.logger import init_logging
from utils.security import apply_security_headers, bearer_token_from_header, resolve_token_subject


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(WorkflowError)
    def workflow_error(error: WorkflowError):
        log = app.logger.warning if error.status_code < 500 else app.logger.error
        log(
            f"{error.status_code} {type(error).__name__}",
            extra={"path": request.path, "method": request.method, "error": error.message},
        )
        return jsonify(error.to_payload()), error.status_code

    @app.errorhandler(HTTPException)
    def http_error(error: HTTPException):
        app.logger.warning(
            f"{error.code} {error.name}",
            extra={"path": request.path, "method": request.method},
        )
        return jsonify({"error": error.name}), error.code

    @app.errorhandler(Exception)
    def internal_error(error):
        app.logger.exception("500 Internal Server Error", extra={"path": request.path})
        return jsonify({"error": "Internal server error"}), 500


def ensure_default_admin(app: Flask) -> None:
    """Ensure a default admin can obtain a token without registering."""
    from models import User, UserRole  # Local import to avoid circular dependency

    admin_email = (app.config.get("DEFAULT_ADMIN_EMAIL") or "").lower().strip()
    admin_password = app.config.get("DEFAULT_ADMIN_PASSWORD") or ""
    if not admin_email or not admin_password:
        return

    admin_user = User.query.filter_by(email=admin_email).first()
    if admin_user is None:
        admin_user = User(full_name="System Administrator", email=admin_email, is_active=True)
        admin_user.set_password(admin_password)
        db.session.add(admin_user)
    elif not admin_user.is_active:
        admin_user.is_active = True
    if "admin" not in {assignment.role for assignment in admin_user.roles}:
        admin_user.roles.append(UserRole(role="admin"))
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        app.logger.exception("Default admin bootstrap failed")


def ensure_database_exists(database_uri: str) -> None:
    """Create the target database if it does not exist (PostgreSQL + SQLite support)."""
    url = make_url(database_uri)

    if url.drivername.startswith("sqlite"):
        # For file databases just make sure the parent directory exists.
        if url.database and url.database != ":memory:":
            os.makedirs(os.path.dirname(url.database) or ".", exist_ok=True)
        return

    if url.drivername.startswith("postgres"):
        db_name = url.database
        admin_url = url.set(database=os.getenv("POSTGRES_DB_ADMIN", "postgres"))
        engine = create_engine(admin_url, isolation_level="AUTOCOMMIT")
        try:
            with engine.connect() as conn:
                exists = conn.execute(
                    text("SELECT 1 FROM pg_database WHERE datname = :name"), {"name": db_name}
                ).scalar()
                if not exists:
                    conn.execute(text(f'CREATE DATABASE "{db_name}"'))
        except OperationalError:
            # If we cannot connect/create, let the normal app startup fail loudly later.
            pass
        finally:
            engine.dispose()


def create_app(config_name: Optional[str] = None) -> Flask:
    """Application factory with environment-aware configuration."""
    load_dotenv()

    app = Flask(__name__, instance_relative_config=True)

    from config import DevelopmentConfig, ProductionConfig, TestingConfig

    config_key = (config_name or os.getenv("FLASK_CONFIG") or os.getenv("FLASK_ENV") or "production").lower()
    config_map = {
        "development": DevelopmentConfig,
        "dev": DevelopmentConfig,
        "testing": TestingConfig,
        "test": TestingConfig,
        "production": ProductionConfig,
        "prod": ProductionConfig,
    }
    config_class = config_map.get(config_key, ProductionConfig)
    app.config.from_object(config_class())

    ensure_database_exists(app.config["SQLALCHEMY_DATABASE_URI"])

    # Optional instance-specific overrides
    if not app.testing:
        app.config.from_pyfile("config.py", silent=True)
        os.makedirs(app.instance_path, exist_ok=True)

    app.logger = init_logging(app)

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    login_manager.session_protection = None

    @login_manager.request_loader
    def load_user_from_request(req):
        from models import User  # Local import to avoid circular dependency

        user_id = resolve_token_subject(bearer_token_from_header(req.headers.get("Authorization")))
        if not user_id:
            return None
        user = db.session.get(User, user_id)
        if user is None or not user.is_active:
            return None
        return user

    @login_manager.unauthorized_handler
    def unauthorized():
        app.logger.info("401 Unauthorized", extra={"path": request.path, "method": request.method})
        return jsonify({"error": "Unauthorized"}), 401

    from routes import admin_bp, applications_bp, auth_bp, grievances_bp, main_bp, verification_bp, workflow_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(applications_bp, url_prefix="/api/applications")
    app.register_blueprint(workflow_bp, url_prefix="/api/workflow")
    app.register_blueprint(verification_bp, url_prefix="/api")
    app.register_blueprint(grievances_bp, url_prefix="/api/grievances")
    app.register_blueprint(admin_bp, url_prefix="/api/admin")

    register_error_handlers(app)

    @app.after_request
    def _after_request(response):
        return apply_security_headers(response, force_https=app.config.get("PREFERRED_URL_SCHEME") == "https")

    # Ensure tables exist so first run creates the database structure automatically.
    with app.app_context():
        db.create_all()
        ensure_default_admin(app)

    return app
