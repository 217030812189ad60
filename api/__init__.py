import atexit
from datetime import timedelta

from flask import Flask
from flasgger import Swagger
from flask_cors import CORS

from .config import get_config
from .errors import register_error_handlers
from models import storage  # DBStorage singleton (scoped_session)
from services.account_service import AccountService
from services.cleanup import TokenCleanupJob
from services.identity import UserDirectory
from services.session_manager import SessionManager
from services.token_store import SqlRefreshTokenStore
from utils.security import TokenCodec, TokenSettings, utc_now

# Minimal Swagger config: exposes /swagger.json and UI at /apidocs
SWAGGER_TEMPLATE = {
    "swagger": "2.0",
    "info": {
        "title": "Productivity API - Authentication",
        "version": "1.0.0",
        "description": "JWT login, refresh-token rotation, logout and account recovery.",
    },
    "basePath": "/",  # blueprints are mounted under /api/v1
    "schemes": ["http"],
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": "Enter the token with the `Bearer ` prefix, e.g. \"Bearer abcde12345\"."
        }
    }
}

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec_1",
            "route": "/swagger.json",
            "rule_filter": lambda rule: True,   # include all endpoints
            "model_filter": lambda tag: True,   # include all models
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/apidocs/",
}


def init_session_core(app: Flask, clock=utc_now) -> SessionManager:
    """
    Build the session core once from app config and park it in app.extensions:
    - session_manager: SessionManager (TokenCodec + SQL refresh-token store)
    - account_service: registration / password reset
    - token_cleanup: the scheduled expired-token sweep (started if enabled)
    """
    codec = TokenCodec(TokenSettings.from_config(app.config), clock=clock)
    directory = UserDirectory(storage)
    manager = SessionManager(codec, SqlRefreshTokenStore(storage), directory)
    accounts = AccountService(
        storage,
        directory,
        manager,
        reset_ttl=timedelta(seconds=app.config["PASSWORD_RESET_TTL_SECONDS"]),
    )
    cleanup = TokenCleanupJob(manager, storage=storage, hour=app.config["TOKEN_CLEANUP_CRON_HOUR"])

    app.extensions["session_manager"] = manager
    app.extensions["account_service"] = accounts
    app.extensions["token_cleanup"] = cleanup

    if app.config.get("TOKEN_CLEANUP_ENABLED"):
        cleanup.start()
        atexit.register(cleanup.shutdown)
    return manager


def create_app(config_name: str | None = None, clock=utc_now) -> Flask:
    """
    Application factory: creates and configures the Flask app.
    `clock` feeds the token codec; tests pass a controllable one.
    """
    app = Flask(__name__)

    # Load configuration (reads .env via get_config)
    app.config.from_object(get_config(config_name))

    # Cross-Origin Resource Sharing: enable for dev, configurable for prod
    CORS(app, resources={r"/*": {"origins": app.config.get("CORS_ORIGINS", "*")}})

    # Swagger UI and JSON
    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)

    # Register global error handlers that return the uniform error envelope
    register_error_handlers(app)

    init_session_core(app, clock=clock)

    from .health import bp as health_bp
    from .auth import bp as auth_bp

    app.register_blueprint(health_bp, url_prefix="/api/v1")
    app.register_blueprint(auth_bp, url_prefix="/api/v1/auth")

    # Ensure the DB session is removed at the end of each request/app context
    @app.teardown_appcontext
    def remove_session(exception=None):
        # This calls scoped_session.remove(), preventing connection leaks
        storage.close()

    @app.route("/")
    def root():
        return {
            "message": "Welcome to the Productivity API",
            "docs": "/apidocs/",
            "health": "/api/v1/health",
        }, 200

    return app
