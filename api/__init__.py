import logging

from flask import Flask
from flasgger import Swagger
from flask_cors import CORS

from auth_core.factory import build_auth_service
from .config import get_config
from .errors import register_error_handlers

# Minimal Swagger config: exposes /swagger.json and UI at /apidocs
SWAGGER_TEMPLATE = {
    "swagger": "2.0",
    "info": {
        "title": "Auth Service API",
        "version": "1.0.0",
        "description": "Signup/signin, JWT access tokens, rotating refresh tokens, password reset and email verification.",
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


def create_app(config_name: str | None = None, overrides: dict | None = None,
               notifier=None, clock=None) -> Flask:
    """
    Application factory: creates and configures the Flask app.
      - `overrides` are applied on top of the selected config class (tests use this)
      - `notifier` / `clock` replace the mail dispatcher and token clock
    The auth components are validated and built here, so bad secrets fail at startup.
    """
    app = Flask(__name__)

    # Load configuration (reads .env via get_config)
    app.config.from_object(get_config(config_name))
    if overrides:
        app.config.update(overrides)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Cross-Origin Resource Sharing: enable for dev, configurable for prod
    CORS(app, resources={r"/*": {"origins": app.config.get("CORS_ORIGINS", "*")}})

    # Swagger UI and JSON
    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)

    # Register global error handlers that return the uniform error envelope
    register_error_handlers(app)

    components = build_auth_service(app.config, notifier=notifier, clock=clock)
    app.extensions["auth"] = components

    from .health import bp as health_bp
    from .auth import bp as auth_bp
    from .tokens import bp as tokens_bp

    app.register_blueprint(health_bp, url_prefix="/api/v1")
    app.register_blueprint(auth_bp, url_prefix="/api/v1/auth")
    app.register_blueprint(tokens_bp, url_prefix="/api/v1/token")

    # Ensure the DB session is removed at the end of each request/app context
    @app.teardown_appcontext
    def remove_session(exception=None):
        # calls scoped_session.remove(), preventing connection leaks
        components.storage.close()

    @app.route("/")
    def root():
        return {
            "message": "Welcome to the Auth Service API",
            "docs": "/apidocs/",
            "health": "/api/v1/health",
        }, 200

    return app
