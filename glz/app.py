import logging
import os

from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import text

db = SQLAlchemy()

from .models import User  # noqa: E402
from .constants import ADMIN  # noqa: E402


def _configure_logging(level_name: str) -> None:
    level = getattr(logging, (level_name or "INFO").upper(), logging.INFO)
    logger = logging.getLogger("glz")
    logger.setLevel(level)
    if not logging.getLogger().handlers and not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
        )
        logger.addHandler(handler)


def create_app(overrides=None):
    app = Flask(__name__)
    app.secret_key = os.getenv("SECRET_KEY", "dev")
    app.json.sort_keys = False

    DB_USER = os.getenv("DB_USER", "glz")
    DB_PASSWORD = os.getenv("POSTGRES_PASSWORD", "postgres")
    DB_HOST = os.getenv("DB_HOST", "db")
    DB_NAME = os.getenv("DB_NAME", "glz")
    DATABASE_URL = os.getenv(
        "DATABASE_URL",
        f"postgresql+psycopg2://{DB_USER}:{DB_PASSWORD}@{DB_HOST}/{DB_NAME}",
    )

    app.config["SQLALCHEMY_DATABASE_URI"] = DATABASE_URL
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config["MAX_CONTENT_LENGTH"] = int(os.getenv("MAX_UPLOAD_MB", "10")) * 1024 * 1024
    app.config["LOG_LEVEL"] = os.getenv("LOG_LEVEL", "INFO")
    if overrides:
        app.config.update(overrides)

    _configure_logging(app.config["LOG_LEVEL"])
    db.init_app(app)

    @app.get("/health")
    def health():  # pragma: no cover - simple healthcheck
        return "OK", 200

    @app.errorhandler(401)
    def unauthorized(exc):
        return jsonify({"error": "Authentication required"}), 401

    @app.errorhandler(403)
    def forbidden(exc):
        return jsonify({"error": getattr(exc, "description", None) or "Access denied"}), 403

    @app.errorhandler(404)
    def not_found(exc):
        return jsonify({"error": getattr(exc, "description", None) or "Not found"}), 404

    @app.errorhandler(413)
    def too_large(exc):
        return jsonify({"error": "Uploaded file is too large"}), 413

    from .routes.auth import bp as auth_bp
    from .routes.users import bp as users_bp
    from .routes.groups import bp as groups_bp
    from .routes.certificates import bp as certificates_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(groups_bp)
    app.register_blueprint(certificates_bp)

    with app.app_context():
        if not os.getenv("FLASK_SKIP_SEED"):
            seed_initial_admin_safely()

    return app


def seed_initial_admin_safely() -> None:
    """Seed an admin user from the environment if the users table is empty."""

    username = os.getenv("FIRST_ADMIN_USERNAME")
    password = os.getenv("FIRST_ADMIN_PASSWORD")
    if not username or not password:
        return
    try:
        if db.engine.url.drivername.startswith("sqlite"):
            return
        cols = {
            row[0]
            for row in db.session.execute(
                text(
                    "SELECT column_name FROM information_schema.columns WHERE table_name='users'"
                )
            )
        }
        required = {"id", "username", "password_hash", "role"}
        if not required.issubset(cols):
            logging.getLogger("glz.seed").info("seed skipped (columns missing)")
            return

        if db.session.query(User).count() > 0:
            return

        admin = User(username=username, role=ADMIN)
        admin.set_password(password)
        db.session.add(admin)
        db.session.commit()
        logging.getLogger("glz.seed").info("[AUTH] seeded admin username=%s", username)
    except Exception:
        db.session.rollback()
        logging.getLogger("glz.seed").exception("seed_initial_admin_safely failed")
