from dotenv import load_dotenv
load_dotenv()

import os
import sys

from flask import Flask, jsonify
from flask_cors import CORS
from loguru import logger
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.middleware.proxy_fix import ProxyFix

from action_catalog import DEFAULT_CATALOG
from claim_engine import ClaimEngine
from claims import claims_api
from cooldown_ledger import CooldownLedger
from errors import InvalidToken, StorageUnavailable
from extensions import db, limiter, utcnow
from leaderboard import leaderboard_api
from points_accounts import PointsAccounts
from privy_auth import PrivyTokenVerifier
from rank_engine import RankEngine
from twitter_verify import TwitterVerifier, VerificationCapabilities
from users import users_api


def _is_production() -> bool:
    return bool(os.getenv("RENDER")) or os.getenv("FLASK_ENV") == "production"


def _database_url() -> str:
    db_url = os.getenv("DATABASE_URL")
    if not db_url:
        if os.getenv("RENDER") == "true":
            raise RuntimeError("DATABASE_URL missing on Render; refusing to use SQLite.")
        db_url = "sqlite:///waitlist.db"
    if db_url.startswith("postgres://"):
        db_url = db_url.replace("postgres://", "postgresql://", 1)
    return db_url


def setup_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


def create_app(config_overrides=None, identity=None, verifier=None, capabilities=None, clock=None) -> Flask:
    """Build the API app.

    identity / verifier / capabilities / clock default to the environment-backed
    implementations; tests pass fakes instead.
    """
    app = Flask(__name__)

    # --- Config ---
    secret_key = os.getenv("SECRET_KEY") or "dev-secret-key-change-me"
    if _is_production() and secret_key.startswith("dev-secret-key-change"):
        raise RuntimeError("SECRET_KEY must be set to a strong random value in production (Render/FLASK_ENV=production).")

    app.config["SECRET_KEY"] = secret_key
    app.config["SQLALCHEMY_DATABASE_URI"] = _database_url()
    app.config["SQLALCHEMY_ENGINE_OPTIONS"] = {
        "pool_recycle": 300,
        "pool_pre_ping": True,
    }
    # In production, point RATE_LIMIT_STORAGE_URL at Redis for multi-instance correctness.
    app.config["RATELIMIT_STORAGE_URI"] = os.getenv("RATE_LIMIT_STORAGE_URL", "memory://")
    app.config["LOG_LEVEL"] = os.getenv("LOG_LEVEL", "INFO")
    # Frontend origin for share links; defaults to the request host.
    app.config["PUBLIC_SITE_URL"] = os.getenv("PUBLIC_SITE_URL", "")
    app.config.update(config_overrides or {})

    setup_logging(app.config["LOG_LEVEL"])

    # Render sits behind one proxy hop; without this every client shares the proxy IP.
    if _is_production():
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)

    # --- Extensions ---
    db.init_app(app)
    CORS(app)
    limiter.init_app(app)

    # --- Collaborators ---
    capabilities = capabilities or VerificationCapabilities.from_env()
    if verifier is None and (capabilities.follow_check_enabled or capabilities.post_check_enabled):
        verifier = TwitterVerifier.from_env()
    clock = clock or utcnow

    accounts = PointsAccounts()
    app.extensions["identity"] = identity if identity is not None else PrivyTokenVerifier.from_env()
    app.extensions["clock"] = clock
    app.extensions["catalog"] = DEFAULT_CATALOG
    app.extensions["capabilities"] = capabilities
    app.extensions["accounts"] = accounts
    app.extensions["rank_engine"] = RankEngine()
    app.extensions["claim_engine"] = ClaimEngine(
        DEFAULT_CATALOG, accounts, CooldownLedger(), capabilities, verifier=verifier, clock=clock,
    )

    # --- Routes ---
    app.register_blueprint(users_api)
    app.register_blueprint(claims_api)
    app.register_blueprint(leaderboard_api)

    @app.get("/api/health")
    def health_check():
        try:
            db.session.execute(text("SELECT 1"))
            return jsonify({
                "success": True,
                "status": "healthy",
                "timestamp": clock().isoformat(),
                "database": "connected",
            })
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"HEALTH: database unreachable: {e}")
            return jsonify({
                "success": False,
                "status": "unhealthy",
                "error": "database unavailable",
                "timestamp": clock().isoformat(),
            }), 503

    # --- Errors ---
    @app.errorhandler(InvalidToken)
    def _invalid_token(e):
        return jsonify({"success": False, "error": str(e) or "Invalid or expired token"}), 401

    @app.errorhandler(StorageUnavailable)
    def _storage_unavailable(e):
        return jsonify({"success": False, "error": "Storage unavailable, try again later"}), 503

    @app.errorhandler(SQLAlchemyError)
    def _sqlalchemy_error(e):
        db.session.rollback()
        logger.error(f"DB: unhandled storage error: {e}")
        return jsonify({"success": False, "error": "Storage unavailable, try again later"}), 503

    with app.app_context():
        db.create_all()

    logger.info(
        f"APP: started (follow check={'on' if capabilities.follow_check_enabled else 'off'}, "
        f"post check={'on' if capabilities.post_check_enabled else 'off'})"
    )
    return app
