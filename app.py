import os, json, logging, time, uuid

from flask import has_request_context
from flask import Flask, request, jsonify, g
from flask_cors import CORS
from werkzeug.exceptions import HTTPException, BadRequest

# ---- SQLAlchemy Core (no ORM) ----
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

import db
from services.errors import MatchNotFoundError, VerificationError

# ---- Optional: Prometheus metrics ----
try:
    from prometheus_flask_exporter import PrometheusMetrics
    PROMETHEUS_AVAILABLE = True
except ImportError:
    PROMETHEUS_AVAILABLE = False


# ----------------------------
# Pull local env
# ----------------------------
if os.path.exists(".env"):
    from dotenv import load_dotenv
    load_dotenv(override=False)  # never override the real runtime env


# ----------------------------
# Config
# ----------------------------
class Config:
    ENV = os.getenv("FLASK_ENV", "production")
    DEBUG = ENV == "development"
    TESTING = False

    # CORS
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    # Database URL (mysql+pymysql://... in production)
    DATABASE_URL = os.getenv("DATABASE_URL")

    # Request settings
    REQUEST_MAX_BODY_BYTES = int(os.getenv("REQUEST_MAX_BODY_BYTES", "1048576"))  # 1 MB

    # Season whose tables are used when a request names none ("legacy" = bare table names)
    DEFAULT_SEASON = os.getenv("DEFAULT_SEASON", "legacy")

    # Feature flags
    ENABLE_PROMETHEUS = os.getenv("ENABLE_PROMETHEUS", "true").lower() == "true"


# ----------------------------
# Logging (JSON)
# ----------------------------
class JsonFormatter(logging.Formatter):
    def format(self, record):
        payload = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "pid": os.getpid(),
        }

        # Only touch request/g if we actually have a request context
        if has_request_context():
            payload["path"] = request.path
            payload["method"] = request.method
            rid = getattr(g, "request_id", None)
            if rid:
                payload["request_id"] = rid

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def setup_logging():
    root = logging.getLogger()
    root.setLevel(logging.INFO)
    formatter = JsonFormatter()
    if not any(isinstance(h, logging.StreamHandler) for h in root.handlers):
        h = logging.StreamHandler()
        h.setFormatter(formatter)
        root.addHandler(h)
    else:
        for h in root.handlers:
            if isinstance(h, logging.StreamHandler):
                h.setFormatter(formatter)
    logging.getLogger("app").info(
        "App boot: PID=%s, PORT=%s, DATABASE_URL set=%s",
        os.getpid(), os.getenv("PORT"), bool(os.getenv("DATABASE_URL")),
    )


# ----------------------------
# App Factory
# ----------------------------
def create_app(config_object=Config, engine=None):
    setup_logging()
    log = logging.getLogger("app")

    app = Flask(__name__)
    app.config.from_object(config_object)
    log.info("stage: config_loaded")

    # Database engine (SQLAlchemy Core), shared with the blueprints through db.get_engine()
    if engine is None and app.config.get("DATABASE_URL"):
        engine = db.build_engine(app.config["DATABASE_URL"])
    if engine is None:
        log.warning("DATABASE_URL not set. /readyz will fail.")
    else:
        db.set_engine(engine)
    app.engine = engine
    app.extensions["sqlalchemy_engine"] = engine
    log.info("stage: engine_ok")

    # Register Blueprints
    from matches import matches_bp
    from finances import finances_bp
    app.register_blueprint(matches_bp, url_prefix="/api/v1")
    app.register_blueprint(finances_bp, url_prefix="/api/v1")
    log.info("stage: blueprints_ok")

    # CORS
    CORS(app, resources={r"/*": {"origins": app.config["CORS_ORIGINS"]}})

    # Request ID middleware
    @app.before_request
    def attach_request_id():
        g.request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        # lightweight body size guard
        cl = request.headers.get("Content-Length")
        if cl and int(cl) > app.config["REQUEST_MAX_BODY_BYTES"]:
            raise BadRequest("Request body too large")

    # Prometheus metrics
    if app.config["ENABLE_PROMETHEUS"] and PROMETHEUS_AVAILABLE and not app.config["TESTING"]:
        PrometheusMetrics(app, group_by="endpoint")
        log.info("Prometheus metrics enabled at /metrics")

    # -------- Error Handlers --------
    @app.errorhandler(HTTPException)
    def handle_http_ex(e: HTTPException):
        return jsonify(error=e.name, message=e.description), e.code

    @app.errorhandler(MatchNotFoundError)
    def handle_not_found(e):
        return jsonify(error="not_found", message=str(e)), 404

    @app.errorhandler(VerificationError)
    def handle_verification(e):
        logging.getLogger("app").error("verification failed: %s", e)
        return jsonify(error="verification_failed", message=str(e)), 409

    @app.errorhandler(SQLAlchemyError)
    def handle_db_ex(e):
        logging.getLogger("app").exception("Database error")
        return jsonify(error="database_error", message="Database error"), 500

    @app.errorhandler(Exception)
    def handle_generic_ex(e):
        logging.getLogger("app").exception("Unhandled error")
        return jsonify(error="internal_error", message="Something went wrong"), 500

    # -------- Health / Readiness --------
    @app.get("/")
    def root():
        return jsonify(status="up")

    @app.get("/healthz")
    def healthz():
        return jsonify(status="ok", time=time.time())

    @app.get("/readyz")
    def readyz():
        if app.engine is None:
            return jsonify(status="degraded", error="no database engine"), 503
        try:
            with app.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return jsonify(status="ready")
        except SQLAlchemyError as e:
            return jsonify(status="degraded", error=str(e)), 503

    @app.get("/routes")
    def _routes():
        from flask import Response
        lines = []
        for r in sorted(app.url_map.iter_rules(), key=lambda x: x.rule):
            lines.append(f"{','.join(sorted(r.methods))}  {r.rule}  -> {r.endpoint}")
        return Response("\n".join(lines), mimetype="text/plain")

    @app.post("/admin/init-season")
    def init_season_endpoint():
        """
        Create a season's tables and zeroed finance rows for both teams.
        The season comes from ?season= (default: DEFAULT_SEASON).
        """
        from schema import init_season
        from services.scope import StorageScope

        # 1) Env guard so you don't run this by accident
        if os.getenv("ALLOW_SEASON_INIT", "false").lower() != "true":
            return jsonify(
                error="forbidden",
                message="Season init is disabled. Set ALLOW_SEASON_INIT=true to enable."
            ), 403

        # 2) Simple admin auth using ADMIN_PASSWORD
        admin_pw = os.getenv("ADMIN_PASSWORD")
        if admin_pw:
            header_pw = request.headers.get("X-Admin-Password")
            if header_pw != admin_pw:
                return jsonify(
                    error="unauthorized",
                    message="Invalid admin password."
                ), 401

        try:
            scope = StorageScope.from_value(
                request.args.get("season") or app.config["DEFAULT_SEASON"]
            )
        except ValueError as e:
            return jsonify(error="validation", message=str(e)), 400
        if app.engine is None:
            return jsonify(error="db_unavailable", message="No database engine"), 503

        result = init_season(app.engine, scope)
        return jsonify(status="ok", season_prefix=scope.prefix, details=result), 200

    log.info("stage: routes_ok")
    return app


# ----------------------------
# Entrypoint
# ----------------------------
if __name__ == "__main__":
    app = create_app()
    # For local dev only; use gunicorn in production
    app.run(host="0.0.0.0", port=int(os.getenv("PORT", "8080")))
