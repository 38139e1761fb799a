import time

from flask import Flask, request

from api.blueprint import create_api_blueprint
from api.health import HEALTHZ_PATH
from config import (
    CrawlerConfig,
    env_bool,
    load_crawler_config,
    load_store_config,
)
from db import Store, create_store, init_db
from jobs.issuer_list_ingest import IssuerListIngestJob
from logging_utils import configure_app_logging, get_logger


def create_app(
    *,
    store: Store | None = None,
    crawler_config: CrawlerConfig | None = None,
) -> Flask:
    """Build the Flask app.

    `store` and `crawler_config` are loaded from the environment when not
    given; a missing `SOURCE_BASE_URL` raises `ConfigError` here, at startup.
    """

    app = Flask(__name__)

    # Load config from file.
    app.config.from_pyfile("settings.py")

    # Configure unified app logging (UTC timestamps, per-file logs, daily rotation)
    configure_app_logging(app.config.get("LOG_LEVEL", "INFO"))
    logger = get_logger(__name__)

    crawler_config = crawler_config or load_crawler_config()
    if store is None:
        store = create_store(load_store_config(), environment=crawler_config.environment)

    def make_job() -> IssuerListIngestJob:
        return IssuerListIngestJob(
            store=store,
            source_base_url=crawler_config.source_base_url,
            user_agent=crawler_config.user_agent,
        )

    # --- request logging ---
    # Set SLOW_REQUEST_MS to 0 to disable slow request warnings.
    slow_ms = int(app.config.get("SLOW_REQUEST_MS", 250) or 0)

    @app.before_request
    def _start_timer():
        request.environ["_req_start_ns"] = time.perf_counter_ns()

    @app.after_request
    def _log_request(resp):
        if request.path == HEALTHZ_PATH:
            return resp

        logger.info(
            "method=%s, uri=%s, status=%s",
            request.method,
            request.full_path.rstrip("?"),
            resp.status_code,
        )

        start_ns = request.environ.get("_req_start_ns")
        if slow_ms <= 0 or not start_ns:
            return resp

        elapsed_ms = (time.perf_counter_ns() - int(start_ns)) / 1_000_000.0
        if elapsed_ms >= slow_ms:
            # Keep it compact and stable for grepping.
            logger.warning(
                "SLOW_REQUEST ms=%.1f status=%s method=%s path=%s",
                elapsed_ms,
                resp.status_code,
                request.method,
                request.path,
            )
        return resp

    app.register_blueprint(create_api_blueprint(job_factory=make_job))

    # Error handlers
    @app.errorhandler(500)
    def server_error(_err):
        logger.exception("Unhandled server error")
        return "", 500

    # Optional: initialize tables on startup only when explicitly requested.
    if env_bool("INIT_DB_ON_STARTUP", False):
        logger.info("INIT_DB_ON_STARTUP=1; initializing database schema")
        init_db(store)

    return app


# NOTE: Do not instantiate the Flask app at import time.
# Tests pass their own store and config into create_app().
app: Flask | None = None


if __name__ == "__main__":
    app = create_app()
    get_logger(__name__).info("Starting Flask app")
    app.run(port=int(app.config.get("SERVER_PORT", 10443)), debug=True, use_reloader=False)
