from typing import Callable

from flask import Blueprint

from api.health import health_bp
from api.jobs.issuer_list import create_jobs_blueprint
from support.source_ingest_base import SourceIngestBase


def create_api_blueprint(*, job_factory: Callable[[], SourceIngestBase]) -> Blueprint:
    """Create the main API blueprint and register sub-blueprints.

    Keep this as the single registration point to avoid double-registering routes.
    """
    api_bp = Blueprint("api", __name__)

    api_bp.register_blueprint(health_bp)
    api_bp.register_blueprint(create_jobs_blueprint(job_factory))

    return api_bp
