from __future__ import annotations

from typing import Callable

from flask import Blueprint

from crawler.errors import CrawlerError
from logging_utils import get_logger
from support.source_ingest_base import SourceIngestBase

logger = get_logger(__name__)


def create_jobs_blueprint(job_factory: Callable[[], SourceIngestBase]) -> Blueprint:
    """Create the /job blueprint.

    `job_factory` builds a fresh ingest job per request; the job carries the
    store handle, so nothing here touches module-level state.
    """

    jobs_bp = Blueprint("jobs", __name__, url_prefix="/job")

    @jobs_bp.route("/update-issuer-list", methods=["GET"])
    def update_issuer_list():
        """Run the issuer list refresh synchronously.

        Clients only get the status code: 200 on success, 500 on any failure.
        """

        try:
            job_factory().run()
        except CrawlerError as e:
            logger.error(
                "Issuer list refresh failed | kind=%s err=%s", type(e).__name__, e
            )
            return "", 500
        return "", 200

    return jobs_bp
