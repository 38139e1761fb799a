from flask import Blueprint

HEALTHZ_PATH = "/healthz"

health_bp = Blueprint("health", __name__)


@health_bp.route(HEALTHZ_PATH, methods=["GET"])
def healthz():
    return "", 200
