from flask import Blueprint, current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from models import storage

bp = Blueprint("health", __name__)


@bp.get("/health")
def health():
    """
    Health check
    ---
    tags:
      - Health
    responses:
      503:
        description: Token store unreachable
      200:
        description: API and token store are up
        schema:
          type: object
          properties:
            status:
              type: string
              example: ok
            database:
              type: string
              example: ok
            token_cleanup:
              type: string
              example: scheduled
    """
    cleanup = current_app.extensions["token_cleanup"]
    body = {
        "status": "ok",
        "version": "1.0.0",
        "database": "ok",
        "token_cleanup": "scheduled" if cleanup.running else "disabled",
    }
    try:
        storage.get_session().execute(text("SELECT 1"))
    except SQLAlchemyError:
        storage.rollback()
        body["status"] = "degraded"
        body["database"] = "unavailable"
        return body, 503
    return body, 200
