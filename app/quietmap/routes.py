from flask import Blueprint
from sqlalchemy import text

from app.quietmap.db import db_session

bp = Blueprint("routes", __name__)


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True}


@bp.get("/health/db")
def health_db():
    s = db_session()
    s.execute(text("SELECT 1"))
    return {"ok": True, "db": "up"}


@bp.get("/healthz")
def healthz():
    """
    Fast health check for k8s/DO probes. No DB access, minimal overhead.
    """
    return "ok", 200
