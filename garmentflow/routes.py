from flask import Blueprint, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from . import db

bp = Blueprint("main", __name__)


# Small health check; also pings the database so a broken DATABASE_URL shows up
@bp.get("/healthz")
def healthz():
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        db.session.rollback()
        return jsonify({"ok": False, "database": "unavailable"}), 503
    return jsonify({"ok": True})
