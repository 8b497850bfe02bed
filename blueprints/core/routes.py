from __future__ import annotations
import json, logging
from datetime import datetime

from flask import g, jsonify, request
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException
from werkzeug.wrappers.response import Response

from extensions import db
from blueprints.timetable.services import TimetableError

from . import bp

LOG_FIELDS = (
    "event", "path", "method", "status", "duration_ms",
    "course_id", "room_id", "day", "days", "unplaced",
    "start_time", "end_time", "available", "overlaps",
)

class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.utcnow().isoformat(timespec="milliseconds") + "Z",
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key in LOG_FIELDS:
            if hasattr(record, key):
                payload[key] = getattr(record, key)
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)

def _setup_structured_logging(app):
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    # app.logger plus the project loggers (blueprints.*) share one JSON handler
    for logger in (app.logger, logging.getLogger("blueprints")):
        has_json = any(
            isinstance(h, logging.StreamHandler)
            and isinstance(getattr(h, "formatter", None), JSONFormatter)
            for h in logger.handlers
        )
        if not has_json:
            handler = logging.StreamHandler()
            handler.setFormatter(JSONFormatter())
            logger.addHandler(handler)
        logger.setLevel(level)

def _errors(status: int, *errors: dict):
    return jsonify({"ok": False, "errors": list(errors)}), status

@bp.before_app_request
def _start_timer():
    g._req_start = datetime.utcnow()

@bp.after_app_request
def _log_request(response: Response):
    try:
        duration_ms = int((datetime.utcnow() - g._req_start).total_seconds() * 1000)
    except AttributeError:
        duration_ms = None
    extra = {
        "event": "http_request",
        "path": request.path,
        "method": request.method,
        "status": response.status_code,
        "duration_ms": duration_ms,
    }
    logging.getLogger("blueprints.core").info("request handled", extra=extra)
    return response

# ---------- error handlers ----------
@bp.app_errorhandler(ValidationError)
def _validation_error(err: ValidationError):
    details = err.errors(include_url=False, include_context=False, include_input=False)
    return _errors(400, {"code": "VALIDATION_ERROR", "details": details})

@bp.app_errorhandler(TimetableError)
def _timetable_error(err: TimetableError):
    db.session.rollback()
    logging.getLogger("blueprints.core").info(err.message, extra={"event": err.code.lower()})
    return _errors(err.status, {"code": err.code, "message": err.message, "details": err.details})

@bp.app_errorhandler(ValueError)
def _value_error(err: ValueError):
    db.session.rollback()
    return _errors(400, {"code": "BAD_REQUEST", "details": str(err)})

@bp.app_errorhandler(HTTPException)
def _http_error(err: HTTPException):
    code = (err.name or "error").upper().replace(" ", "_")
    return _errors(err.code or 500, {"code": code, "details": err.description})

@bp.record_once
def _on_register(state):
    _setup_structured_logging(state.app)

@bp.get("/health")
def health():
    return jsonify({
        "status": "ok",
        "ts": datetime.utcnow().isoformat(timespec="seconds") + "Z",
    })
