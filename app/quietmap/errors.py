"""
Error taxonomy shared by the service layer and the JSON routes.

Services raise these; `register_error_handlers` turns them into JSON responses so
store-specific exception text never reaches a caller.
"""
from __future__ import annotations

from typing import Any

from flask import Flask, g, jsonify


class QuietmapError(Exception):
    status_code = 500

    def __init__(self, message: str, *, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"ok": False, "error": self.message}
        out.update(self.context)
        return out


class ValidationError(QuietmapError):
    status_code = 400

    def __init__(self, field_errors: dict[str, list[str]], message: str = "Please fix the highlighted fields."):
        super().__init__(message)
        self.field_errors = field_errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": False,
            "error": self.message,
            "issues": {"formErrors": [], "fieldErrors": self.field_errors},
        }


class NotFoundError(QuietmapError):
    status_code = 404


class ReportedReviewMissingError(NotFoundError):
    """The report exists but the review it flags has been deleted."""

    status_code = 410


class ConflictError(QuietmapError):
    status_code = 409


class ExternalServiceError(QuietmapError):
    status_code = 502


class PartialFailureError(QuietmapError):
    status_code = 500

    def __init__(self, message: str, *, completed: list[str], failed: str, context: dict[str, Any] | None = None):
        super().__init__(message, context=context)
        self.completed = completed
        self.failed = failed

    def to_dict(self) -> dict[str, Any]:
        out = super().to_dict()
        out.update({"partial": True, "completed": self.completed, "failed": self.failed})
        return out


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(QuietmapError)
    def _quietmap_error(e: QuietmapError):  # type: ignore[no-redef]
        if isinstance(e, PartialFailureError):
            app.logger.error(
                "Partial failure (request_id=%s): %s completed=%s failed=%s",
                getattr(g, "request_id", None),
                e.message,
                e.completed,
                e.failed,
            )
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(400)
    def _err_400(e):  # type: ignore[no-redef]
        return jsonify({"ok": False, "error": getattr(e, "description", None) or "Bad request."}), 400

    @app.errorhandler(401)
    def _err_401(e):  # type: ignore[no-redef]
        return jsonify({"ok": False, "error": "Please sign in."}), 401

    @app.errorhandler(403)
    def _err_403(e):  # type: ignore[no-redef]
        missing = getattr(g, "missing_permission", None)
        if missing:
            app.logger.warning("Forbidden: missing_permission=%s request_id=%s", missing, getattr(g, "request_id", None))
        return jsonify({"ok": False, "error": "Forbidden.", "missingPermission": missing}), 403

    @app.errorhandler(404)
    def _err_404(e):  # type: ignore[no-redef]
        return jsonify({"ok": False, "error": "Not found."}), 404

    @app.errorhandler(413)
    def _err_413(e):  # type: ignore[no-redef]
        return jsonify({"ok": False, "error": "Request body too large."}), 413

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return jsonify({"ok": False, "error": "Server error."}), 500
