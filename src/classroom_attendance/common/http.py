from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Callable

from flask import jsonify, request, session

from ..core.exceptions import DomainError, ValidationError

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    "InvalidInput": 400,
    "InvalidState": 400,
    "Unauthenticated": 401,
    "Forbidden": 403,
    "NotFound": 404,
    "Conflict": 409,
}


def error_response(err: DomainError):
    status = STATUS_BY_KIND.get(err.kind, 400)
    return jsonify({"success": False, "kind": err.kind, "message": str(err)}), status


def ok(data: Any, status: int = 200):
    return jsonify({"success": True, "data": data}), status


def ok_list(items: list, status: int = 200):
    return jsonify({"success": True, "count": len(items), "data": items}), status


def json_body() -> dict:
    """Request JSON object, or {} when the body is empty."""

    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def api_endpoint(container) -> Callable:
    """Decorator factory for JSON endpoints.

    Resolves the caller from the signed Flask session and passes it as the
    first argument. Domain errors become structured JSON failures.
    """

    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            try:
                principal = container.identity_service.resolve(session)
                return view(principal, *args, **kwargs)
            except DomainError as e:
                return error_response(e)
            except Exception:
                logger.exception("Unhandled error on %s %s", request.method, request.path)
                return jsonify({"success": False, "kind": "ServerError", "message": "Server Error"}), 500

        return wrapper

    return decorator
