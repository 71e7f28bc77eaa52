# Overview: Route decorators that turn service errors into JSON responses.

from functools import wraps

from flask import current_app, jsonify, request

from .errors import LedgerError, ValidationError


def json_body() -> dict:
    """
    The request's JSON object.

    An empty body reads as {}; a body that is not JSON, or JSON that is not
    an object, is a ValidationError.
    """
    data = request.get_json(silent=True)
    if data is None:
        if request.get_data(cache=True):
            raise ValidationError("Request body must be valid JSON")
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def handle_service_errors(action: str):
    """
    Translate service-layer failures for an API route.

    LedgerError subclasses map to their own status code with
    {"error", "details"}; anything else is logged with the failing action
    and answered with a 500.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            try:
                return f(*args, **kwargs)
            except LedgerError as e:
                return jsonify(e.to_dict()), e.status_code
            except Exception:
                current_app.logger.exception("Failed to %s", action)
                return jsonify({"error": "Internal server error"}), 500

        return decorated_function

    return decorator
