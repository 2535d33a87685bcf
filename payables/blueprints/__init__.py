"""JSON API blueprints."""
from flask import request

from payables.exceptions import ValidationError


def json_body() -> dict:
    """The request's JSON object (an empty dict when there is no body)."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data
