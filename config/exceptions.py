import logging

from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


def _first_message(detail):
    if isinstance(detail, dict):
        for value in detail.values():
            return _first_message(value)
        return ""
    if isinstance(detail, (list, tuple)):
        return _first_message(detail[0]) if detail else ""
    return str(detail)


def envelope_exception_handler(exc, context):
    """
    Render DRF exceptions as {"error": 1, "message": ..., "errors": ...}.

    Anything DRF does not handle is left to Django (500).
    """
    response = exception_handler(exc, context)
    if response is None:
        return None

    detail = response.data
    if isinstance(detail, dict) and set(detail) == {'detail'}:
        message = str(detail['detail'])
        errors = None
    else:
        message = "Validation failed" if response.status_code == 400 else _first_message(detail)
        errors = detail

    if response.status_code >= 500:
        logger.error(f"API error in {context.get('view').__class__.__name__}: {message}")

    body = {"error": 1, "message": message}
    if errors is not None:
        body["errors"] = errors
    response.data = body
    return response
