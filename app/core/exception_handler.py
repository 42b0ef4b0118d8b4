"""
DRF exception handler for application errors.

Translates BaseApplicationError subclasses raised from views or services into
JSON responses using the exception's own to_dict() and http_status. Anything
else falls through to DRF's default handler.

Configured in settings:
    REST_FRAMEWORK = {
        "EXCEPTION_HANDLER": "core.exception_handler.api_exception_handler",
    }
"""

from __future__ import annotations

import logging

from rest_framework.response import Response
from rest_framework.views import exception_handler

from core.exceptions import BaseApplicationError

logger = logging.getLogger(__name__)


def api_exception_handler(exc, context):
    if isinstance(exc, BaseApplicationError):
        view = context.get("view")
        level = logging.ERROR if exc.http_status >= 500 else logging.INFO
        logger.log(
            level,
            f"{exc.__class__.__name__} in {view.__class__.__name__ if view else 'view'}",
            extra={"error_code": exc.error_code, "http_status": exc.http_status},
        )
        return Response(exc.to_dict(), status=exc.http_status)

    return exception_handler(exc, context)
