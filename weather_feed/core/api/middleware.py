"""
Feed Middleware - Request logging and error formatting for HTTP routes.

WebSocket upgrades pass straight through; only plain HTTP failures are
rewritten into the JSON error envelope.
"""

import time
from typing import Callable

from aiohttp import web

from weather_feed.core.logging_utils import get_module_logger


logger = get_module_logger("FeedMiddleware")


@web.middleware
async def request_logging_middleware(request: web.Request, handler: Callable) -> web.StreamResponse:
    """Log method, path, status and timing of each request at DEBUG level."""
    start_time = time.perf_counter()
    response = await handler(request)
    elapsed_ms = (time.perf_counter() - start_time) * 1000
    logger.debug(
        "%s %s -> %s (%.1fms)",
        request.method,
        request.path,
        response.status,
        elapsed_ms,
    )
    return response


@web.middleware
async def error_handling_middleware(request: web.Request, handler: Callable) -> web.StreamResponse:
    """
    Catch and format errors as JSON responses:
    {
        "error": {"code": "ERROR_CODE", "message": "Human-readable message"},
        "status": 500
    }
    """
    try:
        return await handler(request)
    except web.HTTPException as e:
        if e.status < 400:
            raise
        return web.json_response(
            {
                "error": {
                    "code": e.reason.upper().replace(" ", "_") if e.reason else "HTTP_ERROR",
                    "message": e.text or str(e),
                },
                "status": e.status,
            },
            status=e.status,
        )
    except Exception as e:
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return web.json_response(
            {
                "error": {
                    "code": "INTERNAL_ERROR",
                    "message": str(e) or type(e).__name__,
                },
                "status": 500,
            },
            status=500,
        )
