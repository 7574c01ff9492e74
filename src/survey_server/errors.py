"""Global exception handlers — map SDK exceptions to HTTP status codes.

The SDK raises ``ValueError`` for caller mistakes (unknown survey or
response, stale write, anonymous access to a survey that needs a login).
Rather than catching these in every route, global handlers inspect the
message and pick the status code.

Graph defects (``TraversalLimitError``, ``ResponseChainError``) are
``RuntimeError``s and fall through to the generic 500 handler: they are
for operators, not respondents.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

# Keyword in the ValueError message -> HTTP status.  First match wins.
_VALUE_ERROR_PATTERNS: list[tuple[str, int]] = [
    # Optimistic version check or duplicate successor
    ("conflict", 409),
    # Survey requires an authenticated session
    ("authentication required", 403),
    ("not found", 404),
]

# Client-safe messages; details stay in the server log
_SAFE_MESSAGES: dict[int, str] = {
    400: "Invalid request",
    403: "Authentication required",
    404: "Resource not found",
    409: "Conflict, reload and retry",
}


async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    """Map SDK ``ValueError`` to 409 / 403 / 404, falling back to 400.

    The raw message is logged but never sent to the client.
    """
    msg = str(exc)
    status = 400
    for pattern, code in _VALUE_ERROR_PATTERNS:
        if pattern in msg.lower():
            status = code
            break

    logger.warning("ValueError [%d] at %s: %s", status, request.url, msg)
    return JSONResponse(status_code=status, content={"detail": _SAFE_MESSAGES[status]})


async def key_error_handler(request: Request, exc: KeyError) -> JSONResponse:
    logger.warning("KeyError at %s: %s", request.url, exc)
    return JSONResponse(status_code=404, content={"detail": "Resource not found"})


async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions — log full traceback, return 500."""
    logger.exception("Unhandled exception at %s", request.url)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )
