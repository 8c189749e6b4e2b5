"""
Error Types and Global Error Handling

This module defines the typed error hierarchy raised by the SCP data layer
and the application-wide exception handlers for the HTTP surface.

Design Goals
------------
- Every failure the core can produce maps to exactly one error kind
- Never leak internal exception details for unexpected failures
- Always return deterministic, machine-readable error responses
- Log full stack traces internally for debugging
"""

from __future__ import annotations

import logging
from typing import Dict, Any, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger("scp.errors")


# ---------------------------------------------------------------------
# Error Hierarchy
# ---------------------------------------------------------------------

class ScpError(RuntimeError):
    """Base class for all expected SCP server failures."""

    code: str = "scp_error"
    http_status: int = 500


class ValidationError(ScpError):
    """Missing or contradictory identifiers, disallowed URL, unsupported site."""

    code = "validation_error"
    http_status = 400


class NotFoundError(ScpError):
    """No page matches the given identifier."""

    code = "not_found"
    http_status = 404


class AmbiguousError(ScpError):
    """More than one page matches a link or page id."""

    code = "ambiguous"
    http_status = 409


class ContentUnavailableError(ScpError):
    """Body or shard data required for the resolved page is missing."""

    code = "content_unavailable"
    http_status = 404


class UpstreamError(ScpError):
    """
    The SCP Data API answered with an unusable response.

    ``status`` is the HTTP status code when one was received, ``None`` for
    transport-level failures.
    """

    code = "upstream_error"
    http_status = 502

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        body: str = "",
    ) -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class RateLimitedError(ScpError):
    """The caller exceeded its request window."""

    code = "rate_limited"
    http_status = 429


# ---------------------------------------------------------------------
# Public Exception Handlers
# ---------------------------------------------------------------------

async def scp_error_handler(
    request: Request,
    exc: ScpError,
) -> JSONResponse:
    """
    Translate an expected ScpError into its HTTP error response.

    The message of these errors is written for callers (page identifiers,
    upstream status) and is returned as-is.
    """
    logger.info(
        "%s during request %s %s: %s",
        type(exc).__name__,
        request.method,
        request.url.path,
        exc,
    )

    payload: Dict[str, Any] = {
        "error": exc.code,
        "detail": str(exc),
    }

    return JSONResponse(
        status_code=exc.http_status,
        content=payload,
    )


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """
    Catch-all handler for uncaught exceptions.

    Behavior
    --------
    - Logs the full exception stack trace for internal diagnostics.
    - Returns a generic 500 error to the client with no internal details.

    Parameters
    ----------
    request : Request
        The incoming HTTP request that triggered the exception.

    exc : Exception
        The uncaught exception instance.

    Returns
    -------
    JSONResponse
        A JSON 500 response with a minimal error payload.
    """

    # Log full traceback internally (never returned to client)
    logger.exception(
        "Unhandled exception during request: %s %s",
        request.method,
        request.url.path,
        exc_info=exc,
    )

    payload: Dict[str, Any] = {
        "error": "internal_server_error",
        "detail": "Internal server error",
    }

    return JSONResponse(
        status_code=500,
        content=payload,
    )
