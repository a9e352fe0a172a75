"""
Request timing middleware.

Every response carries ``X-Request-ID`` (echoed from the caller when sent)
and ``X-Request-Duration-Ms``.  Requests slower than SLOW_REQUEST_MS are
logged as warnings, 5xx responses as errors, the rest at DEBUG.
"""

import logging
import time
import uuid

from flask import Flask, g, request

logger = logging.getLogger(__name__)

_PROBE_PATHS = frozenset({"/api/v1/health/live", "/api/v1/health/ready"})

DEFAULT_SLOW_REQUEST_MS = 1000


def _request_extra(response, duration_ms: float) -> dict:
    view_args = request.view_args or {}
    return {
        "method": request.method,
        "path": request.path,
        "status": response.status_code,
        "duration_ms": duration_ms,
        "remote_addr": request.remote_addr,
        "project_id": view_args.get("project_id"),
        "company_id": view_args.get("company_id"),
        "step": view_args.get("step"),
    }


def init_request_timing(app: Flask):
    """Register the before/after hooks."""
    slow_ms = app.config.get("SLOW_REQUEST_MS", DEFAULT_SLOW_REQUEST_MS)

    @app.before_request
    def _start_timer():
        g.request_start = time.perf_counter()
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]

    @app.after_request
    def _finish_timer(response):
        start = getattr(g, "request_start", None)
        if start is None:
            return response

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-ID"] = g.request_id
        response.headers["X-Request-Duration-Ms"] = f"{duration_ms:.1f}"

        if request.path in _PROBE_PATHS:
            return response

        extra = _request_extra(response, duration_ms)
        summary = (request.method, request.path, response.status_code, duration_ms)
        if response.status_code >= 500:
            logger.error("Server error: %s %s %d (%.0fms)", *summary, extra=extra)
        elif duration_ms > slow_ms:
            logger.warning("Slow request: %s %s %d (%.0fms)", *summary, extra=extra)
        else:
            logger.debug("Request: %s %s %d (%.0fms)", *summary, extra=extra)
        return response
