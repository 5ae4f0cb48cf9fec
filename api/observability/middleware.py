"""
Observability Middleware

Request instrumentation for the registry API: OpenTelemetry spans from the
Flask instrumentor, per-request timing and an access log line tagged with the
calling principal and the tourist being addressed.
"""

import time
import logging
from typing import Any, Dict
from flask import Flask, Response, request, g
from opentelemetry import trace
from opentelemetry.instrumentation.flask import FlaskInstrumentor

logger = logging.getLogger(__name__)


def _request_subject() -> Dict[str, Any]:
    """Principal and tourist ID for the current request, when known."""
    context = g.get('principal_context')
    view_args = request.view_args or {}
    return {
        "principal": context.principal if context is not None else None,
        "tourist_id": view_args.get('tourist_id'),
        "alert_id": view_args.get('alert_id')
    }


def add_observability_middleware(app: Flask):
    """Instrument the app and log every completed request."""

    FlaskInstrumentor().instrument_app(app)

    @app.before_request
    def start_request_timer():
        g.start_time = time.perf_counter()
        g.trace_id = None

        span = trace.get_current_span()
        if span.is_recording():
            g.trace_id = format(span.get_span_context().trace_id, "032x")

    @app.after_request
    def log_request(response: Response) -> Response:
        duration_ms = round((time.perf_counter() - g.get('start_time', time.perf_counter())) * 1000, 2)
        subject = _request_subject()

        span = trace.get_current_span()
        if span.is_recording():
            span.set_attribute("http.duration_ms", duration_ms)
            if subject["principal"]:
                span.set_attribute("enduser.id", subject["principal"])
            if subject["tourist_id"] is not None:
                span.set_attribute("tourist.id", subject["tourist_id"])

        log = logger.warning if response.status_code >= 500 else logger.info
        log(
            "HTTP request completed",
            extra={
                "method": request.method,
                "endpoint": request.endpoint,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
                "trace_id": g.get('trace_id'),
                **subject
            }
        )

        if g.get('trace_id'):
            response.headers['X-Trace-Id'] = g.trace_id

        return response
