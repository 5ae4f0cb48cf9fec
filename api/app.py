"""
Tourist Safety Registry API - Flask Application Entry Point

This module builds the Flask application, wires the safety service, audit
trail and middleware together, and registers the registry blueprints.
"""

import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from flask import Flask, jsonify
from flask_openapi3 import OpenAPI, Info, Tag
from observability.config import setup_observability
from observability.middleware import add_observability_middleware

from domain.authorization import AccessGuard
from middleware.auth import AuthMiddleware
from middleware.error_handler import ErrorHandlerMiddleware
from services.audit import AuditTrail
from services.safety import SafetyService


def load_config(overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Read configuration from the environment, then apply overrides."""
    config = {
        'ENVIRONMENT': os.getenv('ENVIRONMENT', 'development'),
        'JWT_SECRET': os.getenv('JWT_SECRET', 'dev-secret-key'),
        'JWT_TOKEN_TTL_MINUTES': int(os.getenv('JWT_TOKEN_TTL_MINUTES', '60')),
        'ADMIN_PRINCIPAL': os.getenv('ADMIN_PRINCIPAL', 'admin'),
        'BASE_URL': os.getenv('BASE_URL', 'http://localhost:5000'),
        'OTEL_ENABLED': os.getenv('OTEL_ENABLED', 'true').lower() == 'true',
    }
    config.update(overrides or {})
    config['DEBUG'] = config['ENVIRONMENT'] == 'development'
    return config


def create_app(config: Optional[Dict[str, Any]] = None,
               safety_service: Optional[SafetyService] = None) -> Flask:
    """
    Build the Flask application.

    Args:
        config: Configuration overrides applied on top of the environment
        safety_service: Pre-built service; one with a fresh registry is created if omitted

    Returns:
        Configured Flask application
    """
    info = Info(
        title="Tourist Safety Registry API",
        version="1.0.0",
        description="Tourist registry with role-gated emergency alert workflow"
    )
    app = OpenAPI(__name__, info=info)
    app.config.update(load_config(config))

    setup_observability(app.config['ENVIRONMENT'], app.config['OTEL_ENABLED'])
    add_observability_middleware(app)

    if safety_service is None:
        access_guard = AccessGuard(admin_principal=app.config['ADMIN_PRINCIPAL'])
        safety_service = SafetyService(access_guard=access_guard)

    audit_trail = AuditTrail()
    safety_service.subscribe(audit_trail)

    # Make services available to routes
    app.safety_service = safety_service
    app.audit_trail = audit_trail
    app.auth_middleware = AuthMiddleware(
        app.config['JWT_SECRET'],
        safety_service,
        token_ttl_minutes=app.config['JWT_TOKEN_TTL_MINUTES']
    )
    app.error_handler = ErrorHandlerMiddleware(app)

    from routes.tourists import tourists_bp
    from routes.capabilities import capabilities_bp
    from routes.audit import audit_bp

    app.register_api(tourists_bp)
    app.register_api(capabilities_bp)
    app.register_api(audit_bp)

    health_tag = Tag(name="Health", description="System health and status")

    @app.get('/api/healthz', tags=[health_tag])
    def health_check():
        """Liveness check with registry size."""
        return jsonify({
            "status": "healthy",
            "service": "tourist-safety-registry",
            "version": "1.0.0",
            "environment": app.config['ENVIRONMENT'],
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "tourists": app.safety_service.count_total()
        }), 200

    return app


if __name__ == '__main__':
    port = int(os.getenv('PORT', 5000))
    create_app().run(host='0.0.0.0', port=port)
