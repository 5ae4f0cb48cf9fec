# SPDX-License-Identifier: Apache-2.0

"""
Authentication middleware for JWT bearer tokens and principal context.

The token only establishes who the caller is (its `sub` claim). Which
capabilities the caller holds is always read from the safety service at
request time, under its lock, so a revoked capability takes effect immediately.
"""

from functools import wraps
from datetime import datetime, timedelta, timezone
from flask import request, jsonify, g, current_app
from typing import Optional, Dict, Any, Callable
from opentelemetry import trace
import jwt
import logging

from services.safety import SafetyService
from models.entities import PrincipalContext

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

PROBLEM_BASE = "https://tourist-safety.local/problems"


class TokenValidationError(Exception):
    """Raised when token validation fails."""
    pass


class AuthMiddleware:
    """
    JWT authentication middleware for Flask applications.

    Handles token extraction, validation and principal context building for
    protected endpoints.
    """

    def __init__(self, secret: str, safety_service: SafetyService, algorithm: str = "HS256",
                 token_ttl_minutes: int = 60):
        """
        Initialize the authentication middleware.

        Args:
            secret: Shared secret for token signing and verification
            safety_service: Service whose capability store is read for each request
            algorithm: JWT signing algorithm
            token_ttl_minutes: Lifetime of issued tokens
        """
        self.secret = secret
        self.safety_service = safety_service
        self.algorithm = algorithm
        self.token_ttl_minutes = token_ttl_minutes

    def extract_token_from_request(self) -> Optional[str]:
        """
        Extract JWT token from request headers.

        Returns:
            JWT token string or None if not found
        """
        auth_header = request.headers.get('Authorization', '')

        if not auth_header:
            return None

        # Handle "Bearer <token>" format
        if auth_header.startswith('Bearer '):
            return auth_header[7:]

        return auth_header

    def issue_token(self, principal: str, extra_claims: Optional[Dict[str, Any]] = None) -> str:
        """Sign a token identifying a principal."""
        now = datetime.now(timezone.utc)
        payload = {
            "sub": principal,
            "iat": now,
            "exp": now + timedelta(minutes=self.token_ttl_minutes),
            **(extra_claims or {})
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def validate_token(self, token: str) -> Dict[str, Any]:
        """
        Decode and verify a token.

        Raises:
            TokenValidationError: signature, expiry or subject is invalid
        """
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"require": ["sub", "exp"]}
            )
        except jwt.ExpiredSignatureError:
            raise TokenValidationError("Token has expired")
        except jwt.InvalidTokenError as e:
            raise TokenValidationError(f"Invalid token: {str(e)}")

        if not str(payload.get("sub", "")).strip():
            raise TokenValidationError("Token subject is empty")
        return payload

    def build_principal_context(self, token_payload: Dict[str, Any]) -> PrincipalContext:
        """Build the caller context from a validated token payload."""
        principal = str(token_payload["sub"]).strip()
        return PrincipalContext(
            principal=principal,
            capabilities=self.safety_service.capabilities_of(principal),
            token_payload=token_payload
        )


def _problem(title: str, detail: str, problem: str, status: int):
    return jsonify({
        "type": f"{PROBLEM_BASE}/{problem}",
        "title": title,
        "status": status,
        "detail": detail,
        "instance": request.path
    }), status


def require_auth(f: Callable) -> Callable:
    """
    Decorator requiring a valid bearer token.

    The wrapped view receives the PrincipalContext as its first argument; the
    context is also stored on `g.principal_context`.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_middleware: AuthMiddleware = current_app.auth_middleware

        with tracer.start_as_current_span("auth.middleware.validate_request") as span:
            span.set_attribute("auth.operation", "validate_request")

            token = auth_middleware.extract_token_from_request()
            if not token:
                span.set_attribute("auth.result", "missing_token")
                logger.warning("Authentication failed: missing token")
                return _problem("Authentication Required", "Missing authorization token",
                                "authentication-required", 401)

            try:
                token_payload = auth_middleware.validate_token(token)
            except TokenValidationError as e:
                span.set_attribute("auth.result", "invalid_token")
                logger.warning(f"Authentication failed: {str(e)}")
                return _problem("Invalid Token", str(e), "invalid-token", 401)

            context = auth_middleware.build_principal_context(token_payload)
            g.principal_context = context

            span.set_attributes({
                "auth.result": "success",
                "principal": context.principal
            })
            logger.debug("Authentication successful", extra={"principal": context.principal})

        return f(context, *args, **kwargs)

    return decorated_function
