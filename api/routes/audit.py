# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Audit trail endpoint.

Read-only view over the in-memory audit trail, restricted to principals
holding role:manage.
"""

from flask import request, jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from domain import representations
from domain.errors import AuthorizationError
from middleware.auth import require_auth
from models.entities import PrincipalContext
from models.enums import Capability
from models.requests import AuditLogFilters
from services.audit import AuditFilters

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

audit_tag = Tag(name="Audit Logs", description="Audit trail querying")
audit_bp = APIBlueprint(
    'audit',
    __name__,
    url_prefix='/api/audit-logs',
    abp_tags=[audit_tag]
)


@audit_bp.get('')
@require_auth
def list_audit_logs(context: PrincipalContext, query: AuditLogFilters):
    """Audit entries in commit order, optionally filtered."""
    with tracer.start_as_current_span(
        "audit.list",
        attributes={"enduser.id": context.principal, "operation": "list_audit_logs"}
    ) as span:
        if not context.has_capability(Capability.MANAGE_ROLES):
            raise AuthorizationError(
                "Insufficient permissions to view audit logs",
                Capability.MANAGE_ROLES.value
            )

        filters = AuditFilters(
            principal=query.principal,
            entity=query.entity,
            entity_id=query.entity_id,
            action=query.action,
            start_date=query.date_from,
            end_date=query.date_to
        )
        entries = current_app.audit_trail.query(filters)
        span.set_attribute("audit.result_count", len(entries))

        logger.info(
            "Audit logs listed",
            extra={"principal": context.principal, "count": len(entries)}
        )
        return jsonify(representations.build_collection_response(
            "audit_logs",
            [entry.model_dump(mode="json") for entry in entries],
            request.url
        )), 200
