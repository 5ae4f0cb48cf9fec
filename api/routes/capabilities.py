# SPDX-License-Identifier: Apache-2.0

"""
Capability administration endpoints.

Granting and revoking edit the AccessGuard's backing store and require the
role:manage capability.
"""

from flask import request, jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag
import logging

from domain.authorization import get_capability_description
from middleware.auth import require_auth
from models.entities import PrincipalContext
from models.requests import CapabilityChangeRequest, PrincipalPath

logger = logging.getLogger(__name__)

capabilities_tag = Tag(name="Capabilities", description="Capability and role administration")
capabilities_bp = APIBlueprint(
    'capabilities',
    __name__,
    url_prefix='/api/capabilities',
    abp_tags=[capabilities_tag]
)


def _capabilities_response(principal: str):
    held = current_app.safety_service.capabilities_of(principal)
    return {
        "principal": principal,
        "capabilities": [
            {"id": capability, "description": get_capability_description(capability)}
            for capability in held
        ],
        "_links": {
            "self": {"href": f"{current_app.config['BASE_URL']}/api/capabilities/{principal}"}
        }
    }


def _change_request() -> CapabilityChangeRequest:
    data = request.get_json(silent=True)
    return CapabilityChangeRequest.model_validate(data if isinstance(data, dict) else {})


@capabilities_bp.get('/<principal>')
@require_auth
def get_capabilities(context: PrincipalContext, path: PrincipalPath):
    """Capabilities held by a principal."""
    return jsonify(_capabilities_response(path.principal)), 200


@capabilities_bp.post('')
@require_auth
def grant(context: PrincipalContext):
    """Grant a capability or every capability of a role."""
    change = _change_request()
    service = current_app.safety_service

    if change.role:
        changed = service.grant_role(context.principal, change.principal, change.role)
    else:
        changed = [change.capability] if service.grant_capability(
            context.principal, change.principal, change.capability) else []

    logger.info(
        "Capabilities granted",
        extra={"principal": change.principal, "granted": changed, "granted_by": context.principal}
    )
    response = _capabilities_response(change.principal)
    response["changed"] = changed
    return jsonify(response), 200


@capabilities_bp.delete('')
@require_auth
def revoke(context: PrincipalContext):
    """Revoke a capability or every capability of a role."""
    change = _change_request()
    service = current_app.safety_service

    if change.role:
        changed = service.revoke_role(context.principal, change.principal, change.role)
    else:
        changed = [change.capability] if service.revoke_capability(
            context.principal, change.principal, change.capability) else []

    logger.info(
        "Capabilities revoked",
        extra={"principal": change.principal, "revoked": changed, "revoked_by": context.principal}
    )
    response = _capabilities_response(change.principal)
    response["changed"] = changed
    return jsonify(response), 200
