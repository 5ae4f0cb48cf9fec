# SPDX-License-Identifier: Apache-2.0

"""
Tourist registry endpoints.

Registration, location reporting, tracking, checkout, missing reports and the
emergency alert workflow. Registry errors propagate to the error handler
middleware, which turns them into problem responses.
"""

from flask import request, jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag
import logging

from domain import representations
from domain.errors import ValidationError
from middleware.auth import require_auth
from models.entities import PrincipalContext
from models.enums import SafetyLevel
from models.requests import (
    RegisterTouristRequest, UpdateLocationRequest,
    SetTrackingRequest, RaiseAlertRequest,
    TouristPath, AlertPath, SafetyLevelPath
)
from services.safety import SafetyService

logger = logging.getLogger(__name__)

tourists_tag = Tag(name="Tourists", description="Tourist registry and emergency alerts")
tourists_bp = APIBlueprint(
    'tourists',
    __name__,
    url_prefix='/api/tourists',
    abp_tags=[tourists_tag]
)


def _service() -> SafetyService:
    return current_app.safety_service


def _base_url() -> str:
    return current_app.config['BASE_URL']


def _json_body() -> dict:
    # Non-JSON bodies validate as empty so missing fields are reported
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _tourist_response(tourist_id: int, context: PrincipalContext):
    record = _service().get_by_id(tourist_id)
    return representations.build_tourist_response(record, context, _base_url())


@tourists_bp.post('')
@require_auth
def register_tourist(context: PrincipalContext):
    """Register a tourist. Requires the tourist:register capability."""
    registration = RegisterTouristRequest.model_validate(_json_body())
    tourist_id = _service().register(context.principal, registration)

    logger.info(
        "Tourist registered via API",
        extra={"tourist_id": tourist_id, "principal": context.principal}
    )
    return jsonify(_tourist_response(tourist_id, context)), 201


@tourists_bp.get('/<int:tourist_id>')
@require_auth
def get_tourist(context: PrincipalContext, path: TouristPath):
    """Tourist record with affordance links."""
    return jsonify(_tourist_response(path.tourist_id, context)), 200


@tourists_bp.get('/lookup')
@require_auth
def lookup_by_passport(context: PrincipalContext):
    """Tourist ID registered under a passport; 0 when unknown."""
    passport = request.args.get('passport', '')
    return jsonify({"passport_number": passport, "id": _service().get_id_by_passport(passport)}), 200


@tourists_bp.get('/<int:tourist_id>/verify')
@require_auth
def verify_tourist(context: PrincipalContext, path: TouristPath):
    """Check a passport against an active tourist record."""
    passport = request.args.get('passport', '')
    verified = _service().verify_identity(path.tourist_id, passport)
    return jsonify({"id": path.tourist_id, "verified": verified}), 200


@tourists_bp.get('/active')
@require_auth
def list_active(context: PrincipalContext):
    """IDs of tourists that have not checked out."""
    ids = _service().list_active()
    return jsonify(representations.build_collection_response(
        "tourist_ids", ids, f"{_base_url()}/api/tourists/active"
    )), 200


@tourists_bp.get('/alerted')
@require_auth
def list_alerted(context: PrincipalContext):
    """IDs of tourists with alerts; `open=true` limits to unresolved alerts."""
    open_only = request.args.get('open', 'false').lower() == 'true'
    service = _service()
    ids = service.list_with_open_alert() if open_only else service.list_with_any_alert()
    return jsonify(representations.build_collection_response(
        "tourist_ids", ids, request.url
    )), 200


@tourists_bp.get('/count')
@require_auth
def count_tourists(context: PrincipalContext):
    """Number of tourists ever registered."""
    return jsonify({"total": _service().count_total()}), 200


@tourists_bp.get('/by-level/<level>')
@require_auth
def list_by_level(context: PrincipalContext, path: SafetyLevelPath):
    """IDs of active tourists at a safety level."""
    try:
        safety_level = SafetyLevel(path.level.lower())
    except ValueError:
        raise ValidationError(
            f"Unknown safety level: {path.level}",
            [f"Expected one of: {', '.join(item.value for item in SafetyLevel)}"]
        )

    ids = _service().list_by_safety_level(safety_level)
    return jsonify(representations.build_collection_response(
        "tourist_ids", ids, f"{_base_url()}/api/tourists/by-level/{safety_level.value}"
    )), 200


@tourists_bp.post('/<int:tourist_id>/locations')
@require_auth
def update_location(context: PrincipalContext, path: TouristPath):
    """Report a location sample."""
    report = UpdateLocationRequest.model_validate(_json_body())
    entry = _service().update_location(
        context.principal,
        path.tourist_id,
        report.location,
        report.coordinates,
        report.battery_level,
        report.is_emergency
    )
    response = representations.build_location_response(entry)
    response["tourist"] = _tourist_response(path.tourist_id, context)
    return jsonify(response), 201


@tourists_bp.get('/<int:tourist_id>/locations')
@require_auth
def location_history(context: PrincipalContext, path: TouristPath):
    """Location samples in chronological order."""
    entries = [
        representations.build_location_response(entry)
        for entry in _service().list_location_history(path.tourist_id)
    ]
    return jsonify(representations.build_collection_response(
        "locations", entries, f"{_base_url()}/api/tourists/{path.tourist_id}/locations"
    )), 200


@tourists_bp.put('/<int:tourist_id>/tracking')
@require_auth
def set_tracking(context: PrincipalContext, path: TouristPath):
    """Enable or disable real-time tracking."""
    change = SetTrackingRequest.model_validate(_json_body())
    _service().set_tracking(context.principal, path.tourist_id, change.enabled)
    return jsonify(_tourist_response(path.tourist_id, context)), 200


@tourists_bp.post('/<int:tourist_id>/checkout')
@require_auth
def check_out(context: PrincipalContext, path: TouristPath):
    """Check a tourist out. Requires the tourist:register capability."""
    _service().check_out(context.principal, path.tourist_id)
    return jsonify(_tourist_response(path.tourist_id, context)), 200


@tourists_bp.post('/<int:tourist_id>/missing')
@require_auth
def mark_missing(context: PrincipalContext, path: TouristPath):
    """Report a tourist as missing. Requires the tourist:mark_missing capability."""
    _service().mark_missing(context.principal, path.tourist_id)
    return jsonify(_tourist_response(path.tourist_id, context)), 200


@tourists_bp.post('/<int:tourist_id>/alerts')
@require_auth
def raise_alert(context: PrincipalContext, path: TouristPath):
    """Raise an emergency alert. Open to any authenticated caller."""
    alert_request = RaiseAlertRequest.model_validate(_json_body())
    service = _service()
    alert_id = service.raise_alert(
        context.principal,
        path.tourist_id,
        alert_request.alert_type,
        alert_request.description,
        alert_request.location
    )
    alert = service.list_alerts(path.tourist_id)[alert_id]
    return jsonify(representations.build_alert_response(alert, context, _base_url())), 201


@tourists_bp.get('/<int:tourist_id>/alerts')
@require_auth
def list_alerts(context: PrincipalContext, path: TouristPath):
    """Alerts of a tourist in raise order."""
    service = _service()
    alerts = service.list_alerts(path.tourist_id)
    active = service.get_by_id(path.tourist_id).is_active
    items = [
        representations.build_alert_response(alert, context, _base_url(), active)
        for alert in alerts
    ]
    return jsonify(representations.build_collection_response(
        "alerts", items, f"{_base_url()}/api/tourists/{path.tourist_id}/alerts"
    )), 200


@tourists_bp.post('/<int:tourist_id>/alerts/<int:alert_id>/resolve')
@require_auth
def resolve_alert(context: PrincipalContext, path: AlertPath):
    """Resolve an alert. Requires the alert:resolve capability."""
    service = _service()
    service.resolve_alert(context.principal, path.tourist_id, path.alert_id)
    alert = service.list_alerts(path.tourist_id)[path.alert_id]
    return jsonify(representations.build_alert_response(alert, context, _base_url())), 200
