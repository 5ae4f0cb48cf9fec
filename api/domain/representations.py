# SPDX-License-Identifier: Apache-2.0

"""
HAL representations of registry resources.

Affordance links are added only when the resource state allows the action and
the caller holds the capability it requires.
"""

from typing import Any, Dict, List
from models.entities import TouristRecord, EmergencyAlert, LocationEntry, PrincipalContext
from models.enums import Capability


def _iso(value):
    return value.isoformat() if value else None


def build_tourist_response(
    record: TouristRecord,
    context: PrincipalContext,
    base_url: str
) -> Dict[str, Any]:
    """
    Build HAL response for a tourist record with affordance links.

    Args:
        record: Tourist record snapshot
        context: Caller context for capability-based links
        base_url: Base URL for link generation

    Returns:
        HAL-formatted response dictionary
    """
    href = f"{base_url}/api/tourists/{record.id}"
    response = {
        "id": record.id,
        "passport_number": record.passport_number,
        "name": record.name,
        "phone": record.phone,
        "nationality": record.nationality,
        "itinerary": record.itinerary,
        "emergency_contact": record.emergency_contact,
        "status": record.status,
        "safety_score": record.safety_score,
        "safety_level": record.safety_level.value,
        "last_known_location": record.last_known_location,
        "last_location_update": _iso(record.last_location_update),
        "check_in_time": _iso(record.check_in_time),
        "check_out_time": _iso(record.check_out_time),
        "tracking_enabled": record.tracking_enabled,
        "is_active": record.is_active,
        "_links": {
            "self": {"href": href},
            "alerts": {"href": f"{href}/alerts"},
            "locations": {"href": f"{href}/locations"}
        }
    }

    links = response["_links"]

    if record.is_active:
        links["raise-alert"] = {
            "href": f"{href}/alerts",
            "method": "POST",
            "type": "application/json"
        }
        links["update-location"] = {
            "href": f"{href}/locations",
            "method": "POST",
            "type": "application/json"
        }

        if context.has_capability(Capability.REGISTER_TOURIST):
            links["checkout"] = {"href": f"{href}/checkout", "method": "POST"}

        if context.has_capability(Capability.MARK_MISSING):
            links["mark-missing"] = {"href": f"{href}/missing", "method": "POST"}

    return response


def build_alert_response(
    alert: EmergencyAlert,
    context: PrincipalContext,
    base_url: str,
    tourist_active: bool = True
) -> Dict[str, Any]:
    """Build HAL response for an emergency alert."""
    href = f"{base_url}/api/tourists/{alert.tourist_id}/alerts/{alert.alert_id}"
    response = {
        "tourist_id": alert.tourist_id,
        "alert_id": alert.alert_id,
        "alert_type": alert.alert_type,
        "description": alert.description,
        "location": alert.location,
        "timestamp": _iso(alert.timestamp),
        "is_resolved": alert.is_resolved,
        "responder": alert.responder,
        "response_time": _iso(alert.response_time),
        "_links": {
            "tourist": {"href": f"{base_url}/api/tourists/{alert.tourist_id}"}
        }
    }

    if (not alert.is_resolved and tourist_active and
            context.has_capability(Capability.RESOLVE_ALERT)):
        response["_links"]["resolve"] = {
            "href": f"{href}/resolve",
            "method": "POST"
        }

    return response


def build_location_response(entry: LocationEntry) -> Dict[str, Any]:
    """Plain representation of a location sample."""
    return {
        "location": entry.location,
        "coordinates": entry.coordinates,
        "timestamp": _iso(entry.timestamp),
        "battery_level": entry.battery_level,
        "is_emergency": entry.is_emergency
    }


def build_collection_response(
    name: str,
    items: List[Any],
    self_href: str
) -> Dict[str, Any]:
    """Wrap items in a HAL collection."""
    return {
        "total": len(items),
        "_embedded": {name: items},
        "_links": {"self": {"href": self_href}}
    }
