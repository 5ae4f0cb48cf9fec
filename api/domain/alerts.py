# SPDX-License-Identifier: Apache-2.0

"""
Emergency alert workflow.

Alerts are raised by anyone (a panic trigger must never be blocked) and
resolved by responders. Each tourist owns a dense, zero-based alert list;
resolution flips flags in place and never removes or reorders entries.

Status transitions driven here:
    active/emergency/missing --raise--> emergency (score forced to 0)
    any active status      --resolve--> active   (score reset to 60)
"""

from datetime import datetime
from typing import Dict, List
import logging

from models.entities import EmergencyAlert
from models.enums import TouristStatus
from .errors import NotFoundError, ConflictError
from .registry import IdentityRegistry
from .safety_score import EMERGENCY_SCORE, RECOVERY_SCORE

logger = logging.getLogger(__name__)

# Tag used when a trigger sends no alert type
DEFAULT_ALERT_TYPE = "PANIC"


class AlertManager:
    """Owns per-tourist alert lists and drives alert status transitions."""

    def __init__(self, registry: IdentityRegistry):
        self.registry = registry
        self._alerts: Dict[int, List[EmergencyAlert]] = {}

    def raise_alert(
        self,
        tourist_id: int,
        alert_type: str,
        description: str,
        location: str,
        now: datetime
    ) -> EmergencyAlert:
        """
        Append a new alert and put the tourist into emergency. A blank alert
        type is recorded as DEFAULT_ALERT_TYPE rather than rejected.

        Returns:
            The new EmergencyAlert; its alert_id is the sequence number
        """
        record = self.registry.get_active(tourist_id)

        alert_type = alert_type.strip() if isinstance(alert_type, str) else ""

        alerts = self._alerts.setdefault(tourist_id, [])
        alert = EmergencyAlert(
            tourist_id=tourist_id,
            alert_id=len(alerts),
            timestamp=now,
            location=location or "",
            alert_type=alert_type or DEFAULT_ALERT_TYPE,
            description=description or ""
        )
        alerts.append(alert)

        record.status = TouristStatus.EMERGENCY
        record.last_known_location = alert.location
        record.last_location_update = now
        record.safety_score = EMERGENCY_SCORE

        logger.warning(
            "Emergency alert raised",
            extra={
                "tourist_id": tourist_id,
                "alert_id": alert.alert_id,
                "alert_type": alert.alert_type
            }
        )
        return alert

    def resolve(self, tourist_id: int, alert_id: int, responder: str, now: datetime) -> EmergencyAlert:
        """
        Resolve a previously raised alert and return the tourist to active.

        Raises:
            NotFoundError: alert_id was never issued for this tourist
            ConflictError: the alert is already resolved
        """
        record = self.registry.get_active(tourist_id)
        alerts = self._alerts.get(tourist_id, [])

        if alert_id < 0 or alert_id >= len(alerts):
            raise NotFoundError(f"Alert {alert_id} does not exist for tourist {tourist_id}")

        alert = alerts[alert_id]
        if alert.is_resolved:
            raise ConflictError(f"Alert {alert_id} is already resolved")

        alert.resolve(responder, now)
        record.status = TouristStatus.ACTIVE
        record.safety_score = RECOVERY_SCORE

        logger.info(
            "Emergency alert resolved",
            extra={
                "tourist_id": tourist_id,
                "alert_id": alert_id,
                "responder": responder
            }
        )
        return alert

    def list_for_record(self, tourist_id: int) -> List[EmergencyAlert]:
        """Alerts for a tourist in raise order."""
        self.registry.get(tourist_id)
        return list(self._alerts.get(tourist_id, ()))

    def has_alerts(self, tourist_id: int) -> bool:
        """True if any alert was ever raised for the tourist."""
        return bool(self._alerts.get(tourist_id))

    def has_open_alert(self, tourist_id: int) -> bool:
        """True if the tourist has at least one unresolved alert."""
        return any(not alert.is_resolved for alert in self._alerts.get(tourist_id, ()))
