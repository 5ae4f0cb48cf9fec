# SPDX-License-Identifier: Apache-2.0

"""
Location tracking: append-only location history per tourist and the
last-known projection kept on the record.
"""

from datetime import datetime
from typing import Dict, List
import logging

from models.entities import LocationEntry, TouristRecord
from .errors import ValidationError
from .registry import IdentityRegistry
from . import safety_score

logger = logging.getLogger(__name__)


class LocationTracker:
    """Records location samples and applies the time-based scoring rule."""

    def __init__(self, registry: IdentityRegistry):
        self.registry = registry
        self._history: Dict[int, List[LocationEntry]] = {}

    def record(
        self,
        tourist_id: int,
        location: str,
        coordinates: str,
        battery_level: int,
        now: datetime,
        is_emergency: bool = False
    ) -> LocationEntry:
        """
        Append a location sample and rescore the tourist.

        Args:
            tourist_id: Tourist reporting the sample
            location: Location label
            coordinates: Coordinates as reported by the device
            battery_level: Device battery level (0-100)
            now: Time of the report
            is_emergency: Sample was sent in an emergency

        Returns:
            The appended LocationEntry
        """
        record = self.registry.get_active(tourist_id)

        if battery_level is None or not 0 <= battery_level <= 100:
            raise ValidationError("Battery level must be between 0 and 100")
        if not location or not location.strip():
            raise ValidationError("Location is required")

        entry = LocationEntry(
            tourist_id=tourist_id,
            location=location.strip(),
            coordinates=coordinates or "",
            timestamp=now,
            battery_level=battery_level,
            is_emergency=is_emergency
        )

        # Elapsed time is measured against the report before this one
        previous_update = record.last_location_update
        elapsed = now - previous_update if previous_update is not None else None

        self._history.setdefault(tourist_id, []).append(entry)
        record.last_known_location = entry.location
        record.last_location_update = now

        result = safety_score.evaluate(record.safety_score, elapsed)
        record.safety_score = result.score

        logger.debug(
            "Location recorded",
            extra={
                "tourist_id": tourist_id,
                "safety_score": result.score,
                "safety_level": result.level.value
            }
        )
        return entry

    def history(self, tourist_id: int) -> List[LocationEntry]:
        """Location samples for a tourist in the order they were recorded."""
        self.registry.get(tourist_id)
        return list(self._history.get(tourist_id, ()))

    def set_tracking(self, tourist_id: int, enabled: bool) -> TouristRecord:
        """Toggle real-time tracking without touching the score."""
        record = self.registry.get_active(tourist_id)
        record.tracking_enabled = bool(enabled)
        return record
