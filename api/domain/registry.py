# SPDX-License-Identifier: Apache-2.0

"""
Identity registry owning tourist records and their uniqueness indices.

The registry is not thread-safe on its own; SafetyService serializes every
call. Methods return live records so that the tracker and alert manager can
mutate them in place, and callers outside the domain must copy before
handing records out.
"""

from datetime import datetime
from typing import Dict, Iterator, Optional
import logging

from models.entities import TouristRecord
from models.enums import TouristStatus
from models.requests import RegisterTouristRequest
from .errors import ValidationError, ConflictError, NotFoundError, StateError
from .safety_score import PERFECT_SCORE, EMERGENCY_SCORE

logger = logging.getLogger(__name__)


class IdentityRegistry:
    """Keyed store of tourist records with passport and national-ID indices."""

    def __init__(self):
        self._records: Dict[int, TouristRecord] = {}
        self._by_passport: Dict[str, int] = {}
        self._by_national_id: Dict[str, int] = {}
        self._last_id = 0

    def register(self, request: RegisterTouristRequest, now: datetime) -> int:
        """
        Create a record for a new tourist.

        Every check runs before any write, so a rejected registration leaves
        the records and both indices untouched.

        Args:
            request: Registration fields
            now: Current time, used as check-in time

        Returns:
            The newly assigned tourist ID

        Raises:
            ValidationError: empty passport or check-out not in the future
            ConflictError: passport or national ID already registered
        """
        passport = (request.passport_number or "").strip()
        national_id = request.national_id_hash or None

        errors = []
        if not passport:
            errors.append("Passport number is required")
        if request.check_out_time <= now:
            errors.append("Check-out time must be in the future")
        if errors:
            raise ValidationError("Invalid registration", errors)

        if passport in self._by_passport:
            raise ConflictError(f"Passport {passport} is already registered")
        if national_id and national_id in self._by_national_id:
            raise ConflictError("National ID is already registered")

        tourist_id = self._last_id + 1
        record = TouristRecord(
            id=tourist_id,
            passport_number=passport,
            national_id_hash=national_id,
            name=request.name,
            phone=request.phone,
            nationality=request.nationality,
            check_in_time=now,
            check_out_time=request.check_out_time,
            itinerary=request.itinerary,
            emergency_contact=request.emergency_contact,
            status=TouristStatus.ACTIVE,
            safety_score=PERFECT_SCORE,
            last_location_update=now,
            is_active=True
        )

        self._last_id = tourist_id
        self._records[tourist_id] = record
        self._by_passport[passport] = tourist_id
        if national_id:
            self._by_national_id[national_id] = tourist_id

        logger.debug("Tourist record created", extra={"tourist_id": tourist_id})
        return tourist_id

    def get(self, tourist_id: int) -> TouristRecord:
        """Return the live record, or raise NotFoundError."""
        if tourist_id <= 0 or tourist_id > self._last_id:
            raise NotFoundError(f"Tourist {tourist_id} does not exist")

        record = self._records.get(tourist_id)
        if record is None:
            raise NotFoundError(f"Tourist {tourist_id} does not exist")
        return record

    def get_active(self, tourist_id: int) -> TouristRecord:
        """Return the live record if it is still active, else raise StateError."""
        record = self.get(tourist_id)
        if not record.is_active:
            raise StateError(f"Tourist {tourist_id} is not active")
        return record

    def lookup(self, passport: str) -> int:
        """Tourist ID registered under a passport, or 0. Never raises."""
        if not isinstance(passport, str) or not passport:
            return 0
        return self._by_passport.get(passport.strip(), 0)

    def lookup_national_id(self, national_id_hash: str) -> int:
        """Tourist ID registered under a national ID hash, or 0."""
        if not isinstance(national_id_hash, str) or not national_id_hash:
            return 0
        return self._by_national_id.get(national_id_hash, 0)

    def verify(self, tourist_id: int, passport: str) -> bool:
        """True if the record exists, is active and carries this passport."""
        record = self._records.get(tourist_id)
        if record is None or not record.is_active or not isinstance(passport, str) or not passport:
            return False
        return record.passport_number == passport.strip()

    def check_out(self, tourist_id: int, now: datetime) -> TouristRecord:
        """Close a record permanently."""
        record = self.get_active(tourist_id)

        record.status = TouristStatus.CHECKED_OUT
        record.is_active = False
        record.check_out_time = now
        return record

    def mark_missing(self, tourist_id: int) -> TouristRecord:
        """Report an active tourist as missing; the score drops to the emergency value."""
        record = self.get_active(tourist_id)

        record.status = TouristStatus.MISSING
        record.safety_score = EMERGENCY_SCORE
        return record

    def count(self) -> int:
        """Number of records ever registered."""
        return self._last_id

    def records(self) -> Iterator[TouristRecord]:
        """Iterate live records in ID order."""
        for tourist_id in sorted(self._records):
            yield self._records[tourist_id]

    def __contains__(self, tourist_id: int) -> bool:
        return tourist_id in self._records

    def __len__(self) -> int:
        return len(self._records)
