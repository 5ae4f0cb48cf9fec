# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request models for registry operations.

Business rules (non-empty passport, future check-out, uniqueness) are enforced
by the registry itself so that the Python API and the HTTP boundary reject the
same inputs with the same errors. These models only coerce shapes and types.
"""

from datetime import datetime, timezone
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator
from .enums import AuditAction, Capability, RoleName


class RegisterTouristRequest(BaseModel):
    """Request model for registering a tourist."""

    model_config = ConfigDict(
        use_enum_values=True,
        str_strip_whitespace=True
    )

    passport_number: str = Field(..., description="Passport number")
    national_id_hash: Optional[str] = Field(None, description="Hashed national ID")
    name: str = Field(default="", max_length=200, description="Display name")
    phone: str = Field(default="", max_length=32, description="Contact phone number")
    nationality: str = Field(default="", max_length=100, description="Nationality")
    itinerary: str = Field(default="", max_length=2000, description="Planned itinerary")
    emergency_contact: str = Field(default="", max_length=500, description="Emergency contact details")
    check_out_time: datetime = Field(..., description="Planned check-out timestamp")

    @field_validator('national_id_hash')
    @classmethod
    def normalize_national_id(cls, v):
        """Treat a blank national ID hash as absent."""
        if v is not None and not v.strip():
            return None
        return v

    @field_validator('check_out_time')
    @classmethod
    def assume_utc(cls, v):
        """Interpret naive timestamps as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class UpdateLocationRequest(BaseModel):
    """Request model for a location report."""

    location: str = Field(..., min_length=1, max_length=200, description="Location label")
    coordinates: str = Field(default="", max_length=100, description="Coordinates, e.g. '15.55,73.75'")
    battery_level: int = Field(..., description="Device battery level (0-100)")
    is_emergency: bool = Field(default=False, description="Sample sent in an emergency")


class SetTrackingRequest(BaseModel):
    """Request model for toggling real-time tracking."""

    enabled: bool = Field(..., description="Enable or disable tracking")


class RaiseAlertRequest(BaseModel):
    """Request model for raising an emergency alert."""

    alert_type: Optional[str] = Field(default=None, description="Alert tag, e.g. PANIC or MEDICAL; PANIC when omitted")
    description: str = Field(default="", description="Free-text description")
    location: str = Field(default="", description="Current location")


class CapabilityChangeRequest(BaseModel):
    """Request model for granting or revoking a capability or role."""

    model_config = ConfigDict(
        use_enum_values=True
    )

    principal: str = Field(..., min_length=1, description="Target principal")
    capability: Optional[Capability] = Field(None, description="Capability to grant or revoke")
    role: Optional[RoleName] = Field(None, description="Role whose capabilities to grant or revoke")

    @field_validator('principal')
    @classmethod
    def validate_principal(cls, v):
        """Validate principal."""
        if not v.strip():
            raise ValueError('Principal cannot be empty')
        return v.strip()

    @model_validator(mode='after')
    def validate_target(self):
        """Exactly one of capability or role must be given."""
        if (self.capability is None) == (self.role is None):
            raise ValueError('Provide exactly one of capability or role')
        return self


class AuditLogFilters(BaseModel):
    """Query parameters for audit trail listings."""

    model_config = ConfigDict(
        use_enum_values=True
    )

    principal: Optional[str] = Field(None, description="Filter by acting principal")
    entity: Optional[str] = Field(None, description="Filter by entity type")
    entity_id: Optional[str] = Field(None, description="Filter by entity identifier")
    action: Optional[AuditAction] = Field(None, description="Filter by action")
    date_from: Optional[datetime] = Field(None, description="Entries at or after this time (ISO format)")
    date_to: Optional[datetime] = Field(None, description="Entries at or before this time (ISO format)")

    @field_validator('date_from', 'date_to')
    @classmethod
    def assume_utc(cls, v):
        """Read naive timestamps as UTC."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class TouristPath(BaseModel):
    """Path parameters addressing a tourist."""

    tourist_id: int = Field(..., description="Tourist ID")


class AlertPath(BaseModel):
    """Path parameters addressing one alert of a tourist."""

    tourist_id: int = Field(..., description="Tourist ID")
    alert_id: int = Field(..., description="Alert sequence number")


class SafetyLevelPath(BaseModel):
    """Path parameters for level listings."""

    level: str = Field(..., description="Safety level (green, yellow, orange, red)")


class PrincipalPath(BaseModel):
    """Path parameters addressing a principal."""

    principal: str = Field(..., description="Principal identifier")
