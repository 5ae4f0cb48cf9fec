# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Core entity models for the tourist safety registry.
"""

from datetime import datetime
from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field, ConfigDict, computed_field, field_validator
from .base import BaseRecord, FrozenRecord, utc_now
from .enums import TouristStatus, SafetyLevel, Capability, AuditAction


class TouristRecord(BaseRecord):
    """Identity, status and safety state of a single registered tourist."""

    id: int = Field(..., ge=1, description="Registry-assigned identifier")
    passport_number: str = Field(..., min_length=1, description="Passport number (unique)")
    national_id_hash: Optional[str] = Field(None, description="Hashed national ID (unique when present)")
    name: str = Field(default="", description="Display name")
    phone: str = Field(default="", description="Contact phone number")
    nationality: str = Field(default="", description="Nationality")
    check_in_time: datetime = Field(..., description="Registration timestamp")
    check_out_time: datetime = Field(..., description="Planned or actual check-out timestamp")
    itinerary: str = Field(default="", description="Planned itinerary")
    emergency_contact: str = Field(default="", description="Emergency contact details")
    status: TouristStatus = Field(default=TouristStatus.ACTIVE, description="Lifecycle status")
    safety_score: int = Field(default=100, ge=0, le=100, description="Safety score (0-100)")
    last_known_location: str = Field(default="", description="Most recent reported location")
    last_location_update: Optional[datetime] = Field(None, description="Timestamp of the last location report")
    tracking_enabled: bool = Field(default=False, description="Real-time tracking opt-in")
    is_active: bool = Field(default=True, description="False once the tourist has checked out")

    @computed_field
    @property
    def safety_level(self) -> SafetyLevel:
        """Safety level derived from the current score."""
        return SafetyLevel.from_score(self.safety_score)

    @field_validator('passport_number')
    @classmethod
    def validate_passport(cls, v):
        """Validate passport number."""
        if not v.strip():
            raise ValueError('Passport number cannot be empty')
        return v.strip()


class LocationEntry(FrozenRecord):
    """Single location sample reported for a tourist."""

    tourist_id: int = Field(..., ge=1, description="Owning tourist ID")
    location: str = Field(..., description="Location label")
    coordinates: str = Field(default="", description="Coordinates as reported by the device")
    timestamp: datetime = Field(..., description="Time the sample was recorded")
    battery_level: int = Field(..., ge=0, le=100, description="Device battery level")
    is_emergency: bool = Field(default=False, description="Sample was sent in an emergency")


class EmergencyAlert(BaseRecord):
    """Emergency alert raised for a tourist."""

    tourist_id: int = Field(..., ge=1, description="Owning tourist ID")
    alert_id: int = Field(..., ge=0, description="Per-tourist sequence number")
    timestamp: datetime = Field(..., description="Time the alert was raised")
    location: str = Field(default="", description="Location at raise time")
    alert_type: str = Field(..., min_length=1, description="Alert tag, e.g. PANIC or MEDICAL")
    description: str = Field(default="", description="Free-text description")
    is_resolved: bool = Field(default=False, description="Whether a responder resolved the alert")
    responder: Optional[str] = Field(None, description="Principal who resolved the alert")
    response_time: Optional[datetime] = Field(None, description="Resolution timestamp")

    def resolve(self, responder: str, when: datetime) -> None:
        """Mark the alert resolved."""
        if self.is_resolved:
            raise ValueError('Alert is already resolved')

        self.is_resolved = True
        self.responder = responder
        self.response_time = when


class Role(BaseModel):
    """Named bundle of capabilities."""

    name: str = Field(..., min_length=1, max_length=100, description="Role name")
    description: Optional[str] = Field(None, max_length=500, description="Role description")
    capabilities: List[Capability] = Field(default_factory=list, description="Capabilities granted by the role")

    model_config = ConfigDict(
        use_enum_values=True
    )


class AuditLog(BaseModel):
    """Audit log entry for accountability."""

    sequence: int = Field(..., ge=0, description="Position in the audit trail")
    timestamp: datetime = Field(default_factory=utc_now, description="Action timestamp")
    principal: Optional[str] = Field(None, description="Principal who performed the action")
    entity: str = Field(..., description="Entity type")
    entity_id: str = Field(..., description="Entity identifier")
    action: AuditAction = Field(..., description="Action performed")
    before: Optional[Dict[str, Any]] = Field(None, description="State before action")
    after: Optional[Dict[str, Any]] = Field(None, description="State after action")
    trace_id: Optional[str] = Field(None, description="OpenTelemetry trace ID")

    model_config = ConfigDict(
        use_enum_values=True
    )

    @field_validator('entity')
    @classmethod
    def validate_entity(cls, v):
        """Validate entity type."""
        valid_entities = ['tourist', 'alert', 'location', 'principal']
        if v not in valid_entities:
            raise ValueError(f'Invalid entity type: {v}')
        return v


class PrincipalContext(BaseModel):
    """Caller identity resolved for a request."""

    principal: str = Field(..., min_length=1, description="Authenticated principal")
    capabilities: List[Capability] = Field(default_factory=list, description="Capabilities held by the principal")
    token_payload: Optional[Dict[str, Any]] = Field(None, description="Original JWT payload")

    model_config = ConfigDict(
        use_enum_values=True
    )

    def has_capability(self, capability: Capability) -> bool:
        """Check if the principal holds a capability."""
        return capability in self.capabilities
