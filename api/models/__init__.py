# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Models package - Pydantic schemas for the tourist safety registry.
"""

# Base models
from .base import BaseRecord, FrozenRecord, utc_now

# Enumerations
from .enums import (
    TouristStatus,
    SafetyLevel,
    Capability,
    RoleName,
    AuditAction
)

# Core entities
from .entities import (
    TouristRecord,
    LocationEntry,
    EmergencyAlert,
    Role,
    AuditLog,
    PrincipalContext
)

# Request models
from .requests import (
    RegisterTouristRequest,
    UpdateLocationRequest,
    SetTrackingRequest,
    RaiseAlertRequest,
    CapabilityChangeRequest,
    AuditLogFilters,
    TouristPath,
    AlertPath,
    SafetyLevelPath,
    PrincipalPath
)

__all__ = [
    # Base
    "BaseRecord",
    "FrozenRecord",
    "utc_now",

    # Enums
    "TouristStatus",
    "SafetyLevel",
    "Capability",
    "RoleName",
    "AuditAction",

    # Entities
    "TouristRecord",
    "LocationEntry",
    "EmergencyAlert",
    "Role",
    "AuditLog",
    "PrincipalContext",

    # Requests
    "RegisterTouristRequest",
    "UpdateLocationRequest",
    "SetTrackingRequest",
    "RaiseAlertRequest",
    "CapabilityChangeRequest",
    "AuditLogFilters",
    "TouristPath",
    "AlertPath",
    "SafetyLevelPath",
    "PrincipalPath"
]
