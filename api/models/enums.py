# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Enumeration types for the tourist safety registry.
"""

from enum import Enum


class TouristStatus(str, Enum):
    """Tourist record lifecycle status."""
    ACTIVE = "active"
    CHECKED_OUT = "checked_out"
    MISSING = "missing"
    EMERGENCY = "emergency"
    SUSPENDED = "suspended"


class SafetyLevel(str, Enum):
    """Coarse banding of the safety score."""
    GREEN = "green"
    YELLOW = "yellow"
    ORANGE = "orange"
    RED = "red"

    @classmethod
    def from_score(cls, score: int) -> "SafetyLevel":
        """Band a 0-100 safety score: Green >= 80, Yellow >= 60, Orange >= 40, else Red."""
        if score >= 80:
            return cls.GREEN
        if score >= 60:
            return cls.YELLOW
        if score >= 40:
            return cls.ORANGE
        return cls.RED


class Capability(str, Enum):
    """Capabilities checked before a gated operation proceeds."""
    REGISTER_TOURIST = "tourist:register"
    MARK_MISSING = "tourist:mark_missing"
    RESOLVE_ALERT = "alert:resolve"
    MANAGE_ROLES = "role:manage"


class RoleName(str, Enum):
    """Named bundles of capabilities."""
    ADMIN = "admin"
    TOURISM_OFFICER = "tourism_officer"
    POLICE_OFFICER = "police_officer"
    EMERGENCY_RESPONDER = "emergency_responder"


class AuditAction(str, Enum):
    """Actions recorded in the audit trail."""
    REGISTER = "register"
    UPDATE_LOCATION = "update_location"
    SET_TRACKING = "set_tracking"
    STATUS_CHANGE = "status_change"
    RAISE_ALERT = "raise_alert"
    RESOLVE_ALERT = "resolve_alert"
    GRANT = "grant"
    REVOKE = "revoke"
