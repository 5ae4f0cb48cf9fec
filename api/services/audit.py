# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Audit trail observer with OpenTelemetry correlation.

Keeps an append-only in-memory list of AuditLog entries for every registry
state change. Entries are never removed, including for checked-out tourists.
"""

import logging
import threading
from datetime import datetime
from typing import Dict, List, Optional, Any
from opentelemetry import trace

from models.base import utc_now
from models.entities import AuditLog, TouristRecord, LocationEntry, EmergencyAlert
from models.enums import AuditAction
from .events import SafetyObserver

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class AuditFilters:
    """Filters for audit log queries."""

    def __init__(
        self,
        principal: Optional[str] = None,
        entity: Optional[str] = None,
        entity_id: Optional[str] = None,
        action: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None
    ):
        self.principal = principal
        self.entity = entity
        self.entity_id = entity_id
        self.action = action
        self.start_date = start_date
        self.end_date = end_date

    def matches(self, entry: AuditLog) -> bool:
        """Check whether an entry satisfies every filter that is set."""
        if self.principal and entry.principal != self.principal:
            return False

        if self.entity and entry.entity != self.entity:
            return False

        if self.entity_id and entry.entity_id != self.entity_id:
            return False

        if self.action and entry.action != self.action:
            return False

        # Date range filter
        if self.start_date and entry.timestamp < self.start_date:
            return False
        if self.end_date and entry.timestamp > self.end_date:
            return False

        return True


class AuditTrail(SafetyObserver):
    """Observer that records every registry change as an audit entry."""

    def __init__(self):
        self._entries: List[AuditLog] = []
        self._lock = threading.Lock()
        logger.info("Audit trail initialized")

    def log_action(
        self,
        principal: Optional[str],
        entity: str,
        entity_id: str,
        action: AuditAction,
        before: Optional[Dict[str, Any]] = None,
        after: Optional[Dict[str, Any]] = None
    ) -> AuditLog:
        """
        Append an audit entry with trace correlation and structured logging.

        Args:
            principal: Principal performing the action, if known
            entity: Type of entity acted upon
            entity_id: ID of the specific entity
            action: Action performed
            before: State before the action (optional)
            after: State after the action (optional)

        Returns:
            AuditLog: The appended entry
        """
        with tracer.start_as_current_span("audit.log_action") as span:
            span_context = span.get_span_context()
            trace_id = format(span_context.trace_id, "032x") if span_context.is_valid else None

            with self._lock:
                entry = AuditLog(
                    sequence=len(self._entries),
                    timestamp=utc_now(),
                    principal=principal,
                    entity=entity,
                    entity_id=str(entity_id),
                    action=action,
                    before=before,
                    after=after,
                    trace_id=trace_id
                )
                self._entries.append(entry)

            span.set_attributes({
                "audit.entity": entity,
                "audit.action": entry.action,
                "audit.entity_id": entry.entity_id
            })

            logger.info(
                "Audit trail entry created",
                extra={
                    "audit_sequence": entry.sequence,
                    "entity": entity,
                    "entity_id": entry.entity_id,
                    "action": entry.action,
                    "principal": principal,
                    "trace_id": trace_id,
                    "audit_category": "business_action"
                }
            )
            return entry

    def query(self, filters: Optional[AuditFilters] = None) -> List[AuditLog]:
        """Entries matching the filters, oldest first."""
        with self._lock:
            entries = list(self._entries)
        if filters is None:
            return entries
        return [entry for entry in entries if filters.matches(entry)]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # Observer hooks

    def on_registered(self, record: TouristRecord, principal: str) -> None:
        self.log_action(
            principal, "tourist", str(record.id), AuditAction.REGISTER,
            after={"status": record.status, "passport_number": record.passport_number}
        )

    def on_location_updated(self, record: TouristRecord, entry: LocationEntry) -> None:
        self.log_action(
            None, "location", str(record.id), AuditAction.UPDATE_LOCATION,
            after={"location": entry.location, "safety_score": record.safety_score}
        )

    def on_tracking_changed(self, record: TouristRecord, enabled: bool) -> None:
        self.log_action(
            None, "tourist", str(record.id), AuditAction.SET_TRACKING,
            after={"tracking_enabled": enabled}
        )

    def on_status_changed(self, record: TouristRecord, previous_status: str,
                          principal: Optional[str]) -> None:
        self.log_action(
            principal, "tourist", str(record.id), AuditAction.STATUS_CHANGE,
            before={"status": previous_status},
            after={"status": record.status, "safety_score": record.safety_score}
        )

    def on_alert_raised(self, record: TouristRecord, alert: EmergencyAlert,
                        principal: Optional[str]) -> None:
        self.log_action(
            principal, "alert", f"{record.id}:{alert.alert_id}", AuditAction.RAISE_ALERT,
            after={"alert_type": alert.alert_type, "location": alert.location}
        )

    def on_alert_resolved(self, record: TouristRecord, alert: EmergencyAlert) -> None:
        self.log_action(
            alert.responder, "alert", f"{record.id}:{alert.alert_id}", AuditAction.RESOLVE_ALERT,
            before={"is_resolved": False},
            after={"is_resolved": True}
        )

    def on_capability_changed(self, principal: str, capability: str, granted: bool,
                              changed_by: str) -> None:
        self.log_action(
            changed_by, "principal", principal,
            AuditAction.GRANT if granted else AuditAction.REVOKE,
            after={"capability": capability}
        )
