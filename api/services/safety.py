# SPDX-License-Identifier: Apache-2.0

"""
Safety service orchestrating the registry, tracker and alert manager.

Every operation runs under one service-wide lock, so operations are totally
ordered and no caller ever observes a partially applied change. Capability
checks run before any state is read. Records, entries and alerts leave the
service as deep copies. Observers are notified in commit order after the lock
is released.
"""

import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, List, Optional, Tuple, Any
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from domain.alerts import AlertManager
from domain.authorization import AccessGuard, check_capability
from domain.errors import AuthorizationError, SafetyError, ValidationError
from domain.registry import IdentityRegistry
from domain.tracking import LocationTracker
from models.base import utc_now
from models.entities import TouristRecord, LocationEntry, EmergencyAlert
from models.enums import Capability, RoleName, SafetyLevel
from models.requests import RegisterTouristRequest
from .events import EventDispatcher, SafetyObserver

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class SafetyService:
    """Public operation set of the tourist safety registry."""

    def __init__(
        self,
        access_guard: Optional[AccessGuard] = None,
        clock: Callable[[], datetime] = utc_now,
        observers: Optional[List[SafetyObserver]] = None
    ):
        """
        Initialize the service.

        Args:
            access_guard: Capability store; a guard with no grants if omitted
            clock: Source of the current time
            observers: Observers notified after each committed change
        """
        self.access_guard = access_guard or AccessGuard()
        self.clock = clock
        self.events = EventDispatcher(observers)
        self.registry = IdentityRegistry()
        self.tracker = LocationTracker(self.registry)
        self.alerts = AlertManager(self.registry)
        self._lock = threading.RLock()

    def subscribe(self, observer: SafetyObserver) -> None:
        """Register an observer for state-change notifications."""
        self.events.subscribe(observer)

    @contextmanager
    def _operation(self, name: str, **attributes):
        """Run an operation in a span, under the service lock, and record failures."""
        pending: List[Tuple[str, tuple]] = []

        with tracer.start_as_current_span(f"safety.{name}", attributes=attributes) as span:
            try:
                with self._lock:
                    yield pending
                    self.events.enqueue(pending)
            except SafetyError as e:
                span.set_status(Status(StatusCode.ERROR, e.message))
                span.set_attribute("error.type", e.error_type)
                logger.info(
                    f"Operation {name} rejected: {e.message}",
                    extra={"operation": name, "error_type": e.error_type, **attributes}
                )
                raise

            span.set_status(Status(StatusCode.OK))

        self.events.deliver()

    def _authorize(self, principal: Optional[str], capability: Capability, operation: str) -> None:
        """Raise AuthorizationError unless the principal holds the capability."""
        result = check_capability(self.access_guard, principal, capability)
        if not result.allowed:
            logger.warning(
                "Authorization denied",
                extra={
                    "operation": operation,
                    "principal": principal,
                    "missing_capabilities": result.missing_capabilities
                }
            )
            raise AuthorizationError(result.reason, Capability(capability).value)

    @staticmethod
    def _snapshot(item: Any) -> Any:
        return item.model_copy(deep=True)

    # Mutating operations

    def register(self, principal: str, request: RegisterTouristRequest) -> int:
        """Register a tourist and return the new ID."""
        with self._operation("register", principal=principal or "") as pending:
            self._authorize(principal, Capability.REGISTER_TOURIST, "register")
            tourist_id = self.registry.register(request, self.clock())
            record = self._snapshot(self.registry.get(tourist_id))
            pending.append(("on_registered", (record, principal)))

        logger.info(
            "Tourist registered",
            extra={"tourist_id": tourist_id, "principal": principal, "nationality": record.nationality}
        )
        return tourist_id

    def update_location(
        self,
        principal: Optional[str],
        tourist_id: int,
        location: str,
        coordinates: str,
        battery_level: int,
        is_emergency: bool = False
    ) -> LocationEntry:
        """Record a location sample; open to any authenticated caller."""
        with self._operation("update_location", **{"tourist.id": tourist_id}) as pending:
            entry = self.tracker.record(
                tourist_id, location, coordinates, battery_level, self.clock(), is_emergency
            )
            record = self._snapshot(self.registry.get(tourist_id))
            entry = self._snapshot(entry)
            pending.append(("on_location_updated", (record, entry)))

        return entry

    def set_tracking(self, principal: Optional[str], tourist_id: int, enabled: bool) -> None:
        """Toggle real-time tracking; open to any authenticated caller."""
        with self._operation("set_tracking", **{"tourist.id": tourist_id}) as pending:
            record = self._snapshot(self.tracker.set_tracking(tourist_id, enabled))
            pending.append(("on_tracking_changed", (record, bool(enabled))))

    def check_out(self, principal: str, tourist_id: int) -> None:
        """Check a tourist out; the record becomes permanently inactive."""
        with self._operation("check_out", **{"tourist.id": tourist_id}) as pending:
            self._authorize(principal, Capability.REGISTER_TOURIST, "check_out")
            previous = self.registry.get(tourist_id).status
            record = self._snapshot(self.registry.check_out(tourist_id, self.clock()))
            pending.append(("on_status_changed", (record, previous, principal)))

        logger.info("Tourist checked out", extra={"tourist_id": tourist_id, "principal": principal})

    def mark_missing(self, principal: str, tourist_id: int) -> None:
        """Report a tourist as missing."""
        with self._operation("mark_missing", **{"tourist.id": tourist_id}) as pending:
            self._authorize(principal, Capability.MARK_MISSING, "mark_missing")
            previous = self.registry.get(tourist_id).status
            record = self._snapshot(self.registry.mark_missing(tourist_id))
            pending.append(("on_status_changed", (record, previous, principal)))

        logger.warning("Tourist marked missing", extra={"tourist_id": tourist_id, "principal": principal})

    def raise_alert(
        self,
        principal: Optional[str],
        tourist_id: int,
        alert_type: str,
        description: str,
        location: str
    ) -> int:
        """Raise an emergency alert and return its sequence number. Never capability-gated."""
        with self._operation("raise_alert", **{"tourist.id": tourist_id}) as pending:
            previous = self.registry.get(tourist_id).status
            alert = self.alerts.raise_alert(tourist_id, alert_type, description, location, self.clock())
            record = self._snapshot(self.registry.get(tourist_id))
            alert = self._snapshot(alert)
            pending.append(("on_alert_raised", (record, alert, principal)))
            if previous != record.status:
                pending.append(("on_status_changed", (record, previous, principal)))

        return alert.alert_id

    def resolve_alert(self, principal: str, tourist_id: int, alert_id: int) -> None:
        """Resolve an alert on behalf of a responder."""
        with self._operation("resolve_alert", **{"tourist.id": tourist_id, "alert.id": alert_id}) as pending:
            self._authorize(principal, Capability.RESOLVE_ALERT, "resolve_alert")
            previous = self.registry.get(tourist_id).status
            alert = self._snapshot(self.alerts.resolve(tourist_id, alert_id, principal, self.clock()))
            record = self._snapshot(self.registry.get(tourist_id))
            pending.append(("on_alert_resolved", (record, alert)))
            if previous != record.status:
                pending.append(("on_status_changed", (record, previous, principal)))

    # Capability administration

    def grant_capability(self, principal: str, target: str, capability: Capability) -> bool:
        """Grant a capability; requires ManageRoles. Returns False if already held."""
        return self._change_capabilities(principal, target, lambda: [capability], grant=True) != []

    def revoke_capability(self, principal: str, target: str, capability: Capability) -> bool:
        """Revoke a capability; requires ManageRoles. Returns False if not held."""
        return self._change_capabilities(principal, target, lambda: [capability], grant=False) != []

    def grant_role(self, principal: str, target: str, role_name: RoleName) -> List[str]:
        """Grant every capability of a role; requires ManageRoles."""
        return self._change_role(principal, target, role_name, grant=True)

    def revoke_role(self, principal: str, target: str, role_name: RoleName) -> List[str]:
        """Revoke every capability of a role; requires ManageRoles."""
        return self._change_role(principal, target, role_name, grant=False)

    def _change_role(self, principal: str, target: str, role_name: RoleName, grant: bool) -> List[str]:
        def role_capabilities():
            try:
                return self.access_guard.role(role_name).capabilities
            except KeyError as e:
                raise ValidationError(str(e.args[0]))

        return self._change_capabilities(principal, target, role_capabilities, grant)

    def _change_capabilities(self, principal: str, target: str,
                             capabilities: Callable[[], List[Capability]], grant: bool) -> List[str]:
        """Apply a grant or revoke; `capabilities` is resolved only after authorization."""
        name = "grant_capability" if grant else "revoke_capability"
        with self._operation(name, principal=principal or "") as pending:
            self._authorize(principal, Capability.MANAGE_ROLES, name)
            if not target:
                raise ValidationError("Target principal is required")

            try:
                requested = [Capability(capability) for capability in capabilities()]
            except ValueError as e:
                raise ValidationError(str(e))

            change = self.access_guard.grant if grant else self.access_guard.revoke
            changed = [capability.value for capability in requested if change(target, capability)]
            for capability in changed:
                pending.append(("on_capability_changed", (target, capability, grant, principal)))

        return changed

    def capabilities_of(self, principal: str) -> List[str]:
        """Capabilities currently held by a principal."""
        with self._lock:
            return self.access_guard.capabilities_of(principal)

    # Queries

    def get_by_id(self, tourist_id: int) -> TouristRecord:
        """Point-in-time copy of a tourist record."""
        with self._lock:
            return self._snapshot(self.registry.get(tourist_id))

    def get_id_by_passport(self, passport: str) -> int:
        """Tourist ID for a passport, or 0."""
        with self._lock:
            return self.registry.lookup(passport)

    def verify_identity(self, tourist_id: int, passport: str) -> bool:
        """True if the active tourist's passport matches."""
        with self._lock:
            return self.registry.verify(tourist_id, passport)

    def list_alerts(self, tourist_id: int) -> List[EmergencyAlert]:
        """Alerts of a tourist in raise order."""
        with self._lock:
            return [self._snapshot(alert) for alert in self.alerts.list_for_record(tourist_id)]

    def list_location_history(self, tourist_id: int) -> List[LocationEntry]:
        """Location samples of a tourist in chronological order."""
        with self._lock:
            return [self._snapshot(entry) for entry in self.tracker.history(tourist_id)]

    def list_active(self) -> List[int]:
        """IDs of tourists that have not checked out."""
        with self._lock:
            return [record.id for record in self.registry.records() if record.is_active]

    def list_with_any_alert(self) -> List[int]:
        """IDs of tourists with at least one alert, resolved or not; each ID once."""
        with self._lock:
            return [record.id for record in self.registry.records() if self.alerts.has_alerts(record.id)]

    def list_with_open_alert(self) -> List[int]:
        """IDs of tourists with at least one unresolved alert."""
        with self._lock:
            return [record.id for record in self.registry.records() if self.alerts.has_open_alert(record.id)]

    def list_by_safety_level(self, level: SafetyLevel) -> List[int]:
        """IDs of active tourists currently at a safety level."""
        level = SafetyLevel(level)
        with self._lock:
            return [
                record.id for record in self.registry.records()
                if record.is_active and record.safety_level == level
            ]

    def count_total(self) -> int:
        """Number of tourists ever registered."""
        with self._lock:
            return self.registry.count()
