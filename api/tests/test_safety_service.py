# SPDX-License-Identifier: Apache-2.0

"""
Tests for the safety service: capability gating, end-to-end workflows,
observer notification and concurrent access.
"""

import threading
import pytest

from domain.errors import (
    AuthorizationError, ValidationError, ConflictError, NotFoundError, StateError
)
from models.enums import TouristStatus, SafetyLevel, Capability, RoleName, AuditAction
from services.audit import AuditTrail
from services.events import SafetyObserver
from services.safety import SafetyService

ADMIN = "admin"
OFFICER = "officer"
POLICE = "police"
RESPONDER = "responder"
VISITOR = "visitor"


class RecordingObserver(SafetyObserver):
    """Observer that keeps every notification."""

    def __init__(self):
        self.calls = []

    def on_registered(self, record, principal):
        self.calls.append(("registered", record.id, principal))

    def on_location_updated(self, record, entry):
        self.calls.append(("location", record.id, entry.location))

    def on_tracking_changed(self, record, enabled):
        self.calls.append(("tracking", record.id, enabled))

    def on_status_changed(self, record, previous_status, principal):
        self.calls.append(("status", record.id, previous_status, record.status))

    def on_alert_raised(self, record, alert, principal):
        self.calls.append(("raised", record.id, alert.alert_id))

    def on_alert_resolved(self, record, alert):
        self.calls.append(("resolved", record.id, alert.alert_id, alert.responder))

    def on_capability_changed(self, principal, capability, granted, changed_by):
        self.calls.append(("capability", principal, capability, granted))


class FailingObserver(SafetyObserver):
    """Observer that always fails."""

    def on_registered(self, record, principal):
        raise RuntimeError("observer down")

    def on_alert_raised(self, record, alert, principal):
        raise RuntimeError("observer down")


class TestWorkflowScenarios:
    """Test the registration to resolution lifecycle."""

    def test_register_first_tourist(self, service, make_registration):
        """Test first registration gets ID 1 with a perfect score."""
        tourist_id = service.register(OFFICER, make_registration("P1"))

        record = service.get_by_id(tourist_id)
        assert tourist_id == 1
        assert record.status == TouristStatus.ACTIVE
        assert record.safety_score == 100
        assert record.safety_level == SafetyLevel.GREEN

    def test_quick_location_report_keeps_perfect_score(self, service, registered, clock):
        """Test a report ten seconds after registration."""
        clock.advance(seconds=10)
        service.update_location(VISITOR, registered, "X", "0,0", 90)

        assert service.get_by_id(registered).safety_score == 100

    def test_panic_then_resolution(self, service, registered, clock):
        """Test raise, resolve, then a repeated resolve."""
        alert_id = service.raise_alert(VISITOR, registered, "PANIC", "Stranded", "Loc")

        record = service.get_by_id(registered)
        assert alert_id == 0
        assert record.status == TouristStatus.EMERGENCY
        assert record.safety_score == 0
        assert record.safety_level == SafetyLevel.RED

        clock.advance(minutes=20)
        service.resolve_alert(RESPONDER, registered, 0)

        record = service.get_by_id(registered)
        assert record.status == TouristStatus.ACTIVE
        assert record.safety_score == 60
        assert record.safety_level == SafetyLevel.YELLOW

        with pytest.raises(ConflictError):
            service.resolve_alert(RESPONDER, registered, 0)

    def test_empty_passport_changes_nothing(self, service, make_registration):
        """Test rejected registration leaves the registry size unchanged."""
        service.register(OFFICER, make_registration("P1"))

        with pytest.raises(ValidationError):
            service.register(OFFICER, make_registration(""))

        assert service.count_total() == 1
        assert service.list_active() == [1]

    def test_ids_never_reused(self, service, make_registration):
        """Test IDs keep increasing across failures and checkouts."""
        assert service.register(OFFICER, make_registration("P1")) == 1
        with pytest.raises(ConflictError):
            service.register(OFFICER, make_registration("P1"))
        service.check_out(OFFICER, 1)

        assert service.register(OFFICER, make_registration("P2")) == 2
        assert service.count_total() == 2

    def test_checked_out_passport_stays_reserved(self, service, make_registration):
        """Test passport uniqueness across checkout."""
        service.register(OFFICER, make_registration("P1"))
        service.check_out(OFFICER, 1)

        with pytest.raises(ConflictError):
            service.register(OFFICER, make_registration("P1"))

    def test_rejections_are_idempotent(self, service, registered):
        """Test that repeating a rejected call yields the same error and no change."""
        before = service.get_by_id(registered)
        for _ in range(2):
            with pytest.raises(NotFoundError):
                service.resolve_alert(RESPONDER, registered, 0)

        assert service.get_by_id(registered) == before

    def test_checked_out_record_is_frozen(self, service, registered):
        """Test every mutation on a checked-out record is a state error."""
        service.check_out(OFFICER, registered)

        with pytest.raises(StateError):
            service.update_location(VISITOR, registered, "X", "", 50)
        with pytest.raises(StateError):
            service.set_tracking(VISITOR, registered, True)
        with pytest.raises(StateError):
            service.raise_alert(VISITOR, registered, "PANIC", "", "")
        with pytest.raises(StateError):
            service.mark_missing(POLICE, registered)
        with pytest.raises(StateError):
            service.check_out(OFFICER, registered)

        record = service.get_by_id(registered)
        assert record.status == TouristStatus.CHECKED_OUT
        assert not record.is_active

    def test_missing_then_alert_then_resolve(self, service, registered):
        """Test that resolution returns a missing tourist to active."""
        service.mark_missing(POLICE, registered)
        assert service.get_by_id(registered).status == TouristStatus.MISSING

        service.raise_alert(VISITOR, registered, "PANIC", "", "")
        service.resolve_alert(RESPONDER, registered, 0)
        assert service.get_by_id(registered).status == TouristStatus.ACTIVE

    def test_score_always_in_bounds(self, service, registered, clock):
        """Test repeated decay and reward keep the score within 0..100."""
        for _ in range(15):
            clock.advance(hours=9)
            service.update_location(VISITOR, registered, "A", "", 40)
        assert service.get_by_id(registered).safety_score == 10

        for _ in range(25):
            clock.advance(minutes=30)
            service.update_location(VISITOR, registered, "B", "", 40)
        assert service.get_by_id(registered).safety_score == 95


class TestCapabilityGating:
    """Test capability checks on gated operations."""

    def test_register_requires_capability(self, service, make_registration):
        """Test registration is denied without tourist:register."""
        with pytest.raises(AuthorizationError) as exc_info:
            service.register(VISITOR, make_registration("P1"))

        assert exc_info.value.status_code == 403
        assert exc_info.value.missing_capability == "tourist:register"
        assert service.count_total() == 0

    def test_check_out_requires_register_capability(self, service, registered):
        """Test checkout is gated on tourist:register."""
        with pytest.raises(AuthorizationError):
            service.check_out(POLICE, registered)
        assert service.get_by_id(registered).is_active

    def test_mark_missing_requires_capability(self, service, registered):
        """Test missing reports are gated."""
        with pytest.raises(AuthorizationError):
            service.mark_missing(OFFICER, registered)
        assert service.get_by_id(registered).status == TouristStatus.ACTIVE

    def test_resolve_requires_capability(self, service, registered):
        """Test resolution is gated and the alert stays open."""
        service.raise_alert(VISITOR, registered, "PANIC", "", "")

        with pytest.raises(AuthorizationError):
            service.resolve_alert(POLICE, registered, 0)
        assert service.list_alerts(registered)[0].is_resolved is False

    def test_authorization_checked_before_lookup(self, service):
        """Test an unauthorized caller learns nothing about unknown IDs."""
        with pytest.raises(AuthorizationError):
            service.mark_missing(VISITOR, 999)
        with pytest.raises(AuthorizationError):
            service.resolve_alert(None, 999, 0)

    def test_ungated_operations(self, service, registered):
        """Test raise, location and tracking are open to any principal."""
        service.update_location(None, registered, "A", "", 50)
        service.set_tracking(None, registered, True)
        assert service.raise_alert(None, registered, "PANIC", "", "") == 0

    def test_revoked_capability_takes_effect(self, service, registered):
        """Test that revocation applies to the next call."""
        assert service.revoke_role(ADMIN, POLICE, RoleName.POLICE_OFFICER) == ["tourist:mark_missing"]
        with pytest.raises(AuthorizationError):
            service.mark_missing(POLICE, registered)


class TestCapabilityAdministration:
    """Test grant and revoke operations."""

    def test_grant_requires_manage_roles(self, service):
        """Test only role managers may grant."""
        with pytest.raises(AuthorizationError):
            service.grant_capability(OFFICER, VISITOR, Capability.RESOLVE_ALERT)
        assert service.capabilities_of(VISITOR) == []

    def test_grant_and_revoke_capability(self, service):
        """Test single capability changes report whether anything changed."""
        assert service.grant_capability(ADMIN, VISITOR, Capability.RESOLVE_ALERT) is True
        assert service.grant_capability(ADMIN, VISITOR, Capability.RESOLVE_ALERT) is False
        assert service.capabilities_of(VISITOR) == ["alert:resolve"]

        assert service.revoke_capability(ADMIN, VISITOR, "alert:resolve") is True
        assert service.revoke_capability(ADMIN, VISITOR, "alert:resolve") is False

    def test_grant_role(self, service):
        """Test role grants."""
        assert service.grant_role(ADMIN, VISITOR, RoleName.TOURISM_OFFICER) == ["tourist:register"]
        assert service.capabilities_of(VISITOR) == ["tourist:register"]

    def test_unknown_role(self, service):
        """Test unknown roles are validation errors for a role manager."""
        with pytest.raises(ValidationError):
            service.grant_role(ADMIN, VISITOR, "lifeguard")

    def test_unknown_role_unauthorized(self, service):
        """Test authorization is checked before the role is resolved."""
        with pytest.raises(AuthorizationError):
            service.grant_role(VISITOR, VISITOR, "lifeguard")

    def test_empty_target(self, service):
        """Test target principal is required."""
        with pytest.raises(ValidationError):
            service.grant_capability(ADMIN, "", Capability.MARK_MISSING)

    def test_unknown_capability(self, service):
        """Test unknown capability strings."""
        with pytest.raises(ValidationError):
            service.grant_capability(ADMIN, VISITOR, "tourist:delete")


class TestQueries:
    """Test read-side queries."""

    def test_lookup_and_verify(self, service, make_registration):
        """Test passport lookup and verification."""
        service.register(OFFICER, make_registration("P1"))

        assert service.get_id_by_passport("P1") == 1
        assert service.get_id_by_passport("P9") == 0
        assert service.verify_identity(1, "P1")
        assert not service.verify_identity(1, "P9")

    def test_get_by_id_returns_copy(self, service, registered):
        """Test callers cannot mutate registry state through a snapshot."""
        record = service.get_by_id(registered)
        record.safety_score = 5
        record.status = TouristStatus.SUSPENDED

        fresh = service.get_by_id(registered)
        assert fresh.safety_score == 100
        assert fresh.status == TouristStatus.ACTIVE

    def test_list_active_excludes_checked_out(self, service, make_registration):
        """Test the active listing is derived from current state."""
        for passport in ("P1", "P2", "P3"):
            service.register(OFFICER, make_registration(passport))
        service.check_out(OFFICER, 2)

        assert service.list_active() == [1, 3]

    def test_alert_listings_deduplicated(self, service, make_registration):
        """Test repeated alerts list a tourist once."""
        for passport in ("P1", "P2", "P3"):
            service.register(OFFICER, make_registration(passport))
        service.raise_alert(VISITOR, 3, "PANIC", "", "")
        service.raise_alert(VISITOR, 1, "PANIC", "", "")
        service.raise_alert(VISITOR, 1, "MEDICAL", "", "")
        service.resolve_alert(RESPONDER, 3, 0)

        assert service.list_with_any_alert() == [1, 3]
        assert service.list_with_open_alert() == [1]

    def test_list_by_safety_level(self, service, make_registration):
        """Test level listing covers active tourists only."""
        for passport in ("P1", "P2", "P3"):
            service.register(OFFICER, make_registration(passport))
        service.raise_alert(VISITOR, 2, "PANIC", "", "")
        service.mark_missing(POLICE, 3)
        service.check_out(OFFICER, 1)

        assert service.list_by_safety_level(SafetyLevel.GREEN) == []
        assert service.list_by_safety_level("red") == [2, 3]

        service.resolve_alert(RESPONDER, 2, 0)
        assert service.list_by_safety_level(SafetyLevel.YELLOW) == [2]

    def test_location_history(self, service, registered, clock):
        """Test location history order and fields."""
        service.update_location(VISITOR, registered, "A", "1,1", 90)
        clock.advance(minutes=5)
        service.update_location(VISITOR, registered, "B", "2,2", 80, is_emergency=True)

        history = service.list_location_history(registered)
        assert [entry.location for entry in history] == ["A", "B"]
        assert history[1].is_emergency is True
        assert history[1].timestamp == clock.now

    def test_queries_on_unknown_ids(self, service):
        """Test lookups of never-issued IDs."""
        with pytest.raises(NotFoundError):
            service.get_by_id(1)
        with pytest.raises(NotFoundError):
            service.list_alerts(1)
        with pytest.raises(NotFoundError):
            service.list_location_history(1)


class TestObservers:
    """Test state-change notifications."""

    def test_notifications_in_order(self, access_guard, clock, make_registration):
        """Test each committed change notifies observers."""
        observer = RecordingObserver()
        service = SafetyService(access_guard=access_guard, clock=clock, observers=[observer])

        service.register(OFFICER, make_registration("P1"))
        service.update_location(VISITOR, 1, "Baga", "", 70)
        service.set_tracking(VISITOR, 1, True)
        service.raise_alert(VISITOR, 1, "PANIC", "", "")
        service.resolve_alert(RESPONDER, 1, 0)

        assert observer.calls == [
            ("registered", 1, OFFICER),
            ("location", 1, "Baga"),
            ("tracking", 1, True),
            ("raised", 1, 0),
            ("status", 1, "active", "emergency"),
            ("resolved", 1, 0, RESPONDER),
            ("status", 1, "emergency", "active"),
        ]

    def test_no_notification_on_rejection(self, service, registered):
        """Test rejected operations notify nobody."""
        observer = RecordingObserver()
        service.subscribe(observer)

        with pytest.raises(AuthorizationError):
            service.mark_missing(VISITOR, registered)
        with pytest.raises(NotFoundError):
            service.resolve_alert(RESPONDER, registered, 0)

        assert observer.calls == []

    def test_repeat_raise_has_no_status_change(self, service, registered):
        """Test a second alert while in emergency only reports the alert."""
        service.raise_alert(VISITOR, registered, "PANIC", "", "")
        observer = RecordingObserver()
        service.subscribe(observer)

        service.raise_alert(VISITOR, registered, "PANIC", "", "")
        assert observer.calls == [("raised", registered, 1)]

    def test_capability_changes_notified(self, service):
        """Test grants are reported per changed capability."""
        observer = RecordingObserver()
        service.subscribe(observer)

        service.grant_role(ADMIN, VISITOR, RoleName.EMERGENCY_RESPONDER)
        service.grant_role(ADMIN, VISITOR, RoleName.EMERGENCY_RESPONDER)

        assert observer.calls == [("capability", VISITOR, "alert:resolve", True)]

    def test_failing_observer_isolated(self, service, make_registration):
        """Test observer failures never affect the operation or other observers."""
        recorder = RecordingObserver()
        service.subscribe(FailingObserver())
        service.subscribe(recorder)

        tourist_id = service.register(OFFICER, make_registration("P1"))
        assert service.raise_alert(VISITOR, tourist_id, "PANIC", "", "") == 0

        assert ("registered", 1, OFFICER) in recorder.calls
        assert ("raised", 1, 0) in recorder.calls
        assert service.get_by_id(tourist_id).status == TouristStatus.EMERGENCY

    def test_observer_receives_snapshot(self, service, registered):
        """Test observers cannot mutate registry state."""
        class Mutator(SafetyObserver):
            def on_alert_raised(self, record, alert, principal):
                record.safety_score = 100
                alert.is_resolved = True

        service.subscribe(Mutator())
        service.raise_alert(VISITOR, registered, "PANIC", "", "")

        assert service.get_by_id(registered).safety_score == 0
        assert service.list_alerts(registered)[0].is_resolved is False


class TestConcurrency:
    """Test behavior under concurrent callers."""

    def test_concurrent_raises_get_dense_sequences(self, service, registered):
        """Test parallel raises produce each sequence number exactly once."""
        results = []
        results_lock = threading.Lock()

        def raise_one():
            alert_id = service.raise_alert(VISITOR, registered, "PANIC", "", "")
            with results_lock:
                results.append(alert_id)

        threads = [threading.Thread(target=raise_one) for _ in range(25)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(results) == list(range(25))
        assert [alert.alert_id for alert in service.list_alerts(registered)] == list(range(25))

    def test_concurrent_resolves_succeed_once(self, service, registered):
        """Test only one of many parallel resolutions wins."""
        service.raise_alert(VISITOR, registered, "PANIC", "", "")
        outcomes = []
        outcomes_lock = threading.Lock()

        def resolve_one():
            try:
                service.resolve_alert(RESPONDER, registered, 0)
                outcome = "ok"
            except ConflictError:
                outcome = "conflict"
            with outcomes_lock:
                outcomes.append(outcome)

        threads = [threading.Thread(target=resolve_one) for _ in range(10)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert outcomes.count("ok") == 1
        assert outcomes.count("conflict") == 9

    def test_concurrent_registrations_unique_ids(self, service, make_registration):
        """Test parallel registrations never share an ID."""
        requests = [make_registration(f"P{i}") for i in range(30)]
        ids = []
        ids_lock = threading.Lock()

        def register(request):
            tourist_id = service.register(OFFICER, request)
            with ids_lock:
                ids.append(tourist_id)

        threads = [threading.Thread(target=register, args=(r,)) for r in requests]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(ids) == list(range(1, 31))
        assert service.count_total() == 30

    def test_stalled_delivery_keeps_commit_order(self, service, registered):
        """Test audit entries follow commit order while one delivery is stuck in an observer."""
        raised = threading.Event()
        release = threading.Event()

        class Stalling(SafetyObserver):
            def on_alert_raised(self, record, alert, principal):
                raised.set()
                release.wait(timeout=5)

        audit_trail = AuditTrail()
        service.subscribe(Stalling())
        service.subscribe(audit_trail)

        raiser = threading.Thread(
            target=service.raise_alert, args=(VISITOR, registered, "PANIC", "", "")
        )
        raiser.start()
        assert raised.wait(timeout=5)

        # Commits while the raising thread is still delivering
        service.resolve_alert(RESPONDER, registered, 0)
        release.set()
        raiser.join(timeout=5)

        entries = audit_trail.query()
        assert [entry.action for entry in entries] == [
            AuditAction.RAISE_ALERT,
            AuditAction.STATUS_CHANGE,
            AuditAction.RESOLVE_ALERT,
            AuditAction.STATUS_CHANGE,
        ]
        assert [entry.sequence for entry in entries] == [0, 1, 2, 3]
        assert entries[1].after["status"] == "emergency"
        assert entries[3].after["status"] == "active"
