# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for the identity registry.
"""

import pytest
from datetime import timedelta

from domain.errors import ValidationError, ConflictError, NotFoundError, StateError
from domain.registry import IdentityRegistry
from models.enums import TouristStatus


@pytest.fixture
def registry():
    return IdentityRegistry()


class TestRegister:
    """Test record creation."""

    def test_first_id_is_one(self, registry, make_registration, clock):
        """Test IDs start at 1 and grow by one."""
        assert registry.register(make_registration("P1"), clock.now) == 1
        assert registry.register(make_registration("P2"), clock.now) == 2
        assert registry.count() == 2

    def test_initial_state(self, registry, make_registration, clock):
        """Test a new record's status, score and timestamps."""
        tourist_id = registry.register(make_registration("P1"), clock.now)
        record = registry.get(tourist_id)

        assert record.status == TouristStatus.ACTIVE
        assert record.safety_score == 100
        assert record.is_active
        assert record.check_in_time == clock.now
        assert record.last_location_update == clock.now

    def test_empty_passport_rejected(self, registry, make_registration, clock):
        """Test that an empty passport is a validation error."""
        with pytest.raises(ValidationError) as exc_info:
            registry.register(make_registration("   "), clock.now)

        assert "Passport number is required" in exc_info.value.validation_errors
        assert registry.count() == 0

    def test_past_checkout_rejected(self, registry, make_registration, clock):
        """Test that check-out must be strictly in the future."""
        with pytest.raises(ValidationError):
            registry.register(make_registration("P1", check_out_time=clock.now), clock.now)
        with pytest.raises(ValidationError):
            registry.register(
                make_registration("P1", check_out_time=clock.now - timedelta(days=1)), clock.now
            )
        assert registry.count() == 0

    def test_duplicate_passport_rejected(self, registry, make_registration, clock):
        """Test passport uniqueness."""
        registry.register(make_registration("P1"), clock.now)

        with pytest.raises(ConflictError):
            registry.register(make_registration("P1"), clock.now)
        assert registry.count() == 1

    def test_duplicate_national_id_rejected(self, registry, make_registration, clock):
        """Test national ID uniqueness leaves the passport index untouched."""
        registry.register(make_registration("P1", national_id_hash="abc123"), clock.now)

        with pytest.raises(ConflictError):
            registry.register(make_registration("P2", national_id_hash="abc123"), clock.now)

        assert registry.lookup("P2") == 0
        assert registry.count() == 1

    def test_absent_national_ids_do_not_collide(self, registry, make_registration, clock):
        """Test that several records may omit the national ID."""
        registry.register(make_registration("P1"), clock.now)
        registry.register(make_registration("P2"), clock.now)
        assert registry.lookup_national_id("") == 0
        assert len(registry) == 2


class TestLookup:
    """Test record retrieval."""

    def test_get_unknown(self, registry, make_registration, clock):
        """Test NotFound for 0, negative and never-issued IDs."""
        registry.register(make_registration("P1"), clock.now)
        for tourist_id in (0, -3, 2):
            with pytest.raises(NotFoundError):
                registry.get(tourist_id)

    def test_lookup_by_passport(self, registry, make_registration, clock):
        """Test passport index."""
        registry.register(make_registration("P1", national_id_hash="n1"), clock.now)
        assert registry.lookup("P1") == 1
        assert registry.lookup(" P1 ") == 1
        assert registry.lookup("P404") == 0
        assert registry.lookup("") == 0
        assert registry.lookup_national_id("n1") == 1

    def test_verify(self, registry, make_registration, clock):
        """Test identity verification."""
        registry.register(make_registration("P1"), clock.now)
        assert registry.verify(1, "P1")
        assert not registry.verify(1, "P2")
        assert not registry.verify(2, "P1")

        registry.check_out(1, clock.now)
        assert not registry.verify(1, "P1")

    def test_non_string_passport_never_raises(self, registry, make_registration, clock):
        """Test lookup and verify treat non-string passports as unknown."""
        registry.register(make_registration("P1", national_id_hash="n1"), clock.now)
        for passport in (None, 1, ["P1"], {"P1": 1}):
            assert registry.lookup(passport) == 0
            assert registry.verify(1, passport) is False
        assert registry.lookup_national_id(None) == 0

    def test_records_in_id_order(self, registry, make_registration, clock):
        """Test iteration order."""
        for passport in ("P3", "P1", "P2"):
            registry.register(make_registration(passport), clock.now)
        assert [record.id for record in registry.records()] == [1, 2, 3]
        assert 2 in registry
        assert 4 not in registry


class TestTransitions:
    """Test registry-owned status transitions."""

    def test_check_out(self, registry, make_registration, clock):
        """Test checkout closes the record."""
        registry.register(make_registration("P1"), clock.now)
        later = clock.advance(days=2)
        record = registry.check_out(1, later)

        assert record.status == TouristStatus.CHECKED_OUT
        assert not record.is_active
        assert record.check_out_time == later

    def test_check_out_twice(self, registry, make_registration, clock):
        """Test that a checked-out record stays closed."""
        registry.register(make_registration("P1"), clock.now)
        registry.check_out(1, clock.now)

        with pytest.raises(StateError):
            registry.check_out(1, clock.now)

    def test_mark_missing(self, registry, make_registration, clock):
        """Test missing report zeroes the score."""
        registry.register(make_registration("P1"), clock.now)
        record = registry.mark_missing(1)

        assert record.status == TouristStatus.MISSING
        assert record.safety_score == 0
        assert record.is_active

    def test_mark_missing_after_checkout(self, registry, make_registration, clock):
        """Test missing report requires an active record."""
        registry.register(make_registration("P1"), clock.now)
        registry.check_out(1, clock.now)

        with pytest.raises(StateError):
            registry.mark_missing(1)
