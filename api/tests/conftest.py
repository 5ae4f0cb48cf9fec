# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Pytest configuration and fixtures.
"""

import os
import pytest
from datetime import datetime, timedelta, timezone

from domain.authorization import AccessGuard
from models.enums import RoleName
from models.requests import RegisterTouristRequest
from services.safety import SafetyService

# Set test environment
os.environ['ENVIRONMENT'] = 'test'
os.environ['OTEL_ENABLED'] = 'false'

ADMIN = "admin"
OFFICER = "officer"
POLICE = "police"
RESPONDER = "responder"
VISITOR = "visitor"

JWT_SECRET = "test-secret"
BASE_URL = "http://testserver"


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    """Clock starting at a fixed UTC instant."""
    return FakeClock(datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def access_guard():
    """Guard with one principal per role; visitor holds nothing."""
    guard = AccessGuard(admin_principal=ADMIN)
    guard.grant_role(OFFICER, RoleName.TOURISM_OFFICER)
    guard.grant_role(POLICE, RoleName.POLICE_OFFICER)
    guard.grant_role(RESPONDER, RoleName.EMERGENCY_RESPONDER)
    return guard


@pytest.fixture
def service(access_guard, clock):
    """Safety service with an empty registry."""
    return SafetyService(access_guard=access_guard, clock=clock)


@pytest.fixture
def make_registration(clock):
    """Factory for registration requests with a check-out a week ahead."""
    def _make(passport: str = "P1", national_id_hash: str = None, **overrides):
        data = {
            "passport_number": passport,
            "national_id_hash": national_id_hash,
            "name": "Asha Rao",
            "phone": "+91-9800000000",
            "nationality": "IN",
            "itinerary": "Panaji, Calangute, Old Goa",
            "emergency_contact": "Ravi Rao +91-9811111111",
            "check_out_time": clock.now + timedelta(days=7)
        }
        data.update(overrides)
        return RegisterTouristRequest(**data)

    return _make


@pytest.fixture
def registered(service, make_registration):
    """ID of a freshly registered tourist."""
    return service.register(OFFICER, make_registration())


@pytest.fixture
def app(service):
    """Flask application backed by the test service."""
    from app import create_app

    flask_app = create_app(
        {
            'ENVIRONMENT': 'test',
            'OTEL_ENABLED': False,
            'JWT_SECRET': JWT_SECRET,
            'BASE_URL': BASE_URL
        },
        safety_service=service
    )
    flask_app.config['TESTING'] = True
    return flask_app


@pytest.fixture
def client(app):
    """Create test client."""
    with app.test_client() as client:
        yield client


@pytest.fixture
def auth_headers(app):
    """Factory for bearer headers of a principal."""
    def _headers(principal: str):
        token = app.auth_middleware.issue_token(principal)
        return {
            'Authorization': f'Bearer {token}',
            'Content-Type': 'application/json'
        }

    return _headers
