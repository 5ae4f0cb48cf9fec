# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Services package - Orchestration, observers and side effects.
"""

from .safety import SafetyService
from .events import SafetyObserver, EventDispatcher
from .audit import AuditTrail, AuditFilters

__all__ = [
    "SafetyService",
    "SafetyObserver",
    "EventDispatcher",
    "AuditTrail",
    "AuditFilters"
]
