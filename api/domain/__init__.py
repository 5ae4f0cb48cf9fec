# SPDX-License-Identifier: Apache-2.0

"""
Domain logic package for the tourist safety registry.

This package holds the registry, tracking, alerting and scoring logic with no
I/O. Components here are single-threaded; SafetyService serializes access.
"""
