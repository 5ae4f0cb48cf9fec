# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Base model configuration and shared helpers.
"""

from datetime import datetime, timezone
from pydantic import BaseModel, ConfigDict


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class BaseRecord(BaseModel):
    """Base model for registry-owned records."""

    model_config = ConfigDict(
        # Allow population by field name or alias
        populate_by_name=True,
        # Use enum values instead of enum objects
        use_enum_values=True,
        # Validate assignment
        validate_assignment=True
    )


class FrozenRecord(BaseModel):
    """Base model for append-only log entries that never change once written."""

    model_config = ConfigDict(
        use_enum_values=True,
        frozen=True
    )
