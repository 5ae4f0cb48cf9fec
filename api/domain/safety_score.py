# SPDX-License-Identifier: Apache-2.0

"""
Safety score computation.

Pure functions mapping a current score and the time elapsed since the last
location report to a new score and level. Alert-driven overrides do not pass
through here.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional
from models.enums import SafetyLevel


PERFECT_SCORE = 100
REWARD_CEILING = 95
REWARD_STEP = 5
DECAY_FLOOR = 10
DECAY_STEP = 10
REWARD_WINDOW = timedelta(hours=6)

# Fixed overrides applied by alert and police transitions
EMERGENCY_SCORE = 0
RECOVERY_SCORE = 60


@dataclass(frozen=True)
class ScoreResult:
    """Score and level after an evaluation."""
    score: int
    level: SafetyLevel


def level_for(score: int) -> SafetyLevel:
    """Map a score onto its safety level."""
    return SafetyLevel.from_score(score)


def evaluate(current_score: int, elapsed: Optional[timedelta]) -> ScoreResult:
    """
    Compute the score after a location report.

    Args:
        current_score: Score before the report
        elapsed: Time since the previous report, or None if there was none

    Returns:
        ScoreResult with the new score and its level
    """
    score = current_score

    if elapsed is None:
        pass
    elif elapsed < REWARD_WINDOW:
        # Scores at or above the ceiling (a fresh 100) are left alone
        if score < REWARD_CEILING:
            score = min(score + REWARD_STEP, REWARD_CEILING)
    elif score > DECAY_FLOOR:
        score = max(score - DECAY_STEP, DECAY_FLOOR)

    return ScoreResult(score=score, level=level_for(score))
