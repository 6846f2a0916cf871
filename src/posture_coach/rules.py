"""
Posture rules: exercise-specific geometric checks on a single frame.

Dispatch is keyed by predicted class name. Classes without rules (and
malformed frames) produce an empty result; that is a valid outcome, not an
error.

Thresholds are policy constants and must stay in sync with the coaching
behaviour the mobile app was tuned against.
"""

import logging
from typing import Callable, Optional

import numpy as np

from .config import NUM_LANDMARKS, VALUES_PER_LANDMARK
from .geometry import angle, angle_to_vertical, line_y_at_x, midpoint, vector
from .landmarks import (
    LEFT_ANKLE,
    LEFT_HIP,
    LEFT_KNEE,
    LEFT_SHOULDER,
    RIGHT_ANKLE,
    RIGHT_HIP,
    RIGHT_KNEE,
    RIGHT_SHOULDER,
    X,
    Y,
)
from .schemas import RuleResult

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Policy constants
# ---------------------------------------------------------------------------
SQUAT_MAX_KNEE_ANGLE: float = 150.0     # degrees; above this the squat is too shallow
SQUAT_MAX_TORSO_LEAN: float = 40.0      # degrees from vertical
BODY_LINE_TOLERANCE: float = 0.1        # hip offset from shoulder-ankle line
SIT_UP_MIN_TRUNK_RISE: float = -0.1     # shoulder.y - hip.y must drop below this

# ---------------------------------------------------------------------------
# Flags and coaching messages
# ---------------------------------------------------------------------------
DEPTH_LOW = "depth_low"
KNEES_IN = "knees_in"
CHEST_UP = "chest_up"
PIKE = "pike"
SAG = "sag"
LOW_ROM = "low_rom"

MESSAGES: dict[str, str] = {
    DEPTH_LOW: "Go deeper to at least parallel.",
    KNEES_IN: "Push knees outward over toes.",
    CHEST_UP: "Keep chest up.",
    PIKE: "Keep a straight line from head to heels.",
    SAG: "Avoid sagging hips.",
    LOW_ROM: "Increase trunk flexion.",
}
PLANK_HOLD_MESSAGE = "Maintain a straight line from shoulders to heels."


# ============================================================================
# Per-exercise rules
# ============================================================================

def _flag(result: RuleResult, flag: str) -> None:
    result.add(flag, MESSAGES[flag])


def squat_rules(lm: np.ndarray, result: RuleResult) -> None:
    l_hip, r_hip = lm[LEFT_HIP], lm[RIGHT_HIP]
    l_knee, r_knee = lm[LEFT_KNEE], lm[RIGHT_KNEE]
    l_ankle, r_ankle = lm[LEFT_ANKLE], lm[RIGHT_ANKLE]

    hip_center = midpoint(l_hip, r_hip)
    shoulder_center = midpoint(lm[LEFT_SHOULDER], lm[RIGHT_SHOULDER])

    min_knee = min(angle(l_hip, l_knee, l_ankle), angle(r_hip, r_knee, r_ankle))
    if min_knee > SQUAT_MAX_KNEE_ANGLE:
        _flag(result, DEPTH_LOW)

    # Knee caving: each knee sits closer to the hip centre line than its ankle.
    cx = hip_center[X]
    knees_in_left = abs(l_knee[X] - cx) < abs(l_ankle[X] - cx)
    knees_in_right = abs(r_knee[X] - cx) < abs(r_ankle[X] - cx)
    if knees_in_left and knees_in_right:
        _flag(result, KNEES_IN)

    torso_lean = angle_to_vertical(vector(shoulder_center, hip_center))
    if torso_lean > SQUAT_MAX_TORSO_LEAN:
        _flag(result, CHEST_UP)


def body_line_offset(lm: np.ndarray) -> float:
    """Vertical offset of the hip centre from the shoulder-ankle line.

    Positive means the hips sit below the line (image y grows downward).
    """
    shoulder = midpoint(lm[LEFT_SHOULDER], lm[RIGHT_SHOULDER])
    hip = midpoint(lm[LEFT_HIP], lm[RIGHT_HIP])
    ankle = midpoint(lm[LEFT_ANKLE], lm[RIGHT_ANKLE])
    return float(hip[Y] - line_y_at_x(shoulder, ankle, hip[X]))


def push_up_rules(lm: np.ndarray, result: RuleResult) -> None:
    sag_metric = body_line_offset(lm)
    if sag_metric < -BODY_LINE_TOLERANCE:
        _flag(result, PIKE)
    elif sag_metric > BODY_LINE_TOLERANCE:
        _flag(result, SAG)


def plank_rules(lm: np.ndarray, result: RuleResult) -> None:
    push_up_rules(lm, result)
    if not result.flags:
        result.note(PLANK_HOLD_MESSAGE)


def sit_up_rules(lm: np.ndarray, result: RuleResult) -> None:
    shoulder = midpoint(lm[LEFT_SHOULDER], lm[RIGHT_SHOULDER])
    hip = midpoint(lm[LEFT_HIP], lm[RIGHT_HIP])
    if shoulder[Y] - hip[Y] > SIT_UP_MIN_TRUNK_RISE:
        _flag(result, LOW_ROM)


RuleFn = Callable[[np.ndarray, RuleResult], None]

EXERCISE_RULES: dict[str, RuleFn] = {
    "squat": squat_rules,
    "push_up": push_up_rules,
    "plank": plank_rules,
    "sit_up": sit_up_rules,
}


# ============================================================================
# Engine
# ============================================================================

class PostureRulesEngine:
    """Evaluates the rule set for a predicted exercise on one frame."""

    def __init__(self, rules: Optional[dict[str, RuleFn]] = None):
        self._rules = dict(EXERCISE_RULES if rules is None else rules)

    @property
    def exercises(self) -> list[str]:
        return list(self._rules)

    def evaluate(self, predicted_class: Optional[str], frame) -> RuleResult:
        """Run the rules registered for *predicted_class* on *frame*.

        Args:
            predicted_class: Class name from the classifier.
            frame: (33, 4) landmarks; only x, y, z are used.

        Returns:
            RuleResult with deduplicated flags and ordered messages. Empty
            for classes without rules or frames of the wrong shape.
        """
        result = RuleResult()
        if predicted_class is None or frame is None:
            return result

        rule = self._rules.get(predicted_class)
        if rule is None:
            return result

        lm = np.asarray(frame, dtype=np.float64)
        if lm.shape != (NUM_LANDMARKS, VALUES_PER_LANDMARK):
            logger.warning(
                "Skipping posture rules for '%s': frame shape %s", predicted_class, lm.shape
            )
            return result

        rule(lm, result)
        return result
