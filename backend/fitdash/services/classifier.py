"""
Workout Classifier - Assigns a training-intent tag to running activities.

Two tiers:
1. Text patterns over name + description (ordered table, first match wins)
2. Lap-pace variance plus gross distance / heart-rate thresholds

Independently of the tag, a lap-variance analysis with a confidence score
is attached whenever enough significant laps exist.
"""
import re
from dataclasses import dataclass
from typing import List, Optional, Pattern, Sequence, Tuple

from fitdash.core.logging import get_logger
from fitdash.services.ingest.canonical import (
    ActivityCategory,
    CanonicalActivity,
    Lap,
    WorkoutAnalysis,
    WorkoutType,
)

logger = get_logger(__name__)

# Ordered (pattern, tag) table. Order is the priority.
INTENT_PATTERNS: Sequence[Tuple[Pattern[str], WorkoutType]] = tuple(
    (re.compile(pattern, re.IGNORECASE), tag)
    for pattern, tag in (
        (r"interval|\bseries\b|\b\d+\s?x\b|\b\d+\s?x\s?\d|\bx\s?\d+\b", WorkoutType.INTERVALS),
        (r"tempo|threshold|umbral", WorkoutType.TEMPO),
        (r"long run|tirada larga|\blargo\b|\blsd\b", WorkoutType.LONG_RUN),
        (r"recovery|recuperaci|regenerativ", WorkoutType.RECOVERY),
        (r"\beasy\b|f[aá]cil|\bsuave\b|rodaje", WorkoutType.EASY),
        (r"\brace\b|carrera|marat[oó]n|marathon|parkrun|\b\d+\s?k\b", WorkoutType.RACE),
        (r"fartlek", WorkoutType.FARTLEK),
        (r"hill|cuesta", WorkoutType.INTERVALS),
        (r"stride", WorkoutType.EASY),
        (r"progressi|progresiv", WorkoutType.TEMPO),
    )
)

# Laps shorter than this (meters) are ignored by the variance tier
SIGNIFICANT_LAP_METERS = 200

INTERVAL_SPREAD_PCT = 15
TEMPO_SPREAD_PCT = 8
LONG_RUN_METERS = 15000
EASY_MAX_METERS = 8000
EASY_MAX_HR = 140

# Mean pace (min/km) above which a steady run counts as easy
EASY_PACE_THRESHOLD = 5.5


@dataclass
class Classification:
    """Classifier output for one activity."""
    workout_type: Optional[WorkoutType]
    analysis: Optional[WorkoutAnalysis]
    matched_by: str = "none"


def _significant_paces(laps: List[Lap]) -> List[float]:
    return [
        lap.pace for lap in laps
        if lap.distance > SIGNIFICANT_LAP_METERS and lap.pace is not None
    ]


class WorkoutClassifier:
    """
    Heuristic workout-intent classifier.

    Usage:
        classifier = WorkoutClassifier()
        activity = classifier.apply(activity)
    """

    def __init__(self, patterns: Sequence[Tuple[Pattern[str], WorkoutType]] = INTENT_PATTERNS):
        self.patterns = patterns

    def classify(self, activity: CanonicalActivity) -> Classification:
        """
        Classify one activity.

        Only running activities receive a workout type; everything else
        comes back untagged.
        """
        if activity.category != ActivityCategory.RUNNING:
            return Classification(workout_type=None, analysis=None)

        analysis = self.analyze_lap_variance(activity.laps)

        tag = self.match_text(activity.name, activity.description)
        if tag is not None:
            return Classification(workout_type=tag, analysis=analysis, matched_by="text")

        tag = self.classify_by_laps(activity)
        return Classification(workout_type=tag, analysis=analysis, matched_by="laps")

    def apply(self, activity: CanonicalActivity) -> CanonicalActivity:
        """Classify and write the result onto the activity."""
        result = self.classify(activity)
        activity.workout_type = result.workout_type
        activity.workout_analysis = result.analysis

        if result.workout_type is not None:
            logger.debug(
                "Classified workout",
                workout_type=result.workout_type.value,
                matched_by=result.matched_by,
            )

        return activity

    # ========================================
    # Tier 1: text
    # ========================================

    def match_text(self, name: Optional[str], description: Optional[str]) -> Optional[WorkoutType]:
        """First matching tag over name + description, None when uninformative."""
        text = " ".join(part for part in (name, description) if part)
        if not text:
            return None

        for pattern, tag in self.patterns:
            if pattern.search(text):
                return tag

        return None

    # ========================================
    # Tier 2: laps and gross thresholds
    # ========================================

    def classify_by_laps(self, activity: CanonicalActivity) -> WorkoutType:
        """
        Fallback classification from lap-pace spread.

        Fewer than two significant laps abstains with GENERAL.
        """
        paces = _significant_paces(activity.laps)
        if len(paces) < 2:
            return WorkoutType.GENERAL

        fastest, slowest = min(paces), max(paces)
        spread = (slowest - fastest) / slowest * 100

        if spread > INTERVAL_SPREAD_PCT:
            return WorkoutType.INTERVALS
        if spread > TEMPO_SPREAD_PCT:
            return WorkoutType.TEMPO

        if activity.distance > LONG_RUN_METERS:
            return WorkoutType.LONG_RUN
        if (
            activity.distance < EASY_MAX_METERS
            and activity.average_hr
            and activity.average_hr < EASY_MAX_HR
        ):
            return WorkoutType.EASY

        return WorkoutType.GENERAL

    @staticmethod
    def analyze_lap_variance(laps: List[Lap]) -> WorkoutAnalysis:
        """
        Confidence-scored lap variance analysis.

        Laps are split into faster-than-mean and the rest; the gap between
        the two group means decides type and confidence. Returns an
        "unknown" analysis with zero confidence below two significant laps.
        """
        paces = _significant_paces(laps)
        if len(paces) < 2:
            return WorkoutAnalysis()

        mean_pace = sum(paces) / len(paces)
        fast = [p for p in paces if p < mean_pace]
        slow = [p for p in paces if p >= mean_pace]
        avg_fast = sum(fast) / len(fast) if fast else mean_pace
        avg_slow = sum(slow) / len(slow) if slow else mean_pace
        gap = avg_slow - avg_fast

        fastest, slowest = min(paces), max(paces)

        if gap > 1.5:
            workout_type = WorkoutType.INTERVALS.value
            confidence = min(95, 70 + round((gap - 1.5) * 20))
        elif gap > 0.5:
            workout_type = WorkoutType.TEMPO.value
            confidence = 70
        else:
            workout_type = (
                WorkoutType.EASY.value if mean_pace > EASY_PACE_THRESHOLD
                else WorkoutType.TEMPO.value
            )
            confidence = 80

        return WorkoutAnalysis(
            type=workout_type,
            confidence=confidence,
            fastest_lap_pace=round(fastest, 2),
            slowest_lap_pace=round(slowest, 2),
            pace_variation=round((slowest - fastest) / slowest * 100, 1),
            avg_fast_pace=round(avg_fast, 2),
            avg_slow_pace=round(avg_slow, 2),
        )
