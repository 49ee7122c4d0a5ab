"""
Effort Classifier: Deterministic split-by-split effort attribution.

Pipeline:
    1. Resolve zone boundaries (pace zones, VDOT, manual paces, or the run itself)
    2. Infer run mode (easy run, workout, race)
    3. Raw classification against boundaries, harder zone inside the tolerance band
    4. Structural detection (warmup, cooldown, rest between reps)
    5. Anomaly detection (GPS artifacts, tiny splits)
    6. Three-split smoothing
    7. Sticky hard-zone hysteresis and race dominant-zone bias
    8. Confidence scoring with optional heart-rate agreement

The classifier is a pure function of its inputs, so it scores logged runs
and previews hypothetical split lists the same way.

Based on:
- Daniels' pace zones as cut points
- Seiler's intensity distribution (time-in-zone accounting)
"""

import logging
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Optional, Dict, Any, List, Sequence, Tuple

import numpy as np

from .config import PlanConfig, get_default_config
from .pace_model import PaceZones, calculate_pace_zones, is_valid_vdot

logger = logging.getLogger(__name__)


class EffortCategory(Enum):
    """Per-split effort label."""
    # Structural
    WARMUP = "warmup"
    COOLDOWN = "cooldown"
    RECOVERY = "recovery"
    # Effort, easiest first
    EASY = "easy"
    STEADY = "steady"
    MARATHON = "marathon"
    TEMPO = "tempo"
    THRESHOLD = "threshold"
    INTERVAL = "interval"
    # Data quality
    ANOMALY = "anomaly"

    @property
    def label(self) -> str:
        return self.value.capitalize()

    @property
    def is_hard(self) -> bool:
        return self in (EffortCategory.TEMPO, EffortCategory.THRESHOLD, EffortCategory.INTERVAL)


class RunMode(Enum):
    """What kind of run the splits came from."""
    EASY_RUN = "easy_run"
    WORKOUT = "workout"
    RACE = "race"


EFFORT_ORDER = [
    EffortCategory.EASY,
    EffortCategory.STEADY,
    EffortCategory.MARATHON,
    EffortCategory.TEMPO,
    EffortCategory.THRESHOLD,
    EffortCategory.INTERVAL,
]

SKIP_CATEGORIES = (
    EffortCategory.WARMUP,
    EffortCategory.COOLDOWN,
    EffortCategory.RECOVERY,
    EffortCategory.ANOMALY,
)

# Plausible heart rate (bpm) per effort
HR_ZONES: Dict[EffortCategory, Tuple[int, int]] = {
    EffortCategory.RECOVERY: (60, 130),
    EffortCategory.EASY: (90, 145),
    EffortCategory.STEADY: (120, 155),
    EffortCategory.MARATHON: (140, 165),
    EffortCategory.TEMPO: (150, 175),
    EffortCategory.THRESHOLD: (160, 185),
    EffortCategory.INTERVAL: (165, 200),
}

MIN_VALID_PACE = 180        # Faster than 3:00/mi is a GPS artifact
RECOVERY_PACE_FLOOR = 900   # Slower than 15:00/mi is walking or stopped
STICKY_BUFFER = 3           # Seconds slower than a boundary that keep the harder zone
RACE_BIAS_BUFFER = 8        # Seconds from a boundary pulled to the dominant race zone


@dataclass(frozen=True)
class Split:
    """One lap or mile split of a run."""
    lap_number: int
    distance_miles: float
    duration_seconds: float
    avg_pace_seconds: float
    avg_heart_rate: Optional[float] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'Split':
        """Create from a dictionary; pace is derived when missing."""
        data = dict(d)
        if not data.get('avg_pace_seconds') and data.get('distance_miles'):
            data['avg_pace_seconds'] = data['duration_seconds'] / data['distance_miles']
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)


@dataclass
class ZoneBoundaries:
    """
    Pace cut points in seconds per mile.

    A pace at or slower than a boundary belongs to that zone; recovery
    is anything slower than the recovery boundary (default 15:00/mi).
    """
    easy: float
    steady: float
    marathon: float
    tempo: float
    threshold: float
    interval: float
    recovery: Optional[float] = None

    def effort_boundaries(self) -> List[float]:
        """Easy through interval cut points, slowest first."""
        return [self.easy, self.steady, self.marathon, self.tempo, self.threshold, self.interval]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


@dataclass
class ClassificationContext:
    """
    Inputs that shape zone resolution and run mode.

    Zone sources in priority order: pace_zones, vdot, manual paces
    (easy_pace plus optional marathon/tempo/threshold/interval), the
    run's own median split pace, then avg_pace_seconds.
    """
    pace_zones: Optional[PaceZones] = None
    vdot: Optional[float] = None
    easy_pace: Optional[float] = None
    marathon_pace: Optional[float] = None
    tempo_pace: Optional[float] = None
    threshold_pace: Optional[float] = None
    interval_pace: Optional[float] = None
    workout_type: Optional[str] = None
    avg_pace_seconds: Optional[float] = None
    condition_adjustment: float = 0.0     # Heat/elevation, positive = slower conditions
    tolerance_seconds: Optional[float] = None


@dataclass
class ClassifiedSplit:
    """Final effort label for one split."""
    lap_number: int
    category: EffortCategory
    confidence: float
    raw_category: EffortCategory
    anomaly_reason: Optional[str] = None
    hr_agreement: Optional[bool] = None

    @property
    def category_label(self) -> str:
        return self.category.label

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'lap_number': self.lap_number,
            'category': self.category.value,
            'category_label': self.category_label,
            'confidence': self.confidence,
            'raw_category': self.raw_category.value,
            'anomaly_reason': self.anomaly_reason,
            'hr_agreement': self.hr_agreement,
        }


@dataclass
class ClassificationResult:
    """Classified splits plus the boundaries used."""
    splits: List[ClassifiedSplit] = field(default_factory=list)
    zones: Optional[ZoneBoundaries] = None
    run_mode: RunMode = RunMode.EASY_RUN

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'splits': [s.to_dict() for s in self.splits],
            'zones': self.zones.to_dict() if self.zones else None,
            'run_mode': self.run_mode.value,
        }


def _valid_paces(splits: Sequence[Split]) -> List[float]:
    return [s.avg_pace_seconds for s in splits
            if MIN_VALID_PACE < s.avg_pace_seconds < RECOVERY_PACE_FLOOR]


def _upper_median(values: List[float]) -> float:
    ordered = sorted(values)
    return ordered[len(ordered) // 2]


def _positive(value: Optional[float]) -> bool:
    return value is not None and value > 0


# =============================================================================
# Stage 1: Zones
# =============================================================================

def resolve_zones(splits: Sequence[Split], context: ClassificationContext) -> ZoneBoundaries:
    """
    Zone boundaries for a run, shifted slower by the condition adjustment.

    Manual paces fill gaps by fixed offsets:
        marathon = easy - 45, tempo = marathon - 25,
        threshold = tempo - 15, interval = threshold - 15
    """
    adj = context.condition_adjustment or 0

    zones = context.pace_zones
    if zones is None and is_valid_vdot(context.vdot):
        zones = calculate_pace_zones(context.vdot)
    if zones is not None:
        return ZoneBoundaries(
            recovery=zones.recovery + adj,
            easy=zones.easy + adj,
            steady=zones.general_aerobic + adj,
            marathon=zones.marathon + adj,
            tempo=zones.tempo + adj,
            threshold=zones.threshold + adj,
            interval=zones.interval + adj,
        )

    if _positive(context.easy_pace):
        easy = context.easy_pace
        marathon = context.marathon_pace if _positive(context.marathon_pace) else easy - 45
        tempo = context.tempo_pace if _positive(context.tempo_pace) else marathon - 25
        threshold = context.threshold_pace if _positive(context.threshold_pace) else tempo - 15
        interval = context.interval_pace if _positive(context.interval_pace) else threshold - 15
        return ZoneBoundaries(
            easy=easy + adj,
            steady=round((easy + marathon) / 2) + adj,
            marathon=marathon + adj,
            tempo=tempo + adj,
            threshold=threshold + adj,
            interval=interval + adj,
        )

    valid = _valid_paces(splits)
    if not valid:
        base = context.avg_pace_seconds or 500
        offsets = (40, 10, -20, -45, -60, -85)
    else:
        base = _upper_median(valid)
        offsets = (20, -10, -30, -45, -60, -85)

    easy, steady, marathon, tempo, threshold, interval = (base + o + adj for o in offsets)
    return ZoneBoundaries(easy=easy, steady=steady, marathon=marathon,
                          tempo=tempo, threshold=threshold, interval=interval)


# =============================================================================
# Stage 2: Run mode
# =============================================================================

def infer_run_mode(splits: Sequence[Split], context: ClassificationContext,
                   zones: ZoneBoundaries) -> RunMode:
    """
    Run mode from the declared workout type, else from pace variability.

    High variability (CV > 8%) with some fast splits is a workout; mostly
    fast splits (> 70%) with low variability (CV < 5%) is a race.
    """
    declared = (context.workout_type or '').lower()
    if declared == 'race':
        return RunMode.RACE
    if declared in ('interval', 'speed', 'tempo', 'threshold'):
        return RunMode.WORKOUT
    if declared in ('easy', 'recovery'):
        return RunMode.EASY_RUN

    paces = np.array(_valid_paces(splits), dtype=float)
    if len(paces) < 2:
        return RunMode.EASY_RUN

    cv = float(np.std(paces) / np.mean(paces))
    fast_share = float(np.mean(paces <= zones.tempo))

    if cv > 0.08 and fast_share > 0.2:
        return RunMode.WORKOUT
    if fast_share > 0.7 and cv < 0.05:
        return RunMode.RACE
    return RunMode.EASY_RUN


# =============================================================================
# Stage 3-4: Raw and structural classification
# =============================================================================

def classify_raw(pace: float, zones: ZoneBoundaries, tolerance: float = 0.0) -> EffortCategory:
    """
    Effort zone for a single pace.

    A pace within `tolerance` seconds on the slow side of a boundary is
    attributed to the harder zone.
    """
    recovery = zones.recovery if zones.recovery is not None else RECOVERY_PACE_FLOOR
    if pace > recovery:
        return EffortCategory.RECOVERY

    effective = pace - tolerance
    for category, boundary in zip(EFFORT_ORDER, zones.effort_boundaries()[:5]):
        if effective >= boundary:
            return category
    return EffortCategory.INTERVAL


def detect_structural(splits: Sequence[Split], categories: List[EffortCategory],
                      zones: ZoneBoundaries, run_mode: RunMode) -> List[EffortCategory]:
    """Mark warmup, cooldown, marathon-race effort and rest between reps."""
    result = list(categories)
    n = len(splits)
    if n < 5:
        return result

    valid = _valid_paces(splits)
    median = _upper_median(valid) if valid else zones.steady
    paces = [s.avg_pace_seconds for s in splits]

    if median + 20 < paces[0] < RECOVERY_PACE_FLOOR:
        result[0] = EffortCategory.WARMUP
        if n > 5 and median + 15 < paces[1] < RECOVERY_PACE_FLOOR:
            result[1] = EffortCategory.WARMUP

    if median + 20 < paces[-1] < RECOVERY_PACE_FLOOR and paces[-1] > paces[-2] + 10:
        result[-1] = EffortCategory.COOLDOWN

    if run_mode == RunMode.RACE and sum(s.distance_miles for s in splits) >= 25:
        # Marathon races run faster than predicted MP are still marathon effort
        for i, pace in enumerate(paces):
            if result[i] == EffortCategory.TEMPO and zones.marathon - 40 <= pace < zones.marathon:
                result[i] = EffortCategory.MARATHON

    if run_mode == RunMode.WORKOUT:
        for i, pace in enumerate(paces):
            if result[i] in EFFORT_ORDER and pace > zones.easy + 30:
                result[i] = EffortCategory.RECOVERY

    return result


# =============================================================================
# Stage 5-7: Anomalies, smoothing, hysteresis
# =============================================================================

def detect_anomaly(split: Split) -> Optional[str]:
    """Reason a split's data is implausible, or None."""
    pace = split.avg_pace_seconds
    if pace < MIN_VALID_PACE:
        return f"Pace {int(pace) // 60}:{int(round(pace % 60)):02d} is below 3:00/mi, likely GPS artifact"
    if split.distance_miles < 0.15 and pace <= RECOVERY_PACE_FLOOR:
        return f"Very short split ({split.distance_miles:.2f} mi), insufficient data"
    return None


def smooth_categories(categories: List[EffortCategory]) -> List[EffortCategory]:
    """A split whose two effort neighbours agree takes their zone."""
    result = list(categories)
    for i in range(1, len(result) - 1):
        prev, curr, nxt = result[i - 1], result[i], result[i + 1]
        if curr in SKIP_CATEGORIES or prev in SKIP_CATEGORIES or nxt in SKIP_CATEGORIES:
            continue
        if prev == nxt and curr != prev:
            result[i] = prev
    return result


def apply_hysteresis(splits: Sequence[Split], categories: List[EffortCategory],
                     zones: ZoneBoundaries, run_mode: RunMode) -> List[EffortCategory]:
    """
    Context rules applied after smoothing.

    - Sticky hard zone: after a harder split, a pace less than 3 s slower
      than the boundary stays in the harder zone. This rule alone never
      moves a split toward the easier zone.
    - Race mode: splits one zone from the dominant zone and within 8 s
      of the shared boundary take the dominant zone, in either direction.
      It runs after the sticky rule, so an easier dominant zone can
      demote a split the sticky rule kept hard.
    - Workout mode: easy/steady splits between hard splits, and splits
      slower than easy next to a hard split, are rest.
    """
    result = list(categories)
    boundaries = zones.effort_boundaries()[:5]

    dominant = None
    if run_mode == RunMode.RACE:
        counts: Dict[EffortCategory, int] = {}
        for category in result:
            if category not in SKIP_CATEGORIES:
                counts[category] = counts.get(category, 0) + 1
        if counts:
            dominant = max(counts, key=counts.get)

    for i, split in enumerate(splits):
        if result[i] not in EFFORT_ORDER:
            continue
        pace = split.avg_pace_seconds
        prev = result[i - 1] if i > 0 else None

        if prev in EFFORT_ORDER:
            for index, boundary in enumerate(boundaries):
                harder = EFFORT_ORDER[index + 1]
                slower_by = pace - boundary
                if prev == harder and 0 <= slower_by < STICKY_BUFFER:
                    result[i] = harder

        if dominant is not None and dominant in EFFORT_ORDER:
            current = EFFORT_ORDER.index(result[i])
            target = EFFORT_ORDER.index(dominant)
            if abs(current - target) == 1:
                boundary = boundaries[min(current, target)]
                if abs(pace - boundary) < RACE_BIAS_BUFFER:
                    result[i] = dominant

    if run_mode == RunMode.WORKOUT:
        for i in range(1, len(splits) - 1):
            if result[i] in SKIP_CATEGORIES:
                continue
            prev, nxt = result[i - 1], result[i + 1]
            if prev.is_hard and nxt.is_hard and result[i] in (EffortCategory.EASY, EffortCategory.STEADY):
                result[i] = EffortCategory.RECOVERY
            if (prev.is_hard or nxt.is_hard) and splits[i].avg_pace_seconds > zones.easy:
                result[i] = EffortCategory.RECOVERY

    return result


# =============================================================================
# Stage 8: Confidence
# =============================================================================

def hr_agrees(heart_rate: float, category: EffortCategory) -> bool:
    """True when heart rate is plausible for the category."""
    zone = HR_ZONES.get(category)
    if zone is None:
        return True
    return zone[0] <= heart_rate <= zone[1]


def _neighbours_agree(category: EffortCategory, neighbours: List[Optional[Split]],
                      zones: ZoneBoundaries, tolerance: float) -> bool:
    total = agree = 0
    for split in neighbours:
        if split is None or not MIN_VALID_PACE < split.avg_pace_seconds < RECOVERY_PACE_FLOOR:
            continue
        total += 1
        if classify_raw(split.avg_pace_seconds, zones, tolerance) == category:
            agree += 1
    return total == 0 or agree > 0


def score_confidence(split: Split, category: EffortCategory, raw_category: EffortCategory,
                     zones: ZoneBoundaries, prev_split: Optional[Split], next_split: Optional[Split],
                     is_anomaly: bool, tolerance: float = 0.0) -> Tuple[float, Optional[bool]]:
    """
    Confidence in [0.2, 1.0] and heart-rate agreement (None without HR).

    Starts at 0.8: +0.1 far from any boundary (> 15 s), -0.2 close (< 5 s),
    -0.2 when neither neighbour agrees, -0.1 when smoothing changed it,
    +0.1/-0.2 for HR agreement, -0.1 under half a mile.
    """
    if is_anomaly:
        return 0.2, None

    pace = split.avg_pace_seconds
    if category == EffortCategory.RECOVERY and pace > RECOVERY_PACE_FLOOR:
        return 0.9, None

    confidence = 0.8
    nearest = min(abs(pace - b) for b in zones.effort_boundaries())
    if nearest > 15:
        confidence += 0.1
    if nearest < 5:
        confidence -= 0.2

    if not _neighbours_agree(category, [prev_split, next_split], zones, tolerance):
        confidence -= 0.2

    structural = (EffortCategory.WARMUP, EffortCategory.COOLDOWN, EffortCategory.RECOVERY)
    if raw_category != category and category not in structural:
        confidence -= 0.1

    agreement = None
    if split.avg_heart_rate and split.avg_heart_rate > 0:
        agreement = hr_agrees(split.avg_heart_rate, category)
        confidence += 0.1 if agreement else -0.2

    if split.distance_miles < 0.5:
        confidence -= 0.1

    return max(0.2, min(1.0, round(confidence, 2))), agreement


# =============================================================================
# Entry points
# =============================================================================

def classify_split_efforts_with_zones(
    splits: Sequence[Split],
    context: Optional[ClassificationContext] = None,
    config: Optional[PlanConfig] = None
) -> ClassificationResult:
    """
    Classify every split of a run.

    Args:
        splits: Splits in lap order (logged or hypothetical)
        context: Zone sources, workout type, condition adjustment
        config: Supplies the default harder-zone tolerance

    Returns:
        ClassificationResult with one ClassifiedSplit per input split
    """
    context = context or ClassificationContext()
    if not splits:
        return ClassificationResult(zones=ZoneBoundaries(0, 0, 0, 0, 0, 0))

    if context.tolerance_seconds is not None:
        tolerance = context.tolerance_seconds
    else:
        tolerance = (config or get_default_config()).get('classifier.tolerance_seconds', 2.0)

    zones = resolve_zones(splits, context)
    run_mode = infer_run_mode(splits, context, zones)

    categories = [classify_raw(s.avg_pace_seconds, zones, tolerance) for s in splits]
    categories = detect_structural(splits, categories, zones, run_mode)
    raw_categories = list(categories)

    anomalies = [detect_anomaly(s) for s in splits]
    categories = [EffortCategory.ANOMALY if reason else c for c, reason in zip(categories, anomalies)]

    categories = smooth_categories(categories)
    categories = apply_hysteresis(splits, categories, zones, run_mode)
    categories = [EffortCategory.ANOMALY if reason else c for c, reason in zip(categories, anomalies)]

    classified = []
    for i, split in enumerate(splits):
        confidence, agreement = score_confidence(
            split, categories[i], raw_categories[i], zones,
            splits[i - 1] if i > 0 else None,
            splits[i + 1] if i < len(splits) - 1 else None,
            anomalies[i] is not None, tolerance,
        )
        classified.append(ClassifiedSplit(
            lap_number=split.lap_number,
            category=categories[i],
            confidence=confidence,
            raw_category=raw_categories[i],
            anomaly_reason=anomalies[i],
            hr_agreement=agreement,
        ))

    logger.debug("Classified %d splits as %s run", len(classified), run_mode.value)
    return ClassificationResult(splits=classified, zones=zones, run_mode=run_mode)


def classify_split_efforts(
    splits: Sequence[Split],
    context: Optional[ClassificationContext] = None
) -> List[ClassifiedSplit]:
    """Classified splits without the boundaries."""
    return classify_split_efforts_with_zones(splits, context).splits


def compute_zone_distribution(
    classified: Sequence[ClassifiedSplit],
    splits: Sequence[Split]
) -> Dict[str, float]:
    """Minutes per category (0.1 min resolution), paired by position."""
    distribution = {category.value: 0.0 for category in EffortCategory}
    for item, split in zip(classified, splits):
        distribution[item.category.value] += (split.duration_seconds or 0) / 60
    return {k: round(v, 1) for k, v in distribution.items()}


def derive_workout_type(
    distribution: Dict[str, float],
    workout_type: Optional[str] = None,
    distance_miles: Optional[float] = None
) -> str:
    """
    Main purpose of a run from its zone distribution.

    Race and cross-training labels are kept. Warmup, cooldown and
    anomalies are excluded from the main body. 9+ miles or 75+ minutes
    is a long run; threshold-dominant runs are tempo.
    """
    declared = (workout_type or '').lower() or None
    if declared in ('race', 'cross_train'):
        return declared

    main_zones = ['recovery', 'easy', 'steady', 'marathon', 'tempo', 'threshold', 'interval']
    main = {zone: distribution.get(zone, 0.0) for zone in main_zones}
    total_main = sum(main.values())
    if total_main == 0:
        return declared or 'easy'

    total = total_main + distribution.get('warmup', 0.0) + distribution.get('cooldown', 0.0)
    if (distance_miles and distance_miles >= 9) or total >= 75:
        return 'long'

    dominant, minutes = max(main.items(), key=lambda item: item[1])
    if dominant == 'recovery':
        return 'recovery'
    if dominant == 'threshold':
        return 'tempo'
    if minutes / total_main > 0.5:
        return dominant

    hard = main['tempo'] + main['threshold'] + main['interval']
    if hard / total_main >= 0.2:
        tempo_minutes = main['tempo'] + main['threshold']
        return 'interval' if main['interval'] >= tempo_minutes else 'tempo'
    return 'easy'


if __name__ == '__main__':
    print("Testing Effort Classifier...")
    print("=" * 60)

    paces = [540, 500, 420, 560, 418, 555, 422, 560, 425, 580]
    laps = [Split(i + 1, 0.5 if p < 450 else 0.25, p * (0.5 if p < 450 else 0.25), p, None)
            for i, p in enumerate(paces)]
    result = classify_split_efforts_with_zones(laps, ClassificationContext(vdot=50))
    print(f"Run mode: {result.run_mode.value}")
    for item in result.splits:
        print(f"  Lap {item.lap_number:2d}: {item.category_label:10s} ({item.confidence:.2f})")
    distribution = compute_zone_distribution(result.splits, laps)
    print(f"\nWorkout type: {derive_workout_type(distribution)}")
