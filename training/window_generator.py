"""
Window Generator: Rolling expansion of macro blocks into daily workouts.

Only the next few unpopulated weeks (at most 3) are filled at a time, so
each window can react to how training actually went. Block targets
(mileage, long run, quality count) are authoritative; recent completed
workouts nudge them through an explicit rule table.

Adaptation looks at actual-vs-planned deltas rather than completion rate:
- Less volume with high RPE is fatigue; less volume with easy RPE is a choice
- Different workout types at similar volume is self-coaching, not skipping
- A streak of very hard quality sessions softens the next one
- Consistently easy execution allows a small progression

Based on:
- Pfitzinger & Douglas, Advanced Marathoning (race-week sharpening, MLR)
- Foster (1998) session RPE as a load signal
- Mujika & Padilla (2003) pre-race taper
"""

import logging
from dataclasses import dataclass, field, asdict, replace
from datetime import date, timedelta
from typing import Optional, Dict, Any, List, Tuple, Iterable

from .config import PlanConfig, get_default_config
from .pace_model import METERS_PER_MILE, PaceZones, format_pace, get_pace_for_zone
from .periodization import (
    Block,
    IntermediateRace,
    RacePriority,
    TrainingPhase,
    is_half_marathon,
    is_marathon,
    phase_week_index,
)
from .profile import (
    AthleteProfile,
    get_comfort_adjusted_workout,
    get_experience_based_progression,
    get_recovery_adjustments,
    get_time_constrained_distance,
)
from .scheduling import DayOfWeek, SlotKind, WeeklyStructure
from .workout_templates import EFFORT_PHRASES, WorkoutTemplate, find_template, get_workout_template

logger = logging.getLogger(__name__)

# Completed workout types that count as quality work
QUALITY_WORKOUT_TYPES = ('tempo', 'interval', 'steady', 'race')

# One intensity level softer, by template intensity
QUALITY_DOWNGRADES: Dict[str, str] = {
    'very_hard': 'steady_tempo',
    'hard': 'classic_fartlek',
    'moderate': 'easy_run_strides',
}


# =============================================================================
# Data types
# =============================================================================

@dataclass
class CompletedWorkoutSummary:
    """A logged workout as seen by the adaptation rules."""
    date: date
    workout_type: str
    distance_miles: float
    duration_minutes: Optional[float] = None
    avg_pace_seconds: Optional[float] = None
    rpe: Optional[float] = None
    reflection_rpe: Optional[float] = None
    assessment_rpe: Optional[float] = None
    external_perceived_exertion: Optional[float] = None
    planned_type: Optional[str] = None
    planned_distance: Optional[float] = None
    was_planned: bool = False

    @property
    def effective_rpe(self) -> Optional[float]:
        """RPE by source priority: reflection, assessment, third-party, raw."""
        for value in (self.reflection_rpe, self.assessment_rpe,
                      self.external_perceived_exertion, self.rpe):
            if value is not None:
                return value
        return None

    @property
    def is_quality(self) -> bool:
        return self.workout_type in QUALITY_WORKOUT_TYPES

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'CompletedWorkoutSummary':
        """Create from a dictionary with an ISO date string."""
        data = dict(d)
        if isinstance(data.get('date'), str):
            data['date'] = date.fromisoformat(data['date'])
        return cls(**data)


@dataclass
class AdaptationRules:
    """
    Tunable thresholds for analyze_training_adaptation.

    Ratios are actual/planned miles; RPE values are on the 1-10 scale.
    """

    # Volume
    low_volume_ratio: float = 0.70           # Below this: running less than planned
    high_rpe: float = 7.0                    # Above this with low volume: struggling
    manageable_rpe: float = 6.0              # At or below this with low volume: a choice
    struggling_mileage_factor: float = 0.90
    choosing_less_mileage_factor: float = 0.95
    exceeding_volume_ratio: float = 1.15     # Above this: noted, targets kept

    # Sustained effort
    sustained_rpe: float = 8.0
    sustained_rpe_min_workouts: int = 3
    sustained_intensity_factor: float = 0.95

    # Skipped quality
    skipped_quality_min_workouts: int = 5
    skipped_quality_max_mismatch: float = 0.5

    # Quality streaks
    quality_streak_rpe: float = 8.0
    quality_streak_downgrade: int = 2        # Streak length that softens the next session
    quality_streak_recovery: int = 3         # Streak length that also inserts recovery

    # Progression
    easy_rpe: float = 5.0
    easy_min_workouts: int = 4
    easy_min_volume_ratio: float = 0.95
    progression_mileage_factor: float = 1.05
    progression_intensity_factor: float = 1.02

    def to_dict(self) -> Dict[str, Any]:
        """Convert rules to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'AdaptationRules':
        """Create rules from dictionary, ignoring unknown keys."""
        known = {k: v for k, v in d.items() if k in cls.__dataclass_fields__}
        return cls(**known)

    @classmethod
    def from_config(cls, config: Optional[PlanConfig] = None) -> 'AdaptationRules':
        """Rules from the 'adaptation' section of the plan config."""
        config = config or get_default_config()
        return cls.from_dict(config.get('adaptation', {}) or {})

    def validate(self) -> Tuple[bool, str]:
        """Validate rule constraints."""
        issues = []

        if not (0 < self.low_volume_ratio < 1 < self.exceeding_volume_ratio):
            issues.append("Volume ratios: 0 < low < 1 < exceeding")
        if not (0 < self.struggling_mileage_factor <= self.choosing_less_mileage_factor <= 1):
            issues.append("Reduction factors: 0 < struggling <= choosing_less <= 1")
        if not (1 <= self.manageable_rpe <= self.high_rpe <= 10):
            issues.append("RPE: manageable <= high within 1-10")
        if not (2 <= self.quality_streak_downgrade <= self.quality_streak_recovery):
            issues.append("Streaks: 2 <= downgrade <= recovery")
        if not (1 <= self.progression_mileage_factor <= 1.10):
            issues.append("Progression mileage factor must be in [1, 1.10]")

        if issues:
            return False, "; ".join(issues)
        return True, "Valid"


@dataclass
class TrainingAdaptation:
    """Adjustments applied to the next window's block targets."""
    mileage_adjustment: float = 1.0      # Multiplier on mileage and long run
    quality_adjustment: int = 0          # Change to quality sessions (-1, 0)
    intensity_adjustment: float = 1.0    # Multiplier on quality/long-run pace speed
    downgrade_next_quality: bool = False
    insert_recovery: bool = False
    reasoning: str = "No recent data"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


@dataclass
class PlannedWorkout:
    """
    One prescribed workout on one date.

    Status is always 'scheduled' when created.
    """
    date: date
    day_of_week: str
    template_id: str
    workout_type: str
    name: str
    description: str
    target_distance_miles: Optional[float] = None
    target_duration_minutes: Optional[int] = None
    target_pace_seconds_per_mile: Optional[int] = None
    effort_description: Optional[str] = None
    structure: List[Dict[str, Any]] = field(default_factory=list)
    rationale: str = ""
    alternatives: List[str] = field(default_factory=list)
    is_key_workout: bool = False
    status: str = "scheduled"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        result = asdict(self)
        result['date'] = self.date.isoformat()
        return result


@dataclass
class WindowGenerationInput:
    """Blocks to fill plus everything that shapes their workouts."""
    blocks: List[Block]
    race_date: date
    race_distance_meters: float
    weekly_structure: WeeklyStructure
    race_distance_label: str = ""
    pace_zones: Optional[PaceZones] = None
    athlete_profile: Optional[AthleteProfile] = None
    intermediate_races: List[IntermediateRace] = field(default_factory=list)
    recent_workouts: List[CompletedWorkoutSummary] = field(default_factory=list)
    quality_sessions_per_week: int = 2
    plan_blocks: List[Block] = field(default_factory=list)
    peak_mileage_cap: Optional[int] = None
    config: Optional[PlanConfig] = None


# =============================================================================
# Window selection
# =============================================================================

def select_window_blocks(
    blocks: Iterable[Block],
    populated_weeks: Iterable[int],
    size: int = 3,
    today: Optional[date] = None
) -> List[Block]:
    """
    The next blocks (by week number) that have no workouts yet.

    Args:
        blocks: All blocks of the plan
        populated_weeks: Week numbers that already have workouts
        size: Window size (at most 3)
        today: Skip weeks that ended before this date

    Returns:
        Up to `size` blocks in week order
    """
    if size < 1 or size > 3:
        raise ValueError(f"Window size must be 1-3, got {size}")
    populated = set(populated_weeks)
    pending = [
        b for b in sorted(blocks, key=lambda b: b.week_number)
        if b.week_number not in populated and (today is None or b.end_date >= today)
    ]
    return pending[:size]


# =============================================================================
# Adaptation analysis
# =============================================================================

def _quality_rpe_streak(workouts: List[CompletedWorkoutSummary], threshold: float) -> int:
    """Consecutive most-recent quality sessions at or above an RPE."""
    streak = 0
    for workout in sorted(workouts, key=lambda w: w.date, reverse=True):
        if not workout.is_quality:
            continue
        rpe = workout.effective_rpe
        if rpe is None or rpe < threshold:
            break
        streak += 1
    return streak


def analyze_training_adaptation(
    recent_workouts: List[CompletedWorkoutSummary],
    rules: Optional[AdaptationRules] = None
) -> TrainingAdaptation:
    """
    Decide how the next window should differ from the macro targets.

    Rule table (first matching volume rule wins, the rest stack):
        volume < 70% and RPE > 7        -> mileage x0.90
        volume < 70% and RPE <= 6       -> mileage x0.95
        volume > 115%                   -> noted, targets kept
        avg RPE >= 8 over 3+ workouts   -> intensity x0.95
        no quality in 5+ workouts and
          type mismatch < 50%           -> quality -1
        quality RPE >= 8 streak of 2    -> soften next quality session
        streak of 3                     -> also insert recovery
        4+ workouts all RPE <= 5 and
          volume >= 95%, no fatigue     -> mileage x1.05, intensity x1.02

    Args:
        recent_workouts: Trailing ~3 weeks of completed workouts
        rules: Thresholds (defaults from config)

    Returns:
        TrainingAdaptation with a human-readable reasoning string
    """
    if not recent_workouts:
        return TrainingAdaptation()

    rules = rules or AdaptationRules.from_config()

    # Volume
    planned = [w for w in recent_workouts if w.was_planned]
    actual_miles = sum(w.distance_miles for w in recent_workouts)
    planned_miles = sum(w.planned_distance or 0 for w in planned)
    volume_ratio = actual_miles / planned_miles if planned_miles > 0 else 1.0

    # RPE
    rpes = [w.effective_rpe for w in recent_workouts if w.effective_rpe is not None]
    avg_rpe = sum(rpes) / len(rpes) if rpes else 5.0

    # Substitutions
    matches = sum(1 for w in planned if w.workout_type == w.planned_type)
    mismatch_rate = 1 - matches / len(planned) if planned else 0.0
    actual_quality = sum(1 for w in recent_workouts if w.is_quality)

    adaptation = TrainingAdaptation()
    reasons: List[str] = []

    if volume_ratio < rules.low_volume_ratio and avg_rpe > rules.high_rpe:
        adaptation.mileage_adjustment = rules.struggling_mileage_factor
        reasons.append(
            f"Volume {volume_ratio:.0%} of planned with high RPE ({avg_rpe:.1f}), reducing targets"
        )
    elif volume_ratio < rules.low_volume_ratio and avg_rpe <= rules.manageable_rpe:
        adaptation.mileage_adjustment = rules.choosing_less_mileage_factor
        reasons.append(f"Volume at {volume_ratio:.0%} but effort is manageable, slight adjustment")
    elif volume_ratio > rules.exceeding_volume_ratio:
        reasons.append(f"Exceeding planned volume ({volume_ratio:.0%}), maintaining targets")

    if avg_rpe >= rules.sustained_rpe and len(rpes) >= rules.sustained_rpe_min_workouts:
        adaptation.intensity_adjustment = rules.sustained_intensity_factor
        reasons.append(f"Sustained high RPE ({avg_rpe:.1f}), reducing intensity slightly")

    if (actual_quality == 0 and len(recent_workouts) >= rules.skipped_quality_min_workouts
            and mismatch_rate < rules.skipped_quality_max_mismatch):
        adaptation.quality_adjustment = -1
        reasons.append("No quality sessions completed recently, one fewer per week")

    streak = _quality_rpe_streak(recent_workouts, rules.quality_streak_rpe)
    if streak >= rules.quality_streak_downgrade:
        adaptation.downgrade_next_quality = True
        reasons.append(f"{streak} hard quality sessions in a row, softening the next one")
    if streak >= rules.quality_streak_recovery:
        adaptation.insert_recovery = True
        reasons.append("Adding a recovery day")

    fatigued = (adaptation.mileage_adjustment < 1 or adaptation.intensity_adjustment < 1
                or adaptation.downgrade_next_quality)
    if (not fatigued and len(rpes) >= rules.easy_min_workouts
            and all(r <= rules.easy_rpe for r in rpes)
            and volume_ratio >= rules.easy_min_volume_ratio):
        adaptation.mileage_adjustment = rules.progression_mileage_factor
        adaptation.intensity_adjustment = rules.progression_intensity_factor
        reasons.append("Consistently easy execution, progressing volume and pace")

    adaptation.reasoning = "; ".join(reasons) if reasons else "Training tracking well with plan"
    logger.info("Adaptation: %s", adaptation.reasoning)
    return adaptation


# =============================================================================
# Workout selection rules
# =============================================================================

def get_long_run_type(phase: TrainingPhase, week_in_phase: int, race_distance_meters: float) -> str:
    """Long-run template for a phase week."""
    if is_marathon(race_distance_meters):
        if phase == TrainingPhase.PEAK:
            return 'marathon_pace_long_run' if week_in_phase == 0 else 'marathon_simulation'
        if phase == TrainingPhase.BUILD:
            return 'easy_long_run' if week_in_phase % 2 == 0 else 'progression_long_run'
    elif is_half_marathon(race_distance_meters):
        if phase in (TrainingPhase.BUILD, TrainingPhase.PEAK):
            return 'easy_long_run' if week_in_phase % 2 == 0 else 'progression_long_run'

    if phase in (TrainingPhase.BUILD, TrainingPhase.PEAK):
        return 'progression_long_run' if week_in_phase % 3 == 2 else 'easy_long_run'
    return 'easy_long_run'


def get_quality_workout_type(
    phase: TrainingPhase,
    week_in_phase: int,
    session_number: int,
    race_distance_meters: float
) -> str:
    """Quality template for the Nth (1-based) session of a phase week."""
    first = session_number == 1

    if phase == TrainingPhase.TAPER:
        return 'steady_tempo' if first else 'easy_run_strides'
    if phase == TrainingPhase.BASE:
        return 'classic_fartlek' if first else 'short_hill_repeats'
    if phase == TrainingPhase.BUILD:
        if first:
            return 'steady_tempo' if week_in_phase % 2 == 0 else 'cruise_intervals'
        return 'yasso_800s' if week_in_phase % 3 == 0 else 'short_intervals_400m'
    if phase == TrainingPhase.PEAK:
        if is_marathon(race_distance_meters):
            return 'marathon_pace_intervals' if first else 'progressive_tempo'
        if is_half_marathon(race_distance_meters):
            return 'half_marathon_pace_workout' if first else 'cruise_intervals'
        return 'mile_repeats' if first else 'steady_tempo'
    return 'easy_run'


def get_alternatives(slot: SlotKind, phase: TrainingPhase) -> List[str]:
    """Template ids an athlete may swap in for a long or quality slot."""
    if slot == SlotKind.LONG:
        return {
            TrainingPhase.BASE: ['easy_long_run', 'medium_long_run'],
            TrainingPhase.BUILD: ['progression_long_run', 'easy_long_run'],
            TrainingPhase.PEAK: ['marathon_pace_long_run', 'alternating_pace_long_run'],
        }.get(phase, ['easy_run'])
    if slot == SlotKind.QUALITY:
        return {
            TrainingPhase.BASE: ['classic_fartlek', 'short_hill_repeats', 'easy_run_strides'],
            TrainingPhase.BUILD: ['steady_tempo', 'cruise_intervals', 'yasso_800s'],
            TrainingPhase.PEAK: ['progressive_tempo', 'marathon_pace_intervals'],
        }.get(phase, ['easy_run_strides', 'easy_run'])
    return []


def get_quality_pace(workout_id: str, zones: Optional[PaceZones]) -> Optional[int]:
    """Fallback pace for a quality session from keywords in its id."""
    if zones is None:
        return None
    if 'tempo' in workout_id:
        return zones.tempo
    if 'threshold' in workout_id:
        return zones.threshold
    if 'vo2max' in workout_id or 'interval' in workout_id:
        return zones.interval
    if 'half_marathon' in workout_id or 'hmp' in workout_id:
        return zones.half_marathon
    if 'marathon' in workout_id or 'mp' in workout_id:
        return zones.marathon
    return zones.tempo


def adjust_quality_for_profile(
    workout_id: str,
    phase: TrainingPhase,
    week_in_phase: int,
    profile: Optional[AthleteProfile]
) -> str:
    """Apply comfort substitutions, then experience-based progression."""
    if profile is None:
        return workout_id

    workout_id = get_comfort_adjusted_workout(workout_id, profile)
    progression = get_experience_based_progression(profile)

    if (progression['start_with_fartlek'] and phase == TrainingPhase.BASE and week_in_phase < 2
            and ('interval' in workout_id or 'tempo' in workout_id)):
        workout_id = 'classic_fartlek'
    if (progression['delay_vo2max_weeks'] > week_in_phase
            and any(k in workout_id for k in ('800', '400', 'mile_repeats'))):
        workout_id = 'cruise_intervals'
    return workout_id


def downgrade_quality_workout(workout_id: str) -> str:
    """One intensity level softer than a quality template."""
    template = get_workout_template(workout_id)
    if template is None:
        return 'easy_run_strides'
    return QUALITY_DOWNGRADES.get(template.intensity, 'easy_run_strides')


# =============================================================================
# Workout helpers
# =============================================================================

def _miles(value: float) -> float:
    return round(value, 1)


def _adjust_pace(pace: Optional[int], intensity: float) -> Optional[int]:
    """Faster pace for intensity > 1, slower for < 1."""
    if pace is None or intensity == 1.0:
        return pace
    return int(round(pace / intensity))


def _duration(distance: Optional[float], pace: Optional[int]) -> Optional[int]:
    if not distance or not pace:
        return None
    return int(round(distance * pace / 60))


def _simple_workout(
    day: date,
    template_id: str,
    workout_type: str,
    name: str,
    description: str,
    distance: float,
    pace: Optional[int],
    rationale: str,
    is_key: bool = False
) -> PlannedWorkout:
    template = get_workout_template(template_id)
    if pace is not None:
        effort = None
    elif template is not None:
        effort = template.effort_description()
    else:
        effort = EFFORT_PHRASES['easy']
    return PlannedWorkout(
        date=day,
        day_of_week=DayOfWeek(day.weekday()).label,
        template_id=template_id,
        workout_type=workout_type,
        name=name,
        description=description,
        target_distance_miles=_miles(distance),
        target_duration_minutes=_duration(distance, pace),
        target_pace_seconds_per_mile=pace,
        effort_description=effort,
        structure=template.structure() if template else [],
        rationale=rationale,
        is_key_workout=is_key,
    )


def _template_workout(
    day: date,
    template: WorkoutTemplate,
    workout_type: str,
    distance: float,
    pace: Optional[int],
    rationale: str,
    alternatives: List[str]
) -> PlannedWorkout:
    return PlannedWorkout(
        date=day,
        day_of_week=DayOfWeek(day.weekday()).label,
        template_id=template.id,
        workout_type=workout_type,
        name=f"{template.name} @ {format_pace(pace)}/mi" if pace else template.name,
        description=template.description,
        target_distance_miles=_miles(distance),
        target_duration_minutes=_duration(distance, pace),
        target_pace_seconds_per_mile=pace,
        effort_description=None if pace is not None else template.effort_description(),
        structure=template.structure(),
        rationale=rationale,
        alternatives=alternatives,
        is_key_workout=template.is_key_workout,
    )


def scale_down_workout(workout: PlannedWorkout, factor: float, reason: str = "") -> PlannedWorkout:
    """
    Shorter copy of a workout.

    Args:
        workout: Workout to scale
        factor: Share of distance to keep (0-1]
        reason: Appended to the rationale

    Raises:
        ValueError: factor outside (0, 1]
    """
    if not 0 < factor <= 1:
        raise ValueError(f"Scale factor must be in (0, 1], got {factor}")
    distance = (_miles(workout.target_distance_miles * factor)
                if workout.target_distance_miles is not None else None)
    duration = (int(round(workout.target_duration_minutes * factor))
                if workout.target_duration_minutes is not None else None)
    rationale = f"{workout.rationale} ({reason})" if reason else workout.rationale
    return replace(workout, target_distance_miles=distance,
                   target_duration_minutes=duration, rationale=rationale)


def swap_workout(
    workout: PlannedWorkout,
    template_id: str,
    zones: Optional[PaceZones] = None
) -> PlannedWorkout:
    """
    Same date and distance, different template.

    Raises:
        ValueError: unknown template id
    """
    template = get_workout_template(template_id)
    if template is None:
        raise ValueError(f"Unknown workout template: {template_id}")
    pace = template.target_pace(zones)
    return replace(
        workout,
        template_id=template.id,
        name=template.display_name(zones),
        description=template.description,
        target_pace_seconds_per_mile=pace,
        target_duration_minutes=_duration(workout.target_distance_miles, pace),
        effort_description=None if pace is not None else template.effort_description(),
        structure=template.structure(),
        is_key_workout=template.is_key_workout,
        alternatives=[t for t in workout.alternatives if t != template.id],
    )


def _best_mlr_day(structure: WeeklyStructure) -> Optional[DayOfWeek]:
    """Easy day furthest from the long run, wrapping around the week."""
    if structure.long_run_day is None:
        return None
    long_index = structure.long_run_day.value
    best, best_distance = None, 0
    for day in structure.days_of_kind(SlotKind.EASY):
        gap = abs(day.value - long_index)
        distance = min(gap, 7 - gap)
        if distance > best_distance:
            best, best_distance = day, distance
    return best


def calculate_mlr_distance(long_run_miles: int) -> int:
    """Medium-long run: about 65% of the long run, at least 2 miles shorter."""
    return max(min(round(long_run_miles * 0.65), long_run_miles - 2), min(8, long_run_miles - 2))


# =============================================================================
# Week expansion
# =============================================================================

class _WeekContext:
    """Per-week targets shared by the day handlers."""

    def __init__(self, block: Block, window: WindowGenerationInput, adaptation: TrainingAdaptation,
                 week_in_phase: int, config: PlanConfig):
        self.block = block
        self.window = window
        self.adaptation = adaptation
        self.week_in_phase = week_in_phase
        self.config = config
        self.zones = window.pace_zones
        self.easy_pace = self.zones.easy if self.zones else None

        mileage = round(block.target_mileage * adaptation.mileage_adjustment)
        long_run = round(block.long_run_target * adaptation.mileage_adjustment)
        if window.peak_mileage_cap is not None:
            mileage = min(mileage, window.peak_mileage_cap)
            long_run = min(long_run, round(window.peak_mileage_cap * 0.35))
        self.mileage = mileage
        self.long_run = long_run

        quality_days = window.weekly_structure.quality_days
        if block.quality_sessions_target > 0:
            wanted = max(1, block.quality_sessions_target + adaptation.quality_adjustment)
        else:
            wanted = 0
        self.quality_sessions = min(wanted, len(quality_days))

        structure = window.weekly_structure
        other_run_days = [d for d in structure.run_days if structure.days[d] != SlotKind.LONG]
        remaining = mileage - long_run

        profile = window.athlete_profile
        self.mlr_day = None
        self.mlr_miles = 0
        if profile is not None and profile.mlr_preference and not block.is_down_week and long_run >= 12:
            mlr = calculate_mlr_distance(long_run)
            if mlr >= 8:
                self.mlr_day = _best_mlr_day(structure)
                self.mlr_miles = mlr if self.mlr_day is not None else 0

        cap = config.get('window.easy_run_cap_miles', 9)
        run_days = max(1, len(other_run_days))
        quality_estimate = self.quality_sessions * (remaining / run_days + 2)
        easy_days = len(other_run_days) - self.quality_sessions - (1 if self.mlr_miles else 0)
        if easy_days > 0:
            easy = round((remaining - quality_estimate - self.mlr_miles) / easy_days)
        else:
            easy = round(remaining / run_days)
        self.easy_miles = max(2, min(easy, cap))

        recovery = get_recovery_adjustments(profile)
        self.quality_distance_factor = 1 - recovery['reduce_intensity_pct'] / 100.0


def _race_proximity_workout(day: date, ctx: _WeekContext) -> Tuple[bool, Optional[PlannedWorkout]]:
    """Goal race day and race week. Returns (handled, workout)."""
    window = ctx.window
    config = ctx.config
    days_until = (window.race_date - day).days
    label = window.race_distance_label or 'Goal Race'
    slot = window.weekly_structure.slot(DayOfWeek(day.weekday()))

    if days_until == 0:
        return True, _simple_workout(
            day, 'race_day', 'race', f"Race Day: {label}",
            'Goal race. Trust your training and execute your race plan.',
            window.race_distance_meters / METERS_PER_MILE, None,
            "This is what you've been training for.", is_key=True,
        )
    if days_until < 0:
        return True, None
    if days_until == 1:
        return True, _simple_workout(
            day, 'shakeout_run', 'easy', 'Pre-Race Shakeout',
            'Optional easy jog with a few strides. Stay loose.',
            config.get('window.shakeout_miles', 2.0), ctx.easy_pace,
            "Keep legs fresh for tomorrow's race.",
        )
    if days_until == 2:
        return True, _simple_workout(
            day, 'easy_run', 'easy', 'Easy Jog', 'Very easy miles to stay loose.',
            config.get('window.pre_race_easy_miles', 2.5), ctx.easy_pace,
            'Rest and recovery before race day.',
        )
    if 3 <= days_until <= 5 and day.weekday() == DayOfWeek.TUESDAY.value:
        marathon = is_marathon(window.race_distance_meters)
        if marathon:
            pace_zone = 'marathon'
        elif is_half_marathon(window.race_distance_meters):
            pace_zone = 'half_marathon'
        else:
            pace_zone = 'tempo'
        reps = '2x2mi' if marathon else '3x1mi'
        return True, _simple_workout(
            day, 'goal_pace_tempo', 'tempo', 'Race Pace Tune-Up',
            f"Warm up easy, then {reps} at goal race pace. Cool down easy.",
            8 if marathon else 6, get_pace_for_zone(ctx.zones, pace_zone),
            'Final sharpening workout to dial in race pace.', is_key=True,
        )
    if 2 < days_until <= 7:
        if slot == SlotKind.REST:
            return True, None
        return True, _simple_workout(
            day, 'easy_run', 'easy', 'Easy Run', 'Short and easy to stay fresh.',
            min(5.0, ctx.mileage / 5), ctx.easy_pace,
            'Maintain fitness while prioritizing freshness.',
        )
    return False, None


def _intermediate_race_workout(day: date, ctx: _WeekContext) -> Tuple[bool, Optional[PlannedWorkout]]:
    """Tune-up race day and B-race mini-taper. Returns (handled, workout)."""
    races = ctx.window.intermediate_races
    config = ctx.config
    for race in races:
        if race.date == day:
            rationale = {
                RacePriority.B: 'B race: run hard, treat as a quality session and race rehearsal.',
                RacePriority.C: 'C race: run for fun, a good training stimulus.',
            }[race.priority]
            return True, _simple_workout(
                day, 'race_day', 'race', f"{race.priority.value} Race: {race.name}",
                'Tune-up race. Run hard but smart.',
                race.distance_meters / METERS_PER_MILE, None, rationale, is_key=True,
            )

    for race in races:
        if race.priority != RacePriority.B:
            continue
        days_until = (race.date - day).days
        if days_until == 1:
            return True, _simple_workout(
                day, 'shakeout_run', 'easy', f"Pre-Race Shakeout ({race.name})",
                'Easy miles with strides.', config.get('window.b_race_shakeout_miles', 2.5),
                ctx.easy_pace, 'Light shakeout before tune-up race.',
            )
        if days_until == 2:
            return True, _simple_workout(
                day, 'easy_run', 'easy', 'Easy Run', 'Easy mileage before tune-up race.',
                config.get('window.b_race_easy_miles', 4.0), ctx.easy_pace,
                'Stay fresh for upcoming tune-up race.',
            )
        if days_until == -1:
            if ctx.zones is not None:
                pace = ctx.zones.recovery or ctx.zones.easy + 30
            else:
                pace = None
            return True, _simple_workout(
                day, 'recovery_run', 'recovery', 'Post-Race Recovery',
                'Very easy recovery jog or rest.',
                config.get('window.post_race_recovery_miles', 3.0), pace,
                'Recovery from tune-up race.',
            )
    return False, None


def _near_any_race(day: date, ctx: _WeekContext, before: int, after: int) -> bool:
    """True when a race falls between `after` days before and `before` days after a date."""
    race_dates = [ctx.window.race_date] + [r.date for r in ctx.window.intermediate_races]
    return any(-after <= (race_day - day).days <= before for race_day in race_dates)


def generate_week_workouts(block: Block, ctx: _WeekContext) -> List[PlannedWorkout]:
    """Expand one block into its daily workouts."""
    window = ctx.window
    structure = window.weekly_structure
    profile = window.athlete_profile
    phase = block.phase
    workouts: List[PlannedWorkout] = []
    quality_count = 0

    for offset in range(7):
        day = block.start_date + timedelta(days=offset)
        weekday = DayOfWeek(day.weekday())
        slot = structure.slot(weekday)

        handled, workout = _race_proximity_workout(day, ctx)
        if not handled:
            handled, workout = _intermediate_race_workout(day, ctx)
        if handled:
            if workout is not None:
                workouts.append(workout)
            continue

        if slot == SlotKind.REST:
            continue

        if slot == SlotKind.EASY and weekday == ctx.mlr_day:
            template = get_workout_template('medium_long_run')
            pace = (ctx.zones.general_aerobic or ctx.zones.easy) if ctx.zones else None
            workout = _template_workout(
                day, template, 'easy', ctx.mlr_miles, pace,
                'Mid-week mileage builder at comfortable effort.', [],
            )
            workout.name = 'Medium-Long Run'
            workout.description = (
                f"Steady {ctx.mlr_miles} miles at easy to general aerobic pace. "
                "Builds endurance without the full long run fatigue."
            )
            workouts.append(workout)
            continue

        if slot == SlotKind.LONG:
            if _near_any_race(day, ctx, before=2, after=0):
                workouts.append(_simple_workout(
                    day, 'easy_run', 'easy', 'Easy Run', 'Short easy run, race is within 2 days.',
                    ctx.config.get('window.race_proximity_easy_miles', 4.0), ctx.easy_pace,
                    'Long run replaced due to upcoming race proximity.',
                ))
                continue
            long_type = get_long_run_type(phase, ctx.week_in_phase, window.race_distance_meters)
            template = find_template(long_type, 'long')
            pace = _adjust_pace(template.target_pace(ctx.zones) or ctx.easy_pace,
                                ctx.adaptation.intensity_adjustment)
            workouts.append(_template_workout(
                day, template, 'long', ctx.long_run, pace,
                f"Building endurance: {phase.value} phase long run",
                get_alternatives(SlotKind.LONG, phase),
            ))
            continue

        if slot == SlotKind.QUALITY and quality_count < ctx.quality_sessions:
            quality_count += 1
            if _near_any_race(day, ctx, before=1, after=1):
                workouts.append(_simple_workout(
                    day, 'easy_run_strides', 'easy', 'Easy Run with Strides',
                    'Quality session softened next to a race.', ctx.easy_miles, ctx.easy_pace,
                    'Protecting race effort.',
                ))
                continue

            workout_id = get_quality_workout_type(
                phase, ctx.week_in_phase, quality_count, window.race_distance_meters
            )
            workout_id = adjust_quality_for_profile(workout_id, phase, ctx.week_in_phase, profile)
            rationale = f"{phase.value} phase quality session"
            if ctx.adaptation.downgrade_next_quality:
                workout_id = downgrade_quality_workout(workout_id)
                ctx.adaptation = replace(ctx.adaptation, downgrade_next_quality=False)
                rationale = f"{rationale}, softened after a run of very hard sessions"

            template = find_template(workout_id, 'tempo')
            pace = template.target_pace(ctx.zones) or get_quality_pace(workout_id, ctx.zones)
            pace = _adjust_pace(pace, ctx.adaptation.intensity_adjustment)
            distance = (ctx.easy_miles + 2) * ctx.quality_distance_factor
            workouts.append(_template_workout(
                day, template, 'quality', distance, pace, rationale,
                get_alternatives(SlotKind.QUALITY, phase),
            ))
            continue

        if ctx.adaptation.insert_recovery:
            ctx.adaptation = replace(ctx.adaptation, insert_recovery=False)
            pace = ctx.zones.recovery if ctx.zones else None
            workouts.append(_simple_workout(
                day, 'recovery_run', 'recovery', 'Recovery Run',
                'Very easy jog to absorb recent hard sessions.',
                min(ctx.easy_miles, 4), pace, 'Inserted after a streak of very hard quality sessions.',
            ))
            continue

        miles = get_time_constrained_distance(ctx.easy_miles, weekday.value < 5, profile, ctx.easy_pace)
        workouts.append(_simple_workout(
            day, 'easy_run', 'easy', 'Easy Run', f"Easy aerobic run of {miles} miles",
            miles, ctx.easy_pace, 'Recovery and aerobic maintenance',
        ))

    return workouts


def generate_window_workouts(window: WindowGenerationInput) -> Dict[int, List[PlannedWorkout]]:
    """
    Expand up to 3 blocks into dated workouts.

    Args:
        window: Blocks, race, structure, zones, profile and recent workouts

    Returns:
        Map of week number to that week's workouts, keyed exactly by the
        given blocks' week numbers

    Raises:
        ValueError: more blocks than the window size
    """
    config = window.config or get_default_config()
    max_blocks = config.get('window.max_blocks', 3)
    if len(window.blocks) > max_blocks:
        raise ValueError(f"A window holds at most {max_blocks} blocks, got {len(window.blocks)}")

    adaptation = analyze_training_adaptation(
        window.recent_workouts, AdaptationRules.from_config(config)
    )
    plan_blocks = window.plan_blocks or window.blocks

    result: Dict[int, List[PlannedWorkout]] = {}
    for block in sorted(window.blocks, key=lambda b: b.week_number):
        ctx = _WeekContext(block, window, adaptation, phase_week_index(plan_blocks, block.week_number), config)
        result[block.week_number] = generate_week_workouts(block, ctx)
        # One-shot adjustments are consumed by the first week that uses them
        adaptation = ctx.adaptation
        logger.debug("Week %d: %d workouts, %d mi target",
                     block.week_number, len(result[block.week_number]), ctx.mileage)

    logger.info("Generated window for weeks %s", sorted(result))
    return result
