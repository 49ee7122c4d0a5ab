"""
Athlete Profile: Preferences and history that bias workout selection.

The profile is a read-only snapshot supplied by the calling layer for each
generation call. Nothing here mutates it; the helpers translate it into
concrete adjustments (workout substitutions, progression delays, intensity
reductions, time caps).

Based on:
- Comfort-driven substitution used by Pfitzinger/Hansons coaching practice
- Progressive speedwork introduction for inexperienced runners
- Life-stress load management (Selye's general adaptation syndrome)
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Dict, Any, List, Tuple


class SpeedworkExperience(Enum):
    """Prior exposure to structured speed sessions."""
    NONE = "none"
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class StressLevel(Enum):
    """Self-reported life stress."""
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    VERY_HIGH = "very_high"


class TrainBy(Enum):
    """How the athlete prefers to gauge effort."""
    PACE = "pace"
    HEART_RATE = "heart_rate"
    FEEL = "feel"
    MIXED = "mixed"


@dataclass(frozen=True)
class AthleteProfile:
    """
    Athlete attributes that shape workout prescriptions.

    Comfort ratings are on a 1-5 scale; None means not answered and is
    treated as neutral.
    """
    # Comfort ratings (1 = dislike, 5 = love)
    comfort_vo2max: Optional[int] = None
    comfort_tempo: Optional[int] = None
    comfort_hills: Optional[int] = None
    comfort_long_runs: Optional[int] = None

    # Experience
    years_running: Optional[float] = None
    speedwork_experience: SpeedworkExperience = SpeedworkExperience.INTERMEDIATE
    highest_weekly_mileage_ever: Optional[float] = None
    injury_history: Tuple[str, ...] = field(default_factory=tuple)

    # Availability (minutes per run)
    weekday_availability_minutes: Optional[int] = None
    weekend_availability_minutes: Optional[int] = None

    # Recovery
    stress_level: StressLevel = StressLevel.MODERATE
    needs_extra_rest: bool = False
    heat_sensitivity: Optional[int] = None

    # Preferences
    train_by: TrainBy = TrainBy.PACE
    mlr_preference: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'comfort_vo2max': self.comfort_vo2max,
            'comfort_tempo': self.comfort_tempo,
            'comfort_hills': self.comfort_hills,
            'comfort_long_runs': self.comfort_long_runs,
            'years_running': self.years_running,
            'speedwork_experience': self.speedwork_experience.value,
            'highest_weekly_mileage_ever': self.highest_weekly_mileage_ever,
            'injury_history': list(self.injury_history),
            'weekday_availability_minutes': self.weekday_availability_minutes,
            'weekend_availability_minutes': self.weekend_availability_minutes,
            'stress_level': self.stress_level.value,
            'needs_extra_rest': self.needs_extra_rest,
            'heat_sensitivity': self.heat_sensitivity,
            'train_by': self.train_by.value,
            'mlr_preference': self.mlr_preference,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'AthleteProfile':
        """Create a profile from a dictionary of settings."""
        data = dict(d)
        if 'speedwork_experience' in data:
            data['speedwork_experience'] = SpeedworkExperience(data['speedwork_experience'])
        if 'stress_level' in data:
            data['stress_level'] = StressLevel(data['stress_level'])
        if 'train_by' in data:
            data['train_by'] = TrainBy(data['train_by'])
        if 'injury_history' in data:
            data['injury_history'] = tuple(data['injury_history'] or ())
        return cls(**data)


# Workout id -> (comfort attribute, alternatives ordered by preference)
COMFORT_SUBSTITUTIONS: Dict[str, Tuple[str, List[str]]] = {
    # VO2max: fall back to tempo/threshold work
    'yasso_800s': ('comfort_vo2max', ['cruise_intervals', 'progressive_tempo', 'steady_tempo']),
    'short_intervals_400m': ('comfort_vo2max', ['classic_fartlek', 'structured_fartlek', 'steady_tempo']),
    'long_intervals_1000m': ('comfort_vo2max', ['cruise_intervals', 'threshold_intervals', 'progressive_tempo']),
    'mile_repeats': ('comfort_vo2max', ['cruise_intervals', 'progressive_tempo', 'steady_tempo']),
    'ladder_workout': ('comfort_vo2max', ['structured_fartlek', 'cruise_intervals', 'progressive_tempo']),

    # Tempo: fall back to fartlek or steady running
    'steady_tempo': ('comfort_tempo', ['classic_fartlek', 'progression_long_run', 'general_aerobic']),
    'progressive_tempo': ('comfort_tempo', ['structured_fartlek', 'medium_long_pickup', 'general_aerobic']),
    'cruise_intervals': ('comfort_tempo', ['structured_fartlek', 'classic_fartlek', 'medium_long_pickup']),

    # Hills: fall back to flat fartlek
    'short_hill_repeats': ('comfort_hills', ['classic_fartlek', 'easy_run_strides', 'structured_fartlek']),
    'long_hill_repeats': ('comfort_hills', ['progressive_tempo', 'cruise_intervals', 'structured_fartlek']),
}


def get_comfort_adjusted_workout(workout_id: str, profile: Optional[AthleteProfile] = None) -> str:
    """
    Swap a workout the athlete is uncomfortable with for an alternative.

    Comfort of 3+ (or unanswered) keeps the original. Comfort 2 takes the
    first alternative, comfort 1 the second.

    Args:
        workout_id: Template id chosen by the phase rules
        profile: Athlete profile

    Returns:
        Template id to prescribe
    """
    if profile is None or workout_id not in COMFORT_SUBSTITUTIONS:
        return workout_id

    comfort_key, alternatives = COMFORT_SUBSTITUTIONS[workout_id]
    comfort = getattr(profile, comfort_key)
    if not comfort or comfort >= 3:
        return workout_id

    index = 1 if comfort == 1 else 0
    return alternatives[min(index, len(alternatives) - 1)]


def get_experience_based_progression(profile: Optional[AthleteProfile] = None) -> Dict[str, Any]:
    """
    How gradually speedwork should be introduced.

    Returns:
        Dict with start_with_fartlek, delay_vo2max_weeks, conservative_mileage
    """
    if profile is None:
        return {
            'start_with_fartlek': False,
            'delay_vo2max_weeks': 0,
            'conservative_mileage': False,
        }

    experience = profile.speedwork_experience
    years = profile.years_running if profile.years_running is not None else 3
    highest = (profile.highest_weekly_mileage_ever
               if profile.highest_weekly_mileage_ever is not None else 40)

    if experience == SpeedworkExperience.NONE:
        delay = 4
    elif experience == SpeedworkExperience.BEGINNER:
        delay = 2
    else:
        delay = 0

    return {
        'start_with_fartlek': experience in (SpeedworkExperience.NONE, SpeedworkExperience.BEGINNER),
        'delay_vo2max_weeks': delay,
        'conservative_mileage': years < 2 or highest < 30,
    }


def get_recovery_adjustments(profile: Optional[AthleteProfile] = None) -> Dict[str, Any]:
    """
    Recovery needs implied by life stress.

    Returns:
        Dict with extra_rest_days, reduce_intensity_pct, avoid_back_to_back_hard
    """
    if profile is None:
        return {'extra_rest_days': False, 'reduce_intensity_pct': 0, 'avoid_back_to_back_hard': True}

    reduce_pct = 0
    if profile.stress_level == StressLevel.HIGH:
        reduce_pct = 10
    elif profile.stress_level == StressLevel.VERY_HIGH:
        reduce_pct = 20

    return {
        'extra_rest_days': profile.needs_extra_rest or profile.stress_level == StressLevel.VERY_HIGH,
        'reduce_intensity_pct': reduce_pct,
        'avoid_back_to_back_hard': True,
    }


def get_time_constrained_distance(
    planned_miles: float,
    is_weekday: bool,
    profile: Optional[AthleteProfile] = None,
    pace_seconds_per_mile: Optional[float] = None
) -> float:
    """
    Cap a run's distance to what fits in the athlete's available time.

    Formula:
        max_miles = max(20, available_minutes - 10) / (pace / 60)

    The 10 minutes cover warm-up and cool-down.

    Returns:
        The smaller of planned and time-capped miles (0.1 mi resolution)
    """
    if profile is None or not pace_seconds_per_mile:
        return planned_miles

    available = (profile.weekday_availability_minutes if is_weekday
                 else profile.weekend_availability_minutes)
    if not available:
        return planned_miles

    effective_minutes = max(20, available - 10)
    max_miles = effective_minutes / (pace_seconds_per_mile / 60.0)
    return min(planned_miles, round(max_miles, 1))


def get_long_run_comfort_factor(profile: Optional[AthleteProfile] = None) -> float:
    """Long-run scale: low long-run comfort shortens the run by 10%."""
    if profile is None or not profile.comfort_long_runs:
        return 1.0
    if profile.comfort_long_runs <= 2:
        return 0.90
    return 1.0
