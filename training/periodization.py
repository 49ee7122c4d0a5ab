"""
Periodization: Macro plan skeleton from race goal and current fitness.

Splits the weeks until race day into base, build, peak and taper phases
and assigns each week a target mileage, long-run length and quality
session count. Workouts themselves are filled in later, a few weeks at a
time, by the window generator.

Based on:
- Lydiard / Pfitzinger phase structure
- Daniels' progression with periodic down weeks (every 3-4 weeks)
- Mujika & Padilla (2003) taper volume reductions

The generator is deterministic: identical inputs yield identical blocks.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Optional, Dict, Any, List, Tuple

from .config import PlanConfig, get_default_config
from .errors import InsufficientTimeError, MissingRaceError, MissingSettingsError
from .pace_model import PaceZones
from .profile import AthleteProfile, get_experience_based_progression, get_long_run_comfort_factor

logger = logging.getLogger(__name__)

MARATHON_MIN_METERS = 40000
HALF_MARATHON_MIN_METERS = 20000


class TrainingPhase(Enum):
    """Periodization phase of a training week."""
    BASE = "base"           # Aerobic foundation
    BUILD = "build"         # Tempo/threshold and VO2max development
    PEAK = "peak"           # Race-specific sharpening
    TAPER = "taper"         # Volume reduction before race day
    RECOVERY = "recovery"   # Post-race or injury return


class PlanAggressiveness(Enum):
    """How hard the plan pushes mileage."""
    CONSERVATIVE = "conservative"
    MODERATE = "moderate"
    AGGRESSIVE = "aggressive"


class RacePriority(Enum):
    """A races are goals, B races are tune-ups, C races are for fun."""
    A = "A"
    B = "B"
    C = "C"


@dataclass(frozen=True)
class IntermediateRace:
    """
    A tune-up race falling inside the plan.

    Only B and C races are tune-ups. An A race is a goal race and gets
    its own plan.
    """
    name: str
    date: date
    distance_meters: float
    priority: RacePriority = RacePriority.B

    def __post_init__(self):
        if self.priority == RacePriority.A:
            raise ValueError(f"Intermediate race '{self.name}' must be B or C priority, got A")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'name': self.name,
            'date': self.date.isoformat(),
            'distance_meters': self.distance_meters,
            'priority': self.priority.value,
        }


@dataclass
class PhasePercentages:
    """Share of total weeks per phase."""
    base: float
    build: float
    peak: float
    taper: float


@dataclass
class PlanGenerationInput:
    """
    Everything the macro generator needs for one race.

    pace_zones and vdot are optional; without them workouts are
    prescribed by perceived effort.
    """
    current_weekly_mileage: float
    peak_weekly_mileage_target: float
    runs_per_week: int
    race_id: Optional[int]
    race_date: Optional[date]
    race_distance_meters: Optional[float]
    start_date: date
    race_distance_label: str = ""
    preferred_long_run_day: str = "sunday"
    preferred_quality_days: List[str] = field(default_factory=list)
    required_rest_days: List[str] = field(default_factory=list)
    plan_aggressiveness: PlanAggressiveness = PlanAggressiveness.MODERATE
    quality_sessions_per_week: int = 2
    vdot: Optional[float] = None
    pace_zones: Optional[PaceZones] = None
    athlete_profile: Optional[AthleteProfile] = None
    intermediate_races: List[IntermediateRace] = field(default_factory=list)


@dataclass
class Block:
    """
    One week of the macro plan.

    Week numbers are 1-based and contiguous within a plan.
    """
    week_number: int
    phase: TrainingPhase
    start_date: date
    end_date: date
    target_mileage: int
    long_run_target: int
    quality_sessions_target: int
    is_down_week: bool = False
    focus: str = ""

    def contains(self, day: date) -> bool:
        """True when a date falls inside this week."""
        return self.start_date <= day <= self.end_date

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'week_number': self.week_number,
            'phase': self.phase.value,
            'start_date': self.start_date.isoformat(),
            'end_date': self.end_date.isoformat(),
            'target_mileage': self.target_mileage,
            'long_run_target': self.long_run_target,
            'quality_sessions_target': self.quality_sessions_target,
            'is_down_week': self.is_down_week,
            'focus': self.focus,
        }


@dataclass
class PhaseDistribution:
    """Phase length with its focus and easy/moderate/hard split."""
    phase: TrainingPhase
    weeks: int
    focus: str
    intensity_distribution: Dict[str, int]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'phase': self.phase.value,
            'weeks': self.weeks,
            'focus': self.focus,
            'intensity_distribution': dict(self.intensity_distribution),
        }


@dataclass
class MacroPlan:
    """
    Ordered blocks for a race plus summary statistics.

    Created once per race; regeneration replaces it wholesale.
    """
    race_id: Optional[int]
    race_date: date
    race_distance_meters: float
    race_distance_label: str
    total_weeks: int
    blocks: List[Block] = field(default_factory=list)
    phases: List[PhaseDistribution] = field(default_factory=list)

    @property
    def peak_mileage(self) -> int:
        return max((b.target_mileage for b in self.blocks), default=0)

    @property
    def peak_week(self) -> int:
        """Week number of the first week at peak mileage."""
        peak = self.peak_mileage
        for block in self.blocks:
            if block.target_mileage == peak:
                return block.week_number
        return 0

    @property
    def total_miles(self) -> int:
        return sum(b.target_mileage for b in self.blocks)

    def get_block(self, week_number: int) -> Optional[Block]:
        """Block for a week number, if present."""
        for block in self.blocks:
            if block.week_number == week_number:
                return block
        return None

    def summary(self) -> Dict[str, Any]:
        """Peak, totals and counts for display."""
        return {
            'peak_mileage': self.peak_mileage,
            'peak_week': self.peak_week,
            'total_miles': self.total_miles,
            'total_weeks': self.total_weeks,
            'quality_sessions_total': sum(b.quality_sessions_target for b in self.blocks),
            'long_runs_total': sum(1 for b in self.blocks if b.long_run_target > 0),
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'race_id': self.race_id,
            'race_date': self.race_date.isoformat(),
            'race_distance_meters': self.race_distance_meters,
            'race_distance_label': self.race_distance_label,
            'total_weeks': self.total_weeks,
            'phases': [p.to_dict() for p in self.phases],
            'blocks': [b.to_dict() for b in self.blocks],
            'summary': self.summary(),
        }


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up."""
    return int(math.floor(value + 0.5))


def is_marathon(distance_meters: float) -> bool:
    return distance_meters >= MARATHON_MIN_METERS


def is_half_marathon(distance_meters: float) -> bool:
    return HALF_MARATHON_MIN_METERS <= distance_meters < MARATHON_MIN_METERS


# =============================================================================
# Phase distribution
# =============================================================================

def calculate_total_weeks(start_date: date, race_date: date) -> int:
    """Whole weeks between start date and race date."""
    return (race_date - start_date).days // 7


def get_phase_percentages(
    race_distance_meters: float,
    aggressiveness: PlanAggressiveness = PlanAggressiveness.MODERATE,
    config: Optional[PlanConfig] = None
) -> PhasePercentages:
    """
    Phase shares for a race distance, shifted by aggressiveness.

    Longer races get more base. Conservative plans move share from
    build into base; aggressive plans compress base.
    """
    config = config or get_default_config()
    table = sorted(
        config.require('phases.percentages'),
        key=lambda row: row['min_distance_meters'],
        reverse=True,
    )
    row = next(r for r in table if race_distance_meters >= r['min_distance_meters'])

    shift = config.get(f'phases.base_shift.{aggressiveness.value}', 0.0)
    base = max(0.05, row['base'] + shift)
    build = max(0.05, row['build'] - (base - row['base']))

    return PhasePercentages(base=base, build=build, peak=row['peak'], taper=row['taper'])


def calculate_phase_weeks(
    percentages: PhasePercentages,
    total_weeks: int,
    race_distance_meters: float,
    config: Optional[PlanConfig] = None
) -> Dict[TrainingPhase, int]:
    """
    Number of weeks in each phase.

    Formula:
        taper = min(cap, max(1, round(total x taper%)))
        peak  = clamp(round(total x peak%), 2, 4)
        build = max(2, round(rest x build / (base + build)))
        base  = max(1, rest - build)

    Taper cap is 3 weeks for a marathon, 2 for a half and
    min(2, ceil(10% of weeks)) for shorter races. Phases are trimmed
    (build, then peak, then taper) until they fit in total_weeks.
    """
    config = config or get_default_config()

    if is_marathon(race_distance_meters):
        max_taper = config.get('phases.max_taper_weeks.marathon', 3)
    elif is_half_marathon(race_distance_meters):
        max_taper = config.get('phases.max_taper_weeks.half_marathon', 2)
    else:
        max_taper = min(config.get('phases.max_taper_weeks.short', 2), math.ceil(total_weeks * 0.1))

    taper = min(max_taper, max(1, round_half_up(total_weeks * percentages.taper)))

    peak_min = config.get('phases.peak_weeks.min', 2)
    peak_max = config.get('phases.peak_weeks.max', 4)
    peak = min(peak_max, max(peak_min, round_half_up(total_weeks * percentages.peak)))

    remaining = total_weeks - taper - peak
    build_share = percentages.build / (percentages.base + percentages.build)
    build = max(config.get('phases.build_weeks_min', 2), round_half_up(remaining * build_share))
    base = max(config.get('phases.base_weeks_min', 1), remaining - build)

    # Short plans: shrink until every week is accounted for exactly once
    weeks = {'build': build, 'peak': peak, 'taper': taper}
    while base + sum(weeks.values()) > total_weeks:
        for name in ('build', 'peak', 'taper'):
            if weeks[name] > 1:
                weeks[name] -= 1
                break
        else:
            break

    return {
        TrainingPhase.BASE: base,
        TrainingPhase.BUILD: weeks['build'],
        TrainingPhase.PEAK: weeks['peak'],
        TrainingPhase.TAPER: weeks['taper'],
    }


# =============================================================================
# Mileage progression
# =============================================================================

def get_taper_schedule(taper_weeks: int, config: Optional[PlanConfig] = None) -> List[float]:
    """
    Fractions of peak mileage for each taper week, race week last.

    Lengths without a configured schedule step linearly from 90% to 50%.
    """
    config = config or get_default_config()
    if taper_weeks <= 0:
        return []

    schedules = config.get('mileage.taper_schedules', {}) or {}
    schedule = schedules.get(taper_weeks) or schedules.get(str(taper_weeks))
    if schedule:
        return [float(f) for f in schedule]

    if taper_weeks == 1:
        return [0.50]
    return [
        round(0.90 - (i / (taper_weeks - 1)) * 0.40, 2)
        for i in range(taper_weeks)
    ]


def calculate_mileage_progression(
    start_mileage: float,
    peak_mileage: float,
    phase_weeks: Dict[TrainingPhase, int],
    aggressiveness: PlanAggressiveness = PlanAggressiveness.MODERATE,
    config: Optional[PlanConfig] = None,
    conservative_mileage: bool = False
) -> List[Tuple[int, bool]]:
    """
    Target mileage for every week of the plan.

    Base ramps by the weekly increase rate toward a ceiling fraction of
    peak; build climbs linearly to 95% of peak; peak holds at the target;
    taper follows the taper schedule. Every Nth week is a down week.

    Invariants:
        - a down week is strictly below the week before it
        - no week exceeds peak_mileage
        - taper mileage never increases

    Args:
        start_mileage: Current weekly mileage
        peak_mileage: Peak weekly mileage target
        phase_weeks: Weeks per phase
        aggressiveness: Plan aggressiveness
        config: Tunable constants
        conservative_mileage: Cap the increase rate at the conservative rate

    Returns:
        List of (target_mileage, is_down_week) per week
    """
    config = config or get_default_config()
    level = aggressiveness.value

    increase_rate = config.require(f'mileage.increase_rate.{level}')
    if conservative_mileage:
        increase_rate = min(increase_rate, config.require('mileage.increase_rate.conservative'))
    down_frequency = config.require(f'mileage.down_week_frequency.{level}')
    down_reduction = config.require(f'mileage.down_week_reduction.{level}')
    base_ceiling = peak_mileage * config.require(f'mileage.base_ceiling.{level}')
    build_ceiling = peak_mileage * config.require('mileage.build_ceiling')

    weeks: List[Tuple[int, bool]] = []

    def push(mileage: float, is_down: bool) -> None:
        value = min(round_half_up(mileage), int(math.floor(peak_mileage)))
        if is_down and weeks:
            value = max(0, min(value, weeks[-1][0] - 1))
        weeks.append((value, is_down))

    current = min(start_mileage, peak_mileage)
    since_down = 0

    for _ in range(phase_weeks[TrainingPhase.BASE]):
        since_down += 1
        if since_down >= down_frequency and weeks:
            push(current * (1 - down_reduction), True)
            since_down = 0
        else:
            push(current, False)
            current = max(current, min(base_ceiling, current * (1 + increase_rate)))

    build_weeks = phase_weeks[TrainingPhase.BUILD]
    build_start = current
    build_end = max(build_ceiling, build_start)
    increment = (build_end - build_start) / max(1, build_weeks - 1)

    for i in range(build_weeks):
        since_down += 1
        if since_down >= down_frequency and weeks:
            push(current * (1 - down_reduction), True)
            since_down = 0
        else:
            current = build_start + increment * i
            push(current, False)

    peak_weeks = phase_weeks[TrainingPhase.PEAK]
    for i in range(peak_weeks):
        since_down += 1
        if since_down >= down_frequency and i < peak_weeks - 1 and weeks:
            push(peak_mileage * (1 - down_reduction), True)
            since_down = 0
        else:
            push(peak_mileage, False)

    previous = weeks[-1][0] if weeks else round_half_up(peak_mileage)
    for fraction in get_taper_schedule(phase_weeks[TrainingPhase.TAPER], config):
        value = round_half_up(peak_mileage * fraction)
        # Strictly decreasing where the numbers allow it
        value = min(value, previous - 1) if previous > 1 else min(value, previous)
        value = max(0, value)
        weeks.append((value, False))
        previous = value

    return weeks


# =============================================================================
# Per-week targets and text
# =============================================================================

def calculate_long_run_target(
    weekly_mileage: int,
    phase: TrainingPhase,
    profile: Optional[AthleteProfile] = None,
    config: Optional[PlanConfig] = None
) -> int:
    """Long run as a share of weekly mileage, shortened for low long-run comfort."""
    config = config or get_default_config()
    if phase == TrainingPhase.TAPER:
        fraction = config.get('mileage.taper_long_run_fraction', 0.25)
    else:
        fraction = config.get('mileage.long_run_fraction', 0.30)
    return round_half_up(weekly_mileage * fraction * get_long_run_comfort_factor(profile))


def calculate_quality_sessions(
    requested: int,
    phase: TrainingPhase,
    is_down_week: bool,
    config: Optional[PlanConfig] = None
) -> int:
    """Quality sessions for a week: requested count capped by phase, one fewer on down weeks."""
    config = config or get_default_config()
    cap = config.get(f'quality.max_per_phase.{phase.value}', requested)
    sessions = min(requested, cap)
    if is_down_week and sessions > 0:
        sessions = max(1, sessions - 1)
    return max(0, sessions)


def get_phase_description(phase: TrainingPhase, race_distance_meters: float) -> str:
    """One-line purpose of a phase for a race distance."""
    if phase == TrainingPhase.BASE:
        return 'Build aerobic foundation with easy running, strides, and light fartlek work'
    if phase == TrainingPhase.BUILD:
        if is_marathon(race_distance_meters):
            return 'Progressive intensity with tempo runs and marathon-pace development'
        if is_half_marathon(race_distance_meters):
            return 'Tempo and threshold work to build lactate tolerance'
        return 'VO2max and tempo work to build speed endurance'
    if phase == TrainingPhase.PEAK:
        if is_marathon(race_distance_meters):
            return 'Race-specific workouts and marathon pace simulation'
        if is_half_marathon(race_distance_meters):
            return 'Sharpen with half marathon pace and threshold work'
        return 'Peak fitness with race-pace sharpening'
    if phase == TrainingPhase.TAPER:
        return 'Reduce volume while maintaining intensity; arrive fresh and ready'
    return 'Easy running to recover and rebuild'


def get_phase_focus(phase: TrainingPhase, week_in_phase: int) -> str:
    """Focus text for a week given its position in the phase."""
    if phase == TrainingPhase.BASE:
        if week_in_phase == 0:
            return 'Establishing baseline with easy aerobic running'
        if week_in_phase == 1:
            return 'Building aerobic capacity with longer easy runs'
        return 'Continuing aerobic development with fartlek and hills'
    if phase == TrainingPhase.BUILD:
        if week_in_phase == 0:
            return 'Introducing tempo work'
        if week_in_phase < 3:
            return 'Progressive tempo and threshold development'
        return 'Building race-specific fitness'
    if phase == TrainingPhase.PEAK:
        if week_in_phase == 0:
            return 'Sharpening with race-pace work'
        return 'Fine-tuning and maintaining peak fitness'
    if phase == TrainingPhase.TAPER:
        if week_in_phase == 0:
            return 'Beginning taper - reducing volume'
        return 'Final preparation for race day'
    return 'Recovery and easy running'


INTENSITY_DISTRIBUTIONS: Dict[TrainingPhase, Dict[str, int]] = {
    TrainingPhase.BASE: {'easy': 85, 'moderate': 10, 'hard': 5},
    TrainingPhase.BUILD: {'easy': 80, 'moderate': 12, 'hard': 8},
    TrainingPhase.PEAK: {'easy': 75, 'moderate': 15, 'hard': 10},
    TrainingPhase.TAPER: {'easy': 80, 'moderate': 15, 'hard': 5},
}


def build_phase_distributions(
    phase_weeks: Dict[TrainingPhase, int],
    race_distance_meters: float
) -> List[PhaseDistribution]:
    """Phase summaries in plan order."""
    return [
        PhaseDistribution(
            phase=phase,
            weeks=phase_weeks[phase],
            focus=get_phase_description(phase, race_distance_meters),
            intensity_distribution=dict(INTENSITY_DISTRIBUTIONS[phase]),
        )
        for phase in (TrainingPhase.BASE, TrainingPhase.BUILD, TrainingPhase.PEAK, TrainingPhase.TAPER)
    ]


def week_of(day: date) -> date:
    """Monday of the week containing a date."""
    return day - timedelta(days=day.weekday())


# =============================================================================
# Generator
# =============================================================================

def validate_plan_input(plan_input: PlanGenerationInput, config: Optional[PlanConfig] = None) -> int:
    """
    Check required inputs and return the total weeks.

    Raises:
        MissingRaceError: no race id, date or distance
        InsufficientTimeError: fewer than the minimum weeks until race day
        MissingSettingsError: no positive mileage to build from
    """
    config = config or get_default_config()

    if (plan_input.race_id is None or plan_input.race_date is None
            or not plan_input.race_distance_meters or plan_input.race_distance_meters <= 0):
        raise MissingRaceError()

    minimum_weeks = config.get('plan.minimum_weeks', 4)
    total_weeks = calculate_total_weeks(plan_input.start_date, plan_input.race_date)
    if total_weeks < minimum_weeks:
        raise InsufficientTimeError(total_weeks, minimum_weeks)

    if not plan_input.current_weekly_mileage or plan_input.current_weekly_mileage <= 0:
        raise MissingSettingsError(
            "Current weekly mileage is required. Log some runs or set it in settings."
        )
    if not plan_input.peak_weekly_mileage_target or plan_input.peak_weekly_mileage_target <= 0:
        raise MissingSettingsError("Set a peak weekly mileage target before generating a plan.")

    return total_weeks


def generate_macro_plan(
    plan_input: PlanGenerationInput,
    config: Optional[PlanConfig] = None
) -> MacroPlan:
    """
    Build the periodized skeleton for a race.

    Weeks are Monday-to-Sunday. The final block is the week containing
    race day, and blocks count back from there.

    Args:
        plan_input: Race, mileage and preference inputs
        config: Tunable constants (defaults from plan_rules.yaml)

    Returns:
        MacroPlan with contiguous blocks numbered from 1

    Raises:
        MissingRaceError, InsufficientTimeError, MissingSettingsError
    """
    config = config or get_default_config()
    total_weeks = validate_plan_input(plan_input, config)
    distance = plan_input.race_distance_meters

    percentages = get_phase_percentages(distance, plan_input.plan_aggressiveness, config)
    phase_weeks = calculate_phase_weeks(percentages, total_weeks, distance, config)

    progression = get_experience_based_progression(plan_input.athlete_profile)
    mileages = calculate_mileage_progression(
        plan_input.current_weekly_mileage,
        plan_input.peak_weekly_mileage_target,
        phase_weeks,
        plan_input.plan_aggressiveness,
        config,
        conservative_mileage=progression['conservative_mileage'],
    )

    phase_sequence: List[Tuple[TrainingPhase, int]] = []
    for phase in (TrainingPhase.BASE, TrainingPhase.BUILD, TrainingPhase.PEAK, TrainingPhase.TAPER):
        phase_sequence.extend((phase, i) for i in range(phase_weeks[phase]))

    race_week_start = week_of(plan_input.race_date)
    first_week_start = race_week_start - timedelta(weeks=total_weeks - 1)

    plan = MacroPlan(
        race_id=plan_input.race_id,
        race_date=plan_input.race_date,
        race_distance_meters=distance,
        race_distance_label=plan_input.race_distance_label,
        total_weeks=total_weeks,
        phases=build_phase_distributions(phase_weeks, distance),
    )

    for index, ((phase, week_in_phase), (mileage, is_down)) in enumerate(zip(phase_sequence, mileages)):
        week_start = first_week_start + timedelta(weeks=index)
        block = Block(
            week_number=index + 1,
            phase=phase,
            start_date=week_start,
            end_date=week_start + timedelta(days=6),
            target_mileage=mileage,
            long_run_target=calculate_long_run_target(
                mileage, phase, plan_input.athlete_profile, config
            ),
            quality_sessions_target=calculate_quality_sessions(
                plan_input.quality_sessions_per_week, phase, is_down, config
            ),
            is_down_week=is_down,
            focus=get_phase_focus(phase, week_in_phase),
        )
        plan.blocks.append(block)
        logger.debug(
            "Week %d (%s): %d mi, long %d, quality %d%s",
            block.week_number, phase.value, mileage, block.long_run_target,
            block.quality_sessions_target, " [down]" if is_down else ""
        )

    logger.info(
        "Generated %d-week plan for race %s: base %d, build %d, peak %d, taper %d, peak %d mi",
        total_weeks, plan_input.race_id,
        phase_weeks[TrainingPhase.BASE], phase_weeks[TrainingPhase.BUILD],
        phase_weeks[TrainingPhase.PEAK], phase_weeks[TrainingPhase.TAPER],
        plan.peak_mileage,
    )
    return plan


def phase_week_index(blocks: List[Block], week_number: int) -> int:
    """Zero-based position of a week within its phase."""
    target = next((b for b in blocks if b.week_number == week_number), None)
    if target is None:
        return 0
    index = 0
    for block in sorted(blocks, key=lambda b: b.week_number):
        if block.week_number >= week_number:
            break
        index = index + 1 if block.phase == target.phase else 0
    return index


if __name__ == '__main__':
    print("Testing Periodization...")
    print("=" * 60)

    start = date(2025, 1, 6)
    plan = generate_macro_plan(PlanGenerationInput(
        current_weekly_mileage=20,
        peak_weekly_mileage_target=30,
        runs_per_week=5,
        race_id=1,
        race_date=start + timedelta(weeks=16),
        race_distance_meters=21097,
        race_distance_label='Half Marathon',
        start_date=start,
    ))

    for block in plan.blocks:
        flag = " (down)" if block.is_down_week else ""
        print(f"  Week {block.week_number:2d} {block.phase.value:6s} "
              f"{block.target_mileage:3d} mi  long {block.long_run_target:2d}{flag}")
    print(f"\nSummary: {plan.summary()}")
