"""
Fitness Assessment: Current training state from workout history.

Summarizes the trailing weeks of logged runs into the numbers the plan
generator needs: typical weekly mileage, long-run capacity, run frequency
and a suggested peak. When history is empty, the athlete's declared
settings stand in and confidence is forced to low.

Based on:
- Robust central tendency (median under high variance)
- Pfitzinger mileage progression guidance for peak and ramp rate
- 10% rule with volume-dependent scaling
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Optional, Dict, Any, List, Sequence

import numpy as np
import pandas as pd
from scipy import stats

from .errors import MissingSettingsError
from .pace_model import is_valid_vdot

logger = logging.getLogger(__name__)

QUALITY_TYPES = ('tempo', 'interval', 'threshold', 'race')
HARD_TYPES = ('tempo', 'interval', 'threshold', 'long', 'race')
LONG_RUN_MIN_MILES = 8.0


class ConfidenceLevel(Enum):
    """How much the assessment can be trusted."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class MileageTrend(Enum):
    """Direction of recent weekly mileage."""
    INCREASING = "increasing"
    STABLE = "stable"
    DECREASING = "decreasing"


@dataclass
class WorkoutRecord:
    """A logged run as read from the workout history."""
    date: date
    distance_miles: float
    workout_type: Optional[str] = None
    duration_minutes: Optional[float] = None


@dataclass
class UserSettings:
    """Athlete-declared training numbers used when history is missing."""
    weekly_mileage: Optional[float] = None
    peak_mileage: Optional[float] = None
    runs_per_week: Optional[int] = None
    long_run_miles: Optional[float] = None
    vdot: Optional[float] = None


@dataclass
class FitnessData:
    """
    Current fitness summary used to seed plan generation.

    Mileage values are rounded to whole miles.
    """
    current_avg_mileage: int
    current_median_mileage: int
    typical_weekly_mileage: int
    recent_peak_mileage: int
    mileage_variance: int
    has_high_variance: bool
    weekly_mileage_details: List[int]
    mileage_trend: MileageTrend

    longest_recent_run: int
    avg_long_run: int

    quality_per_week: float
    has_speedwork: bool

    runs_per_week: float
    is_consistent: bool
    consecutive_weeks: int

    total_runs: int
    months_of_data: int

    avg_recovery_days: int
    suggested_peak_mileage: int
    ramp_rate: float
    confidence_level: ConfidenceLevel

    current_vdot: Optional[float] = None
    injury_history: List[str] = field(default_factory=list)
    source: str = "history"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'current_avg_mileage': self.current_avg_mileage,
            'current_median_mileage': self.current_median_mileage,
            'typical_weekly_mileage': self.typical_weekly_mileage,
            'recent_peak_mileage': self.recent_peak_mileage,
            'mileage_variance': self.mileage_variance,
            'has_high_variance': self.has_high_variance,
            'weekly_mileage_details': list(self.weekly_mileage_details),
            'mileage_trend': self.mileage_trend.value,
            'longest_recent_run': self.longest_recent_run,
            'avg_long_run': self.avg_long_run,
            'quality_per_week': self.quality_per_week,
            'has_speedwork': self.has_speedwork,
            'runs_per_week': self.runs_per_week,
            'is_consistent': self.is_consistent,
            'consecutive_weeks': self.consecutive_weeks,
            'total_runs': self.total_runs,
            'months_of_data': self.months_of_data,
            'avg_recovery_days': self.avg_recovery_days,
            'suggested_peak_mileage': self.suggested_peak_mileage,
            'ramp_rate': self.ramp_rate,
            'confidence_level': self.confidence_level.value,
            'current_vdot': self.current_vdot,
            'injury_history': list(self.injury_history),
            'source': self.source,
        }


# =============================================================================
# History aggregation
# =============================================================================

def records_to_frame(history: Sequence[WorkoutRecord]) -> pd.DataFrame:
    """Load workout records into a date-sorted DataFrame with week starts."""
    frame = pd.DataFrame(
        [
            {
                'date': pd.Timestamp(r.date),
                'distance_miles': float(r.distance_miles or 0.0),
                'workout_type': (r.workout_type or '').lower(),
            }
            for r in history
        ],
        columns=['date', 'distance_miles', 'workout_type'],
    )
    if frame.empty:
        frame['week_start'] = pd.Series(dtype='datetime64[ns]')
        return frame

    frame = frame.sort_values('date').reset_index(drop=True)
    frame['week_start'] = frame['date'] - pd.to_timedelta(frame['date'].dt.weekday, unit='D')
    return frame


def calculate_weekly_mileage(frame: pd.DataFrame) -> List[float]:
    """
    Total miles per Monday-start week, oldest first.

    Only weeks containing at least one run are included.
    """
    if frame.empty:
        return []
    weekly = frame.groupby('week_start')['distance_miles'].sum().sort_index()
    return [float(m) for m in weekly.values]


def calculate_trend(weekly_mileage: List[float]) -> MileageTrend:
    """
    Compare the last 4 weeks against the 4 before them.

    A change beyond +/-15% counts as a trend. With only the last 4 weeks
    available, a least-squares slope over them is used instead.
    """
    if len(weekly_mileage) < 4:
        return MileageTrend.STABLE

    recent = weekly_mileage[-4:]
    older = weekly_mileage[-8:-4]
    recent_avg = float(np.mean(recent))

    if older:
        older_avg = float(np.mean(older))
        if older_avg <= 0:
            return MileageTrend.STABLE
        change = (recent_avg - older_avg) / older_avg
    else:
        if recent_avg <= 0:
            return MileageTrend.STABLE
        fit = stats.linregress(np.arange(len(recent)), recent)
        change = fit.slope * (len(recent) - 1) / recent_avg

    if change > 0.15:
        return MileageTrend.INCREASING
    if change < -0.15:
        return MileageTrend.DECREASING
    return MileageTrend.STABLE


def calculate_consecutive_weeks(frame: pd.DataFrame) -> int:
    """Number of back-to-back training weeks ending at the latest week."""
    if frame.empty:
        return 0

    weeks = sorted(frame['week_start'].unique(), reverse=True)
    consecutive = 1
    for previous, current in zip(weeks, weeks[1:]):
        if (pd.Timestamp(previous) - pd.Timestamp(current)).days == 7:
            consecutive += 1
        else:
            break
    return consecutive


def calculate_avg_recovery_days(frame: pd.DataFrame) -> int:
    """Average days between hard efforts (defaults to 3)."""
    hard = frame[frame['workout_type'].isin(HARD_TYPES)]
    if len(hard) < 2:
        return 3
    gaps = hard['date'].diff().dropna().dt.days
    average = int(round(float(gaps.mean()))) if len(gaps) else 0
    return average or 3


# =============================================================================
# Recommendations
# =============================================================================

def calculate_suggested_peak_mileage(
    current_avg_mileage: float,
    recent_peak_mileage: float,
    is_consistent: bool,
    months_of_data: int,
    injury_history: Sequence[str]
) -> float:
    """
    Safe peak weekly mileage for the coming plan.

    Formula:
        suggested = max(1.3 x current, 1.1 x recent_peak)
        then adjusted for consistency, experience and injuries, capped
        at 30 (current < 20) or 55 (current < 40), floor current + 5
    """
    suggested = max(current_avg_mileage * 1.3, recent_peak_mileage * 1.1)

    if not is_consistent:
        suggested *= 0.9

    if months_of_data < 6:
        suggested = min(suggested, current_avg_mileage * 1.2)
    elif months_of_data > 24:
        suggested = max(suggested, recent_peak_mileage * 1.15)

    if injury_history:
        suggested = min(suggested, recent_peak_mileage)

    if current_avg_mileage < 20:
        suggested = min(suggested, 30)
    elif current_avg_mileage < 40:
        suggested = min(suggested, 55)

    return max(suggested, current_avg_mileage + 5)


def calculate_safe_ramp_rate(
    current_avg_mileage: float,
    is_consistent: bool,
    consecutive_weeks: int,
    injury_history: Sequence[str],
    months_of_data: int
) -> float:
    """
    Safe weekly mileage increase as a decimal, clamped to 5-20%.

    Lower volumes can grow faster in percentage terms.
    """
    if current_avg_mileage < 20:
        rate = 0.15
    elif current_avg_mileage < 30:
        rate = 0.12
    elif current_avg_mileage > 70:
        rate = 0.05
    elif current_avg_mileage > 50:
        rate = 0.08
    else:
        rate = 0.10

    if not is_consistent:
        rate *= 0.7

    if consecutive_weeks < 8:
        rate *= 0.8
    elif consecutive_weeks > 20:
        rate *= 1.1

    if injury_history:
        rate *= 0.7

    # Returning runner with a long logging history
    if months_of_data > 12 and consecutive_weeks < 8:
        rate *= 1.3

    return round(min(max(rate, 0.05), 0.20), 3)


def determine_confidence_level(
    weeks_with_data: int,
    total_runs: int,
    consecutive_weeks: int,
    months_of_data: int
) -> ConfidenceLevel:
    """Points score over data volume and recency: >=6 high, >=3 medium."""
    score = 0

    if weeks_with_data >= 8:
        score += 2
    elif weeks_with_data >= 4:
        score += 1

    if total_runs >= 50:
        score += 2
    elif total_runs >= 20:
        score += 1

    if consecutive_weeks >= 8:
        score += 2
    elif consecutive_weeks >= 4:
        score += 1

    if months_of_data >= 6:
        score += 2
    elif months_of_data >= 3:
        score += 1

    if score >= 6:
        return ConfidenceLevel.HIGH
    if score >= 3:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


# =============================================================================
# Assessment
# =============================================================================

def fitness_from_settings(
    settings: Optional[UserSettings],
    injury_history: Optional[Sequence[str]] = None
) -> FitnessData:
    """
    Build a fitness estimate purely from declared settings.

    Raises:
        MissingSettingsError: settings carry no weekly mileage
    """
    if settings is None or not settings.weekly_mileage or settings.weekly_mileage <= 0:
        raise MissingSettingsError()

    weekly = float(settings.weekly_mileage)
    injuries = list(injury_history or [])
    peak = settings.peak_mileage if settings.peak_mileage else weekly * 1.3
    long_run = settings.long_run_miles if settings.long_run_miles else weekly * 0.3

    return FitnessData(
        current_avg_mileage=int(round(weekly)),
        current_median_mileage=int(round(weekly)),
        typical_weekly_mileage=int(round(weekly)),
        recent_peak_mileage=int(round(weekly)),
        mileage_variance=0,
        has_high_variance=False,
        weekly_mileage_details=[],
        mileage_trend=MileageTrend.STABLE,
        longest_recent_run=int(round(long_run)),
        avg_long_run=int(round(long_run)),
        quality_per_week=0.0,
        has_speedwork=False,
        runs_per_week=float(settings.runs_per_week or 4),
        is_consistent=True,
        consecutive_weeks=0,
        total_runs=0,
        months_of_data=0,
        avg_recovery_days=3,
        suggested_peak_mileage=int(round(peak)),
        ramp_rate=calculate_safe_ramp_rate(weekly, True, 0, injuries, 0),
        confidence_level=ConfidenceLevel.LOW,
        current_vdot=settings.vdot if is_valid_vdot(settings.vdot) else None,
        injury_history=injuries,
        source="settings",
    )


def assess_current_fitness(
    history: Sequence[WorkoutRecord],
    settings: Optional[UserSettings] = None,
    today: Optional[date] = None,
    injury_history: Optional[Sequence[str]] = None
) -> FitnessData:
    """
    Assess current fitness from workout history.

    Windows: last 4 weeks for current state, last 8 weeks for trends and
    long runs, full history for experience.

    Args:
        history: Logged runs, any order
        settings: Declared settings, required when history is empty
        today: Reference date (defaults to date.today())
        injury_history: Recent injuries, if known

    Returns:
        FitnessData; source is 'settings' when the fallback was used

    Raises:
        MissingSettingsError: no usable history and no declared mileage
    """
    today = today or date.today()
    injuries = list(injury_history or [])

    all_time = records_to_frame(history)
    today_ts = pd.Timestamp(today)
    extended = all_time[all_time['date'] >= today_ts - pd.Timedelta(days=56)] if not all_time.empty else all_time
    recent = all_time[all_time['date'] >= today_ts - pd.Timedelta(days=28)] if not all_time.empty else all_time

    weekly_mileage = calculate_weekly_mileage(extended)
    recent_weekly = weekly_mileage[-4:]

    if extended.empty or sum(weekly_mileage) <= 0:
        logger.warning(
            "No usable workout history in the last 8 weeks; falling back to declared settings"
        )
        return fitness_from_settings(settings, injuries)

    current_avg = float(np.mean(recent_weekly)) if recent_weekly else 0.0
    current_median = float(np.median(recent_weekly)) if recent_weekly else 0.0
    recent_peak = max(weekly_mileage) if weekly_mileage else 0.0
    variance = float(np.std(recent_weekly)) if recent_weekly else 0.0

    cv = variance / current_avg if current_avg > 0 else 0.0
    has_high_variance = cv > 0.3
    typical = current_median if has_high_variance else current_avg

    long_runs = extended[
        (extended['distance_miles'] >= LONG_RUN_MIN_MILES) | (extended['workout_type'] == 'long')
    ]['distance_miles'].tolist()
    recent_long_runs = long_runs[-6:]
    longest_recent = max(recent_long_runs) if recent_long_runs else 0.0
    avg_long_run = float(np.mean(long_runs)) if long_runs else 0.0

    quality_count = int(recent['workout_type'].isin(QUALITY_TYPES).sum())
    quality_per_week = quality_count / 4.0

    runs_per_week = recent['date'].dt.date.nunique() / 4.0
    is_consistent = not has_high_variance
    consecutive_weeks = calculate_consecutive_weeks(extended)

    total_runs = len(all_time)
    first_date = all_time['date'].min().date()
    months_of_data = max(0, (today - first_date).days // 30)

    suggested_peak = calculate_suggested_peak_mileage(
        typical, recent_peak, is_consistent, months_of_data, injuries
    )
    ramp_rate = calculate_safe_ramp_rate(
        typical, is_consistent, consecutive_weeks, injuries, months_of_data
    )
    confidence = determine_confidence_level(
        len(weekly_mileage), total_runs, consecutive_weeks, months_of_data
    )

    vdot = settings.vdot if settings is not None and is_valid_vdot(settings.vdot) else None

    fitness = FitnessData(
        current_avg_mileage=int(round(current_avg)),
        current_median_mileage=int(round(current_median)),
        typical_weekly_mileage=int(round(typical)),
        recent_peak_mileage=int(round(recent_peak)),
        mileage_variance=int(round(variance)),
        has_high_variance=has_high_variance,
        weekly_mileage_details=[int(round(m)) for m in recent_weekly],
        mileage_trend=calculate_trend(weekly_mileage),
        longest_recent_run=int(round(longest_recent)),
        avg_long_run=int(round(avg_long_run)),
        quality_per_week=round(quality_per_week, 1),
        has_speedwork=quality_count > 0,
        runs_per_week=round(runs_per_week, 1),
        is_consistent=is_consistent,
        consecutive_weeks=consecutive_weeks,
        total_runs=total_runs,
        months_of_data=months_of_data,
        avg_recovery_days=calculate_avg_recovery_days(recent),
        suggested_peak_mileage=int(round(suggested_peak)),
        ramp_rate=ramp_rate,
        confidence_level=confidence,
        current_vdot=vdot,
        injury_history=injuries,
        source="history",
    )

    # A history of zero-distance entries is no signal at all
    if fitness.typical_weekly_mileage <= 0:
        logger.warning("Workout history averages 0 mi/week; falling back to declared settings")
        return fitness_from_settings(settings, injuries)

    logger.info(
        "Assessed fitness: %d mi/week typical, %.1f runs/week, confidence %s",
        fitness.typical_weekly_mileage, fitness.runs_per_week, confidence.value
    )
    return fitness


def format_fitness_assessment(fitness: FitnessData) -> str:
    """Plain-text summary of an assessment for display."""
    lines = [f"Based on your recent training ({fitness.confidence_level.value} confidence):", ""]
    lines.append("Current state:")

    if fitness.has_high_variance:
        details = ", ".join(str(m) for m in fitness.weekly_mileage_details)
        lines.append(f"- Weekly mileage has varied: {details} miles")
        lines.append(
            f"- Using median of {fitness.typical_weekly_mileage} miles/week "
            f"(average was {fitness.current_avg_mileage})"
        )
    else:
        lines.append(f"- Averaging {fitness.typical_weekly_mileage} miles/week")

    lines.append(f"- Longest recent run: {fitness.longest_recent_run} miles")
    lines.append(f"- Running {fitness.runs_per_week} times per week")
    if fitness.quality_per_week > 0:
        lines.append(f"- About {fitness.quality_per_week} quality sessions per week")

    lines.append("")
    lines.append("Plan parameters:")
    lines.append(f"- Building to {fitness.suggested_peak_mileage} miles peak")
    lines.append(f"- Safe progression rate: {round(fitness.ramp_rate * 100)}% per week")

    if fitness.confidence_level == ConfidenceLevel.LOW:
        lines.append("")
        lines.append("Limited training history: the plan will be more conservative.")

    return "\n".join(lines)
