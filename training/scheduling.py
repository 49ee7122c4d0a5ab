"""
Weekly Structure: Assigning a slot kind to each day of the training week.

Based on:
- Hard/easy sequencing (Bowerman)
- Recovery principles: no quality session next to the long run
- Constraint satisfaction over athlete day preferences

The long run is fixed first, quality days second, easy days fill the
remaining running days. Requested rest days are honored unless they
collide with a running assignment the athlete also asked for.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Dict, Any, List, Sequence, Union

logger = logging.getLogger(__name__)


class DayOfWeek(Enum):
    """Days of the week, Monday first."""
    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6

    @property
    def label(self) -> str:
        """Lowercase day name as stored in settings."""
        return self.name.lower()

    def offset(self, days: int) -> 'DayOfWeek':
        """Day reached by moving forward (or back) a number of days."""
        return DayOfWeek((self.value + days) % 7)

    @classmethod
    def parse(cls, value: Union[str, int, 'DayOfWeek']) -> 'DayOfWeek':
        """Accept 'saturday', 'Sat', 5 or DayOfWeek.SATURDAY."""
        if isinstance(value, DayOfWeek):
            return value
        if isinstance(value, int):
            return cls(value % 7)
        key = str(value).strip().lower()
        for day in cls:
            if day.label == key or day.label[:3] == key[:3]:
                return day
        raise ValueError(f"Unknown day of week: {value!r}")


class SlotKind(Enum):
    """What kind of run a day holds."""
    LONG = "long"
    QUALITY = "quality"
    EASY = "easy"
    REST = "rest"

    @property
    def is_key(self) -> bool:
        return self in (SlotKind.LONG, SlotKind.QUALITY)


# Fallback quality days when preferences don't fill the quota
QUALITY_CANDIDATES = (
    DayOfWeek.TUESDAY,
    DayOfWeek.THURSDAY,
    DayOfWeek.WEDNESDAY,
    DayOfWeek.FRIDAY,
)


@dataclass
class WeeklyStructure:
    """
    Day-of-week to slot-kind map for one generation call.

    Always holds exactly 7 entries.
    """
    days: Dict[DayOfWeek, SlotKind] = field(
        default_factory=lambda: {day: SlotKind.REST for day in DayOfWeek}
    )
    long_run_day: Optional[DayOfWeek] = None
    quality_days: List[DayOfWeek] = field(default_factory=list)
    requested_rest_days: List[DayOfWeek] = field(default_factory=list)

    def slot(self, day: DayOfWeek) -> SlotKind:
        """Slot kind for a day."""
        return self.days[day]

    def days_of_kind(self, kind: SlotKind) -> List[DayOfWeek]:
        """Days holding a given slot kind, Monday first."""
        return [day for day in DayOfWeek if self.days[day] == kind]

    @property
    def run_days(self) -> List[DayOfWeek]:
        return [day for day in DayOfWeek if self.days[day] != SlotKind.REST]

    @property
    def rest_days(self) -> List[DayOfWeek]:
        return self.days_of_kind(SlotKind.REST)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'days': {day.label: self.days[day].value for day in DayOfWeek},
            'long_run_day': self.long_run_day.label if self.long_run_day else None,
            'quality_days': [day.label for day in self.quality_days],
            'rest_days': [day.label for day in self.rest_days],
        }


def create_weekly_structure(
    runs_per_week: int,
    long_run_day: Union[str, DayOfWeek],
    quality_days: Sequence[Union[str, DayOfWeek]] = (),
    rest_days: Sequence[Union[str, DayOfWeek]] = (),
    quality_sessions_per_week: int = 2
) -> WeeklyStructure:
    """
    Build the weekly slot structure from athlete preferences.

    Algorithm:
        1. Fix the long run day (beats a conflicting rest request)
        2. Place preferred quality days, skipping the long run day and
           the days either side of it
        3. Top up quality from Tue, Thu, Wed, Fri, also skipping
           requested rest days
        4. Fill easy days up to runs_per_week, skipping rest requests
        5. Everything left is rest

    Args:
        runs_per_week: Total running days (1-7)
        long_run_day: Preferred long run day
        quality_days: Preferred quality days, in priority order
        rest_days: Requested rest days (best-effort)
        quality_sessions_per_week: Quality sessions wanted

    Returns:
        WeeklyStructure with one entry per weekday
    """
    runs = max(1, min(7, int(runs_per_week)))
    long_day = DayOfWeek.parse(long_run_day)
    preferred_quality = [DayOfWeek.parse(d) for d in quality_days]
    requested_rest = [DayOfWeek.parse(d) for d in rest_days]
    quality_quota = max(0, min(int(quality_sessions_per_week), runs - 1))

    structure = WeeklyStructure(long_run_day=long_day, requested_rest_days=requested_rest)
    structure.days[long_day] = SlotKind.LONG
    if long_day in requested_rest:
        logger.debug("Long run day %s overrides requested rest", long_day.label)

    blocked = {long_day, long_day.offset(-1), long_day.offset(1)}

    for day in preferred_quality:
        if len(structure.quality_days) >= quality_quota:
            break
        if day in blocked or structure.days[day] != SlotKind.REST:
            continue
        structure.days[day] = SlotKind.QUALITY
        structure.quality_days.append(day)

    for day in QUALITY_CANDIDATES:
        if len(structure.quality_days) >= quality_quota:
            break
        if day in blocked or day in requested_rest or structure.days[day] != SlotKind.REST:
            continue
        structure.days[day] = SlotKind.QUALITY
        structure.quality_days.append(day)

    placed = 1 + len(structure.quality_days)
    for day in DayOfWeek:
        if placed >= runs:
            break
        if structure.days[day] == SlotKind.REST and day not in requested_rest:
            structure.days[day] = SlotKind.EASY
            placed += 1

    if placed < runs:
        logger.info(
            "Only %d of %d run days fit around requested rest days", placed, runs
        )

    return structure


def validate_hard_easy_pattern(structure: WeeklyStructure) -> bool:
    """True when no two key days (long/quality) are adjacent, week wrapping."""
    key_days = [day for day in DayOfWeek if structure.days[day].is_key]
    for day in key_days:
        if structure.days[day.offset(1)].is_key:
            return False
    return True


def calculate_effort_distribution(structure: WeeklyStructure) -> Dict[str, int]:
    """
    Share of running days that are easy vs hard (80/20 check).

    Returns:
        Dict with easy_percent and hard_percent
    """
    run_days = structure.run_days
    if not run_days:
        return {'easy_percent': 100, 'hard_percent': 0}

    hard = sum(1 for day in run_days if structure.days[day].is_key)
    easy = len(run_days) - hard
    return {
        'easy_percent': round(easy / len(run_days) * 100),
        'hard_percent': round(hard / len(run_days) * 100),
    }


def format_weekly_structure(structure: WeeklyStructure) -> str:
    """
    Format a structure as a readable string.

    Args:
        structure: The structure to format

    Returns:
        Formatted string representation
    """
    lines = ["Weekly Structure:", "=" * 40]
    for day in DayOfWeek:
        slot = structure.days[day]
        lines.append(f"{day.name:10s}: {slot.value.upper() if slot == SlotKind.REST else slot.value}")
    return "\n".join(lines)


if __name__ == '__main__':
    print("Testing Weekly Structure...")
    print("=" * 60)

    structure = create_weekly_structure(
        runs_per_week=5,
        long_run_day='sunday',
        quality_days=['tuesday', 'thursday'],
        rest_days=['monday', 'friday'],
        quality_sessions_per_week=2,
    )
    print(format_weekly_structure(structure))
    print(f"\nHard/easy pattern valid: {validate_hard_easy_pattern(structure)}")
    print(f"Effort distribution: {calculate_effort_distribution(structure)}")
