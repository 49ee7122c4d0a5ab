"""
Workout Templates: Library of running sessions used to fill weekly slots.

Templates live in data/workout_templates.yaml grouped by category. Each
carries its segments, effort range, typical distance and the pace zone
that sets its target pace.

Based on:
- Daniels' Running Formula (E/M/T/I/R sessions)
- Pfitzinger & Douglas, Advanced Marathoning (medium-long and MP runs)
- Hansons Marathon Method (cruise and marathon pace intervals)
"""

from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Optional, Dict, Any, List, Tuple

import yaml

from .pace_model import PaceZones, format_pace, get_pace_for_zone

TEMPLATES_PATH = Path(__file__).parent / "data" / "workout_templates.yaml"

# Perceived-effort phrasing used when no pace zones are known
EFFORT_PHRASES: Dict[str, str] = {
    'recovery': 'Very easy, slower than feels natural (RPE 2)',
    'easy': 'Conversational, could chat in full sentences (RPE 3-4)',
    'easy_long': 'Relaxed and conversational (RPE 3-4)',
    'general_aerobic': 'Steady but comfortable, sentences come easily (RPE 4-5)',
    'marathon': 'Controlled and sustainable for hours (RPE 5-6)',
    'half_marathon': 'Comfortably hard, a few words at a time (RPE 6-7)',
    'tempo': 'Comfortably hard, short phrases only (RPE 7)',
    'threshold': 'Hard but controlled, one-hour race effort (RPE 7-8)',
    'vo2max': 'Hard, 5K-10K race effort (RPE 8-9)',
    'interval': 'Hard, 3K-5K race effort (RPE 8-9)',
    'race': 'Race effort (RPE 9-10)',
}


@dataclass(frozen=True)
class WorkoutSegment:
    """One part of a workout (warmup, work, intervals, ...)."""
    type: str
    pace: Optional[str] = None
    distance_miles: Optional[float] = None
    duration_minutes: Optional[float] = None
    percentage: Optional[float] = None
    repeats: Optional[int] = None
    work_distance_miles: Optional[float] = None
    work_distance_meters: Optional[float] = None
    work_duration_minutes: Optional[float] = None
    work_duration_seconds: Optional[float] = None
    rest_minutes: Optional[float] = None
    rest_seconds: Optional[float] = None
    rest_type: Optional[str] = None
    effort_min: Optional[int] = None
    effort_max: Optional[int] = None
    distances_meters: Optional[Tuple[float, ...]] = None
    notes: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Non-empty fields only."""
        result = {}
        for name in self.__dataclass_fields__:
            value = getattr(self, name)
            if value is None:
                continue
            result[name] = list(value) if isinstance(value, tuple) else value
        return result

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'WorkoutSegment':
        """Create from a YAML mapping."""
        data = dict(d)
        if data.get('distances_meters') is not None:
            data['distances_meters'] = tuple(data['distances_meters'])
        return cls(**data)


@dataclass(frozen=True)
class WorkoutTemplate:
    """A reusable workout definition."""
    id: str
    name: str
    category: str
    phases: Tuple[str, ...]
    description: str
    segments: Tuple[WorkoutSegment, ...] = field(default_factory=tuple)
    effort_min: int = 50
    effort_max: int = 65
    distance_miles_min: float = 3
    distance_miles_max: float = 8
    purpose: str = ""
    is_key_workout: bool = False
    intensity: str = "easy"
    pace_zone: Optional[str] = None

    def is_appropriate_for(self, phase: str) -> bool:
        return phase in self.phases

    def structure(self) -> List[Dict[str, Any]]:
        """Segments as JSON-encodable dicts."""
        return [segment.to_dict() for segment in self.segments]

    def target_pace(self, zones: Optional[PaceZones]) -> Optional[int]:
        """Target pace (sec/mile) from the template's zone, if zones are known."""
        if zones is None or not self.pace_zone:
            return None
        return get_pace_for_zone(zones, self.pace_zone)

    def display_name(self, zones: Optional[PaceZones] = None) -> str:
        """Template name with the target pace appended when available."""
        pace = self.target_pace(zones)
        if pace:
            return f"{self.name} @ {format_pace(pace)}/mi"
        return self.name

    def effort_description(self) -> str:
        """Perceived-effort phrasing for athletes without pace zones."""
        phrase = EFFORT_PHRASES.get(self.pace_zone or 'easy', EFFORT_PHRASES['easy'])
        return f"{phrase}; {self.effort_min}-{self.effort_max}% effort"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'id': self.id,
            'name': self.name,
            'category': self.category,
            'phases': list(self.phases),
            'description': self.description,
            'segments': self.structure(),
            'effort_min': self.effort_min,
            'effort_max': self.effort_max,
            'distance_miles_min': self.distance_miles_min,
            'distance_miles_max': self.distance_miles_max,
            'purpose': self.purpose,
            'is_key_workout': self.is_key_workout,
            'intensity': self.intensity,
            'pace_zone': self.pace_zone,
        }


def _parse_template(category: str, raw: Dict[str, Any]) -> WorkoutTemplate:
    effort = raw.get('effort', [50, 65])
    distance = raw.get('distance_miles', [3, 8])
    return WorkoutTemplate(
        id=raw['id'],
        name=raw['name'],
        category=raw.get('category', category),
        phases=tuple(raw.get('phases', [])),
        description=raw.get('description', ''),
        segments=tuple(WorkoutSegment.from_dict(s) for s in raw.get('segments', [])),
        effort_min=effort[0],
        effort_max=effort[1],
        distance_miles_min=distance[0],
        distance_miles_max=distance[1],
        purpose=raw.get('purpose', ''),
        is_key_workout=bool(raw.get('is_key_workout', False)),
        intensity=raw.get('intensity', 'easy'),
        pace_zone=raw.get('pace_zone'),
    )


def load_templates(path: Optional[Path] = None) -> Dict[str, WorkoutTemplate]:
    """
    Read a template file.

    Returns:
        Templates keyed by id, in file order

    Raises:
        ValueError: duplicate template ids
    """
    with open(path or TEMPLATES_PATH) as f:
        raw = yaml.safe_load(f) or {}

    templates: Dict[str, WorkoutTemplate] = {}
    for category, entries in raw.items():
        for entry in entries or []:
            template = _parse_template(category, entry)
            if template.id in templates:
                raise ValueError(f"Duplicate workout template id: {template.id}")
            templates[template.id] = template
    return templates


@lru_cache(maxsize=1)
def _library() -> Dict[str, WorkoutTemplate]:
    return load_templates()


def all_templates() -> List[WorkoutTemplate]:
    return list(_library().values())


def get_workout_template(template_id: str) -> Optional[WorkoutTemplate]:
    """Template by id, or None."""
    return _library().get(template_id)


def get_templates_for_phase(phase: str) -> List[WorkoutTemplate]:
    return [t for t in _library().values() if t.is_appropriate_for(phase)]


def get_templates_by_category(category: str) -> List[WorkoutTemplate]:
    return [t for t in _library().values() if t.category == category]


def get_key_workout_templates() -> List[WorkoutTemplate]:
    return [t for t in _library().values() if t.is_key_workout]


def find_template(template_id: str, fallback_category: str) -> Optional[WorkoutTemplate]:
    """Template by id, else the first template in a category."""
    template = get_workout_template(template_id)
    if template is not None:
        return template
    matches = get_templates_by_category(fallback_category)
    return matches[0] if matches else None


if __name__ == '__main__':
    print("Workout Template Library")
    print("=" * 60)
    for template in all_templates():
        key = "*" if template.is_key_workout else " "
        print(f"{key} {template.id:28s} {template.category:14s} "
              f"{template.distance_miles_min}-{template.distance_miles_max} mi")
