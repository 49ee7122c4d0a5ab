"""
Pace Model: VDOT fitness index, training pace zones and race prediction.

VDOT is a single-number fitness score derived from a race performance.
From it we derive per-mile target paces for every training zone and
equivalent race times at other distances.

Based on:
- Daniels & Gilbert oxygen-cost and drop-dead regressions (1979)
- Daniels' Running Formula (3rd ed.) zone intensities
- Ely et al. (2007) and El Helou et al. (2012) for heat penalties
"""

import logging
from dataclasses import dataclass, asdict
from typing import Optional, Dict, Any, Tuple

import numpy as np

logger = logging.getLogger(__name__)

METERS_PER_MILE = 1609.34

VDOT_MIN = 15.0
VDOT_MAX = 85.0
MIN_VDOT_DISTANCE_METERS = 1500.0

# Fraction of VO2max sustained in each training zone
ZONE_INTENSITIES: Dict[str, float] = {
    'recovery': 0.55,
    'easy': 0.65,
    'general_aerobic': 0.70,
    'marathon': 0.78,
    'half_marathon': 0.83,
    'tempo': 0.85,
    'threshold': 0.88,
    'vo2max': 0.95,
    'interval': 0.97,
    'repetition': 1.05,
}

# Standard race distances for equivalent-time tables
RACE_DISTANCES: Dict[str, Tuple[str, float, float]] = {
    '5K': ('5K', 5000, 3.1),
    '10K': ('10K', 10000, 6.2),
    '15K': ('15K', 15000, 9.3),
    '10_mile': ('10 Mile', 16093, 10.0),
    'half_marathon': ('Half Marathon', 21097, 13.1),
    'marathon': ('Marathon', 42195, 26.2),
}

CONFIDENCE_BANDS: Dict[str, float] = {
    'high': 0.02,
    'medium': 0.04,
    'low': 0.07,
}

# Share of a condition penalty applied to faster zones
CONDITION_ZONE_FACTORS: Dict[str, float] = {
    'threshold': 0.8,
    'vo2max': 0.5,
    'interval': 0.5,
    'repetition': 0.3,
}

ZONE_ALIASES: Dict[str, str] = {
    'easy_long': 'easy',
    'steady': 'general_aerobic',
    'generalaerobic': 'general_aerobic',
    'halfmarathon': 'half_marathon',
}


@dataclass(frozen=True)
class PaceZones:
    """
    Training paces in seconds per mile, slowest to fastest.

    Ordering easy >= marathon >= tempo >= threshold >= interval holds
    by construction when built from a VDOT.
    """
    recovery: int
    easy: int
    general_aerobic: int
    marathon: int
    half_marathon: int
    tempo: int
    threshold: int
    vo2max: int
    interval: int
    repetition: int
    vdot: Optional[float] = None

    @property
    def steady(self) -> int:
        """Steady pace is the general aerobic zone."""
        return self.general_aerobic

    def is_ordered(self) -> bool:
        """Check the slow-to-fast ordering invariant."""
        return (self.easy >= self.marathon >= self.tempo
                >= self.threshold >= self.interval)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'PaceZones':
        """Create zones from dictionary."""
        return cls(**d)


# =============================================================================
# VDOT regression
# =============================================================================

def percent_vo2max(time_minutes: float) -> float:
    """
    Fraction of VO2max sustainable for a race of the given duration.

    Formula:
        %VO2max = 0.8 + 0.1894393 * e^(-0.012778 t) + 0.2989558 * e^(-0.1932605 t)
    """
    return float(
        0.8
        + 0.1894393 * np.exp(-0.012778 * time_minutes)
        + 0.2989558 * np.exp(-0.1932605 * time_minutes)
    )


def vo2_cost(velocity: float) -> float:
    """
    Oxygen cost (ml/kg/min) of running at velocity meters/minute.

    Formula:
        VO2 = -4.60 + 0.182258 v + 0.000104 v^2
    """
    return -4.60 + 0.182258 * velocity + 0.000104 * velocity * velocity


def _raw_vdot(distance_meters: float, time_seconds: float) -> float:
    """Unrounded, unbounded VDOT used inside iterative solvers."""
    time_minutes = time_seconds / 60.0
    velocity = distance_meters / time_minutes
    return vo2_cost(velocity) / percent_vo2max(time_minutes)


def calculate_vdot(distance_meters: float, time_seconds: float) -> Optional[float]:
    """
    Calculate VDOT from a race performance.

    Args:
        distance_meters: Race distance in meters
        time_seconds: Finish time in seconds

    Returns:
        VDOT rounded to 0.1, or None when the distance is under 1500m,
        the time is not positive, or the result is outside [15, 85]
    """
    if distance_meters is None or time_seconds is None:
        return None
    if distance_meters < MIN_VDOT_DISTANCE_METERS or time_seconds <= 0:
        return None

    vdot = _raw_vdot(distance_meters, time_seconds)
    if not np.isfinite(vdot) or vdot < VDOT_MIN or vdot > VDOT_MAX:
        logger.debug(
            "Discarding implausible VDOT %.1f for %.0fm in %.0fs",
            vdot, distance_meters, time_seconds
        )
        return None

    return round(vdot, 1)


def is_valid_vdot(vdot: Optional[float]) -> bool:
    """True when vdot is present and physiologically plausible."""
    return vdot is not None and VDOT_MIN <= vdot <= VDOT_MAX


def velocity_from_vdot(vdot: float, percent: float) -> float:
    """
    Solve the oxygen-cost quadratic for velocity at a fraction of VO2max.

    Formula:
        0.000104 v^2 + 0.182258 v - (4.60 + vdot * pct) = 0
        v = (-b + sqrt(b^2 - 4ac)) / 2a

    Returns:
        Velocity in meters per minute
    """
    a = 0.000104
    b = 0.182258
    c = -4.60 - vdot * percent
    discriminant = b * b - 4 * a * c
    return float((-b + np.sqrt(discriminant)) / (2 * a))


def velocity_to_pace(velocity: float) -> int:
    """Convert meters/minute to whole seconds per mile."""
    return int(round(METERS_PER_MILE / velocity * 60))


def calculate_pace_zones(vdot: float) -> PaceZones:
    """
    Derive per-mile training paces for every zone from a VDOT.

    Args:
        vdot: Fitness index in [15, 85]

    Returns:
        PaceZones in seconds per mile
    """
    if not is_valid_vdot(vdot):
        raise ValueError(f"VDOT must be between {VDOT_MIN} and {VDOT_MAX}, got {vdot}")

    paces = {
        zone: velocity_to_pace(velocity_from_vdot(vdot, pct))
        for zone, pct in ZONE_INTENSITIES.items()
    }
    return PaceZones(vdot=vdot, **paces)


def estimate_vdot_from_easy_pace(easy_pace_seconds: float) -> Optional[float]:
    """
    Estimate VDOT when no race result exists, assuming easy pace is 65% VO2max.

    Returns:
        VDOT rounded to 0.1, or None when implausible
    """
    if easy_pace_seconds is None or easy_pace_seconds <= 0:
        return None
    velocity = METERS_PER_MILE / (easy_pace_seconds / 60.0)
    vdot = vo2_cost(velocity) / ZONE_INTENSITIES['easy']
    if vdot < VDOT_MIN or vdot > VDOT_MAX:
        return None
    return round(vdot, 1)


# =============================================================================
# Race prediction
# =============================================================================

def predict_race_time(vdot: float, distance_meters: float, max_iterations: int = 10,
                      tolerance: float = 0.1) -> float:
    """
    Predict a race time for a VDOT by fixed-point iteration.

    There is no closed form because %VO2max depends on race duration.
    The estimate is seeded from the velocity at 80% VO2max and rescaled
    by implied/target VDOT until the two agree within tolerance.

    Args:
        vdot: Target fitness index
        distance_meters: Race distance
        max_iterations: Iteration bound
        tolerance: Convergence tolerance in VDOT units

    Returns:
        Predicted time in seconds, rounded to 0.1
    """
    if distance_meters <= 0:
        raise ValueError("Distance must be positive")
    if not is_valid_vdot(vdot):
        raise ValueError(f"VDOT must be between {VDOT_MIN} and {VDOT_MAX}, got {vdot}")

    time_seconds = distance_meters / velocity_from_vdot(vdot, 0.80) * 60.0

    for _ in range(max_iterations):
        implied = _raw_vdot(distance_meters, time_seconds)
        if abs(implied - vdot) < tolerance:
            break
        time_seconds *= implied / vdot

    return round(time_seconds, 1)


def get_confidence_interval(time_seconds: float, confidence: str = 'medium') -> Dict[str, float]:
    """
    Widen a predicted time into a range reflecting VDOT source quality.

    Args:
        time_seconds: Predicted time
        confidence: 'high' (2%), 'medium' (4%) or 'low' (7%)

    Returns:
        Dict with 'min' and 'max' seconds
    """
    if confidence not in CONFIDENCE_BANDS:
        raise ValueError(f"Unknown confidence level: {confidence}")
    band = CONFIDENCE_BANDS[confidence]
    return {
        'min': round(time_seconds * (1 - band)),
        'max': round(time_seconds * (1 + band)),
    }


def get_equivalent_race_times(vdot: float) -> Dict[str, Dict[str, Any]]:
    """Predicted time and per-mile pace for each standard race distance."""
    results = {}
    for key, (label, meters, miles) in RACE_DISTANCES.items():
        time_seconds = predict_race_time(vdot, meters)
        results[key] = {
            'label': label,
            'time': time_seconds,
            'pace': int(round(time_seconds / miles)),
        }
    return results


# =============================================================================
# Conditions (heat, humidity, elevation)
# =============================================================================

def get_weather_pace_adjustment(temperature_f: float, humidity: float,
                                dew_point_f: Optional[float] = None) -> int:
    """
    Seconds per mile to add for weather conditions.

    Optimal racing temperature is ~45F. Heat penalties are tiered:
    0.4 s/F up to 70F, 1.0 s/F from 70-85F, 1.5 s/F beyond.

    Args:
        temperature_f: Air temperature in Fahrenheit
        humidity: Relative humidity percentage
        dew_point_f: Dew point in Fahrenheit (optional)

    Returns:
        Seconds per mile (positive = slower)
    """
    optimal = 45.0
    adjustment = 0.0

    if temperature_f > optimal:
        if temperature_f > 85:
            adjustment += (70 - optimal) * 0.4
            adjustment += (85 - 70) * 1.0
            adjustment += (temperature_f - 85) * 1.5
        elif temperature_f > 70:
            adjustment += (70 - optimal) * 0.4
            adjustment += (temperature_f - 70) * 1.0
        else:
            adjustment += (temperature_f - optimal) * 0.4

        if temperature_f > 65 and humidity > 50:
            adjustment += (humidity - 50) * 0.1
        elif temperature_f > 55 and humidity > 60:
            adjustment += (humidity - 60) * 0.05
    elif temperature_f < 35:
        adjustment += (35 - temperature_f) * 0.2

    if dew_point_f is not None and dew_point_f > 60:
        adjustment += (dew_point_f - 60) * 0.3

    return int(round(adjustment))


def elevation_pace_correction(elevation_gain_ft: float, distance_miles: float) -> int:
    """Roughly 12 s/mile per 100 ft/mile of climbing."""
    if distance_miles <= 0 or elevation_gain_ft <= 0:
        return 0
    gain_per_mile = elevation_gain_ft / distance_miles
    return int(round(gain_per_mile / 100 * 12))


def adjust_pace_zones_for_conditions(zones: PaceZones, adjustment_seconds: int) -> PaceZones:
    """
    Slow every zone by a condition penalty.

    Harder zones take a reduced share of the penalty since short efforts
    are less heat-limited.
    """
    if adjustment_seconds == 0:
        return zones
    shifted = zones.to_dict()
    for zone in ZONE_INTENSITIES:
        factor = CONDITION_ZONE_FACTORS.get(zone, 1.0)
        shifted[zone] = shifted[zone] + int(round(adjustment_seconds * factor))
    return PaceZones.from_dict(shifted)


def calculate_adjusted_vdot(
    distance_meters: float,
    time_seconds: float,
    temperature_f: Optional[float] = None,
    humidity: Optional[float] = None,
    elevation_gain_ft: Optional[float] = None
) -> Optional[float]:
    """
    VDOT corrected for tough conditions.

    The per-mile weather and elevation penalty is removed from the finish
    time before computing VDOT. The correction never exceeds 15% of the
    original time.
    """
    distance_miles = distance_meters / METERS_PER_MILE
    penalty = 0
    if temperature_f is not None and humidity is not None:
        penalty += get_weather_pace_adjustment(temperature_f, humidity)
    if elevation_gain_ft:
        penalty += elevation_pace_correction(elevation_gain_ft, distance_miles)

    if penalty <= 0:
        return calculate_vdot(distance_meters, time_seconds)

    corrected = max(time_seconds - penalty * distance_miles, time_seconds * 0.85)
    return calculate_vdot(distance_meters, corrected)


# =============================================================================
# Formatting helpers
# =============================================================================

def get_pace_for_zone(zones: Optional[PaceZones], zone: str) -> Optional[int]:
    """Look up a zone pace by name, accepting aliases like 'steady'."""
    if zones is None or not zone:
        return None
    key = zone.lower()
    key = ZONE_ALIASES.get(key, key)
    if key not in ZONE_INTENSITIES:
        return None
    return getattr(zones, key)


def format_pace(seconds: float) -> str:
    """Format seconds per mile as M:SS."""
    total = int(round(seconds))
    return f"{total // 60}:{total % 60:02d}"


def parse_pace(pace: str) -> int:
    """Parse M:SS into seconds."""
    parts = pace.strip().split(':')
    if len(parts) != 2:
        raise ValueError(f"Pace must look like M:SS, got {pace!r}")
    return int(parts[0]) * 60 + int(parts[1])


def format_time(seconds: float) -> str:
    """Format a duration as H:MM:SS or M:SS."""
    total = int(round(seconds))
    hours, rem = divmod(total, 3600)
    minutes, secs = divmod(rem, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def parse_time(value: str) -> int:
    """Parse H:MM:SS or M:SS into seconds."""
    parts = [int(p) for p in value.strip().split(':')]
    if len(parts) == 3:
        return parts[0] * 3600 + parts[1] * 60 + parts[2]
    if len(parts) == 2:
        return parts[0] * 60 + parts[1]
    raise ValueError(f"Time must look like H:MM:SS or M:SS, got {value!r}")


if __name__ == '__main__':
    print("Testing Pace Model...")
    print("=" * 60)

    vdot = calculate_vdot(5000, 1200)
    print(f"\n5K in 20:00 -> VDOT {vdot}")

    zones = calculate_pace_zones(vdot)
    for zone in ZONE_INTENSITIES:
        print(f"  {zone:16s}: {format_pace(getattr(zones, zone))}/mi")

    print("\n--- Equivalent Race Times ---")
    for key, result in get_equivalent_race_times(vdot).items():
        print(f"  {result['label']:14s}: {format_time(result['time'])}")

    print("\n--- Weather Adjustment ---")
    for temp in [40, 60, 75, 90]:
        adj = get_weather_pace_adjustment(temp, 70)
        print(f"  {temp}F / 70%: +{adj}s/mi")
