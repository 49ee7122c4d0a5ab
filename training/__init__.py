"""
Adaptive race training plans.

This package provides:
- VDOT pace model (race-time equivalence, training zones)
- Fitness assessment from workout history
- Weekly slot structure from athlete preferences
- Macro plan periodization (phases, mileage, long runs)
- Rolling 3-week workout windows with RPE adaptation
- Per-split effort classification for completed runs
"""

# Errors
from .errors import (
    PlanGenerationError,
    InsufficientTimeError,
    MissingRaceError,
    MissingSettingsError,
)

# Configuration
from .config import PlanConfig, load_config, get_default_config

# Pace model
from .pace_model import (
    PaceZones,
    calculate_vdot,
    calculate_pace_zones,
    predict_race_time,
    get_equivalent_race_times,
    get_pace_for_zone,
    format_pace,
    format_time,
)

# Athlete profile
from .profile import AthleteProfile, SpeedworkExperience, StressLevel, TrainBy

# Fitness assessment
from .fitness import (
    WorkoutRecord,
    UserSettings,
    FitnessData,
    ConfidenceLevel,
    MileageTrend,
    assess_current_fitness,
)

# Weekly structure
from .scheduling import DayOfWeek, SlotKind, WeeklyStructure, create_weekly_structure

# Periodization
from .periodization import (
    TrainingPhase,
    PlanAggressiveness,
    RacePriority,
    IntermediateRace,
    PlanGenerationInput,
    Block,
    MacroPlan,
    generate_macro_plan,
)

# Workout templates
from .workout_templates import WorkoutTemplate, get_workout_template

# Window generation
from .window_generator import (
    CompletedWorkoutSummary,
    AdaptationRules,
    TrainingAdaptation,
    PlannedWorkout,
    WindowGenerationInput,
    analyze_training_adaptation,
    generate_window_workouts,
    scale_down_workout,
    swap_workout,
)

# Effort classification
from .effort_classifier import (
    EffortCategory,
    Split,
    ClassificationContext,
    ClassifiedSplit,
    ClassificationResult,
    classify_split_efforts,
    classify_split_efforts_with_zones,
    compute_zone_distribution,
    derive_workout_type,
)

# Unified engine
from .engine import TrainingPlanEngine, RacePlanState, PlanStore

__all__ = [
    # Errors
    'PlanGenerationError',
    'InsufficientTimeError',
    'MissingRaceError',
    'MissingSettingsError',
    # Configuration
    'PlanConfig',
    'load_config',
    'get_default_config',
    # Pace model
    'PaceZones',
    'calculate_vdot',
    'calculate_pace_zones',
    'predict_race_time',
    'get_equivalent_race_times',
    'get_pace_for_zone',
    'format_pace',
    'format_time',
    # Profile
    'AthleteProfile',
    'SpeedworkExperience',
    'StressLevel',
    'TrainBy',
    # Fitness
    'WorkoutRecord',
    'UserSettings',
    'FitnessData',
    'ConfidenceLevel',
    'MileageTrend',
    'assess_current_fitness',
    # Scheduling
    'DayOfWeek',
    'SlotKind',
    'WeeklyStructure',
    'create_weekly_structure',
    # Periodization
    'TrainingPhase',
    'PlanAggressiveness',
    'RacePriority',
    'IntermediateRace',
    'PlanGenerationInput',
    'Block',
    'MacroPlan',
    'generate_macro_plan',
    # Templates
    'WorkoutTemplate',
    'get_workout_template',
    # Windows
    'CompletedWorkoutSummary',
    'AdaptationRules',
    'TrainingAdaptation',
    'PlannedWorkout',
    'WindowGenerationInput',
    'analyze_training_adaptation',
    'generate_window_workouts',
    'scale_down_workout',
    'swap_workout',
    # Effort classification
    'EffortCategory',
    'Split',
    'ClassificationContext',
    'ClassifiedSplit',
    'ClassificationResult',
    'classify_split_efforts',
    'classify_split_efforts_with_zones',
    'compute_zone_distribution',
    'derive_workout_type',
    # Engine
    'TrainingPlanEngine',
    'RacePlanState',
    'PlanStore',
]
