"""
Training Plan Engine: Coordinates plan generation, storage and rolling windows.

Ties the pure components together for a calling layer:
- Fitness assessment (with settings fallback) into plan inputs
- Macro plan generation and weekly structure
- Rolling 3-week workout windows with adaptation

Regeneration is destructive: a race's existing blocks and workouts are
replaced wholesale. Writes for one race are serialized by a per-race
lock; different races never wait on each other.
"""

import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Optional, Dict, Any, List, Sequence

from .config import PlanConfig, get_default_config
from .errors import MissingRaceError
from .fitness import UserSettings, WorkoutRecord, assess_current_fitness
from .pace_model import calculate_pace_zones, format_pace, is_valid_vdot
from .periodization import (
    MacroPlan,
    PlanAggressiveness,
    PlanGenerationInput,
    generate_macro_plan,
)
from .scheduling import WeeklyStructure, create_weekly_structure, format_weekly_structure
from .window_generator import (
    CompletedWorkoutSummary,
    PlannedWorkout,
    WindowGenerationInput,
    generate_window_workouts,
    select_window_blocks,
)

logger = logging.getLogger(__name__)


@dataclass
class RacePlanState:
    """
    Everything stored for one race.

    Workouts are keyed by week number and filled a window at a time.
    """
    plan_input: PlanGenerationInput
    macro_plan: MacroPlan
    weekly_structure: WeeklyStructure
    workouts: Dict[int, List[PlannedWorkout]] = field(default_factory=dict)
    revision: int = 1

    @property
    def populated_weeks(self) -> List[int]:
        return sorted(self.workouts)

    @property
    def is_fully_populated(self) -> bool:
        return all(b.week_number in self.workouts for b in self.macro_plan.blocks)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'race_id': self.macro_plan.race_id,
            'revision': self.revision,
            'plan': self.macro_plan.to_dict(),
            'weekly_structure': self.weekly_structure.to_dict(),
            'workouts': {
                str(week): [w.to_dict() for w in workouts]
                for week, workouts in sorted(self.workouts.items())
            },
        }


class PlanStore:
    """
    In-memory plan storage with one lock per race.

    Stands in for the persistence collaborator; the engine only relies
    on replace/get/put_workouts.
    """

    def __init__(self):
        self._plans: Dict[Any, RacePlanState] = {}
        self._locks: Dict[Any, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def lock_for(self, race_id: Any) -> threading.Lock:
        """The lock guarding writes for one race."""
        with self._registry_lock:
            if race_id not in self._locks:
                self._locks[race_id] = threading.Lock()
            return self._locks[race_id]

    def get(self, race_id: Any) -> Optional[RacePlanState]:
        return self._plans.get(race_id)

    def replace(self, race_id: Any, state: RacePlanState) -> RacePlanState:
        """Delete a race's plan and workouts, then store the new one."""
        previous = self._plans.pop(race_id, None)
        if previous is not None:
            state.revision = previous.revision + 1
        self._plans[race_id] = state
        return state

    def put_workouts(self, race_id: Any, workouts: Dict[int, List[PlannedWorkout]]) -> None:
        self._plans[race_id].workouts.update(workouts)

    def delete(self, race_id: Any) -> bool:
        return self._plans.pop(race_id, None) is not None

    def race_ids(self) -> List[Any]:
        return list(self._plans)


class TrainingPlanEngine:
    """
    Main engine for race training plans.

    Orchestrates fitness assessment, periodization, weekly structure and
    window generation over a PlanStore.
    """

    def __init__(self, store: Optional[PlanStore] = None, config: Optional[PlanConfig] = None):
        """
        Initialize the engine.

        Args:
            store: Plan storage (default: new in-memory store)
            config: Tunable constants (default: packaged plan rules)
        """
        self.store = store or PlanStore()
        self.config = config or get_default_config()

    # =========================================================================
    # Inputs
    # =========================================================================

    def build_plan_input(
        self,
        race_id: Any,
        race_date: date,
        race_distance_meters: float,
        history: Sequence[WorkoutRecord] = (),
        settings: Optional[UserSettings] = None,
        start_date: Optional[date] = None,
        **preferences
    ) -> PlanGenerationInput:
        """
        Plan input from workout history, falling back to declared settings.

        Explicit settings for peak mileage and runs per week take priority
        over the history-based suggestions.

        Args:
            race_id: Race identifier
            race_date: Goal race date
            race_distance_meters: Goal race distance
            history: Logged runs
            settings: Declared settings (fallback and overrides)
            start_date: Plan start (default: today)
            **preferences: Any other PlanGenerationInput field

        Raises:
            MissingSettingsError: no history and no declared mileage
        """
        start_date = start_date or date.today()
        fitness = assess_current_fitness(history, settings, today=start_date)

        peak = fitness.suggested_peak_mileage
        runs = round(fitness.runs_per_week) or 4
        vdot = fitness.current_vdot
        if settings is not None:
            peak = settings.peak_mileage or peak
            runs = settings.runs_per_week or runs
            vdot = settings.vdot or vdot

        preferences.setdefault('plan_aggressiveness', PlanAggressiveness.MODERATE)
        return PlanGenerationInput(
            current_weekly_mileage=fitness.typical_weekly_mileage,
            peak_weekly_mileage_target=max(peak, fitness.typical_weekly_mileage),
            runs_per_week=max(3, min(7, runs)),
            race_id=race_id,
            race_date=race_date,
            race_distance_meters=race_distance_meters,
            start_date=start_date,
            vdot=vdot if is_valid_vdot(vdot) else None,
            **preferences,
        )

    def _resolve_zones(self, plan_input: PlanGenerationInput) -> PlanGenerationInput:
        if plan_input.pace_zones is None and is_valid_vdot(plan_input.vdot):
            return replace(plan_input, pace_zones=calculate_pace_zones(plan_input.vdot))
        return plan_input

    # =========================================================================
    # Generation
    # =========================================================================

    def generate_plan(
        self,
        plan_input: PlanGenerationInput,
        recent_workouts: Optional[List[CompletedWorkoutSummary]] = None,
        today: Optional[date] = None
    ) -> RacePlanState:
        """
        Generate (or regenerate) a race plan and its first window.

        Existing blocks and workouts for the race are replaced. Generation
        errors leave the stored plan untouched.

        Raises:
            MissingRaceError, InsufficientTimeError, MissingSettingsError
        """
        if plan_input.race_id is None:
            raise MissingRaceError()

        plan_input = self._resolve_zones(plan_input)
        with self.store.lock_for(plan_input.race_id):
            macro_plan = generate_macro_plan(plan_input, self.config)
            structure = create_weekly_structure(
                plan_input.runs_per_week,
                plan_input.preferred_long_run_day,
                plan_input.preferred_quality_days,
                plan_input.required_rest_days,
                plan_input.quality_sessions_per_week,
            )
            state = RacePlanState(plan_input=plan_input, macro_plan=macro_plan,
                                  weekly_structure=structure)
            state.workouts = self._expand_window(state, recent_workouts or [], today)
            self.store.replace(plan_input.race_id, state)

        logger.info("Stored plan for race %s (revision %d, weeks %s populated)",
                    plan_input.race_id, state.revision, state.populated_weeks)
        return state

    def generate_next_window(
        self,
        race_id: Any,
        recent_workouts: Optional[List[CompletedWorkoutSummary]] = None,
        today: Optional[date] = None
    ) -> Dict[int, List[PlannedWorkout]]:
        """
        Fill the next (up to 3) weeks that have no workouts yet.

        Returns:
            The new workouts by week number (empty when the plan is full)

        Raises:
            MissingRaceError: no plan stored for the race
        """
        with self.store.lock_for(race_id):
            state = self.store.get(race_id)
            if state is None:
                raise MissingRaceError(f"No plan found for race {race_id}.")
            workouts = self._expand_window(state, recent_workouts or [], today)
            if workouts:
                self.store.put_workouts(race_id, workouts)
        return workouts

    def _expand_window(
        self,
        state: RacePlanState,
        recent_workouts: List[CompletedWorkoutSummary],
        today: Optional[date]
    ) -> Dict[int, List[PlannedWorkout]]:
        blocks = select_window_blocks(
            state.macro_plan.blocks,
            state.populated_weeks,
            size=self.config.get('window.max_blocks', 3),
            today=today,
        )
        if not blocks:
            logger.info("Race %s: no unpopulated weeks left", state.macro_plan.race_id)
            return {}

        plan_input = state.plan_input
        return generate_window_workouts(WindowGenerationInput(
            blocks=blocks,
            race_date=plan_input.race_date,
            race_distance_meters=plan_input.race_distance_meters,
            race_distance_label=plan_input.race_distance_label,
            weekly_structure=state.weekly_structure,
            pace_zones=plan_input.pace_zones,
            athlete_profile=plan_input.athlete_profile,
            intermediate_races=plan_input.intermediate_races,
            recent_workouts=recent_workouts,
            quality_sessions_per_week=plan_input.quality_sessions_per_week,
            plan_blocks=state.macro_plan.blocks,
            peak_mileage_cap=int(plan_input.peak_weekly_mileage_target),
            config=self.config,
        ))

    # =========================================================================
    # Queries
    # =========================================================================

    def get_state(self, race_id: Any) -> Optional[RacePlanState]:
        return self.store.get(race_id)

    def get_plan(self, race_id: Any) -> Optional[MacroPlan]:
        state = self.store.get(race_id)
        return state.macro_plan if state else None

    def get_workouts(self, race_id: Any) -> Dict[int, List[PlannedWorkout]]:
        state = self.store.get(race_id)
        return dict(state.workouts) if state else {}

    def format_plan(self, race_id: Any) -> str:
        """
        Format a stored plan as a readable string.

        Returns:
            Formatted string representation
        """
        state = self.store.get(race_id)
        if state is None:
            return f"No plan for race {race_id}"

        plan = state.macro_plan
        lines = [
            f"Plan: {plan.race_distance_label or 'Race'} on {plan.race_date.isoformat()}",
            "=" * 60,
            "Week | Phase  | Start      | Miles | Long | Q | Focus",
            "-" * 60,
        ]
        for block in plan.blocks:
            down = "*" if block.is_down_week else " "
            lines.append(
                f"{block.week_number:4d} | {block.phase.value:6s} | {block.start_date.isoformat()} | "
                f"{block.target_mileage:4d}{down} | {block.long_run_target:4d} | "
                f"{block.quality_sessions_target} | {block.focus}"
            )
        summary = plan.summary()
        lines.append("-" * 60)
        lines.append(f"Peak {summary['peak_mileage']} mi (week {summary['peak_week']}), "
                     f"total {summary['total_miles']} mi")
        lines.append("")
        lines.append(format_weekly_structure(state.weekly_structure))

        for week in state.populated_weeks:
            lines.append("")
            lines.append(f"Week {week}:")
            for workout in state.workouts[week]:
                pace = (f" @ {format_pace(workout.target_pace_seconds_per_mile)}/mi"
                        if workout.target_pace_seconds_per_mile else "")
                miles = workout.target_distance_miles or 0
                lines.append(f"  {workout.date.isoformat()} {workout.day_of_week:9s} "
                             f"{workout.template_id:24s} {miles:5.1f} mi{pace}")
        return "\n".join(lines)


if __name__ == '__main__':
    from datetime import timedelta

    print("Testing Training Plan Engine...")
    print("=" * 60)

    engine = TrainingPlanEngine()
    start = date(2025, 1, 6)
    plan_input = engine.build_plan_input(
        race_id=1,
        race_date=start + timedelta(weeks=16),
        race_distance_meters=21097,
        settings=UserSettings(weekly_mileage=20, peak_mileage=30, runs_per_week=5, vdot=45),
        start_date=start,
        race_distance_label='Half Marathon',
    )
    engine.generate_plan(plan_input, today=start)
    engine.generate_next_window(1, today=start)
    print(engine.format_plan(1))
