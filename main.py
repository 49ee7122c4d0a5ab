#!/usr/bin/env python3
"""
Adaptive Training Plans - CLI Entry Point

Usage:
    python main.py vdot --distance 5000 --time 20:00
    python main.py zones --vdot 50
    python main.py predict --vdot 50
    python main.py plan --race-date 2025-05-04 --distance 21097 --mileage 20 --peak 30
    python main.py window --race-date 2025-05-04 --distance 21097 --mileage 20 --week 4 --recent recent.json
    python main.py classify splits.json [--workout-type tempo] [--vdot 50]
    python main.py test
"""

import argparse
import json
import logging
from datetime import date

from training.config import load_config
from training.effort_classifier import (
    ClassificationContext,
    Split,
    classify_split_efforts_with_zones,
    compute_zone_distribution,
    derive_workout_type,
)
from training.engine import TrainingPlanEngine
from training.errors import PlanGenerationError
from training.fitness import UserSettings
from training.pace_model import (
    calculate_pace_zones,
    calculate_vdot,
    format_pace,
    format_time,
    get_equivalent_race_times,
    is_valid_vdot,
    parse_time,
    VDOT_MAX,
    VDOT_MIN,
)
from training.periodization import PlanAggressiveness
from training.window_generator import (
    AdaptationRules,
    CompletedWorkoutSummary,
    analyze_training_adaptation,
)


def run_vdot(distance_meters: float, time: str):
    """Print VDOT for a race result."""
    vdot = calculate_vdot(distance_meters, parse_time(time))
    if vdot is None:
        print("No valid VDOT for that performance (distance >= 1500m, VDOT 15-85).")
        return None
    print(f"VDOT: {vdot:.1f}")
    return vdot


def _check_vdot(vdot: float) -> bool:
    if is_valid_vdot(vdot):
        return True
    print(f"Error: VDOT must be between {VDOT_MIN:.0f} and {VDOT_MAX:.0f}, got {vdot}")
    return False


def run_zones(vdot: float) -> int:
    """Print training paces for a VDOT."""
    if not _check_vdot(vdot):
        return 1
    zones = calculate_pace_zones(vdot)
    print(f"Training paces for VDOT {vdot:.1f} (per mile):")
    for name, seconds in zones.to_dict().items():
        if name == 'vdot':
            continue
        print(f"  {name:14s} {format_pace(seconds)}")
    return 0


def run_predict(vdot: float) -> int:
    """Print equivalent race times for a VDOT."""
    if not _check_vdot(vdot):
        return 1
    print(f"Equivalent performances for VDOT {vdot:.1f}:")
    for result in get_equivalent_race_times(vdot).values():
        print(f"  {result['label']:14s} {format_time(result['time']):>9s}  "
              f"({format_pace(result['pace'])}/mi)")
    return 0


def _plan_input(engine: TrainingPlanEngine, args, start: date):
    settings = UserSettings(
        weekly_mileage=args.mileage,
        peak_mileage=args.peak,
        runs_per_week=args.runs,
        vdot=args.vdot,
    )
    return engine.build_plan_input(
        race_id=args.race_id,
        race_date=date.fromisoformat(args.race_date),
        race_distance_meters=args.distance,
        settings=settings,
        start_date=start,
        race_distance_label=args.label,
        preferred_long_run_day=args.long_run_day,
        plan_aggressiveness=PlanAggressiveness(args.aggressiveness),
    )


def run_plan(args) -> int:
    """Generate a plan and print its weeks and populated windows."""
    engine = TrainingPlanEngine(config=load_config(args.config) if args.config else None)
    start = date.fromisoformat(args.start) if args.start else date.today()
    try:
        plan_input = _plan_input(engine, args, start)
        engine.generate_plan(plan_input, today=start)
        for _ in range(args.windows - 1):
            engine.generate_next_window(args.race_id, today=start)
    except PlanGenerationError as e:
        print(f"Error: {e}")
        return 1

    if args.json:
        print(json.dumps(engine.get_state(args.race_id).to_dict(), indent=2))
    else:
        print(engine.format_plan(args.race_id))
    return 0


def run_window(args) -> int:
    """Generate windows up to the one holding --week, adapted to recent workouts."""
    engine = TrainingPlanEngine(config=load_config(args.config) if args.config else None)
    start = date.fromisoformat(args.start) if args.start else date.today()
    recent = []
    if args.recent:
        with open(args.recent) as f:
            recent = [CompletedWorkoutSummary.from_dict(w) for w in json.load(f)]

    try:
        state = engine.generate_plan(_plan_input(engine, args, start), recent, today=start)
        window = dict(state.workouts)
        while args.week not in engine.get_workouts(args.race_id):
            window = engine.generate_next_window(args.race_id, recent, today=start)
            if not window:
                print(f"Week {args.week} is not part of this plan.")
                return 1
    except PlanGenerationError as e:
        print(f"Error: {e}")
        return 1

    adaptation = analyze_training_adaptation(recent, AdaptationRules.from_config(engine.config))
    if args.json:
        print(json.dumps({
            'adaptation': adaptation.to_dict(),
            'workouts': {str(week): [w.to_dict() for w in workouts]
                         for week, workouts in sorted(window.items())},
        }, indent=2))
        return 0

    print(f"Adaptation: {adaptation.reasoning}")
    for week, workouts in sorted(window.items()):
        print(f"\nWeek {week}:")
        for workout in workouts:
            pace = (f" @ {format_pace(workout.target_pace_seconds_per_mile)}/mi"
                    if workout.target_pace_seconds_per_mile else "")
            miles = workout.target_distance_miles or 0
            print(f"  {workout.date.isoformat()} {workout.day_of_week:9s} "
                  f"{workout.name:32s} {miles:5.1f} mi{pace}")
    return 0


def run_classify(args) -> int:
    """Classify the splits in a JSON file (a list of split objects)."""
    if args.vdot is not None and not _check_vdot(args.vdot):
        return 1
    with open(args.splits) as f:
        splits = [Split.from_dict(s) for s in json.load(f)]

    context = ClassificationContext(
        pace_zones=calculate_pace_zones(args.vdot) if args.vdot is not None else None,
        workout_type=args.workout_type,
    )
    result = classify_split_efforts_with_zones(splits, context)

    print(f"Run mode: {result.run_mode.value}")
    for split, item in zip(splits, result.splits):
        note = f"  ({item.anomaly_reason})" if item.anomaly_reason else ""
        print(f"  Lap {item.lap_number:2d}  {format_pace(split.avg_pace_seconds)}/mi  "
              f"{item.category_label:12s} {item.confidence:.2f}{note}")

    distribution = compute_zone_distribution(result.splits, splits)
    distance = sum(s.distance_miles for s in splits)
    print("\nMinutes by effort:")
    for category, minutes in distribution.items():
        if minutes > 0:
            print(f"  {category:12s} {minutes:5.1f}")
    print(f"\nWorkout type: {derive_workout_type(distribution, args.workout_type, distance)}")
    return 0


def run_tests():
    """Quick smoke checks across modules."""
    print("Running tests...\n")

    print("Testing pace model...")
    vdot = calculate_vdot(5000, 20 * 60)
    assert vdot is not None and 47 <= vdot <= 51, f"5K in 20:00 should be ~VDOT 49, got {vdot}"
    zones = calculate_pace_zones(vdot)
    assert zones.is_ordered(), "Zones should get faster from easy to repetition"
    print(f"  VDOT test passed: {vdot:.1f}, easy {format_pace(zones.easy)}/mi")

    print("\nTesting plan generation...")
    engine = TrainingPlanEngine()
    start = date(2025, 1, 6)
    plan_input = engine.build_plan_input(
        race_id=1,
        race_date=date(2025, 4, 28),
        race_distance_meters=21097,
        settings=UserSettings(weekly_mileage=20, peak_mileage=30, runs_per_week=5),
        start_date=start,
    )
    state = engine.generate_plan(plan_input, today=start)
    plan = state.macro_plan
    assert plan.total_weeks == 16, f"Expected 16 weeks, got {plan.total_weeks}"
    assert plan.peak_mileage <= 30, "Peak should not exceed the target"
    assert state.populated_weeks == [1, 2, 3], f"First window should be weeks 1-3, got {state.populated_weeks}"
    print(f"  Plan test passed: {plan.total_weeks} weeks, peak {plan.peak_mileage} mi")

    print("\nTesting effort classification...")
    splits = [Split(i + 1, 1.0, pace, pace) for i, pace in enumerate([600, 420, 425, 418, 610])]
    result = classify_split_efforts_with_zones(splits, ClassificationContext(pace_zones=zones))
    assert len(result.splits) == len(splits), "One label per split"
    print(f"  Classifier test passed: {[s.category.value for s in result.splits]}")

    print("\n" + "=" * 50)
    print("ALL TESTS PASSED!")
    print("=" * 50)


def main():
    parser = argparse.ArgumentParser(description='Adaptive race training plans')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # VDOT command
    vdot_parser = subparsers.add_parser('vdot', help='VDOT from a race result')
    vdot_parser.add_argument('--distance', type=float, required=True, help='Race distance (meters)')
    vdot_parser.add_argument('--time', required=True, help='Finish time (h:mm:ss or mm:ss)')

    # Zones command
    zones_parser = subparsers.add_parser('zones', help='Training paces for a VDOT')
    zones_parser.add_argument('--vdot', type=float, required=True)

    # Predict command
    predict_parser = subparsers.add_parser('predict', help='Equivalent race times')
    predict_parser.add_argument('--vdot', type=float, required=True)

    # Shared race and athlete options
    race_args = argparse.ArgumentParser(add_help=False)
    race_args.add_argument('--race-date', required=True, help='Race date (YYYY-MM-DD)')
    race_args.add_argument('--distance', type=float, required=True, help='Race distance (meters)')
    race_args.add_argument('--label', default='', help='Race distance label')
    race_args.add_argument('--start', help='Plan start date (default: today)')
    race_args.add_argument('--mileage', type=float, required=True, help='Current weekly miles')
    race_args.add_argument('--peak', type=float, help='Peak weekly miles')
    race_args.add_argument('--runs', type=int, default=5, help='Runs per week')
    race_args.add_argument('--vdot', type=float, help='Current VDOT')
    race_args.add_argument('--long-run-day', default='sunday')
    race_args.add_argument('--aggressiveness', default='moderate',
                           choices=[a.value for a in PlanAggressiveness])
    race_args.add_argument('--race-id', type=int, default=1)
    race_args.add_argument('--config', help='YAML file overriding plan rules')
    race_args.add_argument('--json', action='store_true', help='Print JSON')

    # Plan command
    plan_parser = subparsers.add_parser('plan', parents=[race_args], help='Generate a race plan')
    plan_parser.add_argument('--windows', type=int, default=1, help='Windows to populate')

    # Window command
    window_parser = subparsers.add_parser('window', parents=[race_args],
                                          help='Workouts for the window holding a week')
    window_parser.add_argument('--week', type=int, default=1, help='Plan week number')
    window_parser.add_argument('--recent', help='JSON file with recent completed workouts')

    # Classify command
    cls_parser = subparsers.add_parser('classify', help='Classify run splits')
    cls_parser.add_argument('splits', help='JSON file with a list of splits')
    cls_parser.add_argument('--workout-type', help='Declared workout type')
    cls_parser.add_argument('--vdot', type=float, help='VDOT for pace zones')

    # Test command
    subparsers.add_parser('test', help='Run smoke tests')

    args = parser.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s',
    )

    if args.command == 'vdot':
        run_vdot(args.distance, args.time)
    elif args.command == 'zones':
        return run_zones(args.vdot)
    elif args.command == 'predict':
        return run_predict(args.vdot)
    elif args.command == 'plan':
        return run_plan(args)
    elif args.command == 'window':
        return run_window(args)
    elif args.command == 'classify':
        return run_classify(args)
    elif args.command == 'test':
        run_tests()
    else:
        parser.print_help()
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
