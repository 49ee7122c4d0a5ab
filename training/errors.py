"""
Plan Generation Errors: Input validation failures surfaced to the athlete.

Numeric edge cases (impossible VDOT, empty ranges) never raise; they come
back as None or a neutral value. Only inputs the athlete can correct end
up here, each with a message that says what to fix.
"""


class PlanGenerationError(ValueError):
    """Base class for errors that block plan generation."""

    default_message = "Unable to generate a training plan."

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InsufficientTimeError(PlanGenerationError):
    """Race date is fewer than 4 whole weeks after the start date."""

    default_message = (
        "Not enough time for a proper training plan. Need at least 4 weeks."
    )

    def __init__(self, total_weeks: int, minimum_weeks: int = 4):
        self.total_weeks = total_weeks
        self.minimum_weeks = minimum_weeks
        super().__init__(
            f"Not enough time for a proper training plan: {total_weeks} week(s) "
            f"until race day, need at least {minimum_weeks}."
        )


class MissingRaceError(PlanGenerationError):
    """No goal race (id, date and distance) was supplied."""

    default_message = "Add a goal race with a date and distance before generating a plan."


class MissingSettingsError(PlanGenerationError):
    """No workout history and no declared weekly mileage to fall back on."""

    default_message = (
        "No recent workouts found. Set your current weekly mileage in "
        "settings so a plan can be built."
    )
