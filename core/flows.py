"""Flow Definitions

Each multi-step dialogue is a fixed, ordered table of steps. A step names the
field of the flow's data record it fills, the prompt that asks for it, the
validator that checks the reply, and the correction sent when the validator
rejects it. When the last step accepts, the router runs the flow's
completion (looked up by name).

Definitions are built once at import and never mutated.
"""
from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Type

from models.session import Onboarding, Assessment, Fitness, Meals, Cycle
from tools import validators as v


@dataclass(frozen=True)
class Step:
    name: str
    field: str
    prompt: str
    validator: v.Validator
    correction: str


@dataclass(frozen=True)
class FlowDefinition:
    name: str
    state_type: Type
    intro: str
    steps: Tuple[Step, ...]
    completion: str

    @property
    def first_step(self) -> Step:
        return self.steps[0]

    def step(self, name: str) -> Optional[Step]:
        for step in self.steps:
            if step.name == name:
                return step
        return None

    def next_step(self, name: str) -> Optional[Step]:
        """The step after ``name``, or None if ``name`` is the last one."""
        names = [step.name for step in self.steps]
        index = names.index(name)
        if index + 1 < len(self.steps):
            return self.steps[index + 1]
        return None


ONBOARDING_FLOW = FlowDefinition(
    name="onboarding",
    state_type=Onboarding,
    intro="Thank you! Let's create your profile.",
    steps=(
        Step("name", "name", "What's your full name?",
             v.any_text, "Please tell me your name."),
        Step("age", "age", "How old are you?",
             v.int_between(0, 150), "Please enter a valid age (0-150)."),
        Step("sex", "sex", "What's your sex? (male/female/other)",
             v.sex_choice, "Please enter 'male', 'female', or 'other'."),
        Step("height", "height", "What's your height in cm?",
             v.decimal_between(50, 300), "Please enter a valid height in cm (50-300)."),
        Step("weight", "weight", "What's your weight in kg?",
             v.decimal_between(20, 300), "Please enter a valid weight in kg (20-300)."),
        Step("medical_history", "medical_history",
             "Any medical history or conditions? (Enter 'none' if none)",
             v.any_text, "Please describe any conditions, or enter 'none'."),
    ),
    completion="onboarding",
)

# Ranges in these prompts are advisory; see tools.validators.leading_int
ASSESSMENT_FLOW = FlowDefinition(
    name="assessment",
    state_type=Assessment,
    intro="Great! Let's begin your health assessment...",
    steps=(
        Step("sleep", "sleep_hours", "How many hours do you sleep per night on average? (4-12)",
             v.leading_int, "Please enter a number between 4-12"),
        Step("water", "water_glasses", "How many glasses of water do you drink daily? (1-20)",
             v.leading_int, "Please enter a number between 1-20"),
        Step("exercise", "exercise_days", "How many days per week do you exercise? (0-7)",
             v.leading_int, "Please enter a number between 0-7"),
        Step("stress", "stress_level", "Rate your stress level (1-10, where 1 is lowest):",
             v.leading_int, "Please enter a number between 1-10"),
        Step("diet", "diet_quality", "How would you rate your diet quality? (1-10, where 10 is healthiest):",
             v.leading_int, "Please enter a number between 1-10"),
        Step("smoking", "smokes", "Do you smoke? (yes/no)",
             v.yes_no, 'Please answer with "yes" or "no"'),
        Step("alcohol", "alcohol_drinks", "How many alcoholic drinks per week? (0-50)",
             v.leading_int, "Please enter a number between 0-50"),
    ),
    completion="assessment",
)

FITNESS_FLOW = FlowDefinition(
    name="fitness",
    state_type=Fitness,
    intro="Starting your fitness program!",
    steps=(
        Step("goals", "goals",
             "What are your fitness goals?\n1. Weight loss\n2. Muscle gain\n3. Endurance\n4. General fitness",
             v.any_text, "Please describe your fitness goals."),
        Step("frequency", "frequency", "How many days can you workout weekly? (1-7)",
             v.single_digit(1, 7), "Please enter a number between 1-7"),
        Step("equipment", "equipment",
             "What equipment do you have?\n1. None\n2. Dumbbells\n3. Resistance bands\n4. Full gym",
             v.any_text, "Please tell me what equipment you have."),
    ),
    completion="fitness",
)

MEALS_FLOW = FlowDefinition(
    name="meals",
    state_type=Meals,
    intro="Creating meal plans!",
    steps=(
        Step("preferences", "preferences",
             "What are your dietary preferences?\n1. Vegetarian\n2. Vegan\n3. Low-carb\n4. Keto\n5. Balanced",
             v.any_text, "Please describe your dietary preferences."),
        Step("allergies", "allergies", "Any food allergies? (comma separated or 'none')",
             v.any_text, "Please list your allergies, or enter 'none'."),
        Step("frequency", "frequency", "How many meals per day? (3-6)",
             v.single_digit(3, 6), "Please enter a number between 3-6"),
    ),
    completion="meals",
)

CYCLE_FLOW = FlowDefinition(
    name="cycle",
    state_type=Cycle,
    intro="Let's track your cycle.",
    steps=(
        Step("last_period", "last_period",
             "When was the first day of your last menstrual period? (YYYY-MM-DD)",
             v.iso_date, "Please use YYYY-MM-DD format"),
        Step("cycle_length", "cycle_length", "Typical cycle length in days? (21-35)",
             v.cycle_length, "Please enter a number between 21-35"),
    ),
    completion="cycle",
)

FLOWS: Dict[Type, FlowDefinition] = {
    flow.state_type: flow
    for flow in (ONBOARDING_FLOW, ASSESSMENT_FLOW, FITNESS_FLOW, MEALS_FLOW, CYCLE_FLOW)
}
