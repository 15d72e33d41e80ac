from typing import Optional, Set, Union
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum


class SessionFlag(Enum):
    """Booleans that outlive any single flow."""
    ONBOARDING_COMPLETE = "onboarding_complete"
    ASSESSMENT_COMPLETE = "assessment_complete"
    REMINDER_SENT = "reminder_sent"


# === Per-flow collected data ===

@dataclass
class OnboardingData:
    """Profile answers, filled one step at a time."""
    name: Optional[str] = None
    age: Optional[int] = None
    sex: Optional[str] = None               # male / female / other
    height: Optional[float] = None          # cm
    weight: Optional[float] = None          # kg
    medical_history: Optional[str] = None


@dataclass
class AssessmentData:
    """Lifestyle assessment answers (feeds the health score)."""
    sleep_hours: Optional[int] = None       # advertised 4-12
    water_glasses: Optional[int] = None     # advertised 1-20
    exercise_days: Optional[int] = None     # advertised 0-7
    stress_level: Optional[int] = None      # advertised 1-10
    diet_quality: Optional[int] = None      # advertised 1-10
    smokes: Optional[str] = None            # "yes" / "no"
    alcohol_drinks: Optional[int] = None    # per week, advertised 0-50


@dataclass
class FitnessData:
    goals: Optional[str] = None
    frequency: Optional[int] = None         # days per week
    equipment: Optional[str] = None


@dataclass
class MealsData:
    preferences: Optional[str] = None
    allergies: Optional[str] = None
    frequency: Optional[int] = None         # meals per day


@dataclass
class CycleData:
    last_period: Optional[date] = None
    cycle_length: Optional[int] = None      # days


# === Flow states ===

@dataclass(frozen=True)
class AwaitingConsent:
    """Terms were sent; waiting for yes/no."""


@dataclass(frozen=True)
class AwaitingAssessmentChoice:
    """Profile is done; waiting for now / later / no."""


@dataclass
class Onboarding:
    step: str = "name"
    data: OnboardingData = field(default_factory=OnboardingData)


@dataclass
class Assessment:
    step: str = "sleep"
    data: AssessmentData = field(default_factory=AssessmentData)


@dataclass
class Fitness:
    step: str = "goals"
    data: FitnessData = field(default_factory=FitnessData)


@dataclass
class Meals:
    step: str = "preferences"
    data: MealsData = field(default_factory=MealsData)


@dataclass
class Cycle:
    step: str = "last_period"
    data: CycleData = field(default_factory=CycleData)


StepFlow = Union[Onboarding, Assessment, Fitness, Meals, Cycle]
FlowState = Union[AwaitingConsent, AwaitingAssessmentChoice, Onboarding, Assessment, Fitness, Meals, Cycle]


@dataclass
class Session:
    """One user's dialogue state. Keyed by the channel address."""
    identity: str
    flow: Optional[FlowState] = None
    flags: Set[SessionFlag] = field(default_factory=set)
    last_activity: datetime = field(default_factory=datetime.now)

    @property
    def is_empty(self) -> bool:
        """No flow and no flags: indistinguishable from an absent session."""
        return self.flow is None and not self.flags

    def reset(self):
        self.flow = None
        self.flags.clear()
