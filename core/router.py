"""Router - the intake state machine

For every inbound message the router works out which dialogue owns it,
applies exactly one transition to the user's session and returns the
outbound actions to perform. Branches are tried in a fixed order and the
first match wins:

    1. empty input
    2. unknown user with no flow (and not a command) -> greeting + terms
    3. assessment in progress (even for command-looking input)
    4. awaiting consent
    5. awaiting the assessment choice
    6. onboarding in progress
    7. commands
    8. fitness, meals, cycle in progress (in that order)
    9. free-text health question
   10. fallback menu

The caller must hold the identity lock. The router edits a copy of the
stored session and saves it only when the branch finished, so an exception
leaves the store as it was.
"""
import copy
import logging
import re
from dataclasses import asdict
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from config.settings import (
    COMMAND_MARKER,
    HEALTH_KEYWORDS,
    MIN_QUESTION_LENGTH,
    REMINDER_DELAY,
)
from core.errors import FlowStateError
from core.flows import FLOWS, FlowDefinition
from models.actions import (
    Diagnose,
    GeneralQuestion,
    HealthAnalysis,
    OutboundAction,
    PeriodTips,
    Persist,
    Reply,
)
from models.records import HealthAssessment, UserProfile
from models.session import (
    Assessment,
    AssessmentData,
    AwaitingAssessmentChoice,
    AwaitingConsent,
    Cycle,
    CycleData,
    Fitness,
    FitnessData,
    Meals,
    MealsData,
    Onboarding,
    OnboardingData,
    Session,
    SessionFlag,
    StepFlow,
)
from services.scheduler import ReminderScheduler
from services.session_service import SessionStore
from tools.health_metrics import (
    bmi_category,
    calc_bmi,
    calc_health_score,
    health_recommendation,
    predict_cycle,
)
from tools.plans import cycle_prediction_text, fitness_plan_text, meal_plan_text
from tools.validators import Rejected

logger = logging.getLogger(__name__)

GREETING = "👋 Hello! I'm Aliya, your AI health assistant."

TERMS_AND_CONDITIONS = """
📜 *Terms and Disclaimer* 📜

1. I am an AI health assistant, not a doctor.
2. My advice should not replace professional medical care.
3. Your data will be stored securely and used only for your health recommendations.
4. By using this service, you agree to these terms.

Do you accept these terms? (yes/no)
""".strip()

AVAILABLE_SERVICES = """
🩺 *Available Services*:

1. /diagnose [symptoms] - Check possible conditions
2. /fit - Start fitness program
3. /meals - Get meal plans
4. /cycle - Track menstrual cycle
5. /data - View your health data
6. /periodtips - Get menstrual health tips
7. /help - Show this menu

Type any command or ask general health questions.
""".strip()

ASSESSMENT_CHOICE_PROMPT = (
    "Would you like to do your health assessment now? "
    "This will help me give better recommendations.\n\n"
    "1. Yes, do it now\n"
    "2. Remind me later\n"
    "3. No, show me services"
)

EMPTY_MESSAGE = "Please send a valid message."
CONSENT_REPROMPT = "Please respond with 'yes' or 'no'."
FAREWELL = "I understand. Feel free to message me if you change your mind. Have a healthy day! 👋"
CHOICE_REPROMPT = "Please choose:\n1. Yes\n2. Remind me later\n3. No"
REMINDER_TEXT = "⏰ Reminder: Ready to complete your health assessment? Type 'yes' to begin."
CYCLE_RESTRICTED = "Cycle tracking is available only for female users."
DIAGNOSE_USAGE = "Please describe symptoms after /diagnose"
FALLBACK_PROMPT = f"How can I help with your health today? {AVAILABLE_SERVICES}"

BEGIN_CHOICES = ("1", "yes", "now")
DEFER_CHOICES = ("2", "later", "remind me later")
DECLINE_CHOICES = ("3", "no")

HEALTH_QUESTION_RE = re.compile("|".join(HEALTH_KEYWORDS), re.IGNORECASE)


class Router:
    """Routes inbound messages through the intake flows."""

    def __init__(self, sessions: SessionStore, reminders: ReminderScheduler,
                 reminder_delay: timedelta = REMINDER_DELAY):
        self.sessions = sessions
        self.reminders = reminders
        self.reminder_delay = reminder_delay
        self._commands: Dict[str, Callable] = {
            "start": self._cmd_start,
            "diagnose": self._cmd_diagnose,
            "fit": self._cmd_fit,
            "meals": self._cmd_meals,
            "cycle": self._cmd_cycle,
            "data": self._cmd_data,
            "periodtips": self._cmd_periodtips,
            "help": self._cmd_help,
        }
        self._completions: Dict[str, Callable] = {
            "onboarding": self._complete_onboarding,
            "assessment": self._complete_assessment,
            "fitness": self._complete_fitness,
            "meals": self._complete_meals,
            "cycle": self._complete_cycle,
        }

    # === Entry points ===

    def route(self, identity: str, text: str, now: datetime,
              profile: Optional[UserProfile] = None) -> List[OutboundAction]:
        """Apply one inbound message. ``profile`` is the user's stored profile, if any."""
        body = (text or "").strip()
        if not body:
            return [Reply(EMPTY_MESSAGE)]

        session = self._working_copy(identity, now)
        actions = self._dispatch(session, body, profile, now)
        session.last_activity = now
        self.sessions.save(session)
        return actions

    def remind(self, identity: str, now: datetime) -> List[OutboundAction]:
        """Deliver a due reminder (caller has already claimed it)."""
        session = self._working_copy(identity, now)
        session.flags.add(SessionFlag.REMINDER_SENT)
        if session.flow is None:
            # Let a plain "yes" start the assessment
            session.flow = AwaitingAssessmentChoice()
        session.last_activity = now
        self.sessions.save(session)
        logger.info(f"Reminder sent to {identity}")
        return [Reply(REMINDER_TEXT)]

    # === Dispatch ===

    def _dispatch(self, session: Session, body: str, profile: Optional[UserProfile],
                  now: datetime) -> List[OutboundAction]:
        flow = session.flow
        is_command = body.startswith(COMMAND_MARKER)

        if profile is None and flow is None and not is_command:
            return self._greet(session)

        if isinstance(flow, Assessment):
            return self._advance(session, flow, body, now)

        if isinstance(flow, AwaitingConsent):
            return self._handle_consent(session, body)

        if isinstance(flow, AwaitingAssessmentChoice):
            return self._handle_assessment_choice(session, body, now)

        if isinstance(flow, Onboarding):
            return self._advance(session, flow, body, now)

        if is_command:
            return self._handle_command(session, body, profile)

        if isinstance(flow, (Fitness, Meals, Cycle)):
            return self._advance(session, flow, body, now)

        if flow is not None:
            raise FlowStateError(session.identity, f"unexpected flow {type(flow).__name__}")

        if len(body) > MIN_QUESTION_LENGTH and HEALTH_QUESTION_RE.search(body):
            return [GeneralQuestion(body)]

        return [Reply(FALLBACK_PROMPT)]

    # === Greeting & consent ===

    def _greet(self, session: Session) -> List[OutboundAction]:
        session.flow = AwaitingConsent()
        logger.info(f"Greeting new user {session.identity}")
        return [Reply(GREETING), Reply(TERMS_AND_CONDITIONS)]

    def _handle_consent(self, session: Session, body: str) -> List[OutboundAction]:
        answer = body.lower()
        logger.info(f"Consent response from {session.identity}: {answer}")

        if answer == "yes":
            return self._enter(session, Onboarding())
        if answer == "no":
            self._destroy(session)
            return [Reply(FAREWELL)]
        return [Reply(CONSENT_REPROMPT)]

    def _handle_assessment_choice(self, session: Session, body: str,
                                  now: datetime) -> List[OutboundAction]:
        choice = body.lower()
        logger.info(f"Assessment choice from {session.identity}: {choice}")

        if choice in BEGIN_CHOICES:
            self.reminders.cancel(session.identity)
            return self._enter(session, Assessment())

        if choice in DEFER_CHOICES:
            session.flow = None
            self.reminders.schedule(session.identity, self.reminder_delay, now)
            return [Reply(f"I'll remind you in {_describe_delay(self.reminder_delay)}. {AVAILABLE_SERVICES}")]

        if choice in DECLINE_CHOICES:
            session.flow = None
            return [Reply(AVAILABLE_SERVICES)]

        return [Reply(CHOICE_REPROMPT)]

    # === Commands ===

    def _handle_command(self, session: Session, body: str,
                        profile: Optional[UserProfile]) -> List[OutboundAction]:
        parts = body[len(COMMAND_MARKER):].split(None, 1)
        name = parts[0].lower() if parts else ""
        argument = parts[1].strip() if len(parts) > 1 else ""
        logger.info(f"Command /{name} from {session.identity}")

        handler = self._commands.get(name)
        if handler is None:
            return [Reply(f"Unknown command. {AVAILABLE_SERVICES}")]
        return handler(session, argument, profile)

    def _cmd_start(self, session, argument, profile):
        if profile is not None:
            return [Reply(f"Welcome back {profile.name}! {AVAILABLE_SERVICES}")]
        return self._greet(session)

    def _cmd_diagnose(self, session, argument, profile):
        if not argument:
            return [Reply(DIAGNOSE_USAGE)]
        return [Diagnose(argument)]

    def _cmd_fit(self, session, argument, profile):
        return self._enter(session, Fitness())

    def _cmd_meals(self, session, argument, profile):
        return self._enter(session, Meals())

    def _cmd_cycle(self, session, argument, profile):
        if profile is None or profile.sex != "female":
            return [Reply(CYCLE_RESTRICTED)]
        return self._enter(session, Cycle())

    def _cmd_data(self, session, argument, profile):
        return [HealthAnalysis()]

    def _cmd_periodtips(self, session, argument, profile):
        return [PeriodTips()]

    def _cmd_help(self, session, argument, profile):
        return [Reply(AVAILABLE_SERVICES)]

    # === Step flows ===

    def _enter(self, session: Session, flow: StepFlow) -> List[OutboundAction]:
        """Start a flow at its first step, discarding whatever flow was active."""
        definition = _definition_for(session, flow)
        session.flow = flow
        logger.info(f"{session.identity} entered {definition.name} flow")
        return [Reply(definition.intro), Reply(definition.first_step.prompt)]

    def _advance(self, session: Session, flow: StepFlow, body: str,
                 now: datetime) -> List[OutboundAction]:
        definition = _definition_for(session, flow)
        step = definition.step(flow.step)
        if step is None:
            raise FlowStateError(session.identity, f"{definition.name} has no step {flow.step!r}")

        verdict = step.validator(body)
        if isinstance(verdict, Rejected):
            logger.debug(f"{definition.name}.{step.name} rejected for {session.identity}: {verdict.reason}")
            return [Reply(step.correction)]

        setattr(flow.data, step.field, verdict.value)
        following = definition.next_step(step.name)
        if following is None:
            session.flow = None
            return self._completions[definition.completion](session, flow.data, now)

        flow.step = following.name
        return [Reply(following.prompt)]

    # === Completions ===

    def _complete_onboarding(self, session: Session, data: OnboardingData,
                             now: datetime) -> List[OutboundAction]:
        profile = UserProfile(
            name=data.name,
            age=data.age,
            sex=data.sex,
            height=data.height,
            weight=data.weight,
            medical_history=data.medical_history,
        )
        bmi = calc_bmi(profile.weight, profile.height)
        session.flags.add(SessionFlag.ONBOARDING_COMPLETE)
        session.flow = AwaitingAssessmentChoice()
        # A failed save undoes this transition (see ActionExecutor._persist)
        return [
            Persist("save_profile", (profile,),
                    failure_reply="❌ Error saving your profile. Please try /start again.",
                    critical=True),
            Reply(f"🎉 Profile complete! Your BMI: {bmi} ({bmi_category(bmi)})"),
            Reply(ASSESSMENT_CHOICE_PROMPT),
        ]

    def _complete_assessment(self, session: Session, data: AssessmentData,
                             now: datetime) -> List[OutboundAction]:
        score = calc_health_score(data)
        recommendation = health_recommendation(score)
        session.flags.add(SessionFlag.ASSESSMENT_COMPLETE)
        session.flags.discard(SessionFlag.REMINDER_SENT)
        assessment = HealthAssessment(
            score=score,
            lifestyle_data=asdict(data),
            recommendations=recommendation,
            created_at=now.isoformat(),
        )
        return [
            Reply(f"Your health score: {score}/100\n{recommendation}"),
            Persist("save_assessment", (assessment,),
                    failure_reply="⚠️ Error saving your assessment. Please try again later."),
            Reply(AVAILABLE_SERVICES),
        ]

    def _complete_fitness(self, session: Session, data: FitnessData,
                          now: datetime) -> List[OutboundAction]:
        plan = fitness_plan_text(data)
        return [
            Reply(f"Your fitness plan:\n{plan}"),
            Persist("save_fitness_plan", (data, plan),
                    failure_reply="Couldn't save this plan to your profile."),
        ]

    def _complete_meals(self, session: Session, data: MealsData,
                        now: datetime) -> List[OutboundAction]:
        plan = meal_plan_text(data)
        return [
            Reply(f"Your meal plan:\n{plan}"),
            Persist("save_meal_plan", (data, plan),
                    failure_reply="Couldn't save this plan to your profile."),
        ]

    def _complete_cycle(self, session: Session, data: CycleData,
                        now: datetime) -> List[OutboundAction]:
        prediction = predict_cycle(data.last_period, data.cycle_length)
        return [
            Reply(f"Your cycle predictions:\n{cycle_prediction_text(prediction)}"),
            Persist("save_cycle_data", (data, prediction),
                    failure_reply="Couldn't save your cycle data to your profile."),
        ]

    # === Session helpers ===

    def _working_copy(self, identity: str, now: datetime) -> Session:
        stored = self.sessions.get(identity)
        if stored is None:
            return Session(identity=identity, last_activity=now)
        return copy.deepcopy(stored)

    def _destroy(self, session: Session):
        session.reset()
        self.reminders.cancel(session.identity)
        logger.info(f"Session destroyed for {session.identity}")


def _definition_for(session: Session, flow: StepFlow) -> FlowDefinition:
    definition = FLOWS.get(type(flow))
    if definition is None:
        raise FlowStateError(session.identity, f"no definition for {type(flow).__name__}")
    return definition


def _describe_delay(delay: timedelta) -> str:
    hours = delay.total_seconds() / 3600
    if hours >= 1:
        return f"{hours:g} hours" if hours != 1 else "1 hour"
    minutes = delay.total_seconds() / 60
    return f"{minutes:g} minutes"
