"""Action Executor

Performs the actions the router decided on: sends replies, writes records,
asks the advisor. Runs outside the identity lock. Nothing here raises:
transport and collaborator failures are logged and, where the action says
so, answered with a fallback reply.

A failed critical write (the profile) re-takes the identity lock, resets the
session the router just advanced and skips the rest of the batch, so the
user is back where ``/start`` greets them.
"""
import logging
from typing import Iterable

from agents.advisor_agent import (
    AdvisorAgent,
    ANALYSIS_FALLBACK,
    DIAGNOSIS_FALLBACK,
    GENERAL_FALLBACK,
    PERIOD_TIPS_FALLBACK,
)
from models.actions import (
    Diagnose,
    GeneralQuestion,
    HealthAnalysis,
    OutboundAction,
    PeriodTips,
    Persist,
    Reply,
)
from services.channel import OutboundChannel
from services.record_store import RecordStore
from services.session_service import SessionStore

logger = logging.getLogger(__name__)

NO_HEALTH_DATA = "No health data found. Complete an assessment first!"
PERIOD_TIPS_RESTRICTED = "This feature is for female users. Need other health tips?"


class ActionExecutor:

    def __init__(self, channel: OutboundChannel, records: RecordStore, advisor: AdvisorAgent,
                 sessions: SessionStore):
        self.channel = channel
        self.records = records
        self.advisor = advisor
        self.sessions = sessions
        self._handlers = {
            Reply: self._reply,
            Persist: self._persist,
            Diagnose: self._diagnose,
            HealthAnalysis: self._health_analysis,
            PeriodTips: self._period_tips,
            GeneralQuestion: self._general_question,
        }

    def execute(self, identity: str, actions: Iterable[OutboundAction]) -> None:
        for action in actions:
            handler = self._handlers.get(type(action))
            if handler is None:
                logger.error(f"No handler for action {action!r}")
                continue
            if handler(identity, action) is False:
                logger.warning(f"Dropping remaining actions for {identity} after {action!r}")
                break

    def send(self, identity: str, text: str) -> bool:
        """Deliver one message. Failures are logged, never retried."""
        try:
            self.channel.send(identity, text)
        except Exception as e:
            logger.error(f"Message sending error to {identity}: {e}")
            return False
        logger.info(f"Message sent to {identity}: {text[:80]!r}")
        return True

    # === Handlers ===

    def _reply(self, identity: str, action: Reply):
        self.send(identity, action.text)

    def _persist(self, identity: str, action: Persist) -> bool:
        try:
            getattr(self.records, action.operation)(identity, *action.args)
        except Exception as e:
            logger.error(f"{action.operation} failed for {identity}: {e}")
            if action.critical:
                self._reset_session(identity)
            if action.failure_reply:
                self.send(identity, action.failure_reply)
            return not action.critical
        return True

    def _reset_session(self, identity: str):
        with self.sessions.lock(identity):
            session = self.sessions.get(identity)
            if session is None:
                return
            session.reset()
            self.sessions.save(session)
        logger.info(f"Session reset for {identity} after a failed critical write")

    def _diagnose(self, identity: str, action: Diagnose):
        try:
            result = self.advisor.generate_diagnosis(identity, action.symptoms)
        except Exception as e:
            logger.error(f"Diagnosis error for {identity}: {e}")
            result = DIAGNOSIS_FALLBACK.format(symptoms=action.symptoms)

        self.send(identity, result)
        # Stored whether or not the model answered
        try:
            self.records.save_diagnosis(identity, action.symptoms, result)
        except Exception as e:
            logger.error(f"save_diagnosis failed for {identity}: {e}")

    def _health_analysis(self, identity: str, action: HealthAnalysis):
        try:
            analysis = self.advisor.generate_health_analysis(identity)
        except Exception as e:
            logger.error(f"Health analysis error for {identity}: {e}")
            analysis = ANALYSIS_FALLBACK
        self.send(identity, analysis or NO_HEALTH_DATA)

    def _period_tips(self, identity: str, action: PeriodTips):
        try:
            tips = self.advisor.generate_period_tips(identity)
        except Exception as e:
            logger.error(f"Period tips error for {identity}: {e}")
            tips = PERIOD_TIPS_FALLBACK
        self.send(identity, tips or PERIOD_TIPS_RESTRICTED)

    def _general_question(self, identity: str, action: GeneralQuestion):
        try:
            answer = self.advisor.answer_general_question(identity, action.question)
        except Exception as e:
            logger.error(f"General question error for {identity}: {e}")
            answer = GENERAL_FALLBACK
        self.send(identity, answer)
