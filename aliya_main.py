"""Aliya Health Assistant - intake engine entry point

Wires the router to its collaborators and serializes work per user:

- Inbound messages: the profile is loaded first, the session transition runs
  under the user's lock, and the resulting actions (sends, record writes,
  Gemini calls) run after the lock is released.
- Reminders: a due reminder is claimed and applied under the same lock, so
  it never interleaves with a message from that user.
- Idle sweep: expires sessions on its own period, also under the lock.

Run ``python aliya_main.py`` for an interactive console session.
"""
import logging
from datetime import datetime
from typing import Callable, List, Optional

from agents.advisor_agent import AdvisorAgent
from config.settings import RECORD_STORAGE_PATH, SCHEDULER_POLL_SECONDS
from core.errors import FlowStateError, RecordStoreError
from core.observability import Tracer, get_metrics_summary
from core.router import Router
from models.actions import OutboundAction, Reply
from services.channel import ConsoleChannel, OutboundChannel
from services.dispatcher import ActionExecutor
from services.reaper import IdleReaper
from services.record_store import JsonRecordStore, RecordStore
from services.scheduler import ReminderScheduler, SchedulerLoop
from services.session_service import InMemorySessionService, SessionStore

logger = logging.getLogger(__name__)

GENERIC_APOLOGY = "Sorry, I encountered an error. Please try again."


class AliyaSystem:
    """
    Facade over the intake engine.

    Attributes:
        sessions: Session store (one session per channel address).
        reminders: Timer registry for deferred reminders.
        records: Long-term record store.
        advisor: Gemini-backed generation service.
        router: The dialogue state machine.
        executor: Performs the router's outbound actions.
        reaper: Idle session expiry.
    """

    def __init__(self, channel: Optional[OutboundChannel] = None,
                 records: Optional[RecordStore] = None,
                 advisor: Optional[AdvisorAgent] = None,
                 sessions: Optional[SessionStore] = None,
                 reminders: Optional[ReminderScheduler] = None,
                 reaper: Optional[IdleReaper] = None,
                 router: Optional[Router] = None,
                 clock: Callable[[], datetime] = datetime.now):
        self.clock = clock
        self.channel = channel or ConsoleChannel()
        self.records = records if records is not None else JsonRecordStore(RECORD_STORAGE_PATH)
        self.advisor = advisor or AdvisorAgent(self.records)
        self.sessions = sessions or InMemorySessionService()
        self.reminders = reminders or ReminderScheduler()
        self.router = router or Router(self.sessions, self.reminders)
        self.reaper = reaper or IdleReaper(self.sessions, self.reminders)
        self.executor = ActionExecutor(self.channel, self.records, self.advisor, self.sessions)
        self._loop: Optional[SchedulerLoop] = None

    def process(self, identity: str, text: str, now: Optional[datetime] = None) -> List[OutboundAction]:
        """Handle one inbound message and perform the resulting actions.

        Args:
            identity: Channel address of the sender.
            text: Raw message text.
            now: Event time (defaults to the system clock).

        Returns:
            The actions that were executed.
        """
        now = now or self.clock()
        logger.info(f"Message received from {identity}: {text!r}")

        with Tracer("MessageRouting", identity, text) as trace:
            if not (text and text.strip()):
                # Never touches the session, so no lock
                actions = self.router.route(identity, text, now)
            else:
                actions = self._handle_text(identity, text, now, trace)

        self.executor.execute(identity, actions)
        return actions

    def _handle_text(self, identity: str, text: str, now: datetime, trace) -> List[OutboundAction]:
        try:
            profile = self.records.get_profile(identity)
        except RecordStoreError as e:
            logger.error(f"Profile lookup failed for {identity}: {e}")
            trace.error = str(e)
            return [Reply(GENERIC_APOLOGY)]

        with self.sessions.lock(identity):
            try:
                return self.router.route(identity, text, now, profile=profile)
            except FlowStateError as e:
                logger.error(f"Clearing broken flow for {identity}: {e}")
                trace.error = str(e)
                self._clear_flow(identity)
            except Exception as e:
                logger.error(f"Message handling error for {identity}: {e}", exc_info=True)
                trace.error = str(e)
        return [Reply(GENERIC_APOLOGY)]

    def _clear_flow(self, identity: str):
        """Drop the active flow but keep the flags. Caller holds the lock."""
        session = self.sessions.get(identity)
        if session is None:
            return
        session.flow = None
        self.sessions.save(session)

    def deliver_due_reminders(self, now: Optional[datetime] = None) -> List[str]:
        """Send every reminder that is due. Returns the identities reminded."""
        now = now or self.clock()
        delivered = []
        for identity, token in self.reminders.due(now):
            with Tracer("ReminderDelivery", identity) as trace:
                with self.sessions.lock(identity):
                    if not self.reminders.claim(identity, token):
                        continue
                    try:
                        actions = self.router.remind(identity, now)
                    except Exception as e:
                        logger.error(f"Reminder error for {identity}: {e}", exc_info=True)
                        trace.error = str(e)
                        continue
            self.executor.execute(identity, actions)
            delivered.append(identity)
        return delivered

    def tick(self, now: Optional[datetime] = None):
        """One scheduler pass: reminders first, then the idle sweep when due."""
        now = now or self.clock()
        self.deliver_due_reminders(now)
        if self.reaper.is_due(now):
            with Tracer("IdleSweep"):
                self.reaper.sweep(now)

    def start(self, poll_seconds: float = SCHEDULER_POLL_SECONDS):
        """Run ``tick`` in the background."""
        if self._loop is None:
            self._loop = SchedulerLoop(self.tick, poll_seconds, clock=self.clock)
        self._loop.start()

    def stop(self):
        if self._loop is not None:
            self._loop.stop()

    def get_metrics(self) -> dict:
        return get_metrics_summary()


def main():
    print("=== Aliya Health Assistant (console) ===")
    print("Type 'exit' to quit.\n")

    system = AliyaSystem(channel=ConsoleChannel())
    system.start()
    identity = "console-user"

    try:
        while True:
            try:
                user_input = input("\nYou: ")
            except EOFError:
                break
            if user_input.strip().lower() in ["exit", "quit"]:
                print("Aliya: Take care! Goodbye.")
                break
            system.process(identity, user_input)
    finally:
        system.stop()
        logger.info(f"Session metrics: {system.get_metrics()}")


if __name__ == "__main__":
    main()
