"""End-to-end tests for AliyaSystem.

Messages go in through ``process``; assertions are made on what reached the
channel and what landed in the record store.
"""
import threading
from datetime import timedelta

import pytest

from agents.advisor_agent import AdvisorAgent, DIAGNOSIS_FALLBACK
from aliya_main import AliyaSystem, GENERIC_APOLOGY
from conftest import (
    NOW,
    FailingChannel,
    FailingModel,
    FlakyRecordStore,
    StubModel,
    make_profile,
)
from core.router import (
    AVAILABLE_SERVICES,
    EMPTY_MESSAGE,
    GREETING,
    REMINDER_TEXT,
    TERMS_AND_CONDITIONS,
)
from models.actions import Reply
from models.records import HealthAssessment
from models.session import (
    Assessment,
    AwaitingAssessmentChoice,
    AwaitingConsent,
    Fitness,
    FitnessData,
    Session,
    SessionFlag,
)
from services.channel import RecordingChannel
from services.dispatcher import NO_HEALTH_DATA, PERIOD_TIPS_RESTRICTED

ONBOARDING = ["hi", "yes", "Ana Lopez", "28", "female", "175", "70", "none"]
ASSESSMENT = ["5", "10", "1", "9", "3", "yes", "10"]
DAY = timedelta(hours=24)


def build(channel=None, records=None, model=None):
    records = records if records is not None else FlakyRecordStore()
    return AliyaSystem(
        channel=channel or RecordingChannel(),
        records=records,
        advisor=AdvisorAgent(records, model=model or StubModel()),
        clock=lambda: NOW,
    )


def send_all(system, messages, identity="u1", now=NOW):
    for text in messages:
        system.process(identity, text, now=now)


class TestConversation:

    def test_greeting_reaches_channel(self, system, channel):
        system.process("u1", "hi")
        assert channel.messages_for("u1") == [GREETING, TERMS_AND_CONDITIONS]

    def test_onboarding_saves_profile(self, system, channel, records):
        send_all(system, ONBOARDING)
        profile = records.get_profile("u1")
        assert profile.name == "Ana Lopez"
        assert profile.height == 175.0
        assert "🎉 Profile complete! Your BMI: 22.9 (normal)" in channel.messages_for("u1")
        assert isinstance(system.sessions.get("u1").flow, AwaitingAssessmentChoice)

    def test_assessment_is_stored(self, system, channel, records):
        send_all(system, ONBOARDING + ["1"] + ASSESSMENT)
        latest = records.get_latest_assessment("u1")
        assert latest.score == 30
        assert latest.created_at == NOW.isoformat()
        assert channel.messages_for("u1")[-1] == AVAILABLE_SERVICES
        assert len(records.history("u1", "assessments")) == 1

    def test_stored_profile_unlocks_cycle(self, system, channel, records):
        send_all(system, ONBOARDING + ["3", "/cycle", "2024-01-01", "28"])
        saved = records.history("u1", "cycle_data")
        assert saved[0]["cycle_logs"] == {"last_period": "2024-01-01", "cycle_length": 28}
        assert saved[0]["predictions"]["fertile_window"] == {"start": "2024-01-10", "end": "2024-01-16"}
        assert "Next period: 2024-01-29" in channel.messages_for("u1")[-1]

    def test_fitness_and_meal_plans_are_stored(self, system, records):
        records.save_profile("u1", make_profile())
        send_all(system, ["/fit", "Muscle gain", "5", "Full gym", "/meals", "Keto", "none", "3"])
        assert records.history("u1", "fitness_plans")[0]["workout_plan"]["frequency"] == 5
        assert records.history("u1", "meal_plans")[0]["dietary_preferences"]["preferences"] == "Keto"

    def test_empty_message(self, system, channel):
        actions = system.process("u1", "   ")
        assert actions == [Reply(EMPTY_MESSAGE)]
        assert channel.messages_for("u1") == [EMPTY_MESSAGE]

    def test_users_do_not_share_state(self, system):
        send_all(system, ONBOARDING, identity="u1")
        system.process("u2", "hello")
        assert isinstance(system.sessions.get("u1").flow, AwaitingAssessmentChoice)
        assert isinstance(system.sessions.get("u2").flow, AwaitingConsent)


class TestAdvisorCommands:

    @pytest.fixture(autouse=True)
    def known_user(self, records):
        records.save_profile("u1", make_profile())

    def test_diagnose_answers_and_stores(self, system, channel, records):
        system.process("u1", "/diagnose headache and fever")
        assert channel.messages_for("u1") == ["Stay hydrated and rest, Ana."]
        diagnoses = records.history("u1", "diagnoses")
        assert diagnoses[0]["symptoms"] == "headache and fever"
        assert diagnoses[0]["possible_conditions"] == "Stay hydrated and rest, Ana."

    def test_diagnose_fallback_is_stored_too(self, records):
        channel = RecordingChannel()
        system = build(channel=channel, records=records, model=FailingModel())
        system.process("u1", "/diagnose headache")
        fallback = DIAGNOSIS_FALLBACK.format(symptoms="headache")
        assert channel.messages_for("u1") == [fallback]
        assert records.history("u1", "diagnoses")[0]["possible_conditions"] == fallback

    def test_data_without_assessment(self, system, channel):
        system.process("u1", "/data")
        assert channel.messages_for("u1") == [NO_HEALTH_DATA]

    def test_data_with_assessment(self, system, channel, records, model):
        records.save_assessment("u1", HealthAssessment(
            score=85, lifestyle_data={"sleep_hours": 8}, recommendations="Excellent health! Maintain your habits.",
        ))
        system.process("u1", "/data")
        assert channel.messages_for("u1") == ["Stay hydrated and rest, Ana."]
        assert "Health score: 85/100" in model.prompts[0]

    def test_period_tips_restricted_for_male(self, records):
        records.save_profile("u2", make_profile(name="Ben", sex="male"))
        channel = RecordingChannel()
        system = build(channel=channel, records=records)
        system.process("u2", "/periodtips")
        assert channel.messages_for("u2") == [PERIOD_TIPS_RESTRICTED]

    def test_general_health_question(self, system, channel, model):
        system.process("u1", "Is this back pain serious?")
        assert channel.messages_for("u1") == ["Stay hydrated and rest, Ana."]
        assert "Is this back pain serious?" in model.prompts[0]


class TestFailures:

    def test_profile_save_failure_resets_onboarding(self):
        channel = RecordingChannel()
        system = build(channel=channel, records=FlakyRecordStore(failing={"save_profile"}))
        send_all(system, ONBOARDING)

        messages = channel.messages_for("u1")
        assert messages[-1] == "❌ Error saving your profile. Please try /start again."
        assert not any(text.startswith("🎉 Profile complete!") for text in messages)
        assert system.sessions.get("u1") is None

    def test_start_after_profile_save_failure_greets_again(self):
        channel = RecordingChannel()
        records = FlakyRecordStore(failing={"save_profile"})
        system = build(channel=channel, records=records)
        send_all(system, ONBOARDING)
        channel.sent.clear()

        system.process("u1", "/start")
        assert channel.messages_for("u1") == [GREETING, TERMS_AND_CONDITIONS]
        assert isinstance(system.sessions.get("u1").flow, AwaitingConsent)

        records.failing.clear()
        send_all(system, ONBOARDING[1:])
        assert records.get_profile("u1").name == "Ana Lopez"
        assert isinstance(system.sessions.get("u1").flow, AwaitingAssessmentChoice)

    def test_assessment_save_failure_is_reported(self):
        channel = RecordingChannel()
        records = FlakyRecordStore(failing={"save_assessment"})
        system = build(channel=channel, records=records)
        send_all(system, ONBOARDING + ["1"] + ASSESSMENT)
        assert "⚠️ Error saving your assessment. Please try again later." in channel.messages_for("u1")
        assert records.get_latest_assessment("u1") is None

    def test_transport_failure_keeps_state(self):
        system = build(channel=FailingChannel())
        system.process("u1", "hi")
        assert isinstance(system.sessions.get("u1").flow, AwaitingConsent)

    def test_profile_lookup_failure_apologises(self):
        channel = RecordingChannel()
        system = build(channel=channel, records=FlakyRecordStore(failing={"get_profile"}))
        actions = system.process("u1", "hi")
        assert actions == [Reply(GENERIC_APOLOGY)]
        assert channel.messages_for("u1") == [GENERIC_APOLOGY]
        assert system.sessions.get("u1") is None

    def test_bad_flow_state_is_cleared_without_touching_others(self, system, channel, records):
        records.save_profile("u1", make_profile())
        broken = Session("u1", flow=Fitness(step="bogus", data=FitnessData(goals="run")),
                         flags={SessionFlag.ONBOARDING_COMPLETE}, last_activity=NOW)
        system.sessions.save(broken)
        system.process("u2", "hello")

        actions = system.process("u1", "4")

        assert actions == [Reply(GENERIC_APOLOGY)]
        assert channel.messages_for("u1") == [GENERIC_APOLOGY]
        session = system.sessions.get("u1")
        assert session.flow is None
        assert session.flags == {SessionFlag.ONBOARDING_COMPLETE}
        assert isinstance(system.sessions.get("u2").flow, AwaitingConsent)

        # Both users carry on normally
        system.process("u1", "/help")
        assert channel.messages_for("u1")[-1] == AVAILABLE_SERVICES
        system.process("u2", "yes")
        assert channel.messages_for("u2")[-1] == "What's your full name?"


class TestTimers:

    def test_deferred_reminder_is_delivered(self, system, channel):
        send_all(system, ONBOARDING + ["2"])
        assert system.reminders.is_pending("u1")

        system.tick(NOW + DAY - timedelta(seconds=1))
        assert REMINDER_TEXT not in channel.messages_for("u1")

        system.tick(NOW + DAY)
        assert channel.messages_for("u1")[-1] == REMINDER_TEXT
        assert not system.reminders.is_pending("u1")

        system.process("u1", "yes", now=NOW + DAY)
        assert isinstance(system.sessions.get("u1").flow, Assessment)

    def test_reminder_is_delivered_once(self, system, channel):
        send_all(system, ONBOARDING + ["2"])
        assert system.deliver_due_reminders(NOW + DAY) == ["u1"]
        assert system.deliver_due_reminders(NOW + DAY * 2) == []
        assert channel.messages_for("u1").count(REMINDER_TEXT) == 1

    def test_starting_assessment_cancels_reminder(self, system, channel):
        send_all(system, ONBOARDING + ["2"])
        system.sessions.save(Session("u1", flow=AwaitingAssessmentChoice(), last_activity=NOW))
        system.process("u1", "now")
        system.tick(NOW + DAY)
        assert REMINDER_TEXT not in channel.messages_for("u1")

    def test_reminder_beats_idle_sweep_in_same_tick(self, system, channel):
        send_all(system, ONBOARDING + ["2"])
        system.tick(NOW + DAY + timedelta(seconds=1))
        assert channel.messages_for("u1")[-1] == REMINDER_TEXT
        assert system.sessions.get("u1") is not None

    def test_idle_session_is_expired(self, system):
        system.process("u1", "hi")
        system.tick(NOW + DAY)
        assert system.sessions.get("u1") is not None

        system.reaper.last_sweep = None
        system.tick(NOW + DAY + timedelta(seconds=1))
        assert system.sessions.get("u1") is None

    def test_message_waits_for_identity_lock(self, system, channel):
        lock = system.sessions.lock("u1")
        worker = threading.Thread(target=system.process, args=("u1", "hi"))

        with lock:
            worker.start()
            worker.join(0.1)
            assert worker.is_alive()
            assert channel.messages_for("u1") == []

        worker.join(2.0)
        assert not worker.is_alive()
        assert channel.messages_for("u1") == [GREETING, TERMS_AND_CONDITIONS]

    def test_start_and_stop_background_loop(self, system):
        system.start(poll_seconds=0.01)
        try:
            assert system._loop.running
        finally:
            system.stop()
        assert not system._loop.running


class TestLocksAndMetrics:

    def test_empty_messages_leave_no_locks(self, system):
        for i in range(100):
            system.process(f"u{i}", "")
        assert len(system.sessions) == 0
        assert system.sessions.lock_count() == 0

    def test_locks_do_not_outlive_messages_or_sweeps(self, system):
        for i in range(20):
            system.process(f"u{i}", "hi")
        assert len(system.sessions) == 20
        assert system.sessions.lock_count() == 0

        system.tick(NOW + DAY * 2)
        assert len(system.sessions) == 0
        assert system.sessions.lock_count() == 0

    def test_metrics_count_failures_per_event(self):
        system = build(records=FlakyRecordStore(failing={"get_profile"}))
        before = system.get_metrics()["events"].get("MessageRouting", {"handled": 0, "failed": 0})

        system.process("metrics-user", "hi")

        summary = system.get_metrics()
        routing = summary["events"]["MessageRouting"]
        assert routing["handled"] == before["handled"] + 1
        assert routing["failed"] == before["failed"] + 1
        assert summary["recent_failures"][-1]["identity"] == "metrics-user"
        assert "success_rate" in summary
