"""Tests for the in-memory session store and the idle reaper."""
import threading
from datetime import timedelta

import pytest

from conftest import NOW
from models.session import AwaitingConsent, Fitness, Session, SessionFlag
from services.reaper import IdleReaper

THRESHOLD = timedelta(hours=24)


def active(identity, last_activity=NOW):
    return Session(identity, flow=AwaitingConsent(), last_activity=last_activity)


class TestSessionStore:

    def test_save_and_get(self, sessions):
        sessions.save(active("u1"))
        assert isinstance(sessions.get("u1").flow, AwaitingConsent)
        assert "u1" in sessions
        assert len(sessions) == 1

    def test_empty_session_is_evicted(self, sessions):
        sessions.save(active("u1"))
        sessions.save(Session("u1", last_activity=NOW))
        assert sessions.get("u1") is None
        assert "u1" not in sessions

    def test_flags_alone_keep_a_session(self, sessions):
        sessions.save(Session("u1", flags={SessionFlag.ONBOARDING_COMPLETE}, last_activity=NOW))
        assert sessions.get("u1") is not None

    def test_delete(self, sessions):
        sessions.save(active("u1"))
        assert sessions.delete("u1") is True
        assert sessions.delete("u1") is False


class TestIdentityLocks:
    """One lock per identity, alive only while held or awaited."""

    def test_lock_is_reentrant(self, sessions):
        with sessions.lock("u1"):
            with sessions.lock("u1"):
                assert sessions.lock_count() == 1
        assert sessions.lock_count() == 0

    def test_lock_serializes_one_identity(self, sessions):
        entered = threading.Event()

        def contend():
            with sessions.lock("u1"):
                entered.set()

        with sessions.lock("u1"):
            worker = threading.Thread(target=contend)
            worker.start()
            assert not entered.wait(0.05)
        worker.join(2.0)
        assert entered.is_set()
        assert sessions.lock_count() == 0

    def test_identities_do_not_contend(self, sessions):
        entered = threading.Event()

        def other():
            with sessions.lock("u2"):
                entered.set()

        with sessions.lock("u1"):
            worker = threading.Thread(target=other)
            worker.start()
            assert entered.wait(2.0)
        worker.join(2.0)

    def test_lock_released_when_body_raises(self, sessions):
        with pytest.raises(RuntimeError):
            with sessions.lock("u1"):
                raise RuntimeError("boom")
        assert sessions.lock_count() == 0
        with sessions.lock("u1"):
            pass


class TestIdleReaper:

    @pytest.fixture
    def reaper(self, sessions, reminders):
        return IdleReaper(sessions, reminders, threshold=THRESHOLD, interval=timedelta(hours=1))

    @pytest.mark.parametrize("idle,expired", [
        (THRESHOLD - timedelta(seconds=1), False),
        (THRESHOLD, False),
        (THRESHOLD + timedelta(seconds=1), True),
    ])
    def test_threshold_boundary(self, reaper, sessions, idle, expired):
        sessions.save(active("u1"))
        cleared = reaper.sweep(NOW + idle)
        assert (cleared == ["u1"]) is expired
        assert (sessions.get("u1") is None) is expired

    def test_sweep_cancels_pending_reminder(self, reaper, sessions, reminders):
        sessions.save(Session("u1", flags={SessionFlag.ONBOARDING_COMPLETE}, last_activity=NOW))
        reminders.schedule("u1", THRESHOLD * 2, NOW)
        reaper.sweep(NOW + THRESHOLD + timedelta(minutes=1))
        assert not reminders.is_pending("u1")

    def test_sweep_only_touches_idle_sessions(self, reaper, sessions):
        sessions.save(active("idle"))
        sessions.save(Session("busy", flow=Fitness(), last_activity=NOW + THRESHOLD))
        cleared = reaper.sweep(NOW + THRESHOLD + timedelta(hours=1))
        assert cleared == ["idle"]
        assert sessions.get("busy") is not None

    def test_sweep_leaves_no_lock_entries(self, reaper, sessions):
        for i in range(50):
            sessions.save(active(f"u{i}"))
        reaper.sweep(NOW + THRESHOLD * 2)
        assert len(sessions) == 0
        assert sessions.lock_count() == 0

    def test_due_once_per_interval(self, reaper):
        assert reaper.is_due(NOW)
        reaper.sweep(NOW)
        assert not reaper.is_due(NOW + timedelta(minutes=59))
        assert reaper.is_due(NOW + timedelta(hours=1))
