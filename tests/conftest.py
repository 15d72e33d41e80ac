"""Shared fixtures and fakes for the Aliya test suite."""
from datetime import datetime
from types import SimpleNamespace

import pytest

from agents.advisor_agent import AdvisorAgent
from aliya_main import AliyaSystem
from core.errors import RecordStoreError, TransportError
from core.router import Router
from models.records import UserProfile
from services.channel import RecordingChannel
from services.record_store import InMemoryRecordStore
from services.scheduler import ReminderScheduler
from services.session_service import InMemorySessionService

NOW = datetime(2024, 1, 1, 9, 0, 0)


class StubModel:
    """Stands in for a Gemini GenerativeModel."""

    def __init__(self, text="Stay hydrated and rest, [name]."):
        self.text = text
        self.prompts = []

    def generate_content(self, prompt, generation_config=None):
        self.prompts.append(prompt)
        return SimpleNamespace(text=self.text)


class FailingModel:
    def generate_content(self, prompt, generation_config=None):
        raise RuntimeError("quota exceeded")


class FailingChannel(RecordingChannel):
    def send(self, identity, text):
        raise TransportError(identity, "socket closed")


class FlakyRecordStore(InMemoryRecordStore):
    """In-memory store whose listed operations always fail."""

    def __init__(self, failing=()):
        super().__init__()
        self.failing = set(failing)

    def get_profile(self, identity):
        if "get_profile" in self.failing:
            raise RecordStoreError("get_profile", identity)
        return super().get_profile(identity)

    def _write(self, identity, operation, mutate):
        if operation in self.failing:
            raise RecordStoreError(operation, identity)
        return super()._write(identity, operation, mutate)


def make_profile(name="Ana", sex="female", age=30, height=165.0, weight=60.0):
    return UserProfile(name=name, age=age, sex=sex, height=height, weight=weight, medical_history="none")


@pytest.fixture
def sessions():
    return InMemorySessionService()


@pytest.fixture
def reminders():
    return ReminderScheduler()


@pytest.fixture
def router(sessions, reminders):
    return Router(sessions, reminders)


@pytest.fixture
def records():
    return InMemoryRecordStore()


@pytest.fixture
def channel():
    return RecordingChannel()


@pytest.fixture
def model():
    return StubModel()


@pytest.fixture
def system(channel, records, model):
    return AliyaSystem(
        channel=channel,
        records=records,
        advisor=AdvisorAgent(records, model=model),
        clock=lambda: NOW,
    )
