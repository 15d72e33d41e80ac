"""Aliya Data Models.

This module contains the dataclasses for dialogue state and stored records.

Models:
    Session: Per-user dialogue state (active flow, flags, last activity).
    SessionFlag: Booleans that persist across flows.
    UserProfile: Long-term user information collected at onboarding.
    HealthAssessment: A scored lifestyle assessment.
    CyclePrediction: Next period and fertile window dates.
"""
from models.session import (
    Session,
    SessionFlag,
    AwaitingConsent,
    AwaitingAssessmentChoice,
    Onboarding,
    Assessment,
    Fitness,
    Meals,
    Cycle,
)
from models.records import UserProfile, HealthAssessment, CyclePrediction

__all__ = [
    "Session",
    "SessionFlag",
    "AwaitingConsent",
    "AwaitingAssessmentChoice",
    "Onboarding",
    "Assessment",
    "Fitness",
    "Meals",
    "Cycle",
    "UserProfile",
    "HealthAssessment",
    "CyclePrediction",
]
