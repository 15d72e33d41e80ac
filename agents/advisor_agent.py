"""AdvisorAgent - Free-form Health Answers

Generation service behind /diagnose, /data, /periodtips and general health
questions. Every answer goes through one persona prompt ("Aliya") with the
user's profile and latest assessment as context.

Design Decisions:
    1. Never Fatal: every public method returns a fixed fallback message when
       Gemini is unavailable or fails; callers never see an exception.
    2. Absent vs Failed: /data and /periodtips return None when there is
       nothing to talk about (no assessment yet, not a female profile), so
       the router can answer that case itself.
    3. No Medical Advice: the persona suggests possibilities and always points
       to professional care for serious symptoms.
"""
from typing import Optional
import json
import logging
import re

from config.llm import get_gemini_model
from config.settings import GENERATION_MAX_TOKENS, GENERATION_TEMPERATURE
from core.errors import GenerationError, RecordStoreError
from models.records import HealthAssessment, UserProfile
from services.record_store import RecordStore

logger = logging.getLogger(__name__)

ALIYA_PERSONALITY = """
You are Aliya, a compassionate AI health assistant. Follow these rules:

1. Response Style:
- Use the patient's name when known
- Include 1-2 relevant emojis maximum (❤️🩺)
- For serious symptoms, always recommend professional care
- Break complex information into bullet points

2. Medical Guidelines:
- List most likely conditions first
- Provide clear self-care instructions
- Highlight danger signs in ALL CAPS
- Never diagnose - suggest possibilities
"""

DIAGNOSIS_FALLBACK = (
    "I'm unable to analyze symptoms right now. For {symptoms}, watch for:\n\n"
    "- Fever above 38°C\n- Difficulty breathing\n- Severe pain\n\n"
    "When in doubt, consult a doctor."
)
ANALYSIS_FALLBACK = "Couldn't generate health analysis. Try again later."
PERIOD_TIPS_FALLBACK = "General tips: Stay hydrated, use heat therapy, monitor symptoms."
GENERAL_FALLBACK = "I can't answer that now. For urgent concerns, contact a doctor."


class AdvisorAgent:
    """Gemini-backed answers with a fixed fallback per question type."""

    def __init__(self, records: RecordStore, model=None):
        self.records = records
        self.model = model if model is not None else get_gemini_model()

    # === Public API ===

    def generate_diagnosis(self, identity: str, symptoms: str) -> str:
        try:
            profile = self.records.get_profile(identity)
            assessment = self.records.get_latest_assessment(identity)
            message = (
                f"Analyze these symptoms:\n{symptoms}\n\n"
                f"{build_health_context(profile, assessment)}\n\n"
                "Provide:\n"
                "1. Top 3 possible causes (with % likelihood)\n"
                "2. Home care recommendations\n"
                "3. RED FLAGS requiring medical attention"
            )
            return self._generate(profile, message, "diagnosis")
        except (GenerationError, RecordStoreError) as e:
            logger.error(f"Diagnosis failed for {identity}: {e}")
            return DIAGNOSIS_FALLBACK.format(symptoms=symptoms)

    def generate_health_analysis(self, identity: str) -> Optional[str]:
        """None when the user has no assessment yet."""
        try:
            assessment = self.records.get_latest_assessment(identity)
            if assessment is None:
                return None
            profile = self.records.get_profile(identity)
            message = (
                "Analyze this health data:\n"
                f"{json.dumps(assessment.lifestyle_data, indent=2)}\n"
                f"Health score: {assessment.score}/100\n\n"
                "Provide:\n1. Health strengths\n2. Improvement areas\n3. Actionable steps"
            )
            return self._generate(profile, message, "assessment")
        except (GenerationError, RecordStoreError) as e:
            logger.error(f"Health analysis failed for {identity}: {e}")
            return ANALYSIS_FALLBACK

    def generate_period_tips(self, identity: str) -> Optional[str]:
        """None unless the profile is female."""
        try:
            profile = self.records.get_profile(identity)
            if profile is None or profile.sex != "female":
                return None
            message = (
                "Provide menstrual health guidance covering:\n"
                "1. Pain relief\n2. Nutrition\n3. Comfort\n4. Warning signs"
            )
            return self._generate(profile, message, "menstrual")
        except (GenerationError, RecordStoreError) as e:
            logger.error(f"Period tips failed for {identity}: {e}")
            return PERIOD_TIPS_FALLBACK

    def answer_general_question(self, identity: str, question: str) -> str:
        try:
            profile = self.records.get_profile(identity)
            message = (
                f"Answer this health question:\n{question}\n\n"
                "Include:\n1. Clear explanation\n2. Practical advice\n3. When to seek help"
            )
            return self._generate(profile, message, "general")
        except (GenerationError, RecordStoreError) as e:
            logger.error(f"General question failed for {identity}: {e}")
            return GENERAL_FALLBACK

    # === Internals ===

    def _generate(self, profile: Optional[UserProfile], message: str, kind: str) -> str:
        if not self.model:
            raise GenerationError(kind, "Gemini model not configured")

        user_name = profile.name if profile else None
        prompt = (
            f"{ALIYA_PERSONALITY}\n"
            f"Patient: {user_name or 'User'}\n"
            f"Context: {kind}\n"
            f"Message: {message}\n\n"
            "Generate a helpful, structured response:"
        )

        try:
            response = self.model.generate_content(
                prompt,
                generation_config={
                    "temperature": GENERATION_TEMPERATURE,
                    "max_output_tokens": GENERATION_MAX_TOKENS,
                },
            )
            text = response.text
        except Exception as e:
            raise GenerationError(kind, f"Gemini generation failed: {e}") from e

        if not text or not text.strip():
            raise GenerationError(kind, "Gemini returned an empty response")
        logger.info(f"AdvisorAgent: generated {kind} response")
        return format_response(text, user_name)


def build_health_context(profile: Optional[UserProfile], assessment: Optional[HealthAssessment]) -> str:
    if assessment is None:
        return "No health history available"

    data = assessment.lifestyle_data

    def fmt(val):
        return val if val is not None else "?"

    return (
        "Health Background:\n"
        f"- Age: {profile.age if profile else 'Unspecified'}\n"
        f"- Sex: {profile.sex if profile else 'Unspecified'}\n"
        f"- Sleep: {fmt(data.get('sleep_hours'))} hrs/night\n"
        f"- Stress: {fmt(data.get('stress_level'))}/10\n"
        f"- Diet: {fmt(data.get('diet_quality'))}/10"
    )


def format_response(text: str, user_name: Optional[str] = None) -> str:
    """Personalise placeholders and collapse blank lines."""
    if user_name:
        text = re.sub(r"\[name\]", lambda _: user_name, text, flags=re.IGNORECASE)
        text = re.sub(r"\buser\b", lambda _: user_name, text, flags=re.IGNORECASE)
    return re.sub(r"\n+", "\n", text).strip()
