"""Aliya Agent Module.

This module contains the AI-backed collaborators of the intake engine.

Agents:
    AdvisorAgent: Gemini-backed diagnosis, health analysis, period tips and
        general health answers, each with a fixed fallback.
"""
from agents.advisor_agent import AdvisorAgent

__all__ = [
    "AdvisorAgent",
]
