"""Aliya Tools Module.

This module contains deterministic helpers used by the dialogue flows.

Tools:
    calc_bmi: Calculate Body Mass Index.
    bmi_category: Classify BMI into WHO categories.
    calc_health_score: Score a lifestyle assessment out of 100.
    health_recommendation: Map a health score to a recommendation tier.
    predict_cycle: Next period, ovulation day and fertile window.
    fitness_plan_text: Format a fitness plan reply.
    meal_plan_text: Format a meal plan reply.
    cycle_prediction_text: Format cycle predictions.
"""
from tools.health_metrics import (
    calc_bmi,
    bmi_category,
    calc_health_score,
    health_recommendation,
    predict_cycle,
)
from tools.plans import fitness_plan_text, meal_plan_text, cycle_prediction_text

__all__ = [
    "calc_bmi",
    "bmi_category",
    "calc_health_score",
    "health_recommendation",
    "predict_cycle",
    "fitness_plan_text",
    "meal_plan_text",
    "cycle_prediction_text",
]
