from datetime import date, timedelta
from typing import Optional

from models.records import CyclePrediction
from models.session import AssessmentData

HEALTH_SCORE_BASE = 100
LUTEAL_PHASE_DAYS = 14
FERTILE_DAYS_BEFORE_OVULATION = 5
FERTILE_DAYS_AFTER_OVULATION = 1


def calc_bmi(weight_kg: float, height_cm: float) -> Optional[float]:
    """
    Calculate Body Mass Index (BMI).

    Returns:
        BMI as float (kg/m^2), rounded to one decimal, or None if inputs are invalid.
    """
    # Null checks
    if weight_kg is None or height_cm is None:
        return None

    # Type coercion for safety
    try:
        weight_kg = float(weight_kg)
        height_cm = float(height_cm)
    except (ValueError, TypeError):
        return None

    if weight_kg <= 0 or height_cm <= 0:
        return None

    height_m = height_cm / 100.0
    return round(weight_kg / (height_m ** 2), 1)


def bmi_category(bmi: Optional[float]) -> Optional[str]:
    """
    Classify BMI using standard WHO categories for adults.
    """
    if bmi is None:
        return None
    if bmi < 18.5:
        return "underweight"
    if bmi < 25:
        return "normal"
    if bmi < 30:
        return "overweight"
    return "obese"


def calc_health_score(data: AssessmentData) -> int:
    """
    Lifestyle health score out of 100.

    Each habit outside its healthy band costs a fixed deduction:
    - sleep < 7h: -10
    - water < 8 glasses: -5
    - exercise < 3 days/week: -15
    - stress > 7: -10
    - diet quality < 5: -10
    - smoking: -20
    - alcohol > 7 drinks/week: -5

    Never below 0.
    """
    score = HEALTH_SCORE_BASE
    if data.sleep_hours < 7:
        score -= 10
    if data.water_glasses < 8:
        score -= 5
    if data.exercise_days < 3:
        score -= 15
    if data.stress_level > 7:
        score -= 10
    if data.diet_quality < 5:
        score -= 10
    if data.smokes == "yes":
        score -= 20
    if data.alcohol_drinks > 7:
        score -= 5
    return max(0, score)


def health_recommendation(score: int) -> str:
    if score >= 80:
        return "Excellent health! Maintain your habits."
    if score >= 60:
        return "Good health, but could improve in some areas."
    return "Consider lifestyle changes. Focus on sleep, diet and exercise."


def predict_cycle(last_period: date, cycle_length: int) -> CyclePrediction:
    """
    Predict the next period and fertile window.

    Ovulation is taken as 14 days before the next period. The fertile window
    runs from 5 days before ovulation to 1 day after, inclusive.
    """
    ovulation = last_period + timedelta(days=cycle_length - LUTEAL_PHASE_DAYS)
    return CyclePrediction(
        next_period=last_period + timedelta(days=cycle_length),
        ovulation_day=ovulation,
        fertile_start=ovulation - timedelta(days=FERTILE_DAYS_BEFORE_OVULATION),
        fertile_end=ovulation + timedelta(days=FERTILE_DAYS_AFTER_OVULATION),
    )
