"""Plain-text plans sent back when the fitness, meals and cycle flows finish."""
from models.records import CyclePrediction
from models.session import FitnessData, MealsData


def fitness_plan_text(data: FitnessData) -> str:
    goals = data.goals or "General fitness"
    lines = [
        f"🏋️ *Fitness Plan for {goals}*",
        f"Frequency: {data.frequency} days/week",
    ]

    goal = goals.lower()
    if "weight loss" in goal:
        lines.append("Cardio: 30-45 mins, 3-5x/week")
        lines.append("Strength: Full body, 2-3x/week")
    elif "muscle gain" in goal:
        lines.append("Strength: Split routine, 4-5x/week")
        lines.append("Cardio: 20 mins, 2x/week")
    else:
        lines.append("Balanced: 3 days strength, 2 days cardio")

    if data.equipment:
        lines.append(f"Equipment: {data.equipment}")
    return "\n".join(lines)


def meal_plan_text(data: MealsData) -> str:
    preferences = data.preferences or "Balanced"
    lines = [
        f"🍎 *Meal Plan ({preferences})*",
        f"Meals per day: {data.frequency}",
        "",
    ]

    preference = preferences.lower()
    if "vegetarian" in preference:
        lines += [
            "Breakfast: Oatmeal with nuts and fruits",
            "Lunch: Quinoa salad with veggies",
            "Dinner: Lentil curry with rice",
        ]
    elif "keto" in preference:
        lines += [
            "Breakfast: Eggs with avocado",
            "Lunch: Chicken with leafy greens",
            "Dinner: Salmon with asparagus",
        ]
    else:
        lines += [
            "Breakfast: Whole grain toast with protein",
            "Lunch: Balanced plate with protein, carbs, veggies",
            "Dinner: Protein with vegetables and healthy carbs",
        ]

    # Anything beyond three meals is filled with snacks
    if data.frequency and data.frequency > 3:
        lines += [
            "",
            "Snacks:",
            "- Greek yogurt with berries",
            "- Handful of nuts",
        ]

    if data.allergies and data.allergies.strip().lower() != "none":
        lines += ["", f"Avoid: {data.allergies}"]
    return "\n".join(lines)


def cycle_prediction_text(prediction: CyclePrediction) -> str:
    return (
        "📅 *Cycle Predictions*\n"
        f"Next period: {prediction.next_period.isoformat()}\n"
        f"Ovulation: {prediction.ovulation_day.isoformat()}\n"
        f"Fertile window: {prediction.fertile_start.isoformat()} to {prediction.fertile_end.isoformat()}"
    )
