"""
Dialogue-driven plan generation: question sets, prompt compilation and
parsing of the model's JSON answer into typed diet / workout plans.
"""
import json
import logging
import re
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from gymna_backend.modules.errors import InvalidPlanRequest

logger = logging.getLogger(__name__)

PlanType = Literal["diet", "workout"]


# =====================================================================
# DIALOGUE
# =====================================================================

class DialogueResponse(BaseModel):
    question_id: str = Field(alias="questionId")
    answer: Union[List[str], float, str]

    model_config = ConfigDict(populate_by_name=True)


class DialogueQuestion(BaseModel):
    id: str
    question: str
    type: Literal["text", "select", "number", "multiselect"]
    options: Optional[List[str]] = None
    required: bool = True
    min: Optional[float] = None
    max: Optional[float] = None


DIET_PLAN_QUESTIONS = [
    DialogueQuestion(id="preference", question="What is your dietary preference?", type="select",
                     options=["Vegetarian", "Non-Vegetarian", "Vegan"]),
    DialogueQuestion(id="goal", question="What is your primary goal?", type="select",
                     options=["Lose Weight", "Gain Muscle", "Maintain Weight", "General Health"]),
    DialogueQuestion(id="weight", question="What is your current weight (in kg)?", type="number",
                     min=30, max=300),
    DialogueQuestion(id="height", question="What is your height (in cm)?", type="number",
                     min=100, max=250),
    DialogueQuestion(id="activityLevel", question="What is your activity level?", type="select",
                     options=["Sedentary", "Lightly Active", "Moderately Active", "Very Active",
                              "Extremely Active"]),
    DialogueQuestion(id="allergies", question="Do you have any food allergies or restrictions?",
                     type="text", required=False),
    DialogueQuestion(id="cuisine", question="Preferred cuisine or region?", type="select",
                     options=["Indian", "Western", "Mediterranean", "Asian", "Mixed"]),
    DialogueQuestion(id="mealsPerDay", question="How many meals per day do you prefer?", type="select",
                     options=["3 Meals", "4 Meals", "5 Meals", "6 Meals"]),
]

WORKOUT_PLAN_QUESTIONS = [
    DialogueQuestion(id="goal", question="What is your fitness goal?", type="select",
                     options=["Build Strength", "Gain Muscle (Hypertrophy)", "Increase Endurance",
                              "Weight Loss", "General Fitness"]),
    DialogueQuestion(id="experience", question="What is your training experience level?", type="select",
                     options=["Beginner (0-6 months)", "Intermediate (6 months - 2 years)",
                              "Advanced (2+ years)"]),
    DialogueQuestion(id="equipment", question="What equipment do you have access to?", type="select",
                     options=["Full Gym", "Dumbbells Only", "Resistance Bands", "Bodyweight Only",
                              "Home Gym"]),
    DialogueQuestion(id="daysPerWeek", question="How many days per week can you train?", type="select",
                     options=["3 Days", "4 Days", "5 Days", "6 Days"]),
    DialogueQuestion(id="sessionDuration", question="How long can each workout session be?", type="select",
                     options=["30 minutes", "45 minutes", "60 minutes", "90 minutes"]),
    DialogueQuestion(id="injuries", question="Do you have any injuries or limitations?", type="text",
                     required=False),
    DialogueQuestion(id="focusAreas", question="Which areas do you want to focus on?", type="multiselect",
                     options=["Upper Body", "Lower Body", "Core", "Cardio", "Full Body"]),
]

QUESTIONS = {"diet": DIET_PLAN_QUESTIONS, "workout": WORKOUT_PLAN_QUESTIONS}


def _answer_map(responses):
    return {r.question_id: r.answer for r in responses}


def _is_blank(answer):
    if answer is None:
        return True
    if isinstance(answer, (list, str)):
        return len(answer) == 0 or (isinstance(answer, str) and not answer.strip())
    return False


def validate_responses(plan_type, responses):
    """Check required answers are present and numeric answers are in range."""
    if plan_type not in QUESTIONS:
        raise InvalidPlanRequest(f"Unknown plan type: {plan_type}")

    answers = _answer_map(responses)
    for question in QUESTIONS[plan_type]:
        answer = answers.get(question.id)
        if _is_blank(answer):
            if question.required:
                raise InvalidPlanRequest(f"Missing answer: {question.question}")
            continue

        if question.type == "number":
            try:
                value = float(answer)
            except (TypeError, ValueError):
                raise InvalidPlanRequest(f"Expected a number for: {question.question}")
            if question.min is not None and value < question.min:
                raise InvalidPlanRequest(f"Answer must be at least {question.min:g}: {question.question}")
            if question.max is not None and value > question.max:
                raise InvalidPlanRequest(f"Answer must be at most {question.max:g}: {question.question}")


# =====================================================================
# PROMPTS
# =====================================================================

DIET_JSON_STRUCTURE = """{
  "title": "string (e.g., 'Weight Loss Diet Plan')",
  "goalType": "string",
  "totalDailyCalories": number,
  "totalDailyProtein": number,
  "totalDailyCarbs": number,
  "totalDailyFat": number,
  "preference": "veg|non-veg|vegan",
  "meals": [
    {
      "mealName": "string (e.g., 'Breakfast')",
      "time": "string (e.g., '8:00 AM')",
      "foods": [
        {
          "item": "string",
          "quantity": "string (e.g., '2 slices')",
          "calories": number,
          "protein": number,
          "carbs": number,
          "fat": number
        }
      ],
      "totalCalories": number,
      "totalProtein": number,
      "totalCarbs": number,
      "totalFat": number,
      "notes": "string (optional)"
    }
  ],
  "guidelines": ["string"],
  "hydration": {
    "dailyWaterIntake": "string (e.g., '3-4 liters')",
    "tips": ["string"]
  },
  "supplements": [
    {
      "name": "string",
      "timing": "string",
      "purpose": "string"
    }
  ]
}"""

WORKOUT_JSON_STRUCTURE = """{
  "title": "string (e.g., 'Beginner Full Body Strength Plan')",
  "goalType": "string",
  "experienceLevel": "string",
  "daysPerWeek": number,
  "equipment": "string",
  "schedule": [
    {
      "day": "string (e.g., 'Day 1 - Monday')",
      "focus": "string (e.g., 'Upper Body Push')",
      "duration": "string (e.g., '60 minutes')",
      "warmup": ["string"],
      "exercises": [
        {
          "exerciseName": "string",
          "sets": number,
          "reps": "string (e.g., '8-12')",
          "rest": "string (e.g., '90 seconds')",
          "notes": "string (optional)",
          "targetMuscle": "string (optional)"
        }
      ],
      "cooldown": ["string"],
      "notes": "string (optional)"
    }
  ],
  "guidelines": ["string"],
  "progressionTips": ["string"],
  "injuryPrevention": ["string"]
}"""

JSON_ONLY_NOTE = "IMPORTANT: Respond ONLY with a valid JSON object. No markdown, no code blocks, just pure JSON."


def _format_answer(answer, default):
    if _is_blank(answer):
        return default
    if isinstance(answer, list):
        return ", ".join(str(a) for a in answer)
    if isinstance(answer, float) and answer.is_integer():
        return str(int(answer))
    return str(answer)


def compile_prompt(plan_type, responses):
    """Build the plan-generation prompt from dialogue answers."""
    answers = _answer_map(responses)

    def a(question_id, default):
        return _format_answer(answers.get(question_id), default)

    if plan_type == "diet":
        requirements = [
            f"- Dietary Preference: {a('preference', 'No Preference')}",
            f"- Primary Goal: {a('goal', 'General Health')}",
            f"- Current Weight: {a('weight', 'Not Specified')} kg",
            f"- Height: {a('height', 'Not Specified')} cm",
            f"- Activity Level: {a('activityLevel', 'Moderately Active')}",
            f"- Allergies/Restrictions: {a('allergies', 'None')}",
            f"- Preferred Cuisine: {a('cuisine', 'Mixed')}",
            f"- Meals Per Day: {a('mealsPerDay', '3 Meals')}",
        ]
        kind, structure = "diet", DIET_JSON_STRUCTURE
    else:
        requirements = [
            f"- Fitness Goal: {a('goal', 'General Fitness')}",
            f"- Experience Level: {a('experience', 'Beginner')}",
            f"- Available Equipment: {a('equipment', 'Bodyweight Only')}",
            f"- Days Per Week: {a('daysPerWeek', '3 Days')}",
            f"- Session Duration: {a('sessionDuration', '45 minutes')}",
            f"- Injuries/Limitations: {a('injuries', 'None')}",
            f"- Focus Areas: {a('focusAreas', 'Full Body')}",
        ]
        kind, structure = "workout", WORKOUT_JSON_STRUCTURE

    return (
        f"Generate a detailed, comprehensive {kind} plan in JSON format.\n\n"
        "User Requirements:\n"
        + "\n".join(requirements)
        + f"\n\n{JSON_ONLY_NOTE}\n\n"
        f"Required JSON Structure:\n{structure}\n\n"
        "Generate the plan now:"
    )


# =====================================================================
# PLAN SCHEMAS
# =====================================================================

class _CamelModel(BaseModel):
    # Model output drifts: numbers where strings are asked for, extra keys.
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True, extra="allow")


class FoodItem(_CamelModel):
    item: str
    quantity: str
    calories: float = 0
    protein: float = 0
    carbs: float = 0
    fat: float = 0


class DietMeal(_CamelModel):
    meal_name: str = Field(alias="mealName")
    time: str = ""
    foods: List[FoodItem] = []
    total_calories: float = Field(0, alias="totalCalories")
    total_protein: float = Field(0, alias="totalProtein")
    total_carbs: float = Field(0, alias="totalCarbs")
    total_fat: float = Field(0, alias="totalFat")
    notes: Optional[str] = None


class Hydration(_CamelModel):
    daily_water_intake: str = Field(alias="dailyWaterIntake")
    tips: List[str] = []


class Supplement(_CamelModel):
    name: str
    timing: str = ""
    purpose: str = ""


class DietPlan(_CamelModel):
    title: str
    goal_type: str = Field("", alias="goalType")
    total_daily_calories: float = Field(0, alias="totalDailyCalories")
    total_daily_protein: float = Field(0, alias="totalDailyProtein")
    total_daily_carbs: float = Field(0, alias="totalDailyCarbs")
    total_daily_fat: float = Field(0, alias="totalDailyFat")
    preference: Optional[str] = None
    meals: List[DietMeal]
    guidelines: List[str] = []
    hydration: Optional[Hydration] = None
    supplements: List[Supplement] = []


class WorkoutExercise(_CamelModel):
    exercise_name: str = Field(alias="exerciseName")
    sets: Union[int, str]
    reps: str
    rest: str = ""
    notes: Optional[str] = None
    target_muscle: Optional[str] = Field(None, alias="targetMuscle")


class WorkoutDay(_CamelModel):
    day: str
    focus: str = ""
    duration: str = ""
    warmup: List[str] = []
    exercises: List[WorkoutExercise]
    cooldown: List[str] = []
    notes: Optional[str] = None


class WorkoutPlan(_CamelModel):
    title: str
    goal_type: str = Field("", alias="goalType")
    experience_level: str = Field("", alias="experienceLevel")
    days_per_week: int = Field(0, alias="daysPerWeek")
    equipment: str = ""
    schedule: List[WorkoutDay]
    guidelines: List[str] = []
    progression_tips: List[str] = Field([], alias="progressionTips")
    injury_prevention: List[str] = Field([], alias="injuryPrevention")


PLAN_MODELS = {"diet": DietPlan, "workout": WorkoutPlan}

_FENCE_START = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_END = re.compile(r"```\s*$")


def extract_json_text(raw):
    """Strip markdown fences and surrounding prose, keeping the outermost {...}."""
    cleaned = _FENCE_END.sub("", _FENCE_START.sub("", raw.strip()))
    start, end = cleaned.find("{"), cleaned.rfind("}")
    if start != -1 and end > start:
        cleaned = cleaned[start:end + 1]
    return cleaned


def parse_plan_response(raw, plan_type):
    """
    Parse the model output into a DietPlan / WorkoutPlan.

    Returns None when the output is not JSON or does not match the schema.
    """
    try:
        data = json.loads(extract_json_text(raw))
        return PLAN_MODELS[plan_type].model_validate(data)
    except (json.JSONDecodeError, ValidationError) as e:
        logger.warning("Failed to parse %s plan from model output: %s", plan_type, e)
        return None
