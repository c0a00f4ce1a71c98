"""Structured plan records (gymna_plan_data) for table rendering."""
import logging
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

PLANS_TABLE = "gymna_plan_data"


def save_plan(db, chat_id, message_id, user_id, plan_type, plan, raw_response, responses):
    """
    Store a parsed plan next to the assistant message it came from.

    Args:
        plan: DietPlan or WorkoutPlan
        raw_response: the model output the plan was parsed from
        responses: the DialogueResponse list the user answered

    Returns:
        dict: the stored row, or None if the insert failed. The chat message
        is already saved at this point, so a failure here is only logged.
    """
    record = {
        "chat_id": chat_id,
        "message_id": message_id,
        "user_id": user_id,
        "plan_type": plan_type,
        "plan_title": plan.title or f"{plan_type} Plan",
        "raw_json": raw_response,
        "parsed_data": plan.model_dump(by_alias=True, exclude_none=True),
        "is_active": True,
        "metadata": {
            "generatedAt": datetime.now(timezone.utc).isoformat(),
            "questionResponses": [r.model_dump(by_alias=True) for r in responses],
        },
    }
    try:
        response = db.table(PLANS_TABLE).insert(record).execute()
    except Exception as e:
        logger.error("Failed to save plan data for chat %s: %s", chat_id, e)
        return None
    return response.data[0] if response.data else None


def list_plans(db, chat_id):
    """Active plans of a chat, newest first. Errors give an empty list."""
    try:
        response = db.table(PLANS_TABLE) \
            .select("*") \
            .eq("chat_id", chat_id) \
            .eq("is_active", True) \
            .order("created_at", desc=True) \
            .execute()
    except Exception as e:
        logger.error("Error fetching plan data for chat %s: %s", chat_id, e)
        return []
    return response.data or []
