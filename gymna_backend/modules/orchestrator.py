"""
Credit-gated Gymna generation.

Both flows follow the same shape: check credits, open the chat, debit one
credit, call Gemini, store the reply. If anything fails after the debit the
credit is given back before the error is raised. The user's own message is stored
before the model call and stays in the chat even when generation fails.
"""
import logging

from gymna_backend.modules import conversation_store, credit_ledger, plan_store
from gymna_backend.modules.credit_ledger import GYMNA_CALL_COST
from gymna_backend.modules.errors import (
    GenerationFailed,
    InsufficientCredits,
    ServiceConfigurationError,
    Unauthorized,
)
from gymna_backend.modules.gymna_bot import SYSTEM_PROMPT
from gymna_backend.modules.history_sanitizer import sanitize_history, turns_from_messages
from gymna_backend.modules.plan_parser import compile_prompt, parse_plan_response, validate_responses

logger = logging.getLogger(__name__)

PLAN_TABLE_MARKER = "|"
PLAN_CHAT_TITLES = {"diet": "Diet Plan", "workout": "Workout Plan"}


def _require_ready(bot, user_id):
    if not user_id:
        raise Unauthorized()
    if not bot.is_configured:
        logger.error("GEMINI_API_KEY is missing")
        raise ServiceConfigurationError()


def _resolve_chat(db, user_id, chat_id, title):
    """Existing chat owned by the user, or a new one when chat_id is None."""
    if chat_id is None:
        return conversation_store.create_chat(db, user_id, title)["id"]
    conversation_store.get_chat(db, chat_id, user_id)
    return chat_id


def _require_credits(db, user_id):
    # Read-only; runs before any chat is created.
    if credit_ledger.get_balance(db, user_id) <= 0:
        raise InsufficientCredits()


def _refund(db, user_id):
    try:
        credit_ledger.credit(db, user_id, GYMNA_CALL_COST)
        return True
    except Exception as e:
        # Balance stays one credit short; nothing else can be done here.
        logger.error("Credit refund failed for %s: %s", user_id, e)
        return False


def _fail(db, user_id, error):
    logger.error("AI generation failed for %s: %s", user_id, error, exc_info=error)
    refunded = _refund(db, user_id)
    return GenerationFailed(str(error) or type(error).__name__, refunded=refunded)


def _history_for(db, chat_id, exclude_id=None):
    messages = [m for m in conversation_store.list_messages(db, chat_id) if m.get("id") != exclude_id]
    return sanitize_history(turns_from_messages(messages))


def send_message(db, bot, user_id, chat_id, content):
    """
    Send a free-form message to Gymna and store both turns.

    Args:
        chat_id: existing chat id, or None to start a new chat
        content: the user's message

    Returns:
        dict: {"success": True, "chat_id": ..., "message": <assistant row>}
    """
    _require_ready(bot, user_id)
    _require_credits(db, user_id)
    chat_id = _resolve_chat(db, user_id, chat_id, conversation_store.title_from_message(content))
    credit_ledger.debit(db, user_id, GYMNA_CALL_COST)

    try:
        history = _history_for(db, chat_id)
        conversation_store.append_message(db, chat_id, "user", content)

        full_content = SYSTEM_PROMPT + content if not history else content
        reply = bot.reply(history, full_content)

        message_type = "plan_table" if PLAN_TABLE_MARKER in reply else "text"
        assistant_message = conversation_store.append_message(db, chat_id, "assistant", reply, message_type)
        conversation_store.touch_chat(db, chat_id)
    except Exception as e:
        raise _fail(db, user_id, e) from e

    return {"success": True, "chat_id": chat_id, "message": assistant_message}


def send_dialogue_message(db, bot, user_id, chat_id, plan_type, responses):
    """
    Generate a structured diet or workout plan from dialogue answers.

    Output that does not parse as a plan is still stored as a text message
    and still costs the credit; only a failed call or write is refunded.

    Returns:
        dict: {"success": True, "chat_id", "message_id", "parsed_data"}
    """
    _require_ready(bot, user_id)
    validate_responses(plan_type, responses)
    _require_credits(db, user_id)
    chat_id = _resolve_chat(db, user_id, chat_id, PLAN_CHAT_TITLES[plan_type])
    credit_ledger.debit(db, user_id, GYMNA_CALL_COST)

    try:
        prompt = compile_prompt(plan_type, responses)
        user_message = conversation_store.append_message(
            db, chat_id, "user", f"Generate a {plan_type} plan with my specifications"
        )
        history = _history_for(db, chat_id, exclude_id=user_message.get("id"))

        raw_response = bot.reply(history, prompt, model_id=bot.plan_model)
        plan = parse_plan_response(raw_response, plan_type)

        assistant_message = conversation_store.append_message(
            db, chat_id, "assistant", raw_response, "plan_json" if plan else "text"
        )
        if plan is not None:
            plan_store.save_plan(db, chat_id, assistant_message["id"], user_id,
                                 plan_type, plan, raw_response, responses)
        conversation_store.touch_chat(db, chat_id)
    except Exception as e:
        raise _fail(db, user_id, e) from e

    return {
        "success": True,
        "chat_id": chat_id,
        "message_id": assistant_message["id"],
        "parsed_data": plan.model_dump(by_alias=True, exclude_none=True) if plan else None,
    }
