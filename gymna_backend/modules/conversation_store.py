"""Gymna chats and messages stored in Supabase (gymna_chats / gymna_messages)."""
import logging
from datetime import datetime, timezone

from gymna_backend.modules.errors import ChatNotFound, PersistenceFailed

logger = logging.getLogger(__name__)

CHATS_TABLE = "gymna_chats"
MESSAGES_TABLE = "gymna_messages"

TITLE_PREVIEW_CHARS = 30


def _now():
    return datetime.now(timezone.utc).isoformat()


def _run(query, action):
    """Execute a query builder, turning any client error into PersistenceFailed."""
    try:
        return query.execute()
    except Exception as e:
        logger.error("Failed to %s: %s", action, e)
        raise PersistenceFailed(f"Failed to {action}") from e


def title_from_message(content):
    """Chat title for a conversation started by `content`."""
    return content[:TITLE_PREVIEW_CHARS] + "..."


def list_chats(db, user_id):
    """A user's chats, most recently active first."""
    response = _run(
        db.table(CHATS_TABLE)
        .select("*")
        .eq("user_id", user_id)
        .order("updated_at", desc=True),
        "load chats",
    )
    return response.data or []


def get_chat(db, chat_id, user_id):
    response = _run(
        db.table(CHATS_TABLE)
        .select("*")
        .eq("id", chat_id)
        .eq("user_id", user_id)
        .limit(1),
        "load chat",
    )
    rows = response.data or []
    if not rows:
        raise ChatNotFound()
    return rows[0]


def create_chat(db, user_id, title):
    response = _run(
        db.table(CHATS_TABLE).insert({"user_id": user_id, "title": title}),
        "create chat",
    )
    chat = response.data[0]
    logger.info("Created chat %s for %s", chat["id"], user_id)
    return chat


def delete_chat(db, chat_id, user_id):
    # Ownership check first so a foreign chat id reads as not found.
    get_chat(db, chat_id, user_id)
    _run(db.table(CHATS_TABLE).delete().eq("id", chat_id), "delete chat")
    logger.info("Deleted chat %s", chat_id)


def list_messages(db, chat_id):
    """Messages of a chat in the order they were written."""
    response = _run(
        db.table(MESSAGES_TABLE)
        .select("*")
        .eq("chat_id", chat_id)
        .order("created_at", desc=False),
        "load messages",
    )
    return response.data or []


def append_message(db, chat_id, role, content, message_type="text"):
    response = _run(
        db.table(MESSAGES_TABLE).insert({
            "chat_id": chat_id,
            "role": role,
            "content": content,
            "type": message_type,
        }),
        "save message",
    )
    return response.data[0]


def touch_chat(db, chat_id):
    """Bump updated_at so the chat sorts first in list_chats()."""
    _run(
        db.table(CHATS_TABLE).update({"updated_at": _now()}).eq("id", chat_id),
        "update chat",
    )
