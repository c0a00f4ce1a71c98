"""Turns stored chat messages into the strictly alternating history Gemini expects."""
from dataclasses import dataclass
from typing import Iterable, List, Literal

from google.genai import types

Role = Literal["user", "assistant"]

TURN_SEPARATOR = "\n\n"


@dataclass(frozen=True)
class HistoryTurn:
    role: Role
    text: str


def turns_from_messages(messages) -> List[HistoryTurn]:
    """Build turns from gymna_messages rows. Anything not from the user is the assistant."""
    return [
        HistoryTurn(role="user" if msg.get("role") == "user" else "assistant",
                    text=msg.get("content") or "")
        for msg in messages
    ]


def sanitize_history(turns: Iterable[HistoryTurn]) -> List[HistoryTurn]:
    """
    Merge consecutive turns of the same role and drop a trailing user turn.

    Same-role texts are joined with a blank line in their original order.
    The trailing user turn is dropped because the caller is about to send
    its own user message. The input is not modified.
    """
    merged: List[HistoryTurn] = []
    for turn in turns:
        if merged and merged[-1].role == turn.role:
            last = merged[-1]
            merged[-1] = HistoryTurn(role=last.role, text=last.text + TURN_SEPARATOR + turn.text)
        else:
            merged.append(turn)

    if merged and merged[-1].role == "user":
        merged.pop()
    return merged


def to_gemini_contents(turns: Iterable[HistoryTurn]) -> List[types.Content]:
    """Gemini calls the assistant role "model"."""
    return [
        types.Content(
            role="user" if turn.role == "user" else "model",
            parts=[types.Part(text=turn.text)],
        )
        for turn in turns
    ]
