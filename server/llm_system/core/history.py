"""Converts the client supplied transcript into langchain chat messages.

The chat UI sends the whole conversation with every request as a list of
`{"role": "user" | "assistant", "content": "..."}` entries. Nothing is stored
on the server side, so this is the only place where chat history is shaped.
"""

import re
from typing import Any, List, Union

from langchain_core.messages import AIMessage, HumanMessage

from logger import get_logger
log = get_logger(name="core_history")

# Anything that looks like a markup tag: <p>, </div>, <br/>, <a href="...">
TAG_PATTERN = re.compile(r"<.*?>")

T_TURN = Union[HumanMessage, AIMessage]


def strip_tags(text: str) -> str:
    """Remove every markup-like `<...>` tag from the text."""
    return TAG_PATTERN.sub("", text)


def normalize_chat_history(history: Any) -> List[T_TURN]:
    """Convert a role-tagged transcript into typed conversation turns.

    - `user` entries become `HumanMessage` with all tags stripped.
    - Every other role becomes `AIMessage` with the content passed through.
    - A payload which is not a list is logged and treated as an empty history,
      so the question is still answered, just without conversational context.

    Args:
        history (Any): The transcript as received from the client.

    Returns:
        List[HumanMessage | AIMessage]: The turns in conversational order.
    """

    if not isinstance(history, list):
        log.warning(f"History is not a list, ignoring it: {type(history).__name__} {str(history)[:80]!r}")
        return []

    turns: List[T_TURN] = []
    for entry in history:
        if not isinstance(entry, dict):
            log.warning(f"Skipping malformed history entry: {str(entry)[:80]!r}")
            continue

        role = entry.get("role")
        content = entry.get("content")
        content = "" if content is None else str(content)

        if role == "user":
            turns.append(HumanMessage(content=strip_tags(content)))
        else:
            if role != "assistant":
                log.warning(f"Unknown role '{role}' in history, treating it as assistant.")
            turns.append(AIMessage(content=content))

    log.debug(f"Normalized {len(turns)} history turns.")
    return turns
