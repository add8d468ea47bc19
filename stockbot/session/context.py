from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List

from stockbot.db.schemas import ChatMessage
from stockbot.session.store import SessionStore

ROLE_LABELS = {"user": "User", "assistant": "Assistant"}


@dataclass
class ContextConfig:
    """
    Keep the prompt bounded: only the newest `window_size` messages are sent.
    """
    window_size: int = 20


def render_line(message: ChatMessage) -> str:
    return f"{ROLE_LABELS.get(message.role, 'Assistant')}: {message.content}"


def build_context(store: SessionStore, session_id: str, utterance: str, window_size: int = 20) -> str:
    """
    Transcript of the recent window followed by the new utterance as a
    final `User:` line. Read-only.
    """
    lines = [render_line(m) for m in store.recent_messages(session_id, window_size)]
    lines.append(f"User: {utterance}")
    return "\n".join(lines)


def context_messages(store: SessionStore, session_id: str, utterance: str, window_size: int = 20) -> List[Dict[str, str]]:
    """
    Return OpenAI-style messages list usable for Cerebras/OpenAI-compatible chat.
    """
    out: List[Dict[str, str]] = [
        {"role": m.role, "content": m.content} for m in store.recent_messages(session_id, window_size)
    ]
    out.append({"role": "user", "content": utterance})
    return out
