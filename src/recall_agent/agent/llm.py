"""Helpers for reading replies from LangChain chat models."""

from __future__ import annotations

from typing import Any


def message_text(reply: Any) -> str:
    """Flatten a chat model reply (message, dict, or string) into plain text."""
    if isinstance(reply, str):
        return reply
    if isinstance(reply, dict):
        return str(reply.get("content", ""))
    content = getattr(reply, "content", reply)
    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if isinstance(item, dict) and "text" in item:
                parts.append(str(item["text"]))
            else:
                parts.append(str(item))
        return " ".join(parts).strip()
    return str(content)
