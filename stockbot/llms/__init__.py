from __future__ import annotations

"""
LLM plumbing: provider clients, prompts, structured-output parsing.
"""

from stockbot.llms import prompt_registry, structured

__all__ = [
    "prompt_registry",
    "structured",
]
