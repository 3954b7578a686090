"""
Assistant Module
"""
from .context import build_assistant_context, build_system_prompt
from .session import AssistantSession

__all__ = [
    "build_assistant_context",
    "build_system_prompt",
    "AssistantSession",
]
