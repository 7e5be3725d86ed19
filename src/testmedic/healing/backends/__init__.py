"""Reasoning backends for the healer."""

from testmedic.healing.backends.base import HealingBackend
from testmedic.healing.backends.registry import BackendRegistry, create_backend
from testmedic.healing.backends.llm import LlmHealingBackend
from testmedic.healing.backends.gemini import GeminiHealingBackend

__all__ = [
    "BackendRegistry",
    "GeminiHealingBackend",
    "HealingBackend",
    "LlmHealingBackend",
    "create_backend",
]
