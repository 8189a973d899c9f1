"""LLM agents and prompt construction for the try-on pipeline."""

from .prompt_builder import TryOnPromptBuilder
from .stylist_critic import StylistCritic
from .profile_detector import ProfileDetector

__all__ = [
    "TryOnPromptBuilder",
    "StylistCritic",
    "ProfileDetector",
]
