"""
Companion Common Module

Shared infrastructure for the gateway, retriever, and router.
"""

from .config import CompanionConfig, load_config
from .llm_client import LLMClient
from .llm_utils import parse_llm_json, parse_structured_or_default

__all__ = [
    "CompanionConfig",
    "load_config",
    "LLMClient",
    "parse_llm_json",
    "parse_structured_or_default",
]
