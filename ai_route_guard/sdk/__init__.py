"""
SDK for AI Route Guard.

Provider adapters and catalog sources used at the remote-call boundary.
"""

from .base import GenerateRequest, ProviderAdapter, ProviderReply
from .fixture import FixtureAdapter
from .openai_client import OpenAIAdapter
from .sources import StaticProviderSource

__all__ = [
    "GenerateRequest",
    "ProviderAdapter",
    "ProviderReply",
    "FixtureAdapter",
    "OpenAIAdapter",
    "StaticProviderSource",
]
