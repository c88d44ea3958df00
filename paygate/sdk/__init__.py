"""
SDK for the payment gate.

Provides programmatic access to gated generation.
"""

from .gate import EntitlementGate
from .openai_backend import OpenAIGenerationBackend

__all__ = ["EntitlementGate", "OpenAIGenerationBackend"]
