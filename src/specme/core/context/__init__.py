"""
Codebase context index for the edit-plan generator.
"""

from specme.core.context.builder import CONTEXT_HEADER, ContextBuilder, ContextIndex

__all__ = ["CONTEXT_HEADER", "ContextBuilder", "ContextIndex"]
