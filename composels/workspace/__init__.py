"""Workspace management for ComposeLS."""
from .cache import DocumentCache

__all__ = ['DocumentCache']
