"""
HTTP boundary for the streaming inference pipeline.
"""

from .app import create_app

__all__ = ["create_app"]
