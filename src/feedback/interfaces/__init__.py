"""
Feedback Interfaces Layer
=========================

Interface adapters (controllers) for the feedback module.

Contains:
- Controllers: FastAPI route handlers
"""

from src.feedback.interfaces.controllers import router as feedback_router

__all__ = ["feedback_router"]
