"""
Shared Kernel Module
====================

This module contains shared infrastructure used by the feedback bounded
context and any future one.

Architecture Pattern: Modular Monolith
- Each module (feedback) is a bounded context
- Shared kernel contains only generic infrastructure (logging, middleware)

DO NOT add feedback triage business logic to the shared kernel.
"""

__version__ = "1.0.0"
