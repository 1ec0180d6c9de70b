"""
Shared Kernel Module
====================

This module contains shared infrastructure and API plumbing used across
all bounded contexts (tickets, SLA, shifts, dispatch, notifications).

Architecture Pattern: Modular Monolith
- Each module is a bounded context
- Shared kernel contains only generic infrastructure
- Domain models are extended within each module

DO NOT add ticket, SLA or dispatch business logic to the shared kernel.
"""

__version__ = "1.0.0"
