"""
Ticket Interfaces Layer
=======================
"""

from facilityops.tickets.interfaces.controllers import router as tickets_router

__all__ = ["tickets_router"]
