"""
Dispatch Interfaces Layer
=========================
"""

from facilityops.dispatch.interfaces.controllers import router as dispatch_router

__all__ = ["dispatch_router"]
