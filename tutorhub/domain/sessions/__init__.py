"""Sessions domain - booking, lifecycle workflow and cancellation negotiation"""

from .router import router

__all__ = ["router"]
