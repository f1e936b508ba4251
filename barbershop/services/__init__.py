"""
Service layer helpers that orchestrate stores and domain logic.
"""

from .admin import AdminService
from .booking import AppointmentStore, BarberRegistry, BookingService
from .chat_agent import ChatAgent, ChatState

__all__ = [
    "AdminService",
    "AppointmentStore",
    "BarberRegistry",
    "BookingService",
    "ChatAgent",
    "ChatState",
]
