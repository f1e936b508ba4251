"""
Barbershop booking: slot generation, booking flow, chat assistant and admin tools.
"""

__version__ = "0.1.0"
